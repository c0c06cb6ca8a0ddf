import os, json, re, requests
from typing import Optional, Dict, Any

STRICT_JSON = (
    "You are a strict JSON generator. Reply ONLY valid minified JSON without any prose. "
    "Do not include markdown, backticks, or explanations."
)
_JSON_BLOCK = re.compile(r"\{.*\}", re.S)


def parse_json_object(text: str) -> Dict[str, Any]:
    """First JSON object in model output; ``{}`` when there is none."""
    text = text or ""
    candidates = [text]
    m = _JSON_BLOCK.search(text)
    if m:
        candidates.append(m.group(0))
    for candidate in candidates:
        try:
            out = json.loads(candidate)
        except (TypeError, ValueError):
            continue
        if isinstance(out, dict):
            return out
    return {}


class OllamaClient:
    """Minimal ``/api/generate`` client for the local model used by the support bot."""

    def __init__(
        self,
        host: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        max_tokens: int = 256,
    ) -> None:
        self.host = (host or os.getenv("OLLAMA_HOST", "http://127.0.0.1:11434")).rstrip("/")
        self.model = model or os.getenv("OLLAMA_MODEL", "qwen3:4B-instruct")
        self.timeout = float(timeout or os.getenv("OLLAMA_TIMEOUT", "8"))
        self.max_tokens = max_tokens

    def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            r = requests.post(f"{self.host}/api/generate", json=payload, timeout=self.timeout)
            r.raise_for_status()
            return r.json()
        except (requests.RequestException, ValueError) as e:
            print(f"[LLM] {self.model} request failed: {e}")
            return {}

    def generate(self, system: str, prompt: str, temperature: float = 0.2, as_json: bool = False) -> str:
        payload: Dict[str, Any] = {
            "model": self.model,
            "system": system,
            "prompt": prompt,
            "options": {"temperature": temperature, "num_predict": self.max_tokens},
            "stream": False,
        }
        if as_json:
            payload["format"] = "json"
        out = self._post(payload)
        return (out.get("response") or "").strip()

    def generate_json(self, system: str, prompt: str, temperature: float = 0.0) -> Dict[str, Any]:
        text = self.generate(system=f"{STRICT_JSON}\n\n{system}".strip(), prompt=prompt,
                             temperature=temperature, as_json=True)
        return parse_json_object(text)
