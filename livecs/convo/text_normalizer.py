import re
from typing import Dict

_NON_WORD = re.compile(r"[^\w\s]", re.UNICODE)
_SPACES = re.compile(r"\s+")


def normalize_for_match(text: str) -> str:
    """Lowercase, replace punctuation with spaces and collapse whitespace."""
    t = (text or "").lower()
    t = _NON_WORD.sub(" ", t).replace("_", " ")
    return _SPACES.sub(" ", t).strip()


class TextNormalizer:
    def __init__(self):
        self.slang_map: Dict[str, str] = {
            "udh": "sudah",
            "udah": "sudah",
            "dah": "sudah",
            "blm": "belum",
            "blum": "belum",
            "gk": "gak",
            "ga": "gak",
            "ngga": "nggak",
            "tdk": "tidak",
            "gmn": "gimana",
            "gmna": "gimana",
            "knp": "kenapa",
            "krn": "karena",
            "trs": "terus",
            "jg": "juga",
            "msh": "masih",
            "yg": "yang",
            "dgn": "dengan",
            "tp": "tapi",
            "klo": "kalau",
            "kl": "kalau",
            "bs": "bisa",
            "bsa": "bisa",
            "skrg": "sekarang",
            "skrng": "sekarang",
            "kmrn": "kemarin",
            "lg": "lagi",
            "sy": "saya",
            "gw": "saya",
            "gua": "saya",
            "aq": "aku",
            "tf": "transfer",
            "trf": "transfer",
            "rek": "rekening",
            "norek": "nomor rekening",
            "depo": "deposit",
            "wd": "withdraw",
            "pw": "password",
            "pass": "password",
            "mksh": "makasih",
        }

        self.typo_map: Dict[str, str] = {
            "deposti": "deposit",
            "depsoit": "deposit",
            "withdrwa": "withdraw",
            "witdraw": "withdraw",
            "widraw": "withdraw",
            "pasword": "password",
            "passwrod": "password",
            "rekenign": "rekening",
            "promoo": "promo",
            "bonuss": "bonus",
        }

    def normalize_word(self, word: str) -> str:
        word_lower = word.lower().strip()

        if word_lower in self.slang_map:
            return self.slang_map[word_lower]

        if word_lower in self.typo_map:
            return self.typo_map[word_lower]

        return word

    def normalize_text(self, text: str) -> str:
        if not text:
            return text

        return " ".join(self.normalize_word(w) for w in text.split())

    def normalize_for_intent(self, text: str) -> str:
        return normalize_for_match(self.normalize_text(normalize_for_match(text)))
