import re
from typing import Optional

from . import detectors
from . import templates as T
from .state import ChatState

ASK_USER_ID = "ask_user_id"
CONFIRM_SUPPORT = "confirm_support"

STRICT_ID_RE = re.compile(r"^(?:user\s*id[:\s]*)?([a-z0-9_\-]{3,20})$", re.I)
LOOSE_ID_RE = re.compile(r"([a-z0-9_\-]{3,20})", re.I)
YES_RE = re.compile(r"\b(ya|y|iya|sure|ok|oke|okay|lanjut|yes)\b", re.I)
NO_RE = re.compile(r"\b(tidak|tdk|gak|nggak|no|batal|cancel)\b", re.I)


class AccountFlow:
    """Account-change dialogue plus the one-shot user-id-change and new-account replies.

    The account-change dialogue lives in ``ChatState.account_change_flow``:
    ``ask_user_id`` then ``confirm_support``, then cleared.
    """

    def __init__(self, notifier=None):
        self.notifier = notifier

    def wants(self, state: ChatState, text: str) -> bool:
        return (
            state.account_change_flow is not None
            or detectors.is_account_change(text)
            or detectors.is_user_id_change(text)
            or detectors.is_new_account(text)
        )

    def handle(self, state: ChatState, text: str) -> Optional[str]:
        if state.account_change_flow is not None or detectors.is_account_change(text):
            return self._account_change(state, text)
        if detectors.is_user_id_change(text):
            uid = detectors.probable_user_id(text) or state.context.get("user_id") or "anonymous"
            self._ping("userid_change", state.chat_id, uid, text)
            return T.USER_ID_CHANGE_ASK
        if detectors.is_new_account(text):
            return T.NEW_ACCOUNT_ASK
        return None

    def _account_change(self, state: ChatState, text: str) -> str:
        flow = state.account_change_flow
        if flow is None:
            state.account_change_flow = {"step": ASK_USER_ID, "original_request": text}
            return T.ACCOUNT_CHANGE_ASK_ID

        clean = (text or "").strip()
        if flow.get("step") == ASK_USER_ID:
            m = STRICT_ID_RE.match(clean) or LOOSE_ID_RE.search(clean)
            if not m:
                return T.ACCOUNT_CHANGE_INVALID_ID
            flow["user_id"] = m.group(1)
            flow["step"] = CONFIRM_SUPPORT
            return T.ACCOUNT_CHANGE_GOT_ID

        if NO_RE.search(clean):
            state.account_change_flow = None
            return T.ACCOUNT_CHANGE_CANCELLED
        if YES_RE.search(clean):
            self._ping("account_change", state.chat_id, flow.get("user_id") or "anonymous",
                       flow.get("original_request") or text)
            state.account_change_flow = None
            return T.ACCOUNT_CHANGE_DONE
        return T.ACCOUNT_CHANGE_CONFIRM

    def _ping(self, ping_type: str, chat_id: str, user_id: str, message: str) -> None:
        if self.notifier is None:
            return
        try:
            self.notifier.ping(ping_type, chat_id, user_id, message=message)
        except Exception as e:
            print(f"[ACCOUNT] Support ping failed for {chat_id}: {e}")
