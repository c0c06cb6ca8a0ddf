import copy
import time
from typing import Any, Dict, List, Optional

MAX_HISTORY = 10


def empty_slots() -> Dict[str, Any]:
    return {"active": False, "user_id": None, "amount": None}


def default_context() -> Dict[str, Any]:
    return {
        "language": "id",
        "user_id": None,
        "account_name": None,
        "account_number": None,
        "phone_number": None,
        "bank": None,
        "deposit_amount": None,
        "last_deposit_check": None,
        "issue_type": None,
        "conversation_history": [],
        "is_discussing_promos": False,
    }


# ChatState Object
class ChatState:
    def __init__(self, chat_id: str, started: Optional[float] = None):
        self.chat_id = chat_id
        self.context: Dict[str, Any] = default_context()
        self.deposit_state: Dict[str, Any] = empty_slots()
        self.withdraw_state: Dict[str, Any] = empty_slots()
        self.account_change_flow: Optional[Dict[str, Any]] = None
        self.off_topic_warning_count: int = 0
        self.has_sent_welcome: bool = False
        self.has_sent_welcome_at: Optional[float] = None
        self.has_sent_transfer_notice: bool = False
        self.has_received_customer_message: bool = False
        self.last_processed_message_id: Optional[str] = None
        self.last_response_time: Optional[float] = None
        self.last_response_type: str = ""
        self.started: float = started if started is not None else time.time()

    # History
    def append_history(self, message: str, kind: str, ts: Optional[float] = None) -> None:
        history: List[Dict[str, Any]] = self.context.setdefault("conversation_history", [])
        history.append({
            "message": message,
            "timestamp": ts if ts is not None else time.time(),
            "type": kind,
        })
        if len(history) > MAX_HISTORY:
            self.context["conversation_history"] = history[-MAX_HISTORY:]

    def history(self) -> List[Dict[str, Any]]:
        return list(self.context.get("conversation_history") or [])

    def slots(self, flow: str) -> Dict[str, Any]:
        if flow == "deposit":
            return self.deposit_state
        if flow == "withdraw":
            return self.withdraw_state
        raise ValueError(f"[ChatState] Unknown flow: {flow}")

    def to_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self.__dict__)

    @classmethod
    def from_dict(cls, chat_id: str, data: Dict[str, Any]) -> "ChatState":
        if not isinstance(data, dict):
            raise ValueError(f"[ChatState] Snapshot for {chat_id} is not an object")

        state = cls(chat_id)
        for key, val in data.items():
            if key == "chat_id" or not hasattr(state, key):
                continue
            if key == "context":
                if not isinstance(val, dict):
                    raise ValueError(f"[ChatState] Bad context for {chat_id}")
                ctx = default_context()
                ctx.update(val)
                if not isinstance(ctx.get("conversation_history"), list):
                    ctx["conversation_history"] = []
                ctx["conversation_history"] = ctx["conversation_history"][-MAX_HISTORY:]
                state.context = ctx
            elif key in ("deposit_state", "withdraw_state"):
                if not isinstance(val, dict):
                    raise ValueError(f"[ChatState] Bad {key} for {chat_id}")
                slots = empty_slots()
                slots.update({k: val.get(k) for k in slots if k in val})
                setattr(state, key, slots)
            else:
                setattr(state, key, val)
        return state

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ChatState):
            return NotImplemented
        return self.__dict__ == other.__dict__
