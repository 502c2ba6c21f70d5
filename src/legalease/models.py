import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .knowledge import IssueCategory


class Stage(str, Enum):
    INTAKE = "intake"
    COLLECTING_DETAILS = "collecting_details"
    ADVISED = "advised"


class Phase(str, Enum):
    """Conversation position; ADVISED carries whether the case-history offer is open."""

    INTAKE = "intake"
    COLLECTING_DETAILS = "collecting_details"
    ADVISED_AWAITING_CHOICE = "advised_awaiting_choice"
    ADVISED = "advised"

    @property
    def stage(self) -> Stage:
        if self in (Phase.ADVISED, Phase.ADVISED_AWAITING_CHOICE):
            return Stage.ADVISED
        return Stage(self.value)


@dataclass
class Turn:
    role: str  # "user" or "assistant"
    text: str


@dataclass
class Session:
    """Per-session intake state."""

    session_id: str
    turns: List[Turn] = field(default_factory=list)
    phase: Phase = Phase.INTAKE
    category: Optional[IssueCategory] = None
    detail_index: int = 0
    collected_details: List[str] = field(default_factory=list)
    advice_given: bool = False

    @property
    def stage(self) -> Stage:
        return self.phase.stage

    @property
    def awaiting_case_history_choice(self) -> bool:
        return self.phase is Phase.ADVISED_AWAITING_CHOICE

    def assign_category(self, category: IssueCategory) -> None:
        if self.category is not None:
            raise ValueError(
                f"Session {self.session_id} already has category {self.category.value}"
            )
        self.category = category

    def record_exchange(self, user_text: str, assistant_text: str) -> None:
        self.turns.append(Turn(role="user", text=user_text))
        self.turns.append(Turn(role="assistant", text=assistant_text))

    def clone(self) -> "Session":
        return copy.deepcopy(self)


@dataclass
class ChatReply:
    """Payload returned to the HTTP layer for one incoming message."""

    reply: str
    emotion: str
    legal_summary: Optional[str] = None
    error: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"reply": self.reply, "emotion": self.emotion}
        if self.legal_summary is not None:
            payload["legalSummary"] = self.legal_summary
        if self.error is not None:
            payload["error"] = self.error
        return payload


def session_to_dict(session: Session) -> Dict[str, Any]:
    """Serialize Session to a JSON-serializable dict."""
    return {
        "session_id": session.session_id,
        "turns": [{"role": t.role, "text": t.text} for t in session.turns],
        "phase": session.phase.value,
        "category": session.category.value if session.category else None,
        "detail_index": session.detail_index,
        "collected_details": list(session.collected_details),
        "advice_given": session.advice_given,
    }


def session_from_dict(data: Dict[str, Any]) -> Session:
    """Build Session from a dict (e.g. from Redis)."""
    category = data.get("category")
    return Session(
        session_id=data["session_id"],
        turns=[Turn(role=t["role"], text=t["text"]) for t in data.get("turns", [])],
        phase=Phase(data.get("phase", Phase.INTAKE.value)),
        category=IssueCategory(category) if category else None,
        detail_index=int(data.get("detail_index", 0)),
        collected_details=list(data.get("collected_details", [])),
        advice_given=bool(data.get("advice_given", False)),
    )
