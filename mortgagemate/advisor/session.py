"""
In-memory advisor session.

Sessions are treated as values: every update returns a new AdvisorSession,
so a turn that fails half-way leaves the cached one untouched.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional

from .fields import merge_fields
from .modes import Mode
from .scoring import ScoringStrategy, completeness_score


class Sender(str, Enum):
    """Who wrote a message. The advisor is a reserved identity, never a user row."""
    USER = "user"
    ADVISOR = "advisor"


ADVISOR = Sender.ADVISOR

HISTORY_TAGS = {
    Sender.USER: "User",
    Sender.ADVISOR: "AI",
}


def history_line(sender: Sender, body: str) -> str:
    return f"{HISTORY_TAGS[Sender(sender)]}: {body}"


@dataclass(frozen=True)
class AdvisorSession:
    chat_id: str
    numerical_id: int
    user_id: int
    mode: Mode = Mode.DATA_GATHERING
    fields: dict = field(default_factory=dict)
    history: tuple[str, ...] = ()
    last_analysis: Optional[str] = None
    completeness_score: int = 0

    @property
    def has_prior_analysis(self) -> bool:
        return bool(self.last_analysis)

    def recent_history(self, limit: int) -> list[str]:
        if limit <= 0:
            return []
        return list(self.history[-limit:])

    def to_dict(self) -> dict:
        return {
            "chat_id": self.chat_id,
            "numerical_id": self.numerical_id,
            "user_id": self.user_id,
            "mode": self.mode.value,
            "fields": dict(self.fields),
            "history": list(self.history),
            "last_analysis": self.last_analysis,
            "completeness_score": self.completeness_score,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AdvisorSession":
        return cls(
            chat_id=data["chat_id"],
            numerical_id=int(data["numerical_id"]),
            user_id=int(data["user_id"]),
            mode=Mode(data.get("mode") or Mode.DATA_GATHERING.value),
            fields=dict(data.get("fields") or {}),
            history=tuple(data.get("history") or ()),
            last_analysis=data.get("last_analysis"),
            completeness_score=int(data.get("completeness_score") or 0),
        )


def new_session(chat_id: str, numerical_id: int, user_id: int) -> AdvisorSession:
    return AdvisorSession(chat_id=chat_id, numerical_id=numerical_id, user_id=user_id)


def merge_session_fields(
    session: AdvisorSession,
    incoming: Optional[dict],
    strategy: Optional[ScoringStrategy] = None,
) -> AdvisorSession:
    """Overlay a partial FieldSet (LLM or document extraction) and rescore."""
    fields = merge_fields(session.fields, incoming)
    return replace(
        session,
        fields=fields,
        completeness_score=completeness_score(fields, strategy),
    )


def apply_user_turn(
    session: AdvisorSession,
    text: str,
    extracted: Optional[dict] = None,
    strategy: Optional[ScoringStrategy] = None,
) -> AdvisorSession:
    session = merge_session_fields(session, extracted, strategy)
    return replace(session, history=session.history + (history_line(Sender.USER, text),))


def apply_advisor_turn(
    session: AdvisorSession,
    text: str,
    is_analysis: bool = False,
) -> AdvisorSession:
    """Append the reply. An analysis reply becomes last_analysis and moves the mode to followup."""
    return replace(
        session,
        history=session.history + (history_line(Sender.ADVISOR, text),),
        last_analysis=text if is_analysis else session.last_analysis,
        mode=Mode.FOLLOWUP if is_analysis else session.mode,
    )
