"""
Chat messages. Append-only; the ordered rows are the only source of history.
"""

from sqlalchemy import Enum as SAEnum, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from ..advisor.session import Sender
from .base import RecordBase


class Message(RecordBase):
    __tablename__ = "messages"

    chat_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("chats.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # The human on this chat; set for both directions
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    sender: Mapped[Sender] = mapped_column(
        SAEnum(Sender, name="message_sender", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    body: Mapped[str] = mapped_column(Text, nullable=False)
    llm_request_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("llm_requests.id"), nullable=True
    )
    llm_response_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("llm_responses.id"), nullable=True
    )
