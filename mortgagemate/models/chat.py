"""
Chat headers. One per conversation, soft-deleted via overall_status.
"""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import RecordBase, new_uuid, utcnow

STATUS_ACTIVE = "active"
STATUS_INACTIVE = "inactive"

DEFAULT_CHAT_TITLE = "New Chat"


class Chat(RecordBase):
    __tablename__ = "chats"
    __table_args__ = (
        # numerical_id is per user, used in human-facing URLs
        UniqueConstraint("user_id", "numerical_id", name="uq_chats_user_numerical"),
    )

    chat_id: Mapped[str] = mapped_column(String(36), unique=True, nullable=False, default=new_uuid)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False, index=True
    )
    numerical_id: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False, default=DEFAULT_CHAT_TITLE)
    overall_status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=STATUS_ACTIVE, index=True
    )
    scenario_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("mortgage_scenarios.id"), nullable=True
    )
    latest_view_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=True, default=utcnow
    )
