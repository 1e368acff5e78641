"""
Analyses. One row per advisor turn that was a full mortgage analysis.
"""

from sqlalchemy import ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import RecordBase


class Analysis(RecordBase):
    __tablename__ = "analyses"

    chat_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("chats.id", ondelete="CASCADE"), nullable=False, index=True
    )
    scenario_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("mortgage_scenarios.id"), nullable=True, index=True
    )
    prompt_sent: Mapped[str] = mapped_column(Text, nullable=True)
    llm_response: Mapped[str] = mapped_column(Text, nullable=False)
