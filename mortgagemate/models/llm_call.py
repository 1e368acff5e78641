"""
LLM call log. A request row per provider call, a response row per successful one.
"""

from sqlalchemy import Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import RecordBase

STATUS_INPROCESS = "inprocess"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"


class LLMRequest(RecordBase):
    __tablename__ = "llm_requests"

    # Not a foreign key: the first call of a new chat can precede its user row
    user_id: Mapped[int] = mapped_column(Integer, nullable=True, index=True)
    provider: Mapped[str] = mapped_column(String(32), nullable=False)
    model: Mapped[str] = mapped_column(String(100), nullable=False)
    purpose: Mapped[str] = mapped_column(String(50), nullable=True)  # data_gathering, mortgage_analysis, ...
    prompt: Mapped[str] = mapped_column(Text, nullable=False)
    temperature: Mapped[float] = mapped_column(Float, nullable=True)
    max_tokens: Mapped[int] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_INPROCESS)
    latency_ms: Mapped[int] = mapped_column(Integer, nullable=True)
    error_message: Mapped[str] = mapped_column(Text, nullable=True)


class LLMResponse(RecordBase):
    __tablename__ = "llm_responses"

    request_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("llm_requests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    response_text: Mapped[str] = mapped_column(Text, nullable=False)
    prompt_tokens: Mapped[int] = mapped_column(Integer, nullable=True)
    completion_tokens: Mapped[int] = mapped_column(Integer, nullable=True)
    total_tokens: Mapped[int] = mapped_column(Integer, nullable=True)
    finish_reason: Mapped[str] = mapped_column(String(32), nullable=True)
