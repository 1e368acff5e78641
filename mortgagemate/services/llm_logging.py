"""
LLM call log.

Each write runs in its own short session so logging never joins, or breaks,
the caller's transaction. Failures are warnings and return None.
"""

import logging
from typing import Optional

from sqlalchemy import update

from ..core.database import get_session_factory
from ..models.llm_call import (
    STATUS_COMPLETED,
    STATUS_FAILED,
    LLMRequest,
    LLMResponse,
)

logger = logging.getLogger(__name__)


async def log_request(
    provider: str,
    model: str,
    prompt: str,
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
    purpose: Optional[str] = None,
    user_id: Optional[int] = None,
) -> Optional[int]:
    """Record an in-process request. Returns its id, or None if logging failed."""
    try:
        async with get_session_factory()() as db:
            row = LLMRequest(
                user_id=user_id,
                provider=provider,
                model=model,
                purpose=purpose,
                prompt=prompt,
                temperature=temperature,
                max_tokens=max_tokens,
            )
            db.add(row)
            await db.commit()
            logger.debug("Started LLM request %s (%s)", row.id, purpose)
            return row.id
    except Exception as e:
        logger.warning("Failed to log LLM request: %s", e)
        return None


async def log_response(
    request_id: Optional[int],
    response_text: str,
    latency_ms: int,
    usage: Optional[dict] = None,
    finish_reason: Optional[str] = None,
) -> Optional[int]:
    """Mark the request completed and store the response. Returns the response id."""
    if request_id is None:
        return None
    usage = usage or {}
    try:
        async with get_session_factory()() as db:
            await db.execute(
                update(LLMRequest)
                .where(LLMRequest.id == request_id)
                .values(status=STATUS_COMPLETED, latency_ms=latency_ms)
            )
            row = LLMResponse(
                request_id=request_id,
                response_text=response_text,
                prompt_tokens=usage.get("prompt_tokens"),
                completion_tokens=usage.get("completion_tokens"),
                total_tokens=usage.get("total_tokens"),
                finish_reason=finish_reason,
            )
            db.add(row)
            await db.commit()
            return row.id
    except Exception as e:
        logger.warning("Failed to log LLM response for request %s: %s", request_id, e)
        return None


async def log_failure(request_id: Optional[int], error: str, latency_ms: int) -> None:
    if request_id is None:
        return
    try:
        async with get_session_factory()() as db:
            await db.execute(
                update(LLMRequest)
                .where(LLMRequest.id == request_id)
                .values(status=STATUS_FAILED, latency_ms=latency_ms, error_message=error[:2000])
            )
            await db.commit()
    except Exception as e:
        logger.warning("Failed to mark LLM request %s failed: %s", request_id, e)
