"""
Production-grade LLM client.

Features:
  - Retry with exponential backoff + jitter (handles 429, 500, 502, 503, 504)
  - Provider fallback (primary → fallback)
  - Offline "mock" provider for local runs
  - Reusable client (connection pooling)
  - Every call logged to llm_requests / llm_responses
  - Structured replies: response text + extracted fields + analysis consent
"""

import asyncio
import json
import logging
import random
import re
import time
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from ..advisor.fields import clean_fields
from ..core.config import get_settings
from ..core.errors import CollaboratorError
from ..core.flags import get_flags
from . import llm_logging

logger = logging.getLogger(__name__)

# ── Reusable client (connection pool) ────────────────────────────────

_client: Optional[httpx.AsyncClient] = None


def _get_client() -> httpx.AsyncClient:
    global _client
    if _client is None or _client.is_closed:
        _client = httpx.AsyncClient(
            timeout=httpx.Timeout(connect=10, read=120, write=30, pool=10),
            limits=httpx.Limits(max_connections=50, max_keepalive_connections=20),
        )
    return _client


async def close_client():
    """Close the shared HTTP client. Call on app shutdown."""
    global _client
    if _client and not _client.is_closed:
        await _client.aclose()
        _client = None


# ── Provider config ──────────────────────────────────────────────────

def _get_provider_config(provider: Optional[str] = None) -> tuple[str, str, str]:
    """Returns (base_url, api_key, default_model) for a provider."""
    settings = get_settings()
    p = (provider or get_flags().llm_provider).lower()

    if p == "gemini":
        return (
            "https://generativelanguage.googleapis.com/v1beta/openai",
            settings.gemini_api_key,
            settings.default_llm_model,
        )
    else:  # openai (fallback)
        return settings.openai_base_url, settings.openai_api_key, settings.default_llm_model


# ── Retry logic ──────────────────────────────────────────────────────

RETRYABLE_STATUS = {429, 500, 502, 503, 504}
MAX_RETRIES = 3
BASE_DELAY = 1.0
MAX_DELAY = 16.0


async def _retry_request(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    **kwargs,
) -> httpx.Response:
    """Execute request with exponential backoff + jitter."""
    last_exc = None

    for attempt in range(MAX_RETRIES + 1):
        try:
            resp = await client.request(method, url, **kwargs)

            if resp.status_code not in RETRYABLE_STATUS:
                if resp.status_code >= 400:
                    logger.error("LLM API error %d: %s", resp.status_code, resp.text[:500])
                resp.raise_for_status()
                return resp

            # Retryable error
            retry_after = resp.headers.get("retry-after")
            delay = float(retry_after) if retry_after else min(
                MAX_DELAY, BASE_DELAY * (2 ** attempt) + random.uniform(0, 1)
            )
            logger.warning(
                "LLM %d (attempt %d/%d) — retrying in %.1fs",
                resp.status_code, attempt + 1, MAX_RETRIES + 1, delay,
            )
            last_exc = httpx.HTTPStatusError(
                f"{resp.status_code}", request=resp.request, response=resp
            )
            await asyncio.sleep(delay)

        except httpx.TimeoutException as e:
            delay = min(MAX_DELAY, BASE_DELAY * (2 ** attempt) + random.uniform(0, 1))
            logger.warning(
                "LLM timeout (attempt %d/%d) — retrying in %.1fs",
                attempt + 1, MAX_RETRIES + 1, delay,
            )
            last_exc = e
            await asyncio.sleep(delay)

        except httpx.HTTPStatusError:
            raise  # Non-retryable HTTP errors
        except httpx.TransportError as e:
            last_exc = e
            if attempt < MAX_RETRIES:
                delay = min(MAX_DELAY, BASE_DELAY * (2 ** attempt))
                await asyncio.sleep(delay)

    raise last_exc or RuntimeError("LLM request failed after retries")


# ── Chat completion ──────────────────────────────────────────────────

async def chat(
    messages: list[dict],
    model: Optional[str] = None,
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
    provider: Optional[str] = None,
    json_mode: bool = False,
) -> dict:
    """
    Chat completion with retry + optional provider fallback.
    Returns the full API response as dict.
    """
    settings = get_settings()
    active_provider = (provider or get_flags().llm_provider).lower()

    if active_provider == "mock":
        return _mock_chat(messages, json_mode)

    base_url, api_key, default_model = _get_provider_config(active_provider)

    if not api_key:
        raise ValueError(
            f"No API key for LLM provider '{active_provider}'. "
            "Set GEMINI_API_KEY or OPENAI_API_KEY."
        )

    payload: dict[str, Any] = {
        "model": model or default_model,
        "messages": messages,
        "temperature": temperature if temperature is not None else settings.advisor_temperature,
        "max_tokens": max_tokens or settings.advisor_max_tokens,
    }
    if json_mode:
        payload["response_format"] = {"type": "json_object"}

    url = f"{base_url.rstrip('/')}/chat/completions"
    headers = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }

    start = time.monotonic()
    client = _get_client()

    try:
        resp = await _retry_request(client, "POST", url, json=payload, headers=headers)
        data = resp.json()
        elapsed = time.monotonic() - start

        usage = data.get("usage", {})
        logger.info(
            "LLM chat: %dms | in=%d out=%d tokens | model=%s",
            int(elapsed * 1000),
            usage.get("prompt_tokens", 0),
            usage.get("completion_tokens", 0),
            payload["model"],
        )
        return data

    except Exception as e:
        elapsed = time.monotonic() - start
        logger.error("LLM failed after %.1fs: %s", elapsed, e)

        # Try fallback provider if primary failed
        fallback = _get_fallback_provider(active_provider)
        if fallback and not provider:  # Only fallback once
            logger.info("Falling back to %s", fallback)
            return await chat(
                messages=messages, model=model, temperature=temperature,
                max_tokens=max_tokens, provider=fallback, json_mode=json_mode,
            )
        raise


def _get_fallback_provider(primary: str) -> Optional[str]:
    """Get fallback provider. Returns None if no fallback available."""
    settings = get_settings()
    candidates = []
    if primary != "gemini" and settings.gemini_api_key:
        candidates.append("gemini")
    if primary != "openai" and settings.openai_api_key:
        candidates.append("openai")
    return candidates[0] if candidates else None


MOCK_GATHERING_REPLY = {
    "response": (
        "Thanks, that's helpful. To review your mortgage properly, could you tell me "
        "your outstanding balance and your current monthly payment?"
    ),
    "extractedData": {},
    "proceedWithAnalysis": False,
}

MOCK_ANALYSIS_REPLY = (
    "Based on what you've shared, here is my assessment.\n\n"
    "- Compare fixed-rate remortgage deals before your current product ends\n"
    "- Check the early repayment charges on your existing mortgage\n"
    "- Keep your term unchanged unless you need a lower monthly payment\n\n"
    "This is guidance, not a regulated recommendation."
)


def _mock_chat(messages: list[dict], json_mode: bool) -> dict:
    content = json.dumps(MOCK_GATHERING_REPLY) if json_mode else MOCK_ANALYSIS_REPLY
    return {
        "model": "mock",
        "choices": [{"message": {"role": "assistant", "content": content}, "finish_reason": "stop"}],
        "usage": {"prompt_tokens": 0, "completion_tokens": 0, "total_tokens": 0},
    }


# ── Structured replies ───────────────────────────────────────────────

_FENCE_RE = re.compile(r"```(?:json)?\s*(\{.*\})\s*```", re.DOTALL)


def _load_json_object(text: str) -> Optional[dict]:
    """Find a JSON object in model output. Tolerates code fences and leading prose."""
    candidates = []
    fenced = _FENCE_RE.search(text)
    if fenced:
        candidates.append(fenced.group(1))
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        candidates.append(text[start:end + 1])

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data
    return None


def parse_structured_reply(text: str) -> tuple[str, dict, bool]:
    """
    Split a data-gathering reply into (response_text, cleaned_fields, proceed_with_analysis).
    Unparsable output is passed through as plain text with no fields.
    """
    data = _load_json_object(text)
    if data is None:
        logger.warning("Structured reply was not JSON; using raw text")
        return text.strip(), {}, False

    extracted = data.get("extractedData") or {}
    # Some models return the object as a JSON string
    if isinstance(extracted, str):
        try:
            extracted = json.loads(extracted)
        except json.JSONDecodeError:
            logger.warning("extractedData string was not JSON; ignoring")
            extracted = {}
    if not isinstance(extracted, dict):
        extracted = {}

    response_text = str(data.get("response") or "").strip()
    proceed = data.get("proceedWithAnalysis") is True
    return response_text, clean_fields(extracted), proceed


# ── Advisor-facing entry point ───────────────────────────────────────

@dataclass
class Completion:
    text: str
    fields: dict = field(default_factory=dict)
    proceed_with_analysis: bool = False
    request_id: Optional[int] = None
    response_id: Optional[int] = None


async def complete(
    prompt: str,
    max_tokens: int,
    temperature: float,
    structured: bool = False,
    purpose: Optional[str] = None,
    user_id: Optional[int] = None,
) -> Completion:
    """
    One prompt in, one Completion out. Any provider failure becomes CollaboratorError.
    Cancellation is not caught.
    """
    provider = get_flags().llm_provider.lower()
    model = "mock" if provider == "mock" else get_settings().default_llm_model
    request_id = await llm_logging.log_request(
        provider=provider,
        model=model,
        prompt=prompt,
        temperature=temperature,
        max_tokens=max_tokens,
        purpose=purpose,
        user_id=user_id,
    )

    start = time.monotonic()
    try:
        data = await chat(
            messages=[{"role": "user", "content": prompt}],
            temperature=temperature,
            max_tokens=max_tokens,
            json_mode=structured,
        )
        choice = data["choices"][0]
        raw_text = choice["message"]["content"] or ""
    except Exception as e:
        latency_ms = int((time.monotonic() - start) * 1000)
        await llm_logging.log_failure(request_id, str(e), latency_ms)
        raise CollaboratorError(f"LLM call failed: {e}") from e

    latency_ms = int((time.monotonic() - start) * 1000)
    response_id = await llm_logging.log_response(
        request_id,
        raw_text,
        latency_ms,
        usage=data.get("usage"),
        finish_reason=choice.get("finish_reason"),
    )

    if structured:
        text, fields, proceed = parse_structured_reply(raw_text)
    else:
        text, fields, proceed = raw_text.strip(), {}, False

    if not text:
        raise CollaboratorError("LLM returned an empty reply")

    return Completion(
        text=text,
        fields=fields,
        proceed_with_analysis=proceed,
        request_id=request_id,
        response_id=response_id,
    )
