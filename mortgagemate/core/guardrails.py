"""
Guardrails — input/output validation around the advisor turn.

Layers:
  1. Input validation (length, emptiness, prompt-injection logging)
  2. Output validation (response length, prompt leakage logging)
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from .config import get_settings

logger = logging.getLogger(__name__)

# ── Configuration ─────────────────────────────────────────────────────

MAX_RESPONSE_LENGTH = 50000      # Max output response length

INJECTION_PATTERNS = [
    r"ignore\s+(all\s+)?previous\s+instructions",
    r"ignore\s+(all\s+)?above",
    r"disregard\s+(all\s+)?previous",
    r"you\s+are\s+now\s+(?:a|an)\s+",
    r"<\s*system\s*>",
]

LEAK_INDICATORS = [
    "you are mortgagemate",
    "json_data_start",
    "proceed_with_analysis",
]


@dataclass
class GuardrailResult:
    """Result of a guardrail check."""
    allowed: bool
    reason: Optional[str] = None
    modified_input: Optional[str] = None


# ── Input Guardrails ──────────────────────────────────────────────────

def check_input(message: str, user_id: str = "") -> GuardrailResult:
    """
    Validate user input before processing.
    Returns GuardrailResult with allowed=False if blocked.
    """
    max_length = get_settings().max_message_length

    # 1. Length check
    if len(message) > max_length:
        return GuardrailResult(
            allowed=False,
            reason=f"Message too long ({len(message)} chars). Maximum is {max_length}.",
        )

    # 2. Empty message
    if not message.strip():
        return GuardrailResult(
            allowed=False,
            reason="Message is empty.",
        )

    # 3. Injection detection. Logged only; the advisor prompt keeps the model on task.
    msg_lower = message.lower()
    for pattern in INJECTION_PATTERNS:
        if re.search(pattern, msg_lower):
            logger.warning("Potential injection detected from user=%s: %s", user_id, message[:100])
            break

    return GuardrailResult(allowed=True)


# ── Output Guardrails ─────────────────────────────────────────────────

def check_output(response: str) -> GuardrailResult:
    """
    Validate advisor output before sending to user.
    """

    # 1. Truncate excessively long responses
    if len(response) > MAX_RESPONSE_LENGTH:
        return GuardrailResult(
            allowed=True,
            modified_input=response[:MAX_RESPONSE_LENGTH] + "\n\n[Response truncated due to length]",
        )

    # 2. Check for accidental prompt leakage
    resp_lower = response.lower()
    for indicator in LEAK_INDICATORS:
        if indicator in resp_lower:
            logger.warning("Possible prompt leak detected in output")
            break

    return GuardrailResult(allowed=True)
