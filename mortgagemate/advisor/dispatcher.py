"""
Prompt dispatch.

Given a session and the incoming text, pick the template for the current
mode and assemble everything it needs. Nothing here calls the LLM.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ..core.config import get_settings
from .fields import FIELD_SPECS, FIELDS, FieldKind, is_present, normalize_number
from .modes import Mode, next_mode
from .narration import conversation_stage, current_priority
from .prompts import (
    ANALYSIS_FOLLOWUP_TEMPLATE,
    DATA_GATHERING_TEMPLATE,
    MORTGAGE_ANALYSIS_TEMPLATE,
    NO_ANALYSIS,
    NO_HISTORY,
    NO_RECOMMENDATIONS,
)
from .scoring import ScoringStrategy
from .session import AdvisorSession

MAX_RECOMMENDATIONS = 5

_RECOMMENDATION_RE = re.compile(r"^(?:[-•*]|\d+\.)\s")

MISSING_VALUE = "Not specified"
MISSING_OVERRIDES = {
    "additional_context": "None provided",
    "documents_summary": "No documents provided",
}


class TemplateKind(str, Enum):
    DATA_GATHERING = "data_gathering"
    MORTGAGE_ANALYSIS = "mortgage_analysis"
    ANALYSIS_FOLLOWUP = "analysis_followup"


MODE_TEMPLATES = {
    Mode.DATA_GATHERING: TemplateKind.DATA_GATHERING,
    Mode.ANALYSIS: TemplateKind.MORTGAGE_ANALYSIS,
    Mode.FOLLOWUP: TemplateKind.ANALYSIS_FOLLOWUP,
}

TEMPLATES = {
    TemplateKind.DATA_GATHERING: DATA_GATHERING_TEMPLATE,
    TemplateKind.MORTGAGE_ANALYSIS: MORTGAGE_ANALYSIS_TEMPLATE,
    TemplateKind.ANALYSIS_FOLLOWUP: ANALYSIS_FOLLOWUP_TEMPLATE,
}


@dataclass(frozen=True)
class PromptContext:
    mode: Mode
    rendered_fields: dict
    stage: str
    priority: str
    history: list[str]
    current_message: str
    previous_analysis: Optional[str] = None
    key_recommendations: list[str] = field(default_factory=list)


def _money(value) -> str:
    value = normalize_number(value)
    if isinstance(value, int):
        return f"£{value:,}"
    return f"£{value:,.2f}"


def format_field_value(name: str, value) -> str:
    spec = FIELDS[name]
    if not is_present({name: value}, name):
        return MISSING_OVERRIDES.get(name, MISSING_VALUE)
    if spec.kind is FieldKind.MONEY:
        return _money(value)
    if spec.kind is FieldKind.PERCENT:
        return f"{normalize_number(value)}%"
    if spec.kind is FieldKind.YEARS:
        return f"{normalize_number(value)} years"
    return str(value)


def render_fields(fields: dict) -> dict:
    return {spec.name: format_field_value(spec.name, fields.get(spec.name)) for spec in FIELD_SPECS}


def extract_recommendations(analysis: Optional[str], limit: int = MAX_RECOMMENDATIONS) -> list[str]:
    """Bullet or numbered lines from an analysis, first `limit` in document order."""
    if not analysis:
        return []
    found = []
    for line in analysis.splitlines():
        stripped = line.strip()
        if _RECOMMENDATION_RE.match(stripped):
            found.append(stripped)
            if len(found) == limit:
                break
    return found


def build_context(
    session: AdvisorSession,
    incoming_text: str,
    explicit_analysis_requested: bool,
    strategy: Optional[ScoringStrategy] = None,
    history_window: Optional[int] = None,
) -> tuple[TemplateKind, PromptContext]:
    if history_window is None:
        history_window = get_settings().history_window

    mode = next_mode(
        session.fields,
        explicit_analysis_requested,
        session.has_prior_analysis,
        strategy,
    )
    kind = MODE_TEMPLATES[mode]

    context = PromptContext(
        mode=mode,
        rendered_fields=render_fields(session.fields),
        stage=conversation_stage(session.fields, session.last_analysis),
        priority=current_priority(session.fields, session.last_analysis),
        history=session.recent_history(history_window),
        current_message=incoming_text,
        previous_analysis=session.last_analysis if kind is TemplateKind.ANALYSIS_FOLLOWUP else None,
        key_recommendations=(
            extract_recommendations(session.last_analysis)
            if kind is TemplateKind.ANALYSIS_FOLLOWUP
            else []
        ),
    )
    return kind, context


def render_prompt(kind: TemplateKind, context: PromptContext) -> str:
    return TEMPLATES[kind].format(
        **context.rendered_fields,
        stage=context.stage,
        priority=context.priority,
        history="\n".join(context.history) or NO_HISTORY,
        current_message=context.current_message,
        previous_analysis=context.previous_analysis or NO_ANALYSIS,
        key_recommendations="; ".join(context.key_recommendations) or NO_RECOMMENDATIONS,
    )
