"""
Conversation stage and next-priority narration.

Deterministic for a given FieldSet and last analysis, so a restored
session narrates exactly like the live one did.
"""

from typing import Optional

from .fields import REQUIRED_FIELDS, is_present, label

STAGE_INITIAL = "Initial consultation - gathering basic information"
STAGE_BUILDING = "Building understanding of current mortgage situation"
STAGE_FINAL_DETAILS = "Collecting final required details for analysis"
STAGE_POST_ANALYSIS = "Post-analysis discussion and clarification"
STAGE_READY = "All required data collected - ready for analysis"

PRIORITY_BASICS = "Establishing basic property and mortgage details"
PRIORITY_GOALS = "Understanding client goals and objectives"
PRIORITY_READY = "All required data collected - ready for analysis on request"

# Above this many missing Required fields we ask broadly rather than by name
MAX_NAMED_MISSING = 3


def missing_required_fields(fields: dict) -> list[str]:
    return [name for name in REQUIRED_FIELDS if not is_present(fields, name)]


def missing_required(fields: dict) -> list[str]:
    """Human labels of missing Required fields, in Required order."""
    return [label(name) for name in missing_required_fields(fields)]


def conversation_stage(fields: dict, last_analysis: Optional[str] = None) -> str:
    missing = missing_required(fields)
    if len(missing) == len(REQUIRED_FIELDS):
        return STAGE_INITIAL
    if len(missing) > MAX_NAMED_MISSING:
        return STAGE_BUILDING
    if missing:
        return STAGE_FINAL_DETAILS
    if last_analysis:
        return STAGE_POST_ANALYSIS
    return STAGE_READY


def current_priority(fields: dict, last_analysis: Optional[str] = None) -> str:
    missing = missing_required(fields)
    if len(missing) > MAX_NAMED_MISSING:
        return PRIORITY_BASICS
    if missing:
        return f"Collecting required information: {', '.join(missing)}"
    if not is_present(fields, "primary_objective"):
        return PRIORITY_GOALS
    return PRIORITY_READY
