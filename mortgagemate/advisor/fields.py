"""
Mortgage scenario fields.

A FieldSet is a plain dict keyed by snake_case field name. Values are str,
int or float. A missing key and a blank string both mean "not provided".
The LLM and the document parser speak camelCase, so cleaning accepts both.
"""

import logging
import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

logger = logging.getLogger(__name__)

UNKNOWN_PLACEHOLDER = "<UNKNOWN>"


class FieldKind(str, Enum):
    TEXT = "text"
    MONEY = "money"
    PERCENT = "percent"
    YEARS = "years"


NUMERIC_KINDS = (FieldKind.MONEY, FieldKind.PERCENT, FieldKind.YEARS)


@dataclass(frozen=True)
class FieldSpec:
    name: str
    label: str
    kind: FieldKind
    group: str

    @property
    def alias(self) -> str:
        head, *rest = self.name.split("_")
        return head + "".join(part.title() for part in rest)

    @property
    def is_numeric(self) -> bool:
        return self.kind in NUMERIC_KINDS


FIELD_SPECS: tuple[FieldSpec, ...] = (
    # Property
    FieldSpec("property_location", "Property location", FieldKind.TEXT, "property"),
    FieldSpec("property_type", "Property type", FieldKind.TEXT, "property"),
    FieldSpec("property_value", "Current property value", FieldKind.MONEY, "property"),
    FieldSpec("property_use", "Property use", FieldKind.TEXT, "property"),
    # Current mortgage
    FieldSpec("current_lender", "Current lender", FieldKind.TEXT, "mortgage"),
    FieldSpec("mortgage_type", "Mortgage type", FieldKind.TEXT, "mortgage"),
    FieldSpec("current_balance", "Outstanding mortgage balance", FieldKind.MONEY, "mortgage"),
    FieldSpec("monthly_payment", "Current monthly payment", FieldKind.MONEY, "mortgage"),
    FieldSpec("current_rate", "Current interest rate", FieldKind.PERCENT, "mortgage"),
    FieldSpec("term_remaining", "Term remaining", FieldKind.YEARS, "mortgage"),
    FieldSpec("product_end_date", "Product end date", FieldKind.TEXT, "mortgage"),
    FieldSpec("exit_fees", "Exit fees", FieldKind.TEXT, "mortgage"),
    FieldSpec("early_repayment_charges", "Early repayment charges", FieldKind.TEXT, "mortgage"),
    # Financial
    FieldSpec("annual_income", "Annual household income", FieldKind.MONEY, "financial"),
    FieldSpec("employment_status", "Employment status", FieldKind.TEXT, "financial"),
    FieldSpec("credit_score", "Credit score", FieldKind.TEXT, "financial"),
    FieldSpec("existing_debts", "Existing debts", FieldKind.MONEY, "financial"),
    FieldSpec("disposable_income", "Disposable income", FieldKind.MONEY, "financial"),
    FieldSpec("available_deposit", "Available deposit", FieldKind.MONEY, "financial"),
    # Goals
    FieldSpec("primary_objective", "Primary objective", FieldKind.TEXT, "goals"),
    FieldSpec("risk_tolerance", "Risk tolerance", FieldKind.TEXT, "goals"),
    FieldSpec("preferred_term", "Preferred term", FieldKind.YEARS, "goals"),
    FieldSpec("payment_preference", "Payment preference", FieldKind.TEXT, "goals"),
    FieldSpec("timeline", "Timeline", FieldKind.TEXT, "goals"),
    # Context
    FieldSpec("additional_context", "Additional context", FieldKind.TEXT, "context"),
    FieldSpec("documents_summary", "Documents summary", FieldKind.TEXT, "context"),
)

FIELDS: dict[str, FieldSpec] = {spec.name: spec for spec in FIELD_SPECS}
_ALIASES: dict[str, str] = {spec.alias: spec.name for spec in FIELD_SPECS}

REQUIRED_FIELDS: tuple[str, ...] = (
    "property_location",
    "property_type",
    "property_value",
    "current_balance",
    "monthly_payment",
    "annual_income",
    "current_rate",
)

IMPORTANT_FIELDS: tuple[str, ...] = (
    "current_lender",
    "mortgage_type",
    "term_remaining",
    "employment_status",
    "primary_objective",
)

CRITICAL_FIELDS: tuple[str, ...] = REQUIRED_FIELDS + IMPORTANT_FIELDS

_NUMBER_RE = re.compile(
    r"^[£$€]?\s*(-?\d+(?:\.\d+)?)\s*(?:%|years?|yrs?)?$",
    re.IGNORECASE,
)


def canonical_name(key: str) -> Optional[str]:
    """Map a snake_case or camelCase key to its field name, or None if unknown."""
    if key in FIELDS:
        return key
    return _ALIASES.get(key)


def label(name: str) -> str:
    return FIELDS[name].label


def is_present(fields: dict, name: str) -> bool:
    """Non-null, and non-blank for strings. Zero counts as present."""
    value = fields.get(name)
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def normalize_number(value: float) -> int | float:
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def parse_number(value: Any) -> Optional[int | float]:
    """Accepts numbers and strings like '£500,000', '5.35%' or '25 years'."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        return normalize_number(value)
    if isinstance(value, str):
        match = _NUMBER_RE.match(value.replace(",", "").strip())
        if match:
            return normalize_number(float(match.group(1)))
    return None


def clean_fields(raw: Optional[dict]) -> dict:
    """
    Turn an externally supplied partial FieldSet into a trusted one.
    Unknown keys, nulls, blanks and <UNKNOWN> placeholders are dropped.
    """
    cleaned: dict = {}
    if not raw:
        return cleaned

    for key, value in raw.items():
        name = canonical_name(key)
        if name is None:
            logger.debug("Dropping unknown field %r", key)
            continue
        if value is None:
            continue
        if isinstance(value, str):
            value = value.strip()
            if not value or value.upper() == UNKNOWN_PLACEHOLDER:
                continue

        if FIELDS[name].is_numeric:
            number = parse_number(value)
            if number is None:
                logger.debug("Dropping unparsable %s=%r", name, value)
                continue
            cleaned[name] = number
        else:
            cleaned[name] = str(value)

    return cleaned


def merge_fields(current: dict, incoming: Optional[dict]) -> dict:
    """Right-biased overlay. Returns a new dict; neither input is mutated."""
    return {**current, **clean_fields(incoming)}


def present_fields(fields: dict) -> dict:
    """Drop blanks so the dict only carries provided values, in field order."""
    return {name: fields[name] for name in FIELDS if is_present(fields, name)}


def to_aliases(fields: dict) -> dict:
    """camelCase view for API responses."""
    return {FIELDS[name].alias: value for name, value in present_fields(fields).items()}
