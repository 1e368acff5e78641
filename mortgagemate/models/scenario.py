"""
Mortgage scenarios: the durable snapshot of a session's FieldSet and mode.

Column names match advisor.fields names one to one. Field columns are
unbounded Text or double-precision Float so a cleaned FieldSet is stored
exactly as given.
"""

from sqlalchemy import Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import RecordBase

DEFAULT_SCENARIO_NAME = "New Mortgage Scenario"


def _number():
    return mapped_column(Float, nullable=True)


def _text():
    return mapped_column(Text, nullable=True)


class MortgageScenario(RecordBase):
    __tablename__ = "mortgage_scenarios"

    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    advisor_mode: Mapped[str] = mapped_column(String(32), nullable=False, default="data_gathering")
    conversation_stage: Mapped[str] = mapped_column(Text, nullable=True)
    current_priority: Mapped[str] = mapped_column(Text, nullable=True)

    # Property
    property_location: Mapped[str] = _text()
    property_type: Mapped[str] = _text()
    property_value: Mapped[float] = _number()
    property_use: Mapped[str] = _text()

    # Current mortgage
    current_lender: Mapped[str] = _text()
    mortgage_type: Mapped[str] = _text()
    current_balance: Mapped[float] = _number()
    monthly_payment: Mapped[float] = _number()
    current_rate: Mapped[float] = _number()
    term_remaining: Mapped[float] = _number()
    product_end_date: Mapped[str] = _text()
    exit_fees: Mapped[str] = _text()
    early_repayment_charges: Mapped[str] = _text()

    # Financial
    annual_income: Mapped[float] = _number()
    employment_status: Mapped[str] = _text()
    credit_score: Mapped[str] = _text()
    existing_debts: Mapped[float] = _number()
    disposable_income: Mapped[float] = _number()
    available_deposit: Mapped[float] = _number()

    # Goals
    primary_objective: Mapped[str] = _text()
    risk_tolerance: Mapped[str] = _text()
    preferred_term: Mapped[float] = _number()
    payment_preference: Mapped[str] = _text()
    timeline: Mapped[str] = _text()

    # Context
    additional_context: Mapped[str] = _text()
    documents_summary: Mapped[str] = _text()
