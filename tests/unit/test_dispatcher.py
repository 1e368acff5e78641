"""Unit tests for mortgagemate.advisor.dispatcher — template choice and context bundle."""

from mortgagemate.advisor.dispatcher import (
    TemplateKind,
    build_context,
    extract_recommendations,
    format_field_value,
    render_prompt,
)
from mortgagemate.advisor.modes import Mode
from mortgagemate.advisor.session import apply_advisor_turn, apply_user_turn, new_session

ANALYSIS = """Here is my review.

1. Your fixed rate ends in March
- Switch to a 5-year fix
* Overpay £200 a month
• Keep the current term
2. Check the exit fee
- This sixth line is ignored
-not a bullet (no space)
"""


def _session(fields=None, last_analysis=None, history=()):
    session = new_session("chat-1", 1, 42)
    for line in history:
        session = apply_user_turn(session, line)
    if fields:
        from mortgagemate.advisor.session import merge_session_fields
        session = merge_session_fields(session, fields)
    if last_analysis:
        session = apply_advisor_turn(session, last_analysis, is_analysis=True)
    return session


# ===================================================================
# Field rendering
# ===================================================================


class TestFormatFieldValue:
    def test_money(self):
        assert format_field_value("property_value", 500000) == "£500,000"
        assert format_field_value("monthly_payment", 1450.5) == "£1,450.50"

    def test_percent_and_years(self):
        assert format_field_value("current_rate", 5.35) == "5.35%"
        assert format_field_value("term_remaining", 25) == "25 years"

    def test_missing_fallbacks(self):
        assert format_field_value("property_location", None) == "Not specified"
        assert format_field_value("additional_context", "") == "None provided"
        assert format_field_value("documents_summary", None) == "No documents provided"

    def test_text_verbatim(self):
        assert format_field_value("current_lender", "Halifax") == "Halifax"


# ===================================================================
# Recommendations
# ===================================================================


class TestExtractRecommendations:
    def test_first_five_in_order(self):
        assert extract_recommendations(ANALYSIS) == [
            "1. Your fixed rate ends in March",
            "- Switch to a 5-year fix",
            "* Overpay £200 a month",
            "• Keep the current term",
            "2. Check the exit fee",
        ]

    def test_none(self):
        assert extract_recommendations(None) == []
        assert extract_recommendations("No lists here.") == []


# ===================================================================
# build_context
# ===================================================================


class TestBuildContext:
    def test_data_gathering(self):
        kind, ctx = build_context(_session(), "Hi", False)
        assert kind is TemplateKind.DATA_GATHERING
        assert ctx.mode is Mode.DATA_GATHERING
        assert ctx.key_recommendations == []
        assert ctx.previous_analysis is None

    def test_analysis_when_ready_and_requested(self, complete_fields):
        kind, _ = build_context(_session(complete_fields), "Please analyze", True)
        assert kind is TemplateKind.MORTGAGE_ANALYSIS

    def test_followup_carries_recommendations(self, complete_fields):
        session = _session(complete_fields, last_analysis=ANALYSIS)
        kind, ctx = build_context(session, "Why a 5-year fix?", False)
        assert kind is TemplateKind.ANALYSIS_FOLLOWUP
        assert ctx.previous_analysis == ANALYSIS
        assert len(ctx.key_recommendations) == 5

    def test_history_window(self):
        session = _session(history=[f"line {i}" for i in range(15)])
        _, ctx = build_context(session, "next", False, history_window=3)
        assert ctx.history == ["User: line 12", "User: line 13", "User: line 14"]

    def test_rendered_fields_cover_everything(self):
        _, ctx = build_context(_session({"propertyValue": 500000}), "x", False)
        assert ctx.rendered_fields["property_value"] == "£500,000"
        assert ctx.rendered_fields["current_rate"] == "Not specified"
        assert len(ctx.rendered_fields) == 27

    def test_session_unchanged(self, complete_fields):
        session = _session(complete_fields)
        build_context(session, "analyze", True)
        assert session.mode is Mode.DATA_GATHERING


class TestRenderPrompt:
    def test_gathering_prompt_mentions_stage_and_message(self):
        kind, ctx = build_context(_session({"propertyLocation": "Cambridge"}), "It is a flat", False)
        prompt = render_prompt(kind, ctx)
        assert "Cambridge" in prompt
        assert "It is a flat" in prompt
        assert ctx.stage in prompt
        assert '"proceedWithAnalysis"' in prompt
        assert "No previous conversation" in prompt

    def test_followup_prompt_joins_recommendations(self, complete_fields):
        kind, ctx = build_context(_session(complete_fields, last_analysis=ANALYSIS), "ok", False)
        prompt = render_prompt(kind, ctx)
        assert "- Switch to a 5-year fix; * Overpay £200 a month" in prompt

    def test_braces_in_user_text_are_safe(self):
        kind, ctx = build_context(_session(), "my {weird} message", False)
        assert "my {weird} message" in render_prompt(kind, ctx)
