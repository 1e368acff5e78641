"""Unit tests for mortgagemate.advisor.session — value-style session updates."""

from mortgagemate.advisor.modes import Mode
from mortgagemate.advisor.session import (
    AdvisorSession,
    Sender,
    apply_advisor_turn,
    apply_user_turn,
    history_line,
    new_session,
)


class TestSessionUpdates:
    def test_new_session_is_empty(self):
        session = new_session("c", 1, 42)
        assert session.mode is Mode.DATA_GATHERING
        assert session.fields == {}
        assert session.history == ()
        assert session.completeness_score == 0
        assert not session.has_prior_analysis

    def test_user_turn_merges_and_rescores(self):
        session = new_session("c", 1, 42)
        updated = apply_user_turn(
            session,
            "My property in Cambridge is worth £500,000",
            {"propertyLocation": "Cambridge", "propertyValue": "£500,000"},
        )
        assert updated.fields == {"property_location": "Cambridge", "property_value": 500000}
        assert updated.completeness_score == 17
        assert updated.history == ("User: My property in Cambridge is worth £500,000",)
        # original untouched
        assert session.fields == {}
        assert session.history == ()

    def test_plain_reply_keeps_mode(self):
        session = apply_advisor_turn(new_session("c", 1, 42), "What is your balance?")
        assert session.history[-1] == "AI: What is your balance?"
        assert session.last_analysis is None
        assert session.mode is Mode.DATA_GATHERING

    def test_analysis_reply_moves_to_followup(self):
        session = apply_advisor_turn(new_session("c", 1, 42), "- Switch", is_analysis=True)
        assert session.last_analysis == "- Switch"
        assert session.mode is Mode.FOLLOWUP

    def test_later_reply_keeps_last_analysis(self):
        session = apply_advisor_turn(new_session("c", 1, 42), "- Switch", is_analysis=True)
        session = apply_advisor_turn(session, "Happy to help")
        assert session.last_analysis == "- Switch"


class TestSerialisation:
    def test_dict_round_trip(self):
        session = apply_user_turn(new_session("c", 3, 42), "hello", {"currentRate": 5.1})
        session = apply_advisor_turn(session, "- Fix", is_analysis=True)
        assert AdvisorSession.from_dict(session.to_dict()) == session

    def test_history_line_tags(self):
        assert history_line(Sender.USER, "hi") == "User: hi"
        assert history_line("advisor", "hello") == "AI: hello"
