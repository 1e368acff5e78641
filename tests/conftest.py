"""Root conftest: isolated settings, a fresh SQLite database per test, clean caches."""

import pytest

from mortgagemate.core import database
from mortgagemate.core.config import get_settings
from mortgagemate.core.database import close_db, get_session_factory, init_db
from mortgagemate.core.flags import get_flags
from mortgagemate.services.session_store import reset_session_store


def _clear_caches():
    get_settings.cache_clear()
    get_flags.cache_clear()
    reset_session_store()


@pytest.fixture(autouse=True)
def test_env(tmp_path, monkeypatch):
    """Every test runs offline against its own SQLite file with the uniform scorer."""
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    monkeypatch.setenv("FF_LLM_PROVIDER", "mock")
    monkeypatch.setenv("FF_USE_REDIS", "false")
    monkeypatch.setenv("SCORING_STRATEGY", "uniform")
    monkeypatch.setenv("ANALYSIS_SCORE_THRESHOLD", "75")
    monkeypatch.setenv("HISTORY_WINDOW", "10")
    monkeypatch.setattr(database, "_engine", None)
    monkeypatch.setattr(database, "_session_factory", None)
    _clear_caches()
    yield
    _clear_caches()


@pytest.fixture
def weighted(monkeypatch):
    monkeypatch.setenv("SCORING_STRATEGY", "weighted")
    get_settings.cache_clear()


@pytest.fixture
async def db():
    """Tables created from model metadata; engine disposed afterwards."""
    await init_db()
    async with get_session_factory()() as session:
        yield session
    await close_db()


@pytest.fixture
async def other_db(db):
    """A second, independent session on the same database."""
    async with get_session_factory()() as session:
        yield session


# ---------------------------------------------------------------------------
# FieldSets
# ---------------------------------------------------------------------------

REQUIRED_VALUES = {
    "property_location": "Cambridge",
    "property_type": "Semi-detached house",
    "property_value": 500000,
    "current_balance": 250000,
    "monthly_payment": 1450,
    "annual_income": 85000,
    "current_rate": 5.35,
}

IMPORTANT_VALUES = {
    "current_lender": "Nationwide",
    "mortgage_type": "Fixed",
    "term_remaining": 22,
    "employment_status": "Employed",
    "primary_objective": "Lower monthly payments",
}


@pytest.fixture
def required_fields():
    return dict(REQUIRED_VALUES)


@pytest.fixture
def complete_fields():
    return {**REQUIRED_VALUES, **IMPORTANT_VALUES}
