"""
Feature flags for the two external backends: the session cache and the LLM.

Read from FF_* environment variables or .env. Defaults run on one process
with an in-process cache.
"""

from functools import lru_cache
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class FeatureFlags(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Session store ────────────────────────────────────────────────
    use_redis: bool = Field(default=False, alias="FF_USE_REDIS")
    # ON  → Sessions cached in Redis, shared across workers. Needs REDIS_URL.
    # OFF → Sessions cached in a per-process map. Restored from the DB on a miss.

    # ── LLM Provider ─────────────────────────────────────────────────
    llm_provider: str = Field(default="gemini", alias="FF_LLM_PROVIDER")
    # "gemini" → Google Gemini (OpenAI-compatible endpoint). Needs GEMINI_API_KEY.
    # "openai" → Direct OpenAI. Needs OPENAI_API_KEY.
    # "mock"   → Canned replies, no network. For local runs and demos.


@lru_cache
def get_flags() -> FeatureFlags:
    return FeatureFlags()
