"""
Configuration management using Pydantic BaseSettings.
All values can be overridden via environment variables or a .env file.
"""
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # ── Elasticsearch ──────────────────────────────────────────────────────
    elasticsearch_url: str = "http://localhost:9200"
    elasticsearch_api_key: str | None = None
    works_index: str = "works"
    posts_index: str = "posts"
    users_index: str = "users"
    follows_index: str = "follows"
    bookmarks_index: str = "bookmarks"
    impressions_index: str = "impressions"

    # ── Ranking ────────────────────────────────────────────────────────────
    feed_default_limit: int = 20
    feed_max_limit: int = 100
    candidate_multiplier: int = 3        # candidates fetched per served item
    algorithm_version: str = "v1"
    # None means "decide from the environment" (see below)
    weights_fallback: bool | None = None

    # ── Feedback loop ──────────────────────────────────────────────────────
    profile_update_retries: int = 3
    record_feed_impressions: bool = True

    # ── Server ─────────────────────────────────────────────────────────────
    host: str = "0.0.0.0"
    port: int = 8000

    environment: str = "development"

    @model_validator(mode="after")
    def _default_weights_fallback(self) -> "Settings":
        # Unknown (mode, surface) pairs fail loudly outside production
        if self.weights_fallback is None:
            self.weights_fallback = self.environment == "production"
        return self


settings = Settings()
