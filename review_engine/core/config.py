"""
Application configuration — loaded from environment / .env file.
"""
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── App ──
    app_name: str = "mm-review-engine"
    app_env: str = "development"
    log_level: str = "INFO"

    # ── Rubric ──
    # None → packaged default rubric (review_engine/rubrics/metrics_v1.json)
    rubric_path: Optional[str] = None

    # ── Output ──
    # Internal-tools override read by the CLI: when False, `score --redact` is ignored.
    # ScoringEngine.redact_result always honours the entitlement flag it is given.
    redaction_enabled: bool = True

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
