"""Configuration objects consumed by ``create_app``."""
from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


class Config:
    """Default settings, overridable through the environment."""

    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-change-me")
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///salonbook.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()]

    # Bearer tokens are issued by the auth collaborator; we only verify them.
    AUTH_TOKEN_MAX_AGE = _int_env("AUTH_TOKEN_MAX_AGE", 86400)

    SLOT_GRANULARITY_MINUTES = _int_env("SLOT_GRANULARITY_MINUTES", 30)
    DEFAULT_WORK_START = os.getenv("DEFAULT_WORK_START", "09:00")
    DEFAULT_WORK_END = os.getenv("DEFAULT_WORK_END", "18:00")

    LOYALTY_REDEMPTION_COST = _int_env("LOYALTY_REDEMPTION_COST", 100)
    LOYALTY_DISCOUNT_PERCENT = _int_env("LOYALTY_DISCOUNT_PERCENT", 20)
    LOYALTY_COMPLETION_AWARD = _int_env("LOYALTY_COMPLETION_AWARD", 5)
