# chatbot/config.py
# Settings come from the process environment, optionally seeded from `.env.<runtime env>`.
from __future__ import annotations

import os
from functools import lru_cache
from typing import List

from dotenv import load_dotenv


def get_runtime_env() -> str:
    """Resolve APP_ENV to `dev` or `prod`. `test` runs with the dev config."""
    env = (os.getenv("APP_ENV") or "dev").strip().lower()
    if env in {"dev", "test"}:
        return "dev"
    if env == "prod":
        return "prod"
    raise ValueError(f"APP_ENV must be one of dev, test or prod (got {env!r})")


def load_env_file(runtime_env: str | None = None) -> str:
    runtime_env = runtime_env or get_runtime_env()
    # never overrides variables already present in the environment
    load_dotenv(f".env.{runtime_env}", override=False)
    return runtime_env


class Settings:
    """Application settings loaded from environment variables.

    Values are read when the object is built, so tests can patch the
    environment and construct a fresh instance.
    """

    def __init__(self) -> None:
        self.runtime_env: str = get_runtime_env()
        self.api_secret_key: str = os.getenv("API_SECRET_KEY", "")
        self.port: int = int(os.getenv("PORT", "5001"))
        self.log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()
        self.allowed_origins: List[str] = [
            o.strip() for o in os.getenv("ALLOWED_ORIGINS", "*").split(",") if o.strip()
        ]
        self.storage_backend: str = os.getenv("STORAGE_BACKEND", "memory").strip().lower()
        self.sqlite_path: str = os.getenv("SQLITE_PATH", "./data/messages.db")
        self.storage_timeout: float = float(os.getenv("STORAGE_TIMEOUT_SECS", "5.0"))


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    load_env_file()
    return Settings()
