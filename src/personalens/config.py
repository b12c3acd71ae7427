"""Centralized configuration loaded from .env."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


def _load_env() -> None:
    env_path = Path.cwd() / ".env"
    if env_path.exists():
        load_dotenv(dotenv_path=env_path)
    else:
        load_dotenv()


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name, "")
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


@dataclass(frozen=True)
class Settings:
    # Model provider key, only needed where the gateway runs
    openai_api_key: str = ""

    # Remote proxy the background context talks to
    proxy_url: str = "http://localhost:8787/analyze"
    proxy_anon_key: str = ""

    # Identity store (Supabase auth admin API, or a local JSON file)
    supabase_url: str = ""
    supabase_service_key: str = ""
    identities_file: str = ""
    identity_cache_ttl: float = 60.0
    identity_miss_refresh_interval: float = 5.0

    # Persisted persona / credential
    state_file: str = "~/.personalens/state.json"

    # Timeouts (seconds)
    message_timeout: float = 10.0
    proxy_timeout: float = 60.0
    page_timeout: float = 30.0
    settle_delay: float = 0.1

    @classmethod
    def from_env(cls) -> Settings:
        _load_env()
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY", ""),
            proxy_url=os.getenv("PERSONALENS_PROXY_URL", "http://localhost:8787/analyze"),
            proxy_anon_key=os.getenv("PERSONALENS_ANON_KEY", ""),
            supabase_url=os.getenv("SUPABASE_URL", ""),
            supabase_service_key=os.getenv("SUPABASE_SERVICE_ROLE_KEY", ""),
            identities_file=os.getenv("PERSONALENS_IDENTITIES_FILE", ""),
            identity_cache_ttl=_float_env("IDENTITY_CACHE_TTL", 60.0),
            identity_miss_refresh_interval=_float_env("IDENTITY_MISS_REFRESH_INTERVAL", 5.0),
            state_file=os.getenv("PERSONALENS_STATE_FILE", "~/.personalens/state.json"),
            message_timeout=_float_env("MESSAGE_TIMEOUT", 10.0),
            proxy_timeout=_float_env("PROXY_TIMEOUT", 60.0),
            page_timeout=_float_env("PAGE_TIMEOUT", 30.0),
        )
