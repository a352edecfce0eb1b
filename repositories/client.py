"""
Supabase client and engine settings.

This module contains *only* the configuration loading and database connection
setup. The Supabase client is created on first use so that modules can be
imported (and the in-memory backend used) without credentials.

Environment variables:
- ORDER_STORE_BACKEND: "supabase" (default) or "memory"
- SUPABASE_URL: Your Supabase project URL (supabase backend only)
- SUPABASE_KEY: Your Supabase API key (use a server-side key only on the backend)
- RECOMMENDATION_DEFAULT_LIMIT / RECOMMENDATION_MAX_LIMIT: recommendation list size
- LOG_LEVEL: logging level for the API and scripts
"""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# The dependency is `supabase` (supabase-py). If your editor can't resolve it,
# install it in your environment: `pip install supabase`.
from supabase import Client, create_client  # type: ignore[import-not-found]

# Load environment variables from the .env file at the project root.
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

BACKEND_SUPABASE = "supabase"
BACKEND_MEMORY = "memory"


@dataclass(frozen=True, slots=True)
class EngineSettings:
    store_backend: str = BACKEND_SUPABASE
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    default_limit: int = 10
    max_limit: int = 25
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "EngineSettings":
        backend = os.getenv("ORDER_STORE_BACKEND", BACKEND_SUPABASE).strip().lower()
        if backend not in (BACKEND_SUPABASE, BACKEND_MEMORY):
            raise RuntimeError(
                f"Invalid ORDER_STORE_BACKEND: {backend!r}. "
                f"Use '{BACKEND_SUPABASE}' or '{BACKEND_MEMORY}'."
            )
        return cls(
            store_backend=backend,
            supabase_url=os.getenv("SUPABASE_URL"),
            supabase_key=os.getenv("SUPABASE_KEY"),
            default_limit=int(os.getenv("RECOMMENDATION_DEFAULT_LIMIT", "10")),
            max_limit=int(os.getenv("RECOMMENDATION_MAX_LIMIT", "25")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


_client: Optional[Client] = None
_client_lock = threading.Lock()


def get_supabase(settings: Optional[EngineSettings] = None) -> Client:
    """
    Return the process-wide Supabase client, creating it on first call.

    Raises RuntimeError when credentials are missing.
    """

    global _client
    if _client is not None:
        return _client

    settings = settings or EngineSettings.from_env()

    if not settings.supabase_url:
        raise RuntimeError(
            "Missing environment variable: SUPABASE_URL. "
            "Set SUPABASE_URL to your Supabase project URL."
        )
    if not settings.supabase_key:
        raise RuntimeError(
            "Missing environment variable: SUPABASE_KEY. "
            "Set SUPABASE_KEY to your Supabase API key."
        )

    with _client_lock:
        if _client is None:
            _client = create_client(settings.supabase_url, settings.supabase_key)
    return _client


__all__ = [
    "BACKEND_MEMORY",
    "BACKEND_SUPABASE",
    "EngineSettings",
    "get_supabase",
]
