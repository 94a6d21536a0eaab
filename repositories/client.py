"""
Supabase client initialization.

This module contains *only* the database connection setup. The client is
created on first use so that the pure domain and service layers import without
database credentials.

Environment variables required:
- SUPABASE_URL: Your Supabase project URL
- SUPABASE_KEY: Your Supabase API key (use a server-side key only on the backend)
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from supabase import Client, create_client  # type: ignore[import-not-found]

# Look for .env in the project root
env_path = Path(__file__).parent.parent / ".env"


@lru_cache(maxsize=1)
def get_supabase() -> Client:
    """Return the shared Supabase client, creating it from the environment on first call."""

    load_dotenv(dotenv_path=env_path)

    supabase_url = os.getenv("SUPABASE_URL")
    supabase_key = os.getenv("SUPABASE_KEY")

    if not supabase_url:
        raise RuntimeError(
            "Missing environment variable: SUPABASE_URL. "
            "Set SUPABASE_URL to your Supabase project URL."
        )
    if not supabase_key:
        raise RuntimeError(
            "Missing environment variable: SUPABASE_KEY. "
            "Set SUPABASE_KEY to your Supabase API key."
        )

    return create_client(supabase_url, supabase_key)


def check_response(response: Any, action: str) -> list[dict[str, Any]]:
    """Raise on a Supabase error and return the response rows."""

    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to {action}: {error}")
    return getattr(response, "data", None) or []


__all__ = ["get_supabase", "check_response"]
