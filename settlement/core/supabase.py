"""Supabase client singleton for database operations."""

from functools import lru_cache
from typing import Any

from postgrest.exceptions import APIError
from supabase import Client, create_client

from settlement.core.config import get_settings

# Postgres SQLSTATE for unique_violation
UNIQUE_VIOLATION = "23505"


@lru_cache
def get_supabase_client() -> Client:
    """Get cached Supabase client singleton for database operations.

    Uses the secret key for backend operations, which bypasses RLS at the
    PostgREST level. Authorization must be verified by the API layer before
    any call reaches this client.

    Returns:
        Client: Supabase client instance.
    """
    settings = get_settings()
    return create_client(
        settings.supabase_url,
        settings.supabase_secret_key,
    )


def is_unique_violation(error: Exception) -> bool:
    """Return True if a PostgREST error was raised by a unique constraint."""
    return isinstance(error, APIError) and str(getattr(error, "code", "")) == UNIQUE_VIOLATION


async def check_database_connection() -> dict[str, Any]:
    """Check if database connection is healthy.

    Returns:
        dict: Connection status with 'healthy' boolean and optional 'error' message.
    """
    try:
        client = get_supabase_client()
        client.table("settings").select("id").limit(1).execute()
        return {"healthy": True}
    except Exception as e:
        return {"healthy": False, "error": str(e)}
