"""
Database connection management.

Provides the Supabase client singleton and helpers for recognising
store errors caused by backend misconfiguration rather than bad data.
"""

from supabase import create_client, Client
from enum import Enum
from functools import lru_cache
from typing import Optional
import re
import structlog

from config.settings import settings
from exceptions import DatabaseError

logger = structlog.get_logger(__name__)


class DegradationKind(str, Enum):
    """Known backend configuration defects that must not block data capture."""
    API_KEY = "api_key"
    ROLE = "role"


DEGRADATION_ADVISORIES = {
    DegradationKind.API_KEY: (
        "There's an API key configuration issue. "
        "Your data was still processed; please contact support."
    ),
    DegradationKind.ROLE: (
        "The database is reporting a role configuration issue. "
        "Your uploads were still processed and stored."
    ),
}

_API_KEY_MARKERS = ("invalid api key", "no api key found", "apikey", "jwt")
_ROLE_PATTERN = re.compile(r'role "[^"]+" does not exist', re.IGNORECASE)


@lru_cache()
def get_supabase_client() -> Client:
    """
    Get cached Supabase client instance.

    Uses lru_cache to ensure only one client is created.
    Call get_supabase_client.cache_clear() to reconnect.

    Returns:
        Client: Supabase client

    Raises:
        DatabaseError: If connection fails
    """
    try:
        logger.info(
            "connecting_to_supabase",
            url=settings.supabase_url[:30] + "..."  # Log partial URL only
        )

        client = create_client(
            settings.supabase_url,
            settings.supabase_key
        )

        logger.info(
            "supabase_connected",
            status="success"
        )

        return client

    except Exception as e:
        logger.error(
            "supabase_connection_failed",
            error=str(e),
            error_type=type(e).__name__
        )
        raise DatabaseError("connect", f"Failed to connect to Supabase: {e}") from e


# ===================
# HELPER FUNCTIONS
# ===================

def detect_degradation(error: object) -> Optional[DegradationKind]:
    """
    Classify a store error as a known configuration defect.

    Args:
        error: Exception (or error payload) returned by the store

    Returns:
        DegradationKind if the error is a recognised misconfiguration, else None
    """
    message = str(getattr(error, "message", None) or error or "")
    lowered = message.lower()

    if _ROLE_PATTERN.search(message):
        return DegradationKind.ROLE
    if any(marker in lowered for marker in _API_KEY_MARKERS):
        return DegradationKind.API_KEY
    return None


def check_connection() -> dict:
    """
    Check database connection health.

    Returns:
        dict: Connection status with details
    """
    try:
        client = get_supabase_client()

        candidates = client.table("candidates").select("id", count="exact").limit(1).execute()

        return {
            "status": "healthy",
            "candidates_count": candidates.count
        }

    except Exception as e:
        degradation = detect_degradation(e)
        return {
            "status": "degraded" if degradation else "unhealthy",
            "degradation": degradation.value if degradation else None,
            "error": str(e)
        }
