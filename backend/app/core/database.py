"""
Supabase connection for the model, rule and document stores.
"""
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from supabase import Client, create_client

from app.core.logging import get_logger

logger = get_logger(__name__)

# .env lives at the repository root
env_path = Path(__file__).parent.parent.parent.parent / ".env"

if env_path.exists():
    load_dotenv(env_path)
    logger.info("env_loaded", env_path=str(env_path))
else:
    logger.debug("env_file_not_found", expected_path=str(env_path))


def _supabase_settings() -> tuple[Optional[str], Optional[str]]:
    supabase_url = os.getenv("SUPABASE_URL")
    supabase_key = os.getenv("SUPABASE_SERVICE_KEY") or os.getenv("SUPABASE_KEY")
    return supabase_url, supabase_key


def is_supabase_configured() -> bool:
    """True when both the Supabase URL and a key are present."""
    supabase_url, supabase_key = _supabase_settings()
    return bool(supabase_url and supabase_key)


def get_supabase_client() -> Optional[Client]:
    """Create a Supabase client, or None when it is not configured."""
    supabase_url, supabase_key = _supabase_settings()

    if not supabase_url or not supabase_key:
        logger.warning(
            "supabase_credentials_missing",
            message="Check SUPABASE_URL and SUPABASE_SERVICE_KEY in .env"
        )
        return None

    if not supabase_url.startswith("http"):
        logger.error(
            "supabase_url_invalid",
            url=supabase_url,
            message="Should start with http:// or https://"
        )
        return None

    try:
        client = create_client(supabase_url, supabase_key)
        logger.debug("supabase_client_created", url_prefix=supabase_url[:30])
        return client
    except Exception as e:
        logger.error(
            "supabase_client_creation_failed",
            error=str(e),
            error_type=type(e).__name__,
            exc_info=True,
        )
        return None
