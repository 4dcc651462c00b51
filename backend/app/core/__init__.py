"""
Core application modules.
Contains database connections, errors, logging, metrics and tracing.
"""
from .database import get_supabase_client, is_supabase_configured

__all__ = ["get_supabase_client", "is_supabase_configured"]
