"""
Supabase client construction for database, auth admin and storage calls.

Clients are built explicitly from Settings and handed to the services that
need them; nothing is kept at module scope between invocations.
"""

import logging
from supabase import create_client, Client

from .config import Settings

logger = logging.getLogger(__name__)


def create_supabase_client(settings: Settings) -> Client:
    """
    Create a Supabase client using the service role key.

    Args:
        settings: Connection settings

    Returns:
        Supabase Client instance with admin privileges
    """
    client = create_client(settings.supabase_url, settings.supabase_service_key)
    logger.info("Supabase client initialized")
    return client
