"""
Supabase client setup shared by the API and execution scripts.
"""
import os
import logging
from supabase import create_client, Client

logger = logging.getLogger(__name__)

_client: Client = None
_admin_client: Client = None


def init_clients():
    """Create the anon and service-role clients from the environment."""
    global _client, _admin_client

    url = os.getenv('SUPABASE_URL')
    key = os.getenv('SUPABASE_KEY')
    service_key = os.getenv('SUPABASE_SERVICE_ROLE_KEY')

    # Use service role key as fallback if anon key not set
    effective_key = key or service_key

    if url and effective_key:
        _client = create_client(url, effective_key)
        if service_key:
            _admin_client = create_client(url, service_key)
        logger.info(f"Supabase client initialized (using {'anon' if key else 'service_role'} key)")
    else:
        logger.warning("Supabase credentials not found - running without database")

    return _client


def get_client() -> Client:
    """Client for backend reads and writes (service role preferred, bypasses RLS)."""
    if _client is None and _admin_client is None:
        init_clients()
    return _admin_client or _client


def set_client(client):
    """Override the backend client (used by tests and scripts)."""
    global _client, _admin_client
    _client = client
    _admin_client = None
