import logging
from typing import Optional

from supabase import create_client, Client
from homematch.config.settings import Settings, settings

logger = logging.getLogger(__name__)


def create_supabase_client(config: Settings, service_role: bool = True) -> Client:
    """Client for the configured project. service_role prefers the RLS-bypassing key, else the anon key."""
    if not config.supabase_url:
        raise ValueError("SUPABASE_URL is not set")
    key = config.supabase_service_role_key if service_role else None
    if service_role and not key:
        logger.warning("SUPABASE_SERVICE_ROLE_KEY not set; falling back to the anon key")
    key = key or config.supabase_key
    if not key:
        raise ValueError("No Supabase key configured (SUPABASE_KEY / SUPABASE_SERVICE_ROLE_KEY)")
    return create_client(config.supabase_url, key)


class SupabaseClient:
    _client: Optional[Client] = None
    _service_client: Optional[Client] = None

    @classmethod
    def get_client(cls) -> Client:
        """Anon client; used to validate user access tokens"""
        if cls._client is None:
            cls._client = create_supabase_client(settings, service_role=False)
        return cls._client

    @classmethod
    def get_service_client(cls) -> Client:
        """Household-wide reads and writes across members"""
        if cls._service_client is None:
            cls._service_client = create_supabase_client(settings)
        return cls._service_client

    @classmethod
    def reset_client(cls):
        cls._client = None
        cls._service_client = None


def get_supabase() -> Client:
    return SupabaseClient.get_client()


def get_service_supabase() -> Client:
    return SupabaseClient.get_service_client()
