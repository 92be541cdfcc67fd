import hashlib
import logging
from supabase import Client
from fastapi import HTTPException
from typing import Dict, Any

from homematch.core.cache import LRUCache

logger = logging.getLogger(__name__)

# Resolved users by token digest; parallel requests with one token hit Supabase auth once
_AUTH_USER_CACHE = LRUCache(max_size=500, ttl_seconds=60)


def clear_auth_cache() -> None:
    _AUTH_USER_CACHE.clear()


class AuthService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def get_current_user(self, token: str) -> Dict[str, Any]:
        """Supabase user for an access token; 401 when the token is rejected"""
        cache_key = hashlib.sha256(token.encode()).hexdigest()
        cached = _AUTH_USER_CACHE.get(cache_key)
        if cached is not None:
            return cached

        try:
            user_response = self.supabase.auth.get_user(jwt=token)
        except Exception as e:
            logger.warning(f"Token validation failed: {e}")
            raise HTTPException(status_code=401, detail="Unauthorized")
        if not user_response or not user_response.user:
            raise HTTPException(status_code=401, detail="Unauthorized")

        user = user_response.user
        user_data = {
            "id": user.id,
            "email": user.email,
            "user_metadata": user.user_metadata or {},
            "app_metadata": user.app_metadata or {},
        }
        _AUTH_USER_CACHE.set(cache_key, user_data)
        return user_data
