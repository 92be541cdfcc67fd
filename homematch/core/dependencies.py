"""
Core dependencies for route protection
"""

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from homematch.database.supabase_client import get_supabase
from homematch.modules.auth.service import AuthService
from supabase import Client
from typing import Optional, Dict, Any
import base64
import json
import re

# auto_error=False so a missing header becomes 401 (not 403) and the session cookie can be tried
security = HTTPBearer(auto_error=False)

SESSION_COOKIE_NAME = "sb-access-token"

# sb-<project-ref>-auth-token, optionally split into .0, .1, ... chunks
AUTH_COOKIE_PATTERN = re.compile(r"^(sb-.+-auth-token)(?:\.(\d+))?$")
BASE64_PREFIX = "base64-"


def get_auth_service(supabase: Client = Depends(get_supabase)) -> AuthService:
    return AuthService(supabase)


def _decode_session_value(value: str) -> Optional[str]:
    """access_token out of a session cookie value: base64-<json>, plain json, or a bare JWT"""
    if value.startswith(BASE64_PREFIX):
        encoded = value[len(BASE64_PREFIX):]
        try:
            value = base64.urlsafe_b64decode(encoded + "=" * (-len(encoded) % 4)).decode("utf-8")
        except (ValueError, UnicodeDecodeError):
            return None
    if not value.startswith(("{", "[")):
        return value or None
    try:
        session = json.loads(value)
    except ValueError:
        return None
    if isinstance(session, dict):
        return session.get("access_token") or None
    # older clients stored [access_token, refresh_token, ...]
    if isinstance(session, list) and session and isinstance(session[0], str):
        return session[0]
    return None


def get_session_cookie_token(cookies: Dict[str, str]) -> Optional[str]:
    """Access token from the Supabase auth cookie, joining chunked cookies in order"""
    chunks: Dict[str, Dict[int, str]] = {}
    for name, value in cookies.items():
        match = AUTH_COOKIE_PATTERN.match(name)
        if match:
            index = int(match.group(2)) if match.group(2) is not None else -1
            chunks.setdefault(match.group(1), {})[index] = value

    for parts in chunks.values():
        if -1 in parts:
            value = parts[-1]
        else:
            value = "".join(parts[i] for i in sorted(parts))
        token = _decode_session_value(value)
        if token:
            return token

    return cookies.get(SESSION_COOKIE_NAME) or None


def get_access_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
) -> Optional[str]:
    """Bearer token from the Authorization header, else the Supabase session cookie."""
    if credentials and credentials.credentials:
        return credentials.credentials
    return get_session_cookie_token(request.cookies)


def get_current_user(
    token: Optional[str] = Depends(get_access_token),
    auth_service: AuthService = Depends(get_auth_service),
) -> Dict[str, Any]:
    """Authenticated Supabase user for this request; 401 when absent or invalid"""
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return auth_service.get_current_user(token)

