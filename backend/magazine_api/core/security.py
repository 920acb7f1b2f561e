from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from fastapi import Request

from magazine_api.core.errors import AuthenticationError, ConfigurationError
from magazine_api.core.settings import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CurrentUser:
    id: str
    email: str


def _get_bearer_token(request: Request) -> str:
    auth = request.headers.get("authorization") or ""
    if not auth.lower().startswith("bearer "):
        raise AuthenticationError("Missing bearer token")
    token = auth.split(" ", 1)[1].strip()
    if not token:
        raise AuthenticationError("Missing bearer token")
    return token


def _decode_supabase_jwt(token: str, *, secret: str, audience: str | None) -> dict[str, Any]:
    import jwt

    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=["HS256"],
            audience=audience or None,
            options={"require": ["exp", "sub"], "verify_aud": bool(audience)},
        )
    except jwt.PyJWTError as exc:
        raise AuthenticationError("Invalid bearer token", reason=type(exc).__name__)
    return dict(payload)


def _fetch_supabase_user(token: str, *, supabase_url: str, api_key: str, timeout_s: float = 8) -> dict[str, Any]:
    import requests

    try:
        resp = requests.get(
            f"{supabase_url}/auth/v1/user",
            headers={
                "apikey": api_key,
                "authorization": f"Bearer {token}",
                "accept": "application/json",
            },
            timeout=timeout_s,
        )
    except requests.RequestException as exc:
        logger.warning("auth.supabase_user.request_failed error=%s", exc)
        raise AuthenticationError("Identity provider unreachable")
    if resp.status_code != 200:
        raise AuthenticationError("Invalid bearer token", supabase_status=resp.status_code)
    try:
        data = resp.json()
    except ValueError:
        raise AuthenticationError("Identity provider returned invalid JSON")
    if not isinstance(data, dict):
        raise AuthenticationError("Identity provider returned unexpected payload")
    return {"sub": data.get("id"), "email": data.get("email")}


def resolve_user_from_token(token: str) -> CurrentUser:
    if settings.supabase_jwt_secret:
        claims = _decode_supabase_jwt(
            token,
            secret=settings.supabase_jwt_secret,
            audience=settings.supabase_jwt_audience,
        )
    else:
        supabase_url = (settings.supabase_url or "").strip().rstrip("/")
        if not supabase_url:
            raise ConfigurationError("SUPABASE_URL is not configured")
        api_key = (settings.supabase_anon_key or "").strip()
        if not api_key:
            raise ConfigurationError("SUPABASE_ANON_KEY is not configured")
        claims = _fetch_supabase_user(token, supabase_url=supabase_url, api_key=api_key)

    user_id = str(claims.get("sub") or "").strip()
    if not user_id:
        raise AuthenticationError("Token has no subject")
    email = str(claims.get("email") or "").strip()
    return CurrentUser(id=user_id, email=email)


def get_current_user(request: Request) -> CurrentUser:
    return resolve_user_from_token(_get_bearer_token(request))
