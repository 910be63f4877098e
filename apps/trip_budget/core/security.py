from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from apps.trip_budget.infra.settings import Settings, get_settings

DEFAULT_TOKEN_TTL = 3600


class AuthError(Exception):
    pass


def create_access_token(
    user_id: str,
    *,
    ttl: int = DEFAULT_TOKEN_TTL,
    settings: Settings | None = None,
) -> str:
    """Mint a token shaped like a Supabase access token."""
    settings = settings or get_settings()
    if not settings.supabase_jwt_secret:
        raise AuthError("SUPABASE_JWT_SECRET is not configured")
    now = datetime.now(tz=timezone.utc)
    payload = {
        "sub": user_id,
        "aud": settings.supabase_jwt_audience,
        "role": "authenticated",
        "iat": now,
        "exp": now + timedelta(seconds=ttl),
    }
    return jwt.encode(payload, settings.supabase_jwt_secret, algorithm="HS256")


def decode_access_token(token: str, *, settings: Settings | None = None) -> dict[str, Any]:
    settings = settings or get_settings()
    if not token:
        raise AuthError("Missing token")
    if not settings.supabase_jwt_secret:
        raise AuthError("SUPABASE_JWT_SECRET is not configured")
    try:
        return jwt.decode(
            token,
            settings.supabase_jwt_secret,
            algorithms=["HS256"],
            audience=settings.supabase_jwt_audience,
        )
    except jwt.ExpiredSignatureError as exc:
        raise AuthError("Token expired") from exc
    except jwt.PyJWTError as exc:
        raise AuthError("Invalid token") from exc


def user_id_from_claims(claims: dict[str, Any]) -> str:
    user_id = claims.get("sub")
    if not user_id:
        raise AuthError("Token has no subject")
    return str(user_id)
