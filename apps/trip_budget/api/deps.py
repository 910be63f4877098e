from __future__ import annotations

import logging
from typing import Awaitable, Callable

from fastapi import Depends, HTTPException, Request, Response, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from redis.exceptions import RedisError

from apps.trip_budget.core.rate_limit import RateLimiter
from apps.trip_budget.core.security import AuthError, decode_access_token, user_id_from_claims
from apps.trip_budget.infra.settings import Settings
from apps.trip_budget.services.credits import CreditService

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


class RateLimitExceeded(Exception):
    def __init__(self, retry_after: int, headers: dict[str, str]) -> None:
        super().__init__("Rate limit exceeded")
        self.retry_after = retry_after
        self.headers = headers


def get_settings_state(request: Request) -> Settings:
    settings = getattr(request.app.state, "settings", None)
    if settings is None:
        raise RuntimeError("Settings are not configured")
    return settings


def get_credit_service(request: Request) -> CreditService:
    service = getattr(request.app.state, "credits", None)
    if service is None:
        raise RuntimeError("Credit service is not configured")
    return service


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    settings: Settings = Depends(get_settings_state),
) -> str:
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    try:
        claims = decode_access_token(credentials.credentials, settings=settings)
        return user_id_from_claims(claims)
    except AuthError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc))


def rate_limited(scope: str) -> Callable[..., Awaitable[None]]:
    async def dependency(
        request: Request,
        response: Response,
        user_id: str = Depends(get_current_user_id),
    ) -> None:
        limiter: RateLimiter | None = getattr(request.app.state, "rate_limiter", None)
        if limiter is None:
            return
        try:
            result = await limiter.hit(f"{scope}:{user_id}")
        except RedisError:
            logger.warning("Rate limiter unavailable, letting %s request from %s through", scope, user_id, exc_info=True)
            return
        headers = result.headers()
        # picked up by the HTTPException handler when the route fails
        request.state.rate_limit_headers = headers
        if not result.allowed:
            raise RateLimitExceeded(result.reset_after, headers)
        response.headers.update(headers)

    return dependency
