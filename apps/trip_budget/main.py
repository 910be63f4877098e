from __future__ import annotations

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse
from redis.asyncio import Redis
from starlette.exceptions import HTTPException as StarletteHTTPException

from apps.trip_budget.api.deps import RateLimitExceeded
from apps.trip_budget.api.http import router as http_router
from apps.trip_budget.core.rate_limit import RateLimiter
from apps.trip_budget.infra.db import Database
from apps.trip_budget.infra.logging import setup_logging
from apps.trip_budget.infra.redis import create_redis_pool
from apps.trip_budget.infra.settings import Settings, get_settings
from apps.trip_budget.services.credits import CreditService


def build_rate_limiter(settings: Settings, redis: Redis | None) -> RateLimiter | None:
    if redis is None or not settings.rate_limit_enabled:
        return None
    return RateLimiter(
        redis,
        max_requests=settings.rate_limit_max_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )


def build_app(
    settings: Settings | None = None,
    database: Database | None = None,
    redis: Redis | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings.log_level)

    database = database or Database(settings)
    if redis is None:
        redis = create_redis_pool(settings)

    app = FastAPI(title=settings.app_name)
    app.state.settings = settings
    app.state.database = database
    app.state.redis = redis
    app.state.credits = CreditService(database, settings)
    app.state.rate_limiter = build_rate_limiter(settings, redis)
    app.include_router(http_router)

    @app.exception_handler(RateLimitExceeded)
    async def on_rate_limit(request: Request, exc: RateLimitExceeded) -> JSONResponse:
        return JSONResponse(
            status_code=429,
            content={
                "error": "Too many requests",
                "message": "Rate limit exceeded. Please try again later.",
                "retryAfter": exc.retry_after,
            },
            headers={**exc.headers, "Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(StarletteHTTPException)
    async def on_http_error(request: Request, exc: StarletteHTTPException):
        response = await http_exception_handler(request, exc)
        response.headers.update(getattr(request.state, "rate_limit_headers", None) or {})
        return response

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        await database.dispose()
        if redis is not None:
            await redis.aclose()

    return app


if __name__ == "__main__":
    uvicorn.run("apps.trip_budget.main:build_app", factory=True, host="0.0.0.0", port=8000)
