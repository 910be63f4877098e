from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from .messages import router as messages_router
from .referrals import router as referrals_router

router = APIRouter()
router.include_router(messages_router)
router.include_router(referrals_router)


@router.get("/health", response_class=PlainTextResponse)
async def healthcheck() -> str:
    return "ok"


@router.get("/metrics")
async def metrics() -> Response:
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
