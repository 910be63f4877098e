from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, conint

from apps.trip_budget.api.deps import get_credit_service, get_current_user_id, rate_limited
from apps.trip_budget.services.credits import CreditService

router = APIRouter(prefix="/api/messages", tags=["messages"])


class ConsumeRequest(BaseModel):
    amount: conint(ge=0) = 1


@router.get("/counter")
async def message_counter(
    user_id: str = Depends(get_current_user_id),
    credits: CreditService = Depends(get_credit_service),
):
    counter = await credits.get_counter(user_id)
    return counter.to_dict()


@router.get("/check")
async def check_messages(
    required: int = Query(default=1, ge=0),
    user_id: str = Depends(get_current_user_id),
    credits: CreditService = Depends(get_credit_service),
):
    counter = await credits.get_counter(user_id)
    return {
        "hasEnough": counter.message_count >= required,
        "messageCount": counter.message_count,
    }


@router.post("/consume", dependencies=[Depends(rate_limited("messages"))])
async def consume_messages(
    request: ConsumeRequest,
    user_id: str = Depends(get_current_user_id),
    credits: CreditService = Depends(get_credit_service),
):
    counter = await credits.decrement(user_id, int(request.amount))
    return counter.to_dict()
