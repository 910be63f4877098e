from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field

from apps.trip_budget.api.deps import get_credit_service, get_current_user_id, rate_limited
from apps.trip_budget.core.referrals import ReferralUnavailable
from apps.trip_budget.services.credits import CreditService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/referrals", tags=["referrals"])


class IssueReferralRequest(BaseModel):
    email: str | None = Field(default=None, max_length=320)


class UseReferralRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    referral_code: str = Field(alias="referralCode", min_length=1, max_length=32)


@router.post("", status_code=status.HTTP_201_CREATED)
async def issue_referral(
    request: IssueReferralRequest,
    user_id: str = Depends(get_current_user_id),
    credits: CreditService = Depends(get_credit_service),
):
    referral = await credits.issue_referral(user_id, request.email)
    payload = referral.to_dict()
    payload["inviteUrl"] = credits.invite_url(referral)
    return payload


@router.post("/use", dependencies=[Depends(rate_limited("referrals"))])
async def use_referral(
    request: UseReferralRequest,
    user_id: str = Depends(get_current_user_id),
    credits: CreditService = Depends(get_credit_service),
):
    try:
        await credits.redeem_referral(request.referral_code, user_id)
    except ReferralUnavailable:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="This invitation link has already been used or is invalid",
        )
    except Exception:
        logger.exception("Error using referral code for user %s", user_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Unable to apply referral bonus. Please try again.",
        )
    return {"success": True, "message": "Referral bonus applied successfully!"}
