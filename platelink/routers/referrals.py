# platelink/routers/referrals.py
"""Referral code redemption, referral stats and history."""

from fastapi import APIRouter, Depends, Query

from platelink.config import settings
from platelink.domain import ActivityKind, NotificationKind
from platelink.schemas.referral import (
    ReferralApply, ReferralApplied, ReferralCodeOut, ReferralRecordOut, ReferralStatsOut,
)
from platelink.services.backend import Backend, get_backend

router = APIRouter()


@router.post("/referrals/apply", response_model=ReferralApplied, summary="Redeem a referral code",
             responses={409: {"description": "AlreadyApplied"}, 400: {"description": "InvalidCode / SelfReferral"}})
def apply_referral(body: ReferralApply, backend: Backend = Depends(get_backend)):
    backend.users.require(body.user_id)
    result = backend.referrals.apply(body.user_id, body.code)
    backend.activity.record(ActivityKind.REFERRAL_REDEEMED, user_id=body.user_id)
    backend.activity.notify(result.referrer_id, NotificationKind.REFERRAL_SUCCESS,
                            f"Your referral code was used. You earned {result.reward_amount} credits.")
    return ReferralApplied.model_validate(result)


@router.get("/referrals/validate/{code}", response_model=ReferralCodeOut, summary="Check a referral code")
def validate_referral_code(code: str, backend: Backend = Depends(get_backend)):
    account = backend.referrals.validate_code(code)
    return ReferralCodeOut(code=account.referral_code, owner_id=account.user_id)


@router.get("/referrals/stats", response_model=ReferralStatsOut, summary="My code + referral earnings")
def referral_stats(user_id: str, backend: Backend = Depends(get_backend)):
    return ReferralStatsOut.model_validate(backend.referrals.stats(user_id))


@router.get("/referrals/history", response_model=list[ReferralRecordOut], summary="People who used my code")
def referral_history(user_id: str, limit: int = Query(settings.HISTORY_DEFAULT_LIMIT, ge=1),
                     backend: Backend = Depends(get_backend)):
    records = backend.referrals.history(user_id, min(limit, settings.HISTORY_MAX_LIMIT))
    return [ReferralRecordOut.model_validate(r) for r in records]
