# platelink/schemas/referral.py
from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class ReferralApply(BaseModel):
    user_id: str
    code: str


class ReferralApplied(BaseModel):
    referrer_id: str
    reward_amount: int

    class Config:
        from_attributes = True


class ReferralCodeOut(BaseModel):
    code: str
    valid: bool = True
    owner_id: str


class ReferralStatsOut(BaseModel):
    user_id: str
    referral_code: str
    referred_by: Optional[str]
    successful_referrals: int
    total_earned: int

    class Config:
        from_attributes = True


class ReferralRecordOut(BaseModel):
    referee_id: str
    reward_amount: int
    created_at: datetime

    class Config:
        from_attributes = True
