# platelink/models/referral.py
"""Referral applications. At most one row per referee, for all time."""

from sqlalchemy import Column, Integer, String, DateTime
from platelink.database import Base


class ReferralApplication(Base):
    __tablename__ = "referral_applications"

    referee_id = Column(String(36), primary_key=True)
    referrer_id = Column(String(36), nullable=False, index=True)
    reward_amount = Column(Integer, nullable=False)
    created_at = Column(DateTime, nullable=False)

    def __repr__(self):
        return f"<ReferralApplication {self.referrer_id} -> {self.referee_id}>"
