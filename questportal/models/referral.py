from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer
from questportal.database import Base


class ReferralRow(Base):
    __tablename__ = "referrals"

    id = Column(Integer, primary_key=True, index=True)
    inviter_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    invitee_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    tokens_earned_by_invitee = Column(Integer, nullable=False, default=0)
    regular_payout_made = Column(Boolean, nullable=False, default=False)
    vip_tokens_paid_out = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)
