from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class EventKind(str, Enum):
    quest_completed = "quest_completed"
    code_redeemed = "code_redeemed"


class LedgerEvent(BaseModel):
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    id: Optional[int] = None
    kind: EventKind
    user_id: int
    occurred_at: datetime
    ads_watched: int = 0


class Referral(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    inviter_id: int
    invitee_id: int
    tokens_earned_by_invitee: int = 0
    regular_payout_made: bool = False
    vip_tokens_paid_out: int = 0
    created_at: datetime
    updated_at: datetime
