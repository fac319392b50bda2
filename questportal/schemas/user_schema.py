# schemas/user_schema.py
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Role(str, Enum):
    user = "user"
    admin = "admin"
    owner = "owner"


class CamelModel(BaseModel):
    # front-end speaks camelCase, snake_case is accepted too
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class UserRecord(BaseModel):
    """Ledger-side user record. Never returned to clients as-is."""

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    id: int
    username: str
    password_hash: str
    role: Role = Role.user
    game_completed: bool = False
    ads_watched: int = 0
    token_count: int = 0
    token: Optional[str] = None
    is_token_redeemed: bool = False
    last_quest_completed_at: Optional[datetime] = None
    daily_quest_count: int = 0
    is_vip: bool = False
    vip_expires_at: Optional[datetime] = None
    referral_code: Optional[str] = None
    referred_by: Optional[int] = None
    best_score: int = 0
    best_time: Optional[int] = None  # milliseconds
    is_record_holder: bool = False
    speed_challenge: bool = False  # reduced ad requirement for the current cycle
    created_at: datetime

    def is_quest_complete(self, ads_required: int) -> bool:
        return self.game_completed and self.ads_watched >= ads_required

    def has_outstanding_code(self) -> bool:
        return self.token is not None and not self.is_token_redeemed


class UserCreate(CamelModel):
    username: str = Field(..., min_length=3, max_length=20, examples=["builderman"])
    password: str = Field(..., min_length=1)
    referral_code: Optional[str] = None


class UserLogin(CamelModel):
    username: str
    password: str


class ProgressUpdate(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    game_completed: Optional[bool] = None
    ads_watched: Optional[int] = Field(default=None, ge=0)


class UserResponse(CamelModel):
    id: int
    username: str
    role: Role
    game_completed: bool
    ads_watched: int
    token_count: int
    token: Optional[str] = None
    is_token_redeemed: bool
    last_quest_completed_at: Optional[datetime] = None
    daily_quest_count: int
    is_vip: bool
    vip_expires_at: Optional[datetime] = None
    referral_code: Optional[str] = None
    best_score: int = 0
    best_time: Optional[int] = None
    is_record_holder: bool = False
    speed_challenge: bool = False
    created_at: datetime


class TokenResponse(CamelModel):
    token: str
    remaining_tokens: int


class VerifyTokenRequest(CamelModel):
    username: str = Field(..., min_length=1)
    token: str = Field(..., min_length=1)


class VerifyTokenResponse(CamelModel):
    success: bool
    message: str
    username: str


class RoleUpdate(CamelModel):
    role: Role


class VIPUpdate(CamelModel):
    is_vip: bool
    duration_days: int = Field(default=7, ge=1, le=3650)


class VIPStatusResponse(CamelModel):
    username: str
    is_vip: bool
    vip_expires_at: Optional[datetime] = None


class ReferralCodeResponse(CamelModel):
    username: str
    referral_code: str


class ScoreSubmit(CamelModel):
    score: int = Field(..., ge=0)
    time: int = Field(..., ge=0, description="Run duration in milliseconds")


class ScoreResponse(CamelModel):
    success: bool = True
    is_improved_score: bool
    is_speed_challenge: bool
    ad_requirement: int
    message: str


class LeaderboardEntry(CamelModel):
    username: str
    best_score: int
    best_time: Optional[int] = None
    is_record_holder: bool


class LeaderboardResponse(CamelModel):
    leaderboard: list[LeaderboardEntry]
