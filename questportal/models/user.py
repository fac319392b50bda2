# models/user.py
from sqlalchemy import Boolean, Column, DateTime, Integer, String
from questportal.database import Base


class UserRow(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    role = Column(String, nullable=False, default="user")                  # user, admin, owner

    # Current quest cycle
    game_completed = Column(Boolean, nullable=False, default=False)
    ads_watched = Column(Integer, nullable=False, default=0)

    # Accrual tokens + the single live redemption code
    token_count = Column(Integer, nullable=False, default=0)
    token = Column(String, nullable=True)
    is_token_redeemed = Column(Boolean, nullable=False, default=False)

    # Daily quota
    last_quest_completed_at = Column(DateTime, nullable=True)
    daily_quest_count = Column(Integer, nullable=False, default=0)

    is_vip = Column(Boolean, nullable=False, default=False)
    vip_expires_at = Column(DateTime, nullable=True)                        # null + is_vip = permanent

    referral_code = Column(String, unique=True, nullable=True)
    referred_by = Column(Integer, nullable=True)

    # Minigame records
    best_score = Column(Integer, nullable=False, default=0)
    best_time = Column(Integer, nullable=True)                              # milliseconds
    is_record_holder = Column(Boolean, nullable=False, default=False)
    speed_challenge = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, nullable=False)
