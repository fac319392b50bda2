import os
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_csv(val: str | None) -> list[str]:
    return [v.strip() for v in (val or "").split(",") if v.strip()]


class Settings(BaseSettings):
    # App
    APP_NAME: str = "Quest Portal Backend"
    ENV: str = os.getenv("ENV", "production")
    LOG_LEVEL: str = "INFO"

    # CORS (schemed origins like https://portal.example.com)
    ALLOW_ORIGINS: list[str] = Field(default_factory=list)  # override via ALLOWED_ORIGINS (CSV)
    ALLOW_METHODS: list[str] = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
    ALLOW_HEADERS: list[str] = ["*"]
    ALLOW_CREDENTIALS: bool = True

    # DB (empty -> in-memory ledger)
    DATABASE_URL: str = ""

    # Quest rules
    ADS_REQUIRED: int = 15
    DAILY_QUEST_LIMIT: int = 5

    # Minigame records
    SPEED_CHALLENGE_MAX_MS: int = 10_000
    SPEED_CHALLENGE_ADS_REQUIRED: int = 10
    LEADERBOARD_SIZE: int = 10

    # Redemption
    TOKEN_PREFIX: str = "BLUX"
    REDEEM_COST_STANDARD: int = 10
    REDEEM_COST_VIP: int = 1

    # VIP
    VIP_DURATION_DAYS: int = 7
    VIP_GAMEPASS_ID: int = 23557114

    # Referrals
    REFERRAL_REGULAR_THRESHOLD: int = 10
    REFERRAL_VIP_STEP: int = 20

    # Owner bootstrap account (skipped when either is empty)
    OWNER_USERNAME: str = ""
    OWNER_PASSWORD: str = ""

    # Roblox
    ROBLOX_USERS_URL: str = "https://users.roblox.com/v1/usernames/users"
    ROBLOX_INVENTORY_URL: str = "https://inventory.roblox.com/v1/users/{user_id}/items/GamePass/{gamepass_id}"
    UPSTREAM_TIMEOUT_SECONDS: float = 10.0
    UPSTREAM_RETRIES: int = 1

    # Load .env file
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # ---------- Helpers ----------

    def is_memory_backend(self) -> bool:
        return not self.DATABASE_URL.strip()

    def frontend_origins(self) -> list[str]:
        if self.ALLOW_ORIGINS:
            return self.ALLOW_ORIGINS
        return ["http://localhost:3000", "http://127.0.0.1:3000"]


def build_settings(**overrides) -> Settings:
    s = Settings(**overrides)

    # SQLAlchemy no longer accepts the bare postgres:// scheme
    if s.DATABASE_URL.startswith("postgres://"):
        s.DATABASE_URL = s.DATABASE_URL.replace("postgres://", "postgresql://", 1)

    # Load CORS overrides
    env_origins = _split_csv(os.getenv("ALLOWED_ORIGINS"))
    if env_origins:
        s.ALLOW_ORIGINS = env_origins
    else:
        s.ALLOW_ORIGINS = s.frontend_origins()

    return s
