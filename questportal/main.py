# questportal/main.py
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Callable, Optional

import httpx
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from questportal.core.config import Settings, build_settings
from questportal.core.errors import register_exception_handlers
from questportal.core.logging_config import configure_logging
from questportal.database import make_engine
from questportal.routers import admin_routes, stats_routes, user_routes
from questportal.services.ledger import UserLedger
from questportal.services.quests import QuestEngine
from questportal.services.redemption import RedemptionEngine
from questportal.services.referrals import ReferralService
from questportal.services.roblox_api import RobloxAPI
from questportal.services.scores import ScoreService
from questportal.services.statistics import StatisticsAggregator
from questportal.services.storage import InMemoryUserStore, SqlAlchemyUserStore, UserStore
from questportal.services.vip import VIPService

logger = logging.getLogger(__name__)


def build_store(settings: Settings) -> UserStore:
    if settings.is_memory_backend():
        logger.info("Using in-memory user store")
        return InMemoryUserStore()
    logger.info("Using SQL user store")
    return SqlAlchemyUserStore(make_engine(settings.DATABASE_URL))


def build_roblox(settings: Settings) -> RobloxAPI:
    return RobloxAPI(
        httpx.Client(timeout=settings.UPSTREAM_TIMEOUT_SECONDS),
        vip_gamepass_id=settings.VIP_GAMEPASS_ID,
        users_url=settings.ROBLOX_USERS_URL,
        inventory_url=settings.ROBLOX_INVENTORY_URL,
        retries=settings.UPSTREAM_RETRIES,
    )


def create_app(
    settings: Optional[Settings] = None,
    *,
    store: Optional[UserStore] = None,
    roblox: Optional[RobloxAPI] = None,
    clock: Callable[[], datetime] = datetime.now,
) -> FastAPI:
    settings = settings or build_settings()
    configure_logging(settings.LOG_LEVEL)

    # Services, built once per app
    ledger = UserLedger(store or build_store(settings), clock=clock)
    vip = VIPService(ledger, default_duration_days=settings.VIP_DURATION_DAYS)
    referrals = ReferralService(
        ledger,
        vip,
        regular_threshold=settings.REFERRAL_REGULAR_THRESHOLD,
        vip_step=settings.REFERRAL_VIP_STEP,
    )
    quests = QuestEngine(
        ledger,
        vip,
        referrals,
        ads_required=settings.ADS_REQUIRED,
        daily_limit=settings.DAILY_QUEST_LIMIT,
        speed_challenge_ads_required=settings.SPEED_CHALLENGE_ADS_REQUIRED,
    )
    scores = ScoreService(
        ledger,
        quests,
        speed_challenge_max_ms=settings.SPEED_CHALLENGE_MAX_MS,
        leaderboard_size=settings.LEADERBOARD_SIZE,
    )
    redemption = RedemptionEngine(
        ledger,
        vip,
        prefix=settings.TOKEN_PREFIX,
        standard_cost=settings.REDEEM_COST_STANDARD,
        vip_cost=settings.REDEEM_COST_VIP,
    )
    roblox = roblox or build_roblox(settings)

    if settings.OWNER_USERNAME and settings.OWNER_PASSWORD:
        ledger.ensure_owner(settings.OWNER_USERNAME, settings.OWNER_PASSWORD)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting %s (%s)", settings.APP_NAME, settings.ENV)
        yield
        logger.info("Shutting down %s", settings.APP_NAME)
        roblox.close()
        ledger.close()

    app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

    app.state.settings = settings
    app.state.ledger = ledger
    app.state.vip = vip
    app.state.referrals = referrals
    app.state.quests = quests
    app.state.redemption = redemption
    app.state.scores = scores
    app.state.statistics = StatisticsAggregator(ledger)
    app.state.roblox = roblox

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOW_ORIGINS,
        allow_credentials=settings.ALLOW_CREDENTIALS,
        allow_methods=settings.ALLOW_METHODS,
        allow_headers=settings.ALLOW_HEADERS,
    )
    register_exception_handlers(app)

    @app.get("/")
    def read_root():
        return {"message": f"{settings.APP_NAME} running"}

    # Routers
    app.include_router(user_routes.router)
    app.include_router(admin_routes.router)
    app.include_router(stats_routes.router)

    return app


def get_app() -> FastAPI:
    """Entry point for ``uvicorn --factory questportal.main:get_app``."""
    load_dotenv()
    return create_app()
