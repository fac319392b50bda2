import base64
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from questportal.core.config import Settings
from questportal.database import make_engine
from questportal.main import create_app
from questportal.services import ledger as ledger_module
from questportal.services.ledger import UserLedger
from questportal.services.quests import QuestEngine
from questportal.services.redemption import RedemptionEngine
from questportal.services.referrals import ReferralService
from questportal.services.scores import ScoreService
from questportal.services.storage import InMemoryUserStore, SqlAlchemyUserStore
from questportal.services.vip import VIPService

OWNER = ("owner", "owner-pass")


class FrozenClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeRoblox:
    """Stands in for RobloxAPI; every username is a valid player by default."""

    def __init__(self) -> None:
        self.invalid: set[str] = set()
        self.vip_owners: set[str] = set()
        self.calls: list[tuple[str, str]] = []

    def is_valid_player(self, username: str) -> bool:
        self.calls.append(("valid", username))
        return username not in self.invalid

    def has_vip_gamepass(self, username: str) -> bool:
        self.calls.append(("vip", username))
        return username in self.vip_owners

    def close(self) -> None:
        pass


def basic_auth(username: str, password: str) -> dict:
    encoded = base64.b64encode(f"{username}:{password}".encode()).decode()
    return {"Authorization": f"Basic {encoded}"}


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    monkeypatch.setattr(ledger_module, "BCRYPT_ROUNDS", 4)


@pytest.fixture
def clock():
    return FrozenClock(datetime(2024, 3, 15, 12, 0, 0))


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "memory":
        yield InMemoryUserStore()
    else:
        sql_store = SqlAlchemyUserStore(make_engine(f"sqlite:///{tmp_path / 'ledger.db'}"))
        yield sql_store
        sql_store.close()


@pytest.fixture
def ledger(clock):
    return UserLedger(InMemoryUserStore(), clock=clock)


@pytest.fixture
def vip(ledger):
    return VIPService(ledger, default_duration_days=7)


@pytest.fixture
def referrals(ledger, vip):
    return ReferralService(ledger, vip, regular_threshold=10, vip_step=20)


@pytest.fixture
def quests(ledger, vip, referrals):
    return QuestEngine(ledger, vip, referrals, ads_required=15, daily_limit=5)


@pytest.fixture
def scores(ledger, quests):
    return ScoreService(ledger, quests, speed_challenge_max_ms=10_000, leaderboard_size=10)


@pytest.fixture
def redemption(ledger, vip):
    return RedemptionEngine(ledger, vip, prefix="BLUX", standard_cost=10, vip_cost=1)


@pytest.fixture
def settings():
    return Settings(OWNER_USERNAME=OWNER[0], OWNER_PASSWORD=OWNER[1], LOG_LEVEL="WARNING")


@pytest.fixture
def roblox():
    return FakeRoblox()


@pytest.fixture
def app(settings, roblox, clock):
    return create_app(settings, store=InMemoryUserStore(), roblox=roblox, clock=clock)


@pytest.fixture
def client(app):
    return TestClient(app)
