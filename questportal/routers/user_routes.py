import logging

from fastapi import APIRouter, Depends, status

from questportal.core.errors import ConflictError, InvalidInputError, NotFoundError, UnauthorizedError
from questportal.dependencies import (
    get_ledger,
    get_quests,
    get_redemption,
    get_referrals,
    get_roblox,
    get_scores,
    get_vip,
)
from questportal.schemas.user_schema import (
    LeaderboardEntry,
    LeaderboardResponse,
    ProgressUpdate,
    ReferralCodeResponse,
    ScoreResponse,
    ScoreSubmit,
    TokenResponse,
    UserCreate,
    UserLogin,
    UserRecord,
    UserResponse,
    VerifyTokenRequest,
    VerifyTokenResponse,
    VIPStatusResponse,
)
from questportal.services.ledger import UserLedger, verify_password
from questportal.services.quests import QuestEngine
from questportal.services.redemption import RedemptionEngine
from questportal.services.referrals import ReferralService
from questportal.services.roblox_api import RobloxAPI
from questportal.services.scores import ScoreService
from questportal.services.vip import VIPService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["User"])


def _out(user: UserRecord) -> UserResponse:
    return UserResponse.model_validate(user)


def _require_user(ledger: UserLedger, username: str) -> UserRecord:
    user = ledger.get_by_username(username)
    if user is None:
        raise NotFoundError()
    return user


@router.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register_user(
    payload: UserCreate,
    ledger: UserLedger = Depends(get_ledger),
    roblox: RobloxAPI = Depends(get_roblox),
    vip: VIPService = Depends(get_vip),
    referrals: ReferralService = Depends(get_referrals),
):
    # 1. Reject duplicates before calling out
    if ledger.get_by_username(payload.username) is not None:
        raise ConflictError()

    # 2. The username must be a real Roblox player
    if not roblox.is_valid_player(payload.username):
        raise InvalidInputError("Roblox username could not be verified")

    # 3. Create with the default role
    user = ledger.create(payload.username, payload.password)

    # 4. Optional invite
    if payload.referral_code:
        referrals.link(user, payload.referral_code.strip())

    # 5. VIP gamepass owners start as VIP; lookup failures are ignored
    if roblox.has_vip_gamepass(user.username):
        vip.grant(user.username)

    return _out(_require_user(ledger, user.username))


@router.post("/users/login", response_model=UserResponse)
def login_user(
    payload: UserLogin,
    ledger: UserLedger = Depends(get_ledger),
    roblox: RobloxAPI = Depends(get_roblox),
    vip: VIPService = Depends(get_vip),
    quests: QuestEngine = Depends(get_quests),
):
    user = ledger.get_by_username(payload.username)
    if user is None or not verify_password(payload.password, user.password_hash):
        raise UnauthorizedError()

    if not roblox.is_valid_player(user.username):
        raise UnauthorizedError("Roblox account could not be verified")

    vip.sync_from_gamepass(user.username, roblox.has_vip_gamepass)

    # Fresh cycle unless a non-VIP already used up today's quests
    if quests.may_start_quest(user.username):
        user = quests.start_cycle(user.username, enforce_quota=False)
    else:
        user = _require_user(ledger, user.username)

    logger.info("User %s logged in", user.username)
    return _out(user)


@router.get("/users/{username}", response_model=UserResponse)
def get_user(username: str, ledger: UserLedger = Depends(get_ledger)):
    return _out(_require_user(ledger, username))


@router.patch("/users/{username}", response_model=UserResponse)
def update_progress(
    username: str,
    payload: ProgressUpdate,
    quests: QuestEngine = Depends(get_quests),
):
    user = quests.apply_progress(
        username,
        game_completed=payload.game_completed,
        ads_watched=payload.ads_watched,
    )
    return _out(user)


@router.post("/users/{username}/quest/restart", response_model=UserResponse)
def restart_quest(username: str, quests: QuestEngine = Depends(get_quests)):
    return _out(quests.start_cycle(username))


@router.post("/users/{username}/token", response_model=TokenResponse)
def generate_token(username: str, redemption: RedemptionEngine = Depends(get_redemption)):
    result = redemption.generate_code(username)
    return TokenResponse(token=result.token, remaining_tokens=result.remaining_tokens)


@router.post("/users/{username}/check-vip", response_model=VIPStatusResponse)
def check_vip(
    username: str,
    ledger: UserLedger = Depends(get_ledger),
    roblox: RobloxAPI = Depends(get_roblox),
    vip: VIPService = Depends(get_vip),
):
    _require_user(ledger, username)
    user = vip.sync_from_gamepass(username, roblox.has_vip_gamepass)
    return VIPStatusResponse(username=user.username, is_vip=user.is_vip, vip_expires_at=user.vip_expires_at)


@router.post("/users/{username}/referral-code", response_model=ReferralCodeResponse)
def issue_referral_code(username: str, referrals: ReferralService = Depends(get_referrals)):
    code = referrals.issue_code(username)
    return ReferralCodeResponse(username=username, referral_code=code)


@router.post("/users/{username}/score", response_model=ScoreResponse)
def submit_score(username: str, payload: ScoreSubmit, scores: ScoreService = Depends(get_scores)):
    result = scores.record_score(username, payload.score, payload.time)
    return ScoreResponse(
        is_improved_score=result.is_improved_score,
        is_speed_challenge=result.is_speed_challenge,
        ad_requirement=result.ad_requirement,
        message=result.message,
    )


@router.get("/leaderboard", response_model=LeaderboardResponse)
def get_leaderboard(scores: ScoreService = Depends(get_scores)):
    return LeaderboardResponse(leaderboard=[LeaderboardEntry.model_validate(u) for u in scores.leaderboard()])


@router.post("/verify-token", response_model=VerifyTokenResponse)
def verify_token(payload: VerifyTokenRequest, redemption: RedemptionEngine = Depends(get_redemption)):
    user = redemption.confirm(payload.username, payload.token)
    return VerifyTokenResponse(
        success=True,
        message="Token verified and redeemed successfully",
        username=user.username,
    )
