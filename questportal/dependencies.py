# questportal/dependencies.py
from fastapi import Request

from questportal.services.ledger import UserLedger
from questportal.services.quests import QuestEngine
from questportal.services.redemption import RedemptionEngine
from questportal.services.referrals import ReferralService
from questportal.services.roblox_api import RobloxAPI
from questportal.services.scores import ScoreService
from questportal.services.statistics import StatisticsAggregator
from questportal.services.vip import VIPService


def get_ledger(request: Request) -> UserLedger:
    return request.app.state.ledger


def get_quests(request: Request) -> QuestEngine:
    return request.app.state.quests


def get_redemption(request: Request) -> RedemptionEngine:
    return request.app.state.redemption


def get_vip(request: Request) -> VIPService:
    return request.app.state.vip


def get_referrals(request: Request) -> ReferralService:
    return request.app.state.referrals


def get_scores(request: Request) -> ScoreService:
    return request.app.state.scores


def get_statistics(request: Request) -> StatisticsAggregator:
    return request.app.state.statistics


def get_roblox(request: Request) -> RobloxAPI:
    return request.app.state.roblox
