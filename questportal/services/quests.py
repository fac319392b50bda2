"""Quest eligibility and token accrual.

A quest cycle is complete once the minigame is finished and
``ads_required`` ads were watched. Crossing from incomplete to complete
awards one accrual token, subject to the daily quota. Progress only moves
forward within a cycle; ``start_cycle`` is the one reset. A speed-challenge
record lowers the ad requirement until that reset. Only calendar dates
matter for the quota: a completion at 23:59 and another at 00:01 land on
different days.
"""

import logging
from datetime import datetime
from typing import Optional

from questportal.core.errors import InvalidInputError, NotFoundError
from questportal.schemas.ledger_schema import EventKind, LedgerEvent
from questportal.schemas.user_schema import UserRecord
from questportal.services.ledger import UserLedger
from questportal.services.referrals import ReferralService
from questportal.services.vip import VIPService

logger = logging.getLogger(__name__)


def same_calendar_day(a: datetime, b: datetime) -> bool:
    return (a.year, a.month, a.day) == (b.year, b.month, b.day)


class QuestEngine:
    def __init__(
        self,
        ledger: UserLedger,
        vip: VIPService,
        referrals: Optional[ReferralService] = None,
        ads_required: int = 15,
        daily_limit: int = 5,
        speed_challenge_ads_required: int = 10,
    ) -> None:
        self.ledger = ledger
        self.vip = vip
        self.referrals = referrals
        self.ads_required = ads_required
        self.daily_limit = daily_limit
        self.speed_challenge_ads_required = speed_challenge_ads_required

    def ads_required_for(self, user: UserRecord) -> int:
        if user.speed_challenge:
            return min(self.speed_challenge_ads_required, self.ads_required)
        return self.ads_required

    def is_quest_complete(self, user: UserRecord) -> bool:
        return user.is_quest_complete(self.ads_required_for(user))

    def can_complete_quest_today(self, username: str) -> bool:
        """Whether the daily slot allows another completion.

        VIP is not considered here; see ``may_start_quest``. A stale
        ``daily_quest_count`` from a previous day is reset as a side effect.
        """
        with self.ledger.locked():
            user = self.ledger.get_by_username(username)
            if user is None:
                return True
            if user.last_quest_completed_at is None:
                return True

            if not same_calendar_day(user.last_quest_completed_at, self.ledger.clock()):
                if user.daily_quest_count:
                    self.ledger.update(username, daily_quest_count=0)
                return True

            return user.daily_quest_count < self.daily_limit

    def may_start_quest(self, username: str) -> bool:
        with self.ledger.locked():
            user = self.vip.refresh(username)
            if user is not None and self.vip.is_active(user):
                return True
            return self.can_complete_quest_today(username)

    def start_cycle(self, username: str, enforce_quota: bool = True) -> UserRecord:
        """Reset minigame and ad progress for a fresh quest cycle."""
        with self.ledger.locked():
            if self.ledger.get_by_username(username) is None:
                raise NotFoundError()
            if enforce_quota and not self.may_start_quest(username):
                raise InvalidInputError("Daily quest limit reached. Come back tomorrow!")
            return self.ledger.update(username, game_completed=False, ads_watched=0, speed_challenge=False)

    def apply_progress(
        self,
        username: str,
        game_completed: Optional[bool] = None,
        ads_watched: Optional[int] = None,
    ) -> UserRecord:
        awarded = None
        with self.ledger.locked():
            # 1. Load current record
            user = self.ledger.get_by_username(username)
            if user is None:
                raise NotFoundError()

            # 2. Merge the requested progress; only start_cycle moves it backwards
            changes = {}
            if game_completed is not None:
                changes["game_completed"] = user.game_completed or game_completed
            if ads_watched is not None:
                clamped = max(0, min(ads_watched, self.ads_required))
                if clamped < user.ads_watched:
                    logger.debug("Ignoring ads_watched %s < %s for %s", clamped, user.ads_watched, username)
                changes["ads_watched"] = max(user.ads_watched, clamped)
            proposed = user.model_copy(update=changes)

            # 3. Award only on the incomplete -> complete edge
            crossed = not self.is_quest_complete(user) and self.is_quest_complete(proposed)
            if crossed:
                if self.may_start_quest(username):
                    # eligibility may have reset daily_quest_count
                    current = self.ledger.get_by_username(username)
                    changes.update(
                        token_count=current.token_count + 1,
                        daily_quest_count=current.daily_quest_count + 1,
                        last_quest_completed_at=self.ledger.clock(),
                    )
                    awarded = changes["last_quest_completed_at"]
                else:
                    logger.info("Quest completed by %s but daily limit reached, no token", username)

            # 4. Persist
            updated = self.ledger.update(username, **changes)

            if awarded is not None:
                self.ledger.record_event(
                    LedgerEvent(
                        kind=EventKind.quest_completed,
                        user_id=updated.id,
                        occurred_at=awarded,
                        ads_watched=updated.ads_watched,
                    )
                )
                logger.info(
                    "Awarded token to %s (balance=%s, today=%s)",
                    username, updated.token_count, updated.daily_quest_count,
                )
                if self.referrals is not None:
                    self.referrals.on_token_awarded(updated)

        return updated
