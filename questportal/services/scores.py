"""Minigame personal bests, the overall record holder and the leaderboard.

Higher scores win; equal scores are ranked by the faster run. Exactly one
user holds the overall record at a time. Breaking it inside
``speed_challenge_max_ms`` before the cycle's minigame is marked complete
starts a speed challenge, which lowers that cycle's ad requirement.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from questportal.core.errors import NotFoundError
from questportal.schemas.user_schema import UserRecord
from questportal.services.ledger import UserLedger
from questportal.services.quests import QuestEngine

logger = logging.getLogger(__name__)


def beats(score: int, time_ms: int, best_score: int, best_time: Optional[int]) -> bool:
    if score != best_score:
        return score > best_score
    return best_time is None or time_ms < best_time


@dataclass
class ScoreResult:
    is_improved_score: bool
    is_speed_challenge: bool
    ad_requirement: int

    @property
    def message(self) -> str:
        if self.is_speed_challenge:
            return (
                f"Congratulations! You broke the record in record time! "
                f"Complete only {self.ad_requirement} ads to earn your token."
            )
        if self.is_improved_score:
            return "New personal best!"
        return "Score recorded."


class ScoreService:
    def __init__(
        self,
        ledger: UserLedger,
        quests: QuestEngine,
        speed_challenge_max_ms: int = 10_000,
        leaderboard_size: int = 10,
    ) -> None:
        self.ledger = ledger
        self.quests = quests
        self.speed_challenge_max_ms = speed_challenge_max_ms
        self.leaderboard_size = leaderboard_size

    def record_score(self, username: str, score: int, time_ms: int) -> ScoreResult:
        with self.ledger.locked():
            user = self.ledger.get_by_username(username)
            if user is None:
                raise NotFoundError()

            changes = {}
            improved = score > 0 and beats(score, time_ms, user.best_score, user.best_time)
            became_holder = False
            if improved:
                changes.update(best_score=score, best_time=time_ms)

                holders = [u for u in self.ledger.list_all() if u.is_record_holder]
                holder = max(holders, key=lambda u: (u.best_score, -(u.best_time or 0)), default=None)
                if holder is None or beats(score, time_ms, holder.best_score, holder.best_time):
                    for other in holders:
                        if other.id != user.id:
                            self.ledger.update(other.username, is_record_holder=False)
                    changes["is_record_holder"] = True
                    became_holder = True

            # a finished minigame can no longer change this cycle's requirement
            speed = became_holder and time_ms <= self.speed_challenge_max_ms and not user.game_completed
            if speed:
                changes["speed_challenge"] = True

            if changes:
                user = self.ledger.update(username, **changes)

        if became_holder:
            logger.info("%s set the overall record: %s in %sms", username, score, time_ms)
        return ScoreResult(
            is_improved_score=improved,
            is_speed_challenge=speed,
            ad_requirement=self.quests.ads_required_for(user),
        )

    def leaderboard(self) -> list[UserRecord]:
        ranked = sorted(
            (u for u in self.ledger.list_all() if u.best_score > 0),
            key=lambda u: (-u.best_score, u.best_time or 0),
        )
        return ranked[: self.leaderboard_size]
