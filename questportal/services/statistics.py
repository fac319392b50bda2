"""Read-only rollups over the ledger for the admin dashboard.

Every figure comes from a full scan. "Tokens earned" counts award events
inside the window, so the number does not shrink when users spend their
balance.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta

from questportal.schemas.ledger_schema import EventKind
from questportal.schemas.stats_schema import RegistrationStats, StatisticsResult
from questportal.services.ledger import UserLedger


@dataclass(frozen=True)
class TimeWindow:
    start: datetime
    end: datetime  # exclusive

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment < self.end

    @classmethod
    def for_day(cls, day: date) -> "TimeWindow":
        start = datetime(day.year, day.month, day.day)
        return cls(start, start + timedelta(days=1))

    @classmethod
    def for_month(cls, year: int, month: int) -> "TimeWindow":
        start = datetime(year, month, 1)
        end = datetime(year + 1, 1, 1) if month == 12 else datetime(year, month + 1, 1)
        return cls(start, end)

    @classmethod
    def for_year(cls, year: int) -> "TimeWindow":
        return cls(datetime(year, 1, 1), datetime(year + 1, 1, 1))


class StatisticsAggregator:
    def __init__(self, ledger: UserLedger) -> None:
        self.ledger = ledger

    def today(self) -> TimeWindow:
        return TimeWindow.for_day(self.ledger.clock().date())

    def statistics(self, window: TimeWindow) -> StatisticsResult:
        result = StatisticsResult()
        for event in self.ledger.list_events():
            if not window.contains(event.occurred_at):
                continue
            if event.kind == EventKind.quest_completed:
                result.total_ads_watched += event.ads_watched
                result.total_tokens_earned += 1
            elif event.kind == EventKind.code_redeemed:
                result.total_codes_redeemed += 1
        return result

    def registrations(self, window: TimeWindow) -> RegistrationStats:
        count = sum(1 for user in self.ledger.list_all() if window.contains(user.created_at))
        return RegistrationStats(new_users_count=count)
