from datetime import datetime

from questportal.schemas.user_schema import CamelModel


class StatisticsResult(CamelModel):
    total_ads_watched: int = 0
    total_tokens_earned: int = 0
    total_codes_redeemed: int = 0


class RegistrationStats(CamelModel):
    new_users_count: int = 0


class WindowedStatistics(CamelModel):
    start: datetime
    end: datetime
    statistics: StatisticsResult


class WindowedRegistrations(CamelModel):
    start: datetime
    end: datetime
    registrations: RegistrationStats
