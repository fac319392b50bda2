from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, Path

from questportal.auth.credentials import require_roles
from questportal.dependencies import get_statistics
from questportal.schemas.stats_schema import WindowedRegistrations, WindowedStatistics
from questportal.schemas.user_schema import Role
from questportal.services.statistics import StatisticsAggregator, TimeWindow

router = APIRouter(
    prefix="/api/admin",
    tags=["Admin Statistics"],
    dependencies=[Depends(require_roles(Role.admin, Role.owner))],
)

Year = Annotated[int, Path(ge=1970, le=9998)]
Month = Annotated[int, Path(ge=1, le=12)]


def _stats(aggregator: StatisticsAggregator, window: TimeWindow) -> WindowedStatistics:
    return WindowedStatistics(start=window.start, end=window.end, statistics=aggregator.statistics(window))


def _registrations(aggregator: StatisticsAggregator, window: TimeWindow) -> WindowedRegistrations:
    return WindowedRegistrations(start=window.start, end=window.end, registrations=aggregator.registrations(window))


# ---------- Quest / token statistics ----------

@router.get("/statistics/today", response_model=WindowedStatistics)
def statistics_today(aggregator: StatisticsAggregator = Depends(get_statistics)):
    return _stats(aggregator, aggregator.today())


@router.get("/statistics/date/{day}", response_model=WindowedStatistics)
def statistics_for_date(day: date, aggregator: StatisticsAggregator = Depends(get_statistics)):
    return _stats(aggregator, TimeWindow.for_day(day))


@router.get("/statistics/month/{year}/{month}", response_model=WindowedStatistics)
def statistics_for_month(
    year: Year,
    month: Month,
    aggregator: StatisticsAggregator = Depends(get_statistics),
):
    return _stats(aggregator, TimeWindow.for_month(year, month))


@router.get("/statistics/year/{year}", response_model=WindowedStatistics)
def statistics_for_year(year: Year, aggregator: StatisticsAggregator = Depends(get_statistics)):
    return _stats(aggregator, TimeWindow.for_year(year))


# ---------- Registrations ----------

@router.get("/registrations/today", response_model=WindowedRegistrations)
def registrations_today(aggregator: StatisticsAggregator = Depends(get_statistics)):
    return _registrations(aggregator, aggregator.today())


@router.get("/registrations/date/{day}", response_model=WindowedRegistrations)
def registrations_for_date(day: date, aggregator: StatisticsAggregator = Depends(get_statistics)):
    return _registrations(aggregator, TimeWindow.for_day(day))


@router.get("/registrations/month/{year}/{month}", response_model=WindowedRegistrations)
def registrations_for_month(
    year: Year,
    month: Month,
    aggregator: StatisticsAggregator = Depends(get_statistics),
):
    return _registrations(aggregator, TimeWindow.for_month(year, month))


@router.get("/registrations/year/{year}", response_model=WindowedRegistrations)
def registrations_for_year(year: Year, aggregator: StatisticsAggregator = Depends(get_statistics)):
    return _registrations(aggregator, TimeWindow.for_year(year))
