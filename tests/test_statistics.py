from datetime import date, datetime

from questportal.services.statistics import StatisticsAggregator, TimeWindow


def test_windows():
    day = TimeWindow.for_day(date(2024, 2, 29))
    assert day.start == datetime(2024, 2, 29)
    assert day.end == datetime(2024, 3, 1)

    december = TimeWindow.for_month(2024, 12)
    assert december.end == datetime(2025, 1, 1)
    assert december.contains(datetime(2024, 12, 31, 23, 59))
    assert not december.contains(datetime(2025, 1, 1))

    year = TimeWindow.for_year(2024)
    assert year.start == datetime(2024, 1, 1)
    assert year.end == datetime(2025, 1, 1)


def test_statistics_count_award_and_redemption_events(ledger, quests, redemption, clock):
    aggregator = StatisticsAggregator(ledger)
    ledger.create("alice", "pw")
    ledger.create("bob", "pw")

    quests.apply_progress("alice", game_completed=True, ads_watched=15)
    quests.apply_progress("bob", game_completed=True, ads_watched=15)
    ledger.update("alice", token_count=10)
    redemption.confirm("alice", redemption.generate_code("alice").token)

    today = aggregator.statistics(aggregator.today())
    assert today.total_tokens_earned == 2
    assert today.total_ads_watched == 30
    assert today.total_codes_redeemed == 1

    # spending tokens does not shrink "earned"
    month = aggregator.statistics(TimeWindow.for_month(2024, 3))
    assert month.total_tokens_earned == 2

    assert aggregator.statistics(TimeWindow.for_day(date(2024, 3, 14))).total_tokens_earned == 0
    assert aggregator.statistics(TimeWindow.for_year(2023)).total_ads_watched == 0


def test_statistics_span_days(ledger, quests, clock):
    aggregator = StatisticsAggregator(ledger)
    ledger.create("alice", "pw")
    quests.apply_progress("alice", game_completed=True, ads_watched=15)

    clock.advance(days=1)
    quests.start_cycle("alice")
    quests.apply_progress("alice", game_completed=True, ads_watched=15)

    assert aggregator.statistics(aggregator.today()).total_tokens_earned == 1
    assert aggregator.statistics(TimeWindow.for_month(2024, 3)).total_tokens_earned == 2


def test_registrations_bucket_by_created_at(ledger, clock):
    aggregator = StatisticsAggregator(ledger)
    ledger.create("alice", "pw")
    clock.advance(days=20)
    ledger.create("bob", "pw")
    ledger.create("carol", "pw")

    assert aggregator.registrations(aggregator.today()).new_users_count == 2
    assert aggregator.registrations(TimeWindow.for_month(2024, 3)).new_users_count == 1
    assert aggregator.registrations(TimeWindow.for_month(2024, 4)).new_users_count == 2
    assert aggregator.registrations(TimeWindow.for_year(2024)).new_users_count == 3


def test_aggregator_has_no_side_effects(ledger, quests):
    aggregator = StatisticsAggregator(ledger)
    ledger.create("alice", "pw")
    quests.apply_progress("alice", game_completed=True, ads_watched=15)
    before = ledger.list_all()

    aggregator.statistics(aggregator.today())
    aggregator.registrations(aggregator.today())

    assert ledger.list_all() == before
