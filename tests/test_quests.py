from datetime import datetime

import pytest

from questportal.core.errors import InvalidInputError, NotFoundError


def complete_cycle(quests, username):
    quests.start_cycle(username, enforce_quota=False)
    return quests.apply_progress(username, game_completed=True, ads_watched=15)


def test_completing_quest_in_one_update_awards_token(ledger, quests, clock):
    ledger.create("alice", "pw")

    user = quests.apply_progress("alice", game_completed=True, ads_watched=15)

    assert user.token_count == 1
    assert user.daily_quest_count == 1
    assert user.last_quest_completed_at == clock.now


def test_ads_crossing_threshold_after_game_awards_once(ledger, quests):
    ledger.create("alice", "pw")

    quests.apply_progress("alice", game_completed=True)
    quests.apply_progress("alice", ads_watched=14)
    assert ledger.get_by_username("alice").token_count == 0

    user = quests.apply_progress("alice", ads_watched=15)
    assert user.token_count == 1


def test_game_completion_after_ads_awards_once(ledger, quests):
    ledger.create("alice", "pw")

    quests.apply_progress("alice", ads_watched=15)
    assert ledger.get_by_username("alice").token_count == 0

    user = quests.apply_progress("alice", game_completed=True)
    assert user.token_count == 1
    assert user.daily_quest_count == 1


def test_repeating_the_completing_update_does_not_double_award(ledger, quests):
    ledger.create("alice", "pw")

    quests.apply_progress("alice", game_completed=True, ads_watched=15)
    quests.apply_progress("alice", game_completed=True, ads_watched=15)
    user = quests.apply_progress("alice", ads_watched=15)

    assert user.token_count == 1
    assert user.daily_quest_count == 1


def test_ads_watched_is_clamped(ledger, quests):
    ledger.create("alice", "pw")

    user = quests.apply_progress("alice", ads_watched=99)

    assert user.ads_watched == 15


def test_unknown_user_progress_raises(quests):
    with pytest.raises(NotFoundError):
        quests.apply_progress("ghost", game_completed=True)


def test_unknown_user_is_eligible(quests):
    assert quests.can_complete_quest_today("ghost") is True


def test_daily_limit_blocks_sixth_quest_for_regular_user(ledger, quests):
    ledger.create("alice", "pw")
    for _ in range(5):
        complete_cycle(quests, "alice")

    assert quests.can_complete_quest_today("alice") is False

    user = complete_cycle(quests, "alice")
    assert user.token_count == 5
    assert user.daily_quest_count == 5
    # progress itself is still recorded
    assert user.game_completed is True
    assert user.ads_watched == 15


def test_vip_ignores_daily_limit(ledger, quests, vip):
    ledger.create("alice", "pw")
    vip.grant("alice")

    for _ in range(7):
        complete_cycle(quests, "alice")

    user = ledger.get_by_username("alice")
    assert user.token_count == 7
    assert user.daily_quest_count == 7


def test_expired_vip_is_capped_again(ledger, quests, vip, clock):
    ledger.create("alice", "pw")
    vip.grant("alice", duration_days=1)
    for _ in range(5):
        complete_cycle(quests, "alice")

    clock.advance(hours=25)
    for _ in range(6):
        complete_cycle(quests, "alice")

    user = ledger.get_by_username("alice")
    assert user.is_vip is False
    assert user.token_count == 10
    assert user.daily_quest_count == 5


def test_new_calendar_day_resets_daily_count(ledger, quests, clock):
    ledger.create("alice", "pw")
    for _ in range(5):
        complete_cycle(quests, "alice")

    clock.advance(days=1)

    assert quests.can_complete_quest_today("alice") is True
    assert ledger.get_by_username("alice").daily_quest_count == 0

    user = complete_cycle(quests, "alice")
    assert user.daily_quest_count == 1
    assert user.token_count == 6


def test_day_boundary_uses_calendar_date_not_elapsed_time(ledger, quests, clock):
    ledger.create("alice", "pw")
    clock.now = datetime(2024, 3, 15, 23, 30)
    ledger.update("alice", last_quest_completed_at=clock.now, daily_quest_count=5)

    assert quests.can_complete_quest_today("alice") is False

    # one hour later, but a new date
    clock.now = datetime(2024, 3, 16, 0, 30)
    assert quests.can_complete_quest_today("alice") is True


def test_start_cycle_resets_progress(ledger, quests):
    ledger.create("alice", "pw")
    quests.apply_progress("alice", game_completed=True, ads_watched=9)

    user = quests.start_cycle("alice")

    assert user.game_completed is False
    assert user.ads_watched == 0


def test_start_cycle_refused_when_daily_limit_reached(ledger, quests):
    ledger.create("alice", "pw")
    for _ in range(5):
        complete_cycle(quests, "alice")

    with pytest.raises(InvalidInputError):
        quests.start_cycle("alice")


def test_award_records_quest_completed_event(ledger, quests, clock):
    ledger.create("alice", "pw")
    quests.apply_progress("alice", game_completed=True, ads_watched=15)

    events = ledger.list_events("quest_completed")
    assert len(events) == 1
    assert events[0].occurred_at == clock.now
    assert events[0].ads_watched == 15


def test_lowering_ads_does_not_allow_a_second_award(ledger, quests):
    ledger.create("alice", "pw")

    quests.apply_progress("alice", game_completed=True, ads_watched=15)
    lowered = quests.apply_progress("alice", ads_watched=0)
    assert lowered.ads_watched == 15

    user = quests.apply_progress("alice", ads_watched=15)
    assert user.token_count == 1
    assert user.daily_quest_count == 1


def test_unsetting_game_completed_does_not_allow_a_second_award(ledger, quests):
    ledger.create("alice", "pw")

    quests.apply_progress("alice", game_completed=True, ads_watched=15)
    assert quests.apply_progress("alice", game_completed=False).game_completed is True

    user = quests.apply_progress("alice", game_completed=True)
    assert user.token_count == 1


def test_new_cycle_can_award_again(ledger, quests):
    ledger.create("alice", "pw")

    complete_cycle(quests, "alice")
    user = complete_cycle(quests, "alice")

    assert user.token_count == 2
    assert user.daily_quest_count == 2


def test_speed_challenge_lowers_ad_requirement_for_the_cycle(ledger, quests):
    ledger.create("alice", "pw")
    ledger.update("alice", speed_challenge=True)

    quests.apply_progress("alice", game_completed=True, ads_watched=9)
    assert ledger.get_by_username("alice").token_count == 0

    user = quests.apply_progress("alice", ads_watched=10)
    assert user.token_count == 1

    # watching the remaining ads is not a second completion
    assert quests.apply_progress("alice", ads_watched=15).token_count == 1

    assert quests.start_cycle("alice").speed_challenge is False
