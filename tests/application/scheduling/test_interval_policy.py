from datetime import datetime, timedelta

import pytest

from forgetmenot.application.scheduling.interval_policy import (
    IntervalPolicy,
    default_policy,
    end_of_day,
    start_of_day,
)
from forgetmenot.domain.constants import REVIEW_INTERVALS_DAYS


@pytest.fixture
def policy():
    return IntervalPolicy()


def test_interval_table_over_known_read_counts(policy):
    assert [policy.interval_for(n) for n in range(9)] == [1, 3, 7, 14, 30, 60, 90, 180, 365]


def test_intervals_never_decrease(policy):
    intervals = [policy.interval_for(n) for n in range(20)]
    assert intervals == sorted(intervals)


@pytest.mark.parametrize("read_count", [9, 10, 42, 10**6])
def test_interval_clamps_to_one_year(policy, read_count):
    assert policy.interval_for(read_count) == 365


def test_negative_read_count_is_treated_as_zero(policy):
    assert policy.interval_for(-3) == 1


def test_next_read_date_is_start_of_day():
    now = datetime(2024, 3, 10, 15, 30, 45, 123456)
    for read_count in range(12):
        d = default_policy.next_read_date(read_count, now)
        assert (d.hour, d.minute, d.second, d.microsecond) == (0, 0, 0, 0)


def test_new_note_is_due_tomorrow(policy):
    # Created at any time of day -> start of the next day
    now = datetime(2024, 3, 10, 23, 59, 59)
    assert policy.next_read_date(0, now) == datetime(2024, 3, 11)


def test_next_read_date_crosses_month_and_year(policy):
    assert policy.next_read_date(0, datetime(2024, 1, 31, 8)) == datetime(2024, 2, 1)
    assert policy.next_read_date(2, datetime(2023, 12, 28, 8)) == datetime(2024, 1, 4)


def test_clamped_read_count_schedules_a_year_out(policy):
    now = datetime(2024, 3, 10, 9)
    expected = start_of_day(now + timedelta(days=365))
    assert policy.next_read_date(9, now) == expected
    assert policy.next_read_date(50, now) == expected


def test_next_read_date_defaults_to_current_time(policy):
    before = start_of_day(datetime.now() + timedelta(days=1))
    result = policy.next_read_date(0)
    after = start_of_day(datetime.now() + timedelta(days=1))
    assert result in (before, after)


def test_day_boundaries():
    moment = datetime(2024, 3, 10, 15, 30)
    assert start_of_day(moment) == datetime(2024, 3, 10)
    assert end_of_day(moment) == datetime(2024, 3, 10, 23, 59, 59, 999999)


def test_note_due_today_stays_due_all_day(policy):
    today = datetime(2024, 3, 10)
    for hour in (0, 9, 23):
        assert policy.is_due(today, as_of=today.replace(hour=hour, minute=59))


def test_is_due_boundaries(policy):
    as_of = datetime(2024, 3, 10, 12)
    assert policy.is_due(datetime(2024, 3, 9), as_of)
    assert policy.is_due(datetime(2024, 3, 10), as_of)
    assert not policy.is_due(datetime(2024, 3, 11), as_of)


def test_is_due_compares_against_start_of_day(policy):
    as_of = datetime(2024, 3, 10, 12)
    assert policy.due_cutoff(as_of) == datetime(2024, 3, 10)
    assert not policy.is_due(datetime(2024, 3, 10, 0, 0, 1), as_of)


@pytest.mark.parametrize(
    "read_count, label",
    [
        (0, "every day"),
        (1, "every 3 days"),
        (2, "every 7 days"),
        (3, "every 2 weeks"),
        (4, "every 4 weeks"),
        (5, "every 2 months"),
        (6, "every 3 months"),
        (7, "every 6 months"),
        (8, "once a year"),
        (25, "once a year"),
    ],
)
def test_frequency_label(policy, read_count, label):
    assert policy.frequency_label(read_count) == label


def test_pure_functions_are_repeatable(policy):
    for n in range(12):
        assert policy.frequency_label(n) == policy.frequency_label(n)
        assert policy.interval_for(n) == policy.interval_for(n)


def test_custom_table():
    policy = IntervalPolicy([2, 5])
    assert policy.interval_for(0) == 2
    assert policy.interval_for(7) == 5
    assert policy.frequency_label(1) == "every 5 days"


def test_empty_table_is_rejected():
    with pytest.raises(ValueError):
        IntervalPolicy([])


def test_default_table_is_immutable():
    assert isinstance(REVIEW_INTERVALS_DAYS, tuple)
    assert default_policy.intervals == REVIEW_INTERVALS_DAYS
