"""
Fixed-interval review scheduling.

The more often a note has been read, the longer until it comes back:
1, 3, 7, 14, 30, 60, 90, 180 and finally 365 days. Read counts past the end
of the table stay at the last interval.

This is a pure computation module with no I/O.
"""

from collections.abc import Sequence
from datetime import datetime, time, timedelta

from forgetmenot.domain.constants import REVIEW_INTERVALS_DAYS


def start_of_day(moment: datetime) -> datetime:
    """Truncate to midnight, keeping tzinfo."""
    return datetime.combine(moment.date(), time.min, tzinfo=moment.tzinfo)


def end_of_day(moment: datetime) -> datetime:
    """Last representable instant of the same day."""
    return datetime.combine(moment.date(), time.max, tzinfo=moment.tzinfo)


class IntervalPolicy:
    """
    Maps a note's read count to its review schedule.

    Stateless and side-effect free; a single instance can be shared freely.
    """

    def __init__(self, intervals: Sequence[int] = REVIEW_INTERVALS_DAYS):
        if not intervals:
            raise ValueError("intervals must not be empty")
        self.intervals: tuple[int, ...] = tuple(intervals)

    def interval_for(self, read_count: int) -> int:
        """
        Days until the next review for a given read count.

        Negative counts are treated as 0; counts past the table clamp to the
        last interval.
        """
        index = min(max(read_count, 0), len(self.intervals) - 1)
        return self.intervals[index]

    def next_read_date(self, read_count: int, now: datetime | None = None) -> datetime:
        """
        Start of the day `interval_for(read_count)` days from `now`.

        Args:
            read_count: Read count *after* the triggering event (0 on creation).
            now: Reference instant, defaults to the current local time.
        """
        now = now or datetime.now()
        return start_of_day(now + timedelta(days=self.interval_for(read_count)))

    def due_cutoff(self, as_of: datetime | None = None) -> datetime:
        """
        Latest `next_read_date` still considered due at `as_of`.

        Every due check, in memory or in a storage query, compares against this
        value so the predicate and the selection can never disagree.
        """
        return start_of_day(as_of or datetime.now())

    def is_due(self, next_read_date: datetime, as_of: datetime | None = None) -> bool:
        """True iff the note is scheduled for `as_of`'s day or earlier."""
        return next_read_date <= self.due_cutoff(as_of)

    def frequency_label(self, read_count: int) -> str:
        """Human readable review cadence, e.g. "every 2 weeks"."""
        interval = self.interval_for(read_count)

        if interval == 1:
            return "every day"
        if interval <= 7:
            return f"every {interval} days"
        if interval <= 30:
            return f"every {interval // 7} weeks"
        if interval < 365:
            return f"every {interval // 30} months"
        return "once a year"


# Default policy instance
default_policy = IntervalPolicy()
