"""
Review Service: Application layer orchestrator.

Coordinates note lookup, applies the interval policy on each read event,
persists the new schedule and answers the due-notes and stats queries.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from ulid import ULID

from forgetmenot.application.scheduling.interval_policy import (
    IntervalPolicy,
    default_policy,
    end_of_day,
    start_of_day,
)
from forgetmenot.domain.constants import (
    DEFAULT_DAILY_STATS_DAYS,
    EDITABLE_NOTE_FIELDS,
    MAX_READ_ATTEMPTS,
    RECENT_HISTORY_LIMIT,
)
from forgetmenot.domain.errors import CategoryNotFoundError, ConflictError, NoteNotFoundError
from forgetmenot.domain.notes.models import DailyStat, Note, NoteStats
from forgetmenot.domain.notes.ports import NoteRepository

logger = logging.getLogger(__name__)


def generate_id() -> str:
    """Opaque, time-sortable identifier."""
    return str(ULID())


class ReviewService:
    """
    Application service for notes and their review schedule.

    Follows Dependency Inversion: depends on the NoteRepository abstraction,
    not a concrete storage adapter. Every single-note operation is scoped by
    owner and raises NoteNotFoundError for absent or foreign notes.
    """

    def __init__(
        self,
        repository: NoteRepository,
        policy: IntervalPolicy | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Args:
            repository: The repository (port) for notes, history and stats.
            policy: Optional custom interval policy; uses the default table if not provided.
            clock: Source of "now", injectable for tests.
        """
        self._repo = repository
        self._policy = policy or default_policy
        self._clock = clock

    @property
    def policy(self) -> IntervalPolicy:
        return self._policy

    async def create_note(
        self,
        owner_id: str,
        content: str,
        title: str | None = None,
        tags: list[str] | None = None,
        category_id: str | None = None,
    ) -> Note:
        """Create a note scheduled for its first review."""
        if not content:
            raise ValueError("content must not be empty")
        if category_id is not None:
            await self._require_category(owner_id, category_id)

        now = self._clock()
        note = Note(
            id=generate_id(),
            owner_id=owner_id,
            content=content,
            title=title,
            tags=list(tags or []),
            category_id=category_id,
            read_count=0,
            next_read_date=self._policy.next_read_date(0, now),
            created_at=now,
            updated_at=now,
        )
        created = await self._repo.add_note(note)
        await self._repo.record_note_created(owner_id, now.date())
        logger.info(f"Created note {created.id} for owner {owner_id}")
        return created

    async def find_all(self, owner_id: str, category_id: str | None = None) -> list[Note]:
        """All notes of an owner, newest first, each with its latest reads."""
        return await self._repo.list_notes(
            owner_id, category_id=category_id, history_limit=RECENT_HISTORY_LIMIT
        )

    async def find_due_for_reading(
        self, owner_id: str, as_of: datetime | None = None
    ) -> list[Note]:
        """Notes due at `as_of` (default now), soonest-due first."""
        cutoff = self._policy.due_cutoff(as_of or self._clock())
        return await self._repo.list_due(owner_id, cutoff)

    async def find_one(self, owner_id: str, note_id: str) -> Note:
        """A single note with its full read history, newest first."""
        note = await self._repo.get_note(owner_id, note_id, history_limit=None)
        if note is None:
            raise NoteNotFoundError(note_id)
        return note

    async def update_note(self, owner_id: str, note_id: str, changes: dict[str, Any]) -> Note:
        """
        Edit a note's content fields.

        Only title, content, tags and category_id are editable; the schedule
        is owned by the interval policy.
        """
        forbidden = set(changes) - EDITABLE_NOTE_FIELDS
        if forbidden:
            raise ValueError(f"Fields not editable: {', '.join(sorted(forbidden))}")
        if "content" in changes and not changes["content"]:
            raise ValueError("content must not be empty")
        changes = dict(changes)
        if "tags" in changes and changes["tags"] is None:
            changes["tags"] = []

        if changes.get("category_id") is not None:
            await self._require_category(owner_id, changes["category_id"])

        updated = await self._repo.update_note(owner_id, note_id, changes, self._clock())
        if updated is None:
            raise NoteNotFoundError(note_id)
        return updated

    async def mark_as_read(
        self, owner_id: str, note_id: str, time_spent: int | None = None
    ) -> Note:
        """
        Record a read: advance the read count by one, reschedule, append the
        read event and bump today's DailyStat.

        The repository applies the change only if the read count is still the
        one observed here; a concurrent read makes us re-observe and retry.
        """
        if time_spent is not None and time_spent < 0:
            raise ValueError("time_spent must be >= 0")

        for attempt in range(1, MAX_READ_ATTEMPTS + 1):
            note = await self._repo.get_note(owner_id, note_id)
            if note is None:
                raise NoteNotFoundError(note_id)

            now = self._clock()
            new_read_count = note.read_count + 1
            next_read_date = self._policy.next_read_date(new_read_count, now)

            updated = await self._repo.record_read(
                owner_id,
                note_id,
                expected_read_count=note.read_count,
                next_read_date=next_read_date,
                read_at=now,
                time_spent=time_spent,
            )
            if updated is not None:
                logger.debug(
                    f"Note {note_id} read #{new_read_count}, next review {next_read_date.date()}"
                )
                return updated

            logger.info(f"Concurrent read on note {note_id}, retrying (attempt {attempt})")

        raise ConflictError(
            f"Note {note_id} kept changing; gave up after {MAX_READ_ATTEMPTS} attempts"
        )

    async def remove_note(self, owner_id: str, note_id: str) -> dict[str, str]:
        """Delete a note and its read history."""
        if not await self._repo.delete_note(owner_id, note_id):
            raise NoteNotFoundError(note_id)
        logger.info(f"Deleted note {note_id} for owner {owner_id}")
        return {"message": "Note deleted"}

    async def get_stats(self, owner_id: str) -> NoteStats:
        """
        Total notes, notes due today and reads today.

        One `now` is frozen for all three counts so they describe the same instant.
        """
        now = self._clock()
        total = await self._repo.count_notes(owner_id)
        due_today = len(await self.find_due_for_reading(owner_id, now))
        read_today = await self._repo.count_reads(owner_id, start_of_day(now), end_of_day(now))
        return NoteStats(total=total, due_today=due_today, read_today=read_today)

    async def get_daily_stats(
        self, owner_id: str, days: int = DEFAULT_DAILY_STATS_DAYS
    ) -> list[DailyStat]:
        """
        One DailyStat per calendar day for the last `days` days, oldest first.

        Days without activity are filled with zeroes.
        """
        if days < 1:
            raise ValueError("days must be >= 1")

        today = self._clock().date()
        start = today - timedelta(days=days - 1)
        stored = {
            stat.date: stat for stat in await self._repo.list_daily_stats(owner_id, start, today)
        }
        series = []
        for offset in range(days):
            day = start + timedelta(days=offset)
            series.append(stored.get(day) or DailyStat(owner_id=owner_id, date=day))
        return series

    async def _require_category(self, owner_id: str, category_id: str) -> None:
        if await self._repo.get_category(owner_id, category_id) is None:
            raise CategoryNotFoundError(category_id)
