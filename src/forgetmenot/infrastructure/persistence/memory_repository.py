"""
In-Memory Repository: Infrastructure adapter backed by dictionaries.

Implements NoteRepository and SubscriptionStore for tests and the
"memory" backend. Writes are serialized by one asyncio.Lock, which is
enough for a single-process deployment.
"""

import asyncio
import dataclasses
import logging
from datetime import date, datetime
from typing import Any

from ulid import ULID

from forgetmenot.domain.notes.models import Category, DailyStat, Note, ReadEvent
from forgetmenot.domain.notes.ports import NoteRepository
from forgetmenot.domain.reminders.models import ReminderSubscription
from forgetmenot.domain.reminders.ports import SubscriptionStore

logger = logging.getLogger(__name__)


class InMemoryNoteRepository(NoteRepository, SubscriptionStore):
    """Keeps everything in process memory. Returned objects are copies."""

    def __init__(self):
        # dicts keep insertion order, which doubles as the tie-break order
        self._notes: dict[str, Note] = {}
        self._reads: list[ReadEvent] = []
        self._daily: dict[tuple[str, date], DailyStat] = {}
        self._categories: dict[str, Category] = {}
        self._subscriptions: dict[str, ReminderSubscription] = {}
        self._lock = asyncio.Lock()

    # ---------- Notes ----------

    async def add_note(self, note: Note) -> Note:
        async with self._lock:
            stored = dataclasses.replace(note, category=None, read_history=[], tags=list(note.tags))
            self._notes[stored.id] = stored
            return self._expand(stored, history_limit=0)

    async def get_note(
        self, owner_id: str, note_id: str, history_limit: int | None = 0
    ) -> Note | None:
        note = self._owned(owner_id, note_id)
        if note is None:
            return None
        return self._expand(note, history_limit)

    async def list_notes(
        self, owner_id: str, category_id: str | None = None, history_limit: int | None = 0
    ) -> list[Note]:
        notes = [
            n
            for n in self._notes.values()
            if n.owner_id == owner_id and (category_id is None or n.category_id == category_id)
        ]
        # Newest first; later insertions win ties
        ordered = sorted(enumerate(notes), key=lambda p: (p[1].created_at, p[0]), reverse=True)
        return [self._expand(n, history_limit) for _, n in ordered]

    async def list_due(self, owner_id: str, cutoff: datetime) -> list[Note]:
        due = [
            n for n in self._notes.values() if n.owner_id == owner_id and n.next_read_date <= cutoff
        ]
        # sorted() is stable, so equal dates keep insertion order
        due.sort(key=lambda n: n.next_read_date)
        return [self._expand(n, history_limit=0) for n in due]

    async def count_notes(self, owner_id: str) -> int:
        return sum(1 for n in self._notes.values() if n.owner_id == owner_id)

    async def count_due(self, owner_id: str, cutoff: datetime) -> int:
        return len(await self.list_due(owner_id, cutoff))

    async def update_note(
        self, owner_id: str, note_id: str, changes: dict[str, Any], updated_at: datetime
    ) -> Note | None:
        async with self._lock:
            note = self._owned(owner_id, note_id)
            if note is None:
                return None
            for key, value in changes.items():
                setattr(note, key, list(value or []) if key == "tags" else value)
            note.updated_at = updated_at
            return self._expand(note, history_limit=0)

    async def record_read(
        self,
        owner_id: str,
        note_id: str,
        expected_read_count: int,
        next_read_date: datetime,
        read_at: datetime,
        time_spent: int | None = None,
    ) -> Note | None:
        async with self._lock:
            note = self._owned(owner_id, note_id)
            if note is None or note.read_count != expected_read_count:
                return None

            note.read_count += 1
            note.last_read_date = read_at
            note.next_read_date = next_read_date
            note.updated_at = read_at

            self._reads.append(
                ReadEvent(
                    id=str(ULID()),
                    note_id=note_id,
                    owner_id=owner_id,
                    read_date=read_at,
                    time_spent=time_spent,
                )
            )

            stat = self._daily_stat(owner_id, read_at.date())
            stat.notes_read += 1
            stat.total_time_spent += time_spent or 0
            return self._expand(note, history_limit=0)

    async def delete_note(self, owner_id: str, note_id: str) -> bool:
        async with self._lock:
            if self._owned(owner_id, note_id) is None:
                return False
            del self._notes[note_id]
            self._reads = [r for r in self._reads if r.note_id != note_id]
            return True

    async def count_reads(self, owner_id: str, start: datetime, end: datetime) -> int:
        return sum(1 for r in self._reads if r.owner_id == owner_id and start <= r.read_date <= end)

    # ---------- Daily stats ----------

    async def record_note_created(self, owner_id: str, day: date) -> None:
        async with self._lock:
            self._daily_stat(owner_id, day).notes_created += 1

    async def list_daily_stats(self, owner_id: str, start: date, end: date) -> list[DailyStat]:
        stats = [
            dataclasses.replace(s)
            for (oid, day), s in self._daily.items()
            if oid == owner_id and start <= day <= end
        ]
        return sorted(stats, key=lambda s: s.date)

    # ---------- Categories ----------

    async def add_category(self, category: Category) -> Category:
        async with self._lock:
            self._categories[category.id] = dataclasses.replace(category)
            return dataclasses.replace(category)

    async def get_category(self, owner_id: str, category_id: str) -> Category | None:
        category = self._categories.get(category_id)
        if category is None or category.owner_id != owner_id:
            return None
        return dataclasses.replace(category)

    # ---------- Reminder subscriptions ----------

    async def save_subscription(self, subscription: ReminderSubscription) -> ReminderSubscription:
        async with self._lock:
            self._subscriptions[subscription.owner_id] = dataclasses.replace(subscription)
            return subscription

    async def list_subscriptions(self) -> list[ReminderSubscription]:
        return [dataclasses.replace(s) for s in self._subscriptions.values()]

    # ---------- Helpers ----------

    def _owned(self, owner_id: str, note_id: str) -> Note | None:
        note = self._notes.get(note_id)
        if note is None or note.owner_id != owner_id:
            return None
        return note

    def _daily_stat(self, owner_id: str, day: date) -> DailyStat:
        key = (owner_id, day)
        if key not in self._daily:
            self._daily[key] = DailyStat(owner_id=owner_id, date=day)
        return self._daily[key]

    def _expand(self, note: Note, history_limit: int | None) -> Note:
        """Detached copy with category and (newest first) history attached."""
        history: list[ReadEvent] = []
        if history_limit != 0:
            own = [r for r in reversed(self._reads) if r.note_id == note.id]
            history = sorted(own, key=lambda r: r.read_date, reverse=True)
            if history_limit is not None:
                history = history[:history_limit]

        category = self._categories.get(note.category_id) if note.category_id else None
        return dataclasses.replace(
            note,
            tags=list(note.tags),
            category=dataclasses.replace(category) if category else None,
            read_history=history,
        )
