"""
Ports (interfaces) for note persistence.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Any

from .models import Category, DailyStat, Note


class NoteRepository(ABC):
    """
    Port for storing notes, their read history and daily rollups.

    Every lookup is scoped by owner: a note belonging to another owner is
    indistinguishable from a missing one.

    Implementations:
        - SqlAlchemyNoteRepository: async SQLAlchemy (SQLite by default).
        - InMemoryNoteRepository: process-local dictionaries.
    """

    @abstractmethod
    async def add_note(self, note: Note) -> Note:
        """Persist a new note and return it with its category expanded."""
        pass

    @abstractmethod
    async def get_note(
        self, owner_id: str, note_id: str, history_limit: int | None = 0
    ) -> Note | None:
        """
        Fetch one note owned by `owner_id`.

        Args:
            history_limit: Number of read events to attach, newest first.
                0 attaches none, None attaches the full history.
        """
        pass

    @abstractmethod
    async def list_notes(
        self, owner_id: str, category_id: str | None = None, history_limit: int | None = 0
    ) -> list[Note]:
        """List an owner's notes, newest-created first."""
        pass

    @abstractmethod
    async def list_due(self, owner_id: str, cutoff: datetime) -> list[Note]:
        """
        List notes with `next_read_date <= cutoff`.

        Ordered by `next_read_date` ascending, ties in insertion order.
        """
        pass

    @abstractmethod
    async def count_notes(self, owner_id: str) -> int:
        pass

    @abstractmethod
    async def count_due(self, owner_id: str, cutoff: datetime) -> int:
        pass

    @abstractmethod
    async def update_note(
        self, owner_id: str, note_id: str, changes: dict[str, Any], updated_at: datetime
    ) -> Note | None:
        """Apply editable field changes. Returns None if the note is not found."""
        pass

    @abstractmethod
    async def record_read(
        self,
        owner_id: str,
        note_id: str,
        expected_read_count: int,
        next_read_date: datetime,
        read_at: datetime,
        time_spent: int | None = None,
    ) -> Note | None:
        """
        Apply a read event as one unit.

        Increments `read_count` only if it still equals `expected_read_count`,
        stamps `last_read_date`, stores `next_read_date`, appends a ReadEvent
        and upserts the day's DailyStat.

        Returns:
            The updated note, or None if the note is missing or its read
            count moved since it was observed.
        """
        pass

    @abstractmethod
    async def delete_note(self, owner_id: str, note_id: str) -> bool:
        """Delete a note and its read history. Returns False if not found."""
        pass

    @abstractmethod
    async def count_reads(self, owner_id: str, start: datetime, end: datetime) -> int:
        """Count read events with `start <= read_date <= end`."""
        pass

    @abstractmethod
    async def record_note_created(self, owner_id: str, day: date) -> None:
        """Increment `notes_created` on the owner's DailyStat for `day`."""
        pass

    @abstractmethod
    async def list_daily_stats(self, owner_id: str, start: date, end: date) -> list[DailyStat]:
        """DailyStat rows for `start <= date <= end`, oldest first."""
        pass

    @abstractmethod
    async def add_category(self, category: Category) -> Category:
        pass

    @abstractmethod
    async def get_category(self, owner_id: str, category_id: str) -> Category | None:
        pass

    async def close(self) -> None:
        """Release connections or other resources; the default holds none."""
        return None
