"""
Domain models for notes and their review history.

These are pure data structures with no I/O or external dependencies.
"""

from dataclasses import dataclass, field
from datetime import date, datetime


@dataclass
class Category:
    """A user-owned grouping of notes."""

    id: str
    owner_id: str
    name: str
    color: str | None = None
    description: str | None = None


@dataclass(frozen=True)
class ReadEvent:
    """
    A single read of a note. Append-only; never updated or merged.

    Attributes:
        id: Opaque identifier.
        note_id: The note that was read.
        owner_id: The user who read it.
        read_date: When the read happened.
        time_spent: Seconds spent reading, if reported.
    """

    id: str
    note_id: str
    owner_id: str
    read_date: datetime
    time_spent: int | None = None


@dataclass
class Note:
    """
    A note and its review schedule.

    `next_read_date` is always start-of-day and is only ever derived from
    `read_count` by the interval policy.
    """

    id: str
    owner_id: str
    content: str
    next_read_date: datetime
    created_at: datetime
    updated_at: datetime

    title: str | None = None
    tags: list[str] = field(default_factory=list)
    category_id: str | None = None

    # Scheduling state
    read_count: int = 0
    last_read_date: datetime | None = None

    # Expanded for display (populated by the repository on demand)
    category: Category | None = None
    read_history: list[ReadEvent] = field(default_factory=list)


@dataclass
class DailyStat:
    """Per-user, per-day rollup. At most one per (owner_id, date)."""

    owner_id: str
    date: date
    notes_read: int = 0
    notes_created: int = 0
    total_time_spent: int = 0


@dataclass(frozen=True)
class NoteStats:
    """Dashboard counters, all evaluated against the same instant."""

    total: int
    due_today: int
    read_today: int
