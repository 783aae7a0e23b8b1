"""SQLAlchemy table mappings for notes, read history, daily stats and reminders."""

from datetime import date, datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


class CategoryRow(Base):
    __tablename__ = "categories"

    id: Mapped[str] = mapped_column(String(26), primary_key=True)
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    color: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class NoteRow(Base):
    """
    A note and its schedule.

    `seq` is the insertion sequence; it breaks ties between notes scheduled
    for the same day.
    """

    __tablename__ = "notes"

    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String(26), unique=True, nullable=False)
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    # Content
    title: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    category_id: Mapped[Optional[str]] = mapped_column(
        String(26), ForeignKey("categories.id", ondelete="SET NULL"), nullable=True
    )

    # Scheduling
    read_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    next_read_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    last_read_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    category: Mapped[Optional[CategoryRow]] = relationship(lazy="raise")
    read_events: Mapped[list["ReadEventRow"]] = relationship(
        back_populates="note", cascade="all, delete-orphan", lazy="raise"
    )

    def __repr__(self) -> str:
        return f"<NoteRow(id={self.id}, owner_id={self.owner_id}, read_count={self.read_count})>"


class ReadEventRow(Base):
    """Append-only read history. `seq` orders reads that share a timestamp."""

    __tablename__ = "read_events"

    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String(26), unique=True, nullable=False)
    note_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("notes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    read_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    time_spent: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # seconds

    note: Mapped[NoteRow] = relationship(back_populates="read_events", lazy="raise")


class DailyStatRow(Base):
    __tablename__ = "daily_stats"
    __table_args__ = (UniqueConstraint("owner_id", "day", name="uq_daily_stats_owner_day"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False)
    day: Mapped[date] = mapped_column(Date, nullable=False)
    notes_read: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    notes_created: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_time_spent: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class ReminderSubscriptionRow(Base):
    __tablename__ = "reminder_subscriptions"

    owner_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    reminder_time: Mapped[str] = mapped_column(String(5), nullable=False)  # HH:MM
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
