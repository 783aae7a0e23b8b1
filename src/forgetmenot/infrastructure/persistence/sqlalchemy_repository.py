"""
SQLAlchemy Note Repository: Infrastructure adapter for relational storage.

Implements NoteRepository and SubscriptionStore on top of SQLAlchemy async
sessions. Read events are applied with a compare-and-swap on `read_count`
and the DailyStat upsert is a single INSERT ... ON CONFLICT DO UPDATE, so
concurrent readers never lose an increment.
"""

import logging
from datetime import date, datetime
from typing import Any

from sqlalchemy import Select, delete, func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload
from ulid import ULID

from forgetmenot.domain.notes.models import Category, DailyStat, Note, ReadEvent
from forgetmenot.domain.notes.ports import NoteRepository
from forgetmenot.domain.reminders.models import ReminderSubscription
from forgetmenot.domain.reminders.ports import SubscriptionStore

from .orm import CategoryRow, DailyStatRow, NoteRow, ReadEventRow, ReminderSubscriptionRow

logger = logging.getLogger(__name__)


class SqlAlchemyNoteRepository(NoteRepository, SubscriptionStore):
    """Concrete NoteRepository backed by SQLAlchemy async sessions."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine
        self._session_factory = async_sessionmaker(
            engine, class_=AsyncSession, expire_on_commit=False
        )

    # ---------- Notes ----------

    async def add_note(self, note: Note) -> Note:
        async with self._session_factory() as session:
            async with session.begin():
                session.add(
                    NoteRow(
                        id=note.id,
                        owner_id=note.owner_id,
                        title=note.title,
                        content=note.content,
                        tags=list(note.tags),
                        category_id=note.category_id,
                        read_count=note.read_count,
                        next_read_date=note.next_read_date,
                        last_read_date=note.last_read_date,
                        created_at=note.created_at,
                        updated_at=note.updated_at,
                    )
                )
            row = await self._fetch_row(session, note.owner_id, note.id)
            return self._to_note(row)

    async def get_note(
        self, owner_id: str, note_id: str, history_limit: int | None = 0
    ) -> Note | None:
        async with self._session_factory() as session:
            row = await self._fetch_row(session, owner_id, note_id)
            if row is None:
                return None
            history = await self._fetch_history(session, row.id, history_limit)
            return self._to_note(row, history)

    async def list_notes(
        self, owner_id: str, category_id: str | None = None, history_limit: int | None = 0
    ) -> list[Note]:
        query = self._note_query().where(NoteRow.owner_id == owner_id)
        if category_id is not None:
            query = query.where(NoteRow.category_id == category_id)
        query = query.order_by(NoteRow.created_at.desc(), NoteRow.seq.desc())

        async with self._session_factory() as session:
            rows = (await session.execute(query)).scalars().all()
            notes = []
            for row in rows:
                history = await self._fetch_history(session, row.id, history_limit)
                notes.append(self._to_note(row, history))
            return notes

    async def list_due(self, owner_id: str, cutoff: datetime) -> list[Note]:
        query = (
            self._note_query()
            .where(NoteRow.owner_id == owner_id, NoteRow.next_read_date <= cutoff)
            .order_by(NoteRow.next_read_date.asc(), NoteRow.seq.asc())
        )
        async with self._session_factory() as session:
            rows = (await session.execute(query)).scalars().all()
            return [self._to_note(row) for row in rows]

    async def count_notes(self, owner_id: str) -> int:
        query = select(func.count()).select_from(NoteRow).where(NoteRow.owner_id == owner_id)
        async with self._session_factory() as session:
            return (await session.execute(query)).scalar_one()

    async def count_due(self, owner_id: str, cutoff: datetime) -> int:
        query = (
            select(func.count())
            .select_from(NoteRow)
            .where(NoteRow.owner_id == owner_id, NoteRow.next_read_date <= cutoff)
        )
        async with self._session_factory() as session:
            return (await session.execute(query)).scalar_one()

    async def update_note(
        self, owner_id: str, note_id: str, changes: dict[str, Any], updated_at: datetime
    ) -> Note | None:
        async with self._session_factory() as session:
            async with session.begin():
                row = await self._fetch_row(session, owner_id, note_id)
                if row is None:
                    return None
                for key, value in changes.items():
                    setattr(row, key, list(value or []) if key == "tags" else value)
                row.updated_at = updated_at
            row = await self._fetch_row(session, owner_id, note_id)
            return self._to_note(row)

    async def record_read(
        self,
        owner_id: str,
        note_id: str,
        expected_read_count: int,
        next_read_date: datetime,
        read_at: datetime,
        time_spent: int | None = None,
    ) -> Note | None:
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    update(NoteRow)
                    .where(
                        NoteRow.id == note_id,
                        NoteRow.owner_id == owner_id,
                        NoteRow.read_count == expected_read_count,
                    )
                    .values(
                        read_count=NoteRow.read_count + 1,
                        last_read_date=read_at,
                        next_read_date=next_read_date,
                        updated_at=read_at,
                    )
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    return None

                session.add(
                    ReadEventRow(
                        id=str(ULID()),
                        note_id=note_id,
                        owner_id=owner_id,
                        read_date=read_at,
                        time_spent=time_spent,
                    )
                )
                await session.execute(
                    self._daily_upsert(
                        owner_id, read_at.date(), notes_read=1, total_time_spent=time_spent or 0
                    )
                )

            row = await self._fetch_row(session, owner_id, note_id)
            return self._to_note(row)

    async def delete_note(self, owner_id: str, note_id: str) -> bool:
        async with self._session_factory() as session:
            async with session.begin():
                row = await self._fetch_row(session, owner_id, note_id)
                if row is None:
                    return False
                await session.execute(delete(ReadEventRow).where(ReadEventRow.note_id == note_id))
                await session.execute(delete(NoteRow).where(NoteRow.seq == row.seq))
            return True

    async def count_reads(self, owner_id: str, start: datetime, end: datetime) -> int:
        query = (
            select(func.count())
            .select_from(ReadEventRow)
            .where(
                ReadEventRow.owner_id == owner_id,
                ReadEventRow.read_date >= start,
                ReadEventRow.read_date <= end,
            )
        )
        async with self._session_factory() as session:
            return (await session.execute(query)).scalar_one()

    # ---------- Daily stats ----------

    async def record_note_created(self, owner_id: str, day: date) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                await session.execute(self._daily_upsert(owner_id, day, notes_created=1))

    async def list_daily_stats(self, owner_id: str, start: date, end: date) -> list[DailyStat]:
        query = (
            select(DailyStatRow)
            .where(
                DailyStatRow.owner_id == owner_id,
                DailyStatRow.day >= start,
                DailyStatRow.day <= end,
            )
            .order_by(DailyStatRow.day.asc())
        )
        async with self._session_factory() as session:
            rows = (await session.execute(query)).scalars().all()
            return [
                DailyStat(
                    owner_id=r.owner_id,
                    date=r.day,
                    notes_read=r.notes_read,
                    notes_created=r.notes_created,
                    total_time_spent=r.total_time_spent,
                )
                for r in rows
            ]

    # ---------- Categories ----------

    async def add_category(self, category: Category) -> Category:
        async with self._session_factory() as session:
            async with session.begin():
                session.add(
                    CategoryRow(
                        id=category.id,
                        owner_id=category.owner_id,
                        name=category.name,
                        color=category.color,
                        description=category.description,
                    )
                )
        return category

    async def get_category(self, owner_id: str, category_id: str) -> Category | None:
        query = select(CategoryRow).where(
            CategoryRow.id == category_id, CategoryRow.owner_id == owner_id
        )
        async with self._session_factory() as session:
            row = (await session.execute(query)).scalar_one_or_none()
            return self._to_category(row) if row else None

    # ---------- Reminder subscriptions ----------

    async def save_subscription(self, subscription: ReminderSubscription) -> ReminderSubscription:
        async with self._session_factory() as session:
            async with session.begin():
                await session.merge(
                    ReminderSubscriptionRow(
                        owner_id=subscription.owner_id,
                        email=subscription.email,
                        first_name=subscription.first_name,
                        reminder_time=subscription.reminder_time,
                        enabled=subscription.enabled,
                    )
                )
        return subscription

    async def list_subscriptions(self) -> list[ReminderSubscription]:
        query = select(ReminderSubscriptionRow).order_by(ReminderSubscriptionRow.owner_id)
        async with self._session_factory() as session:
            rows = (await session.execute(query)).scalars().all()
            return [
                ReminderSubscription(
                    owner_id=r.owner_id,
                    email=r.email,
                    first_name=r.first_name,
                    reminder_time=r.reminder_time,
                    enabled=r.enabled,
                )
                for r in rows
            ]

    # ---------- Lifecycle ----------

    async def close(self) -> None:
        await self._engine.dispose()

    # ---------- Helpers ----------

    @staticmethod
    def _note_query() -> Select:
        return select(NoteRow).options(selectinload(NoteRow.category))

    async def _fetch_row(
        self, session: AsyncSession, owner_id: str, note_id: str
    ) -> NoteRow | None:
        query = (
            self._note_query()
            .where(NoteRow.id == note_id, NoteRow.owner_id == owner_id)
            .execution_options(populate_existing=True)
        )
        return (await session.execute(query)).scalar_one_or_none()

    async def _fetch_history(
        self, session: AsyncSession, note_id: str, limit: int | None
    ) -> list[ReadEvent]:
        if limit == 0:
            return []
        query = (
            select(ReadEventRow)
            .where(ReadEventRow.note_id == note_id)
            .order_by(ReadEventRow.read_date.desc(), ReadEventRow.seq.desc())
        )
        if limit is not None:
            query = query.limit(limit)
        rows = (await session.execute(query)).scalars().all()
        return [
            ReadEvent(
                id=r.id,
                note_id=r.note_id,
                owner_id=r.owner_id,
                read_date=r.read_date,
                time_spent=r.time_spent,
            )
            for r in rows
        ]

    def _daily_upsert(
        self,
        owner_id: str,
        day: date,
        notes_read: int = 0,
        notes_created: int = 0,
        total_time_spent: int = 0,
    ):
        """Atomic insert-or-increment of one DailyStat row."""
        dialect = self._engine.dialect.name
        if dialect == "postgresql":
            insert = postgresql.insert
        elif dialect == "sqlite":
            insert = sqlite.insert
        else:
            raise NotImplementedError(f"DailyStat upsert not supported on {dialect}")

        stmt = insert(DailyStatRow).values(
            owner_id=owner_id,
            day=day,
            notes_read=notes_read,
            notes_created=notes_created,
            total_time_spent=total_time_spent,
        )
        return stmt.on_conflict_do_update(
            index_elements=["owner_id", "day"],
            set_={
                "notes_read": DailyStatRow.notes_read + stmt.excluded.notes_read,
                "notes_created": DailyStatRow.notes_created + stmt.excluded.notes_created,
                "total_time_spent": DailyStatRow.total_time_spent
                + stmt.excluded.total_time_spent,
            },
        )

    @staticmethod
    def _to_category(row: CategoryRow) -> Category:
        return Category(
            id=row.id,
            owner_id=row.owner_id,
            name=row.name,
            color=row.color,
            description=row.description,
        )

    def _to_note(self, row: NoteRow, history: list[ReadEvent] | None = None) -> Note:
        return Note(
            id=row.id,
            owner_id=row.owner_id,
            content=row.content,
            title=row.title,
            tags=list(row.tags or []),
            category_id=row.category_id,
            read_count=row.read_count,
            next_read_date=row.next_read_date,
            last_read_date=row.last_read_date,
            created_at=row.created_at,
            updated_at=row.updated_at,
            category=self._to_category(row.category) if row.category else None,
            read_history=history or [],
        )
