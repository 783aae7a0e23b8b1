"""Tests for the SQLAlchemy adapter specifics: CAS reads, upserts, cascades."""

import asyncio
from datetime import date, datetime, timedelta

import pytest
from sqlalchemy import func, select

from forgetmenot.domain.notes.models import Category, Note
from forgetmenot.domain.reminders.models import ReminderSubscription
from forgetmenot.infrastructure.persistence.database import create_engine, init_database
from forgetmenot.infrastructure.persistence.orm import ReadEventRow
from forgetmenot.infrastructure.persistence.sqlalchemy_repository import (
    SqlAlchemyNoteRepository,
)

T0 = datetime(2024, 3, 10, 15, 30)


def make_note(note_id: str, owner_id: str = "alice", **kwargs) -> Note:
    defaults = dict(
        content=f"content of {note_id}",
        next_read_date=datetime(2024, 3, 11),
        created_at=T0,
        updated_at=T0,
    )
    defaults.update(kwargs)
    return Note(id=note_id, owner_id=owner_id, **defaults)


async def _read(repo, note_id, expected, at=T0, time_spent=None, owner_id="alice"):
    return await repo.record_read(
        owner_id,
        note_id,
        expected_read_count=expected,
        next_read_date=datetime(2024, 3, 13),
        read_at=at,
        time_spent=time_spent,
    )


@pytest.mark.asyncio
async def test_add_and_get_roundtrip(sql_repository):
    await sql_repository.add_note(make_note("n1", title="Heaps", tags=["algo", "ds"]))

    note = await sql_repository.get_note("alice", "n1")

    assert note.title == "Heaps"
    assert note.tags == ["algo", "ds"]
    assert note.read_count == 0
    assert note.last_read_date is None
    assert note.read_history == []


@pytest.mark.asyncio
async def test_get_note_is_owner_scoped(sql_repository):
    await sql_repository.add_note(make_note("n1"))
    assert await sql_repository.get_note("bob", "n1") is None


@pytest.mark.asyncio
async def test_record_read_applies_once(sql_repository):
    await sql_repository.add_note(make_note("n1"))

    note = await _read(sql_repository, "n1", expected=0, time_spent=30)

    assert note.read_count == 1
    assert note.last_read_date == T0
    assert note.next_read_date == datetime(2024, 3, 13)


@pytest.mark.asyncio
async def test_record_read_with_stale_count_changes_nothing(sql_repository):
    await sql_repository.add_note(make_note("n1"))
    await _read(sql_repository, "n1", expected=0)

    assert await _read(sql_repository, "n1", expected=0) is None

    note = await sql_repository.get_note("alice", "n1", history_limit=None)
    assert note.read_count == 1
    assert len(note.read_history) == 1
    assert await sql_repository.count_reads("alice", T0, T0) == 1


@pytest.mark.asyncio
async def test_record_read_foreign_owner(sql_repository):
    await sql_repository.add_note(make_note("n1"))
    assert await _read(sql_repository, "n1", expected=0, owner_id="bob") is None


@pytest.mark.asyncio
async def test_daily_upsert_accumulates(sql_repository):
    await sql_repository.add_note(make_note("n1"))
    await sql_repository.record_note_created("alice", T0.date())
    await _read(sql_repository, "n1", expected=0, time_spent=20)
    await _read(sql_repository, "n1", expected=1, time_spent=None)
    await _read(sql_repository, "n1", expected=2, time_spent=5, at=T0 + timedelta(days=1))

    stats = await sql_repository.list_daily_stats("alice", date(2024, 3, 1), date(2024, 3, 31))

    assert [(s.date, s.notes_read, s.notes_created, s.total_time_spent) for s in stats] == [
        (date(2024, 3, 10), 2, 1, 20),
        (date(2024, 3, 11), 1, 0, 5),
    ]


@pytest.mark.asyncio
async def test_concurrent_upserts_do_not_lose_counts(sql_repository):
    await asyncio.gather(
        *(sql_repository.record_note_created("alice", T0.date()) for _ in range(5))
    )

    stats = await sql_repository.list_daily_stats("alice", T0.date(), T0.date())

    assert len(stats) == 1
    assert stats[0].notes_created == 5


@pytest.mark.asyncio
async def test_delete_removes_history(sql_repository):
    await sql_repository.add_note(make_note("n1"))
    await sql_repository.add_note(make_note("n2"))
    await _read(sql_repository, "n1", expected=0)
    await _read(sql_repository, "n2", expected=0)

    assert await sql_repository.delete_note("alice", "n1") is True
    assert await sql_repository.delete_note("alice", "n1") is False

    async with sql_repository._session_factory() as session:
        remaining = (
            await session.execute(select(func.count()).select_from(ReadEventRow))
        ).scalar_one()
    assert remaining == 1


@pytest.mark.asyncio
async def test_delete_is_owner_scoped(sql_repository):
    await sql_repository.add_note(make_note("n1"))
    assert await sql_repository.delete_note("bob", "n1") is False
    assert await sql_repository.get_note("alice", "n1") is not None


@pytest.mark.asyncio
async def test_list_due_ties_in_insertion_order(sql_repository):
    for note_id in ("n3", "n1", "n2"):
        await sql_repository.add_note(make_note(note_id))
    await sql_repository.add_note(make_note("early", next_read_date=datetime(2024, 3, 1)))
    await sql_repository.add_note(make_note("later", next_read_date=datetime(2024, 4, 1)))

    due = await sql_repository.list_due("alice", datetime(2024, 3, 11))

    assert [n.id for n in due] == ["early", "n3", "n1", "n2"]
    assert await sql_repository.count_due("alice", datetime(2024, 3, 11)) == 4


@pytest.mark.asyncio
async def test_history_limit(sql_repository):
    await sql_repository.add_note(make_note("n1"))
    for i in range(7):
        await _read(sql_repository, "n1", expected=i, at=T0 + timedelta(minutes=i))

    recent = await sql_repository.get_note("alice", "n1", history_limit=5)
    full = await sql_repository.get_note("alice", "n1", history_limit=None)
    listed = await sql_repository.list_notes("alice", history_limit=5)

    assert [e.read_date for e in recent.read_history] == [
        T0 + timedelta(minutes=i) for i in (6, 5, 4, 3, 2)
    ]
    assert len(full.read_history) == 7
    assert len(listed[0].read_history) == 5


@pytest.mark.asyncio
async def test_update_note_touches_only_given_fields(sql_repository):
    await sql_repository.add_note(make_note("n1", title="Old"))
    later = T0 + timedelta(hours=1)

    note = await sql_repository.update_note("alice", "n1", {"tags": ["x"]}, later)

    assert note.title == "Old"
    assert note.tags == ["x"]
    assert note.updated_at == later
    assert await sql_repository.update_note("bob", "n1", {"title": "x"}, later) is None


@pytest.mark.asyncio
async def test_category_lookup_and_expansion(sql_repository):
    await sql_repository.add_category(Category(id="c1", owner_id="alice", name="Study"))
    await sql_repository.add_note(make_note("n1", category_id="c1"))

    assert await sql_repository.get_category("bob", "c1") is None
    notes = await sql_repository.list_notes("alice", category_id="c1")
    assert notes[0].category.name == "Study"


@pytest.mark.asyncio
async def test_subscription_save_replaces(sql_repository):
    await sql_repository.save_subscription(
        ReminderSubscription(owner_id="alice", email="old@example.com")
    )
    await sql_repository.save_subscription(
        ReminderSubscription(owner_id="alice", email="new@example.com", reminder_time="07:30")
    )

    subs = await sql_repository.list_subscriptions()

    assert len(subs) == 1
    assert subs[0].email == "new@example.com"
    assert subs[0].reminder_hour == 7


@pytest.mark.asyncio
async def test_in_memory_sqlite_url_shares_one_database():
    engine = create_engine("sqlite+aiosqlite:///:memory:")
    await init_database(engine)
    try:
        repo = SqlAlchemyNoteRepository(engine)
        await repo.add_note(make_note("n1"))
        assert await repo.count_notes("alice") == 1
    finally:
        await engine.dispose()


def test_file_database_parent_is_created(tmp_path):
    db = tmp_path / "nested" / "dir" / "notes.db"
    create_engine(f"sqlite+aiosqlite:///{db}")
    assert db.parent.is_dir()


@pytest.mark.asyncio
async def test_history_with_equal_timestamps_is_newest_first(sql_repository):
    await sql_repository.add_note(make_note("n1"))
    for i in range(6):
        await _read(sql_repository, "n1", expected=i, time_spent=i)

    note = await sql_repository.get_note("alice", "n1", history_limit=None)

    assert [e.time_spent for e in note.read_history] == [5, 4, 3, 2, 1, 0]
