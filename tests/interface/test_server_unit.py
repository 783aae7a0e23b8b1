import logging
from datetime import datetime, timedelta
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from forgetmenot.application.config import AppConfig
from forgetmenot.application.reminder_service import ReminderService
from forgetmenot.application.review_service import ReviewService
from forgetmenot.consts import VERSION
from forgetmenot.domain.reminders.models import ReminderSubscription
from forgetmenot.infrastructure.notifications.log_notifier import LogNotifier
from forgetmenot.infrastructure.persistence.memory_repository import InMemoryNoteRepository
from forgetmenot.server import app, get_reminder_service, get_repository, get_review_service

client = TestClient(app)

ALICE = {"X-User-Id": "alice"}
BOB = {"X-User-Id": "bob"}


@pytest.fixture
def repo(clock):
    repository = InMemoryNoteRepository()
    app.dependency_overrides[get_repository] = lambda: repository
    app.dependency_overrides[get_review_service] = lambda: ReviewService(repository, clock=clock)
    yield repository
    app.dependency_overrides.clear()


def _create(headers=ALICE, **body):
    body.setdefault("content", "Dijkstra uses a priority queue")
    response = client.post("/notes", json=body, headers=headers)
    assert response.status_code == 201
    return response.json()


def test_health_check():
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["version"] == VERSION


def test_get_version():
    response = client.get("/version")
    assert response.status_code == 200
    assert response.json() == {"version": VERSION}


def test_missing_owner_header(repo):
    response = client.get("/notes")
    assert response.status_code == 401


def test_create_note(repo, clock):
    data = _create(title="Graphs", tags=["algo"])

    assert data["read_count"] == 0
    assert data["title"] == "Graphs"
    assert data["tags"] == ["algo"]
    assert data["frequency"] == "every day"
    assert datetime.fromisoformat(data["next_read_date"]) == datetime(2024, 3, 11)


@pytest.mark.parametrize(
    "body",
    [{"content": ""}, {"content": "x" * 5001}, {"content": "x", "title": "t" * 201}, {}],
)
def test_create_note_validation(repo, body):
    response = client.post("/notes", json=body, headers=ALICE)
    assert response.status_code == 422


def test_unknown_category_is_404(repo):
    response = client.post("/notes", json={"content": "x", "category_id": "nope"}, headers=ALICE)
    assert response.status_code == 404


def test_mark_as_read(repo):
    note = _create()

    response = client.post(f"/notes/{note['id']}/read", json={"time_spent": 12}, headers=ALICE)

    assert response.status_code == 200
    data = response.json()
    assert data["read_count"] == 1
    assert data["frequency"] == "every 3 days"
    assert datetime.fromisoformat(data["next_read_date"]) == datetime(2024, 3, 13)


def test_mark_as_read_without_body(repo):
    note = _create()
    response = client.post(f"/notes/{note['id']}/read", headers=ALICE)
    assert response.status_code == 200
    assert response.json()["read_count"] == 1


def test_mark_as_read_negative_time(repo):
    note = _create()
    response = client.post(f"/notes/{note['id']}/read", json={"time_spent": -5}, headers=ALICE)
    assert response.status_code == 422


def test_get_note_includes_history(repo):
    note = _create()
    client.post(f"/notes/{note['id']}/read", json={"time_spent": 7}, headers=ALICE)

    data = client.get(f"/notes/{note['id']}", headers=ALICE).json()

    assert len(data["read_history"]) == 1
    assert data["read_history"][0]["time_spent"] == 7


def test_other_owner_gets_404(repo):
    note = _create()

    assert client.get(f"/notes/{note['id']}", headers=BOB).status_code == 404
    assert client.post(f"/notes/{note['id']}/read", headers=BOB).status_code == 404
    assert client.delete(f"/notes/{note['id']}", headers=BOB).status_code == 404
    response = client.patch(f"/notes/{note['id']}", json={"title": "x"}, headers=BOB)
    assert response.status_code == 404
    assert client.get("/notes", headers=BOB).json() == []


def test_patch_note(repo):
    note = _create()

    response = client.patch(f"/notes/{note['id']}", json={"title": "Renamed"}, headers=ALICE)

    assert response.status_code == 200
    assert response.json()["title"] == "Renamed"
    assert response.json()["content"] == note["content"]


@pytest.mark.parametrize("body", [{"read_count": 5}, {"next_read_date": "2030-01-01"}])
def test_patch_cannot_touch_schedule(repo, body):
    note = _create()
    response = client.patch(f"/notes/{note['id']}", json=body, headers=ALICE)
    assert response.status_code == 422


def test_patch_empty_content(repo):
    note = _create()
    response = client.patch(f"/notes/{note['id']}", json={"content": ""}, headers=ALICE)
    assert response.status_code == 422


def test_delete_note(repo):
    note = _create()

    response = client.delete(f"/notes/{note['id']}", headers=ALICE)

    assert response.status_code == 200
    assert response.json() == {"message": "Note deleted"}
    assert client.get(f"/notes/{note['id']}", headers=ALICE).status_code == 404


def test_due_and_stats(repo, clock):
    clock.now -= timedelta(days=1)
    _create(content="due today")
    clock.advance(days=1)
    fresh = _create(content="not yet")
    client.post(f"/notes/{fresh['id']}/read", headers=ALICE)

    due = client.get("/notes/due", headers=ALICE).json()
    stats = client.get("/notes/stats", headers=ALICE).json()

    assert [n["content"] for n in due] == ["due today"]
    assert stats == {"total": 2, "due_today": 1, "read_today": 1}


def test_daily_stats(repo, clock):
    _create()

    response = client.get("/notes/stats/daily", params={"days": 3}, headers=ALICE)

    assert response.status_code == 200
    data = response.json()
    assert [d["date"] for d in data] == ["2024-03-08", "2024-03-09", "2024-03-10"]
    assert data[-1]["notes_created"] == 1


def test_daily_stats_days_bounds(repo):
    response = client.get("/notes/stats/daily", params={"days": 0}, headers=ALICE)
    assert response.status_code == 422


def test_list_notes_by_category(repo):
    _create()
    response = client.get("/notes", params={"category_id": "c1"}, headers=ALICE)
    assert response.status_code == 200
    assert response.json() == []


def test_run_reminders_endpoint(repo, clock):
    app.dependency_overrides[get_reminder_service] = lambda: ReminderService(
        repo, repo, LogNotifier(), clock=clock
    )
    assert client.post("/reminders/run").status_code == 401

    # No subscribers yet
    response = client.post("/reminders/run", headers=ALICE)

    assert response.status_code == 200
    assert response.json() == []


@pytest.mark.asyncio
async def test_run_reminders_only_for_caller(repo, clock):
    app.dependency_overrides[get_reminder_service] = lambda: ReminderService(
        repo, repo, LogNotifier(), clock=clock
    )
    yesterday = ReviewService(repo, clock=lambda: clock.now - timedelta(days=1))
    for owner in ("alice", "bob"):
        await repo.save_subscription(
            ReminderSubscription(
                owner_id=owner, email=f"{owner}@example.com", reminder_time="15:00"
            )
        )
        await yesterday.create_note(owner, content="due today")

    response = client.post("/reminders/run", headers=BOB)

    assert response.status_code == 200
    assert [d["owner_id"] for d in response.json()] == ["bob"]


def test_patch_null_tags_clears_them(repo):
    note = _create(tags=["a"])

    response = client.patch(f"/notes/{note['id']}", json={"tags": None}, headers=ALICE)

    assert response.status_code == 200
    assert response.json()["tags"] == []
    listed = client.get("/notes", headers=ALICE)
    assert listed.status_code == 200
    assert listed.json()[0]["tags"] == []


def test_lifespan_builds_repository_and_file_log(tmp_path):
    config = AppConfig(backend="memory", log_level="DEBUG", log_dir=tmp_path / "logs")
    root = logging.getLogger()
    previous_level = root.level

    try:
        with patch("forgetmenot.server.resolve_config", return_value=config):
            with TestClient(app) as started:
                created = started.post("/notes", json={"content": "x"}, headers=ALICE)
                listed = started.get("/notes", headers=ALICE)
                assert root.level == logging.DEBUG
    finally:
        root.setLevel(previous_level)

    assert created.status_code == 201
    assert [n["id"] for n in listed.json()] == [created.json()["id"]]
    assert (tmp_path / "logs" / "server.log").exists()
