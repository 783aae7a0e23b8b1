import logging
import time
from contextlib import asynccontextmanager
from datetime import date, datetime
from logging.handlers import RotatingFileHandler
from typing import Annotated

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.exc import SQLAlchemyError

from forgetmenot.application.config import AppConfig, resolve_config
from forgetmenot.application.factory import get_note_repository, get_notifier
from forgetmenot.application.reminder_service import ReminderService
from forgetmenot.application.review_service import ReviewService
from forgetmenot.consts import VERSION
from forgetmenot.domain.constants import (
    CONTENT_MAX_LENGTH,
    DEFAULT_DAILY_STATS_DAYS,
    OWNER_HEADER,
    TITLE_MAX_LENGTH,
)
from forgetmenot.domain.errors import ConflictError, NotFoundError
from forgetmenot.domain.notes.models import Note
from forgetmenot.domain.notes.ports import NoteRepository

# Setup logging
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
logger = logging.getLogger("forgetmenot.server")

LOG_FILE_NAME = "server.log"
LOG_MAX_BYTES = 5 * 1024 * 1024
LOG_BACKUP_COUNT = 3


def _attach_file_log(config: AppConfig) -> RotatingFileHandler:
    """Apply the configured level and mirror the root logger into `log_dir`."""
    root = logging.getLogger()
    root.setLevel(config.log_level)
    config.log_dir.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        config.log_dir / LOG_FILE_NAME, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUP_COUNT
    )
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    root.addHandler(handler)
    return handler


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    config = resolve_config()
    file_log = _attach_file_log(config)
    logger.info(f"ForgetMeNot Server v{VERSION} starting up...")
    app.state.config = config
    app.state.repository = await get_note_repository(config)
    yield
    # Shutdown
    logger.info("ForgetMeNot Server shutting down...")
    await app.state.repository.close()
    logging.getLogger().removeHandler(file_log)
    file_log.close()


app = FastAPI(
    title="ForgetMeNot Server",
    description="Spaced-repetition reminders for personal notes.",
    version=VERSION,
    lifespan=lifespan,
)


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def get_repository(request: Request) -> NoteRepository:
    """The repository built once at startup."""
    return request.app.state.repository


async def get_review_service(repository=Depends(get_repository)) -> ReviewService:
    return ReviewService(repository)


async def get_reminder_service(
    request: Request, repository=Depends(get_repository)
) -> ReminderService:
    return ReminderService(repository, repository, get_notifier(request.app.state.config))


def get_owner_id(
    owner_id: Annotated[str | None, Header(alias=OWNER_HEADER)] = None,
) -> str:
    """Owner id as established by the authentication layer in front of us."""
    if not owner_id:
        raise HTTPException(status_code=401, detail=f"Missing {OWNER_HEADER} header")
    return owner_id


Owner = Annotated[str, Depends(get_owner_id)]
Service = Annotated[ReviewService, Depends(get_review_service)]


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(ConflictError)
async def conflict_handler(request: Request, exc: ConflictError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(SQLAlchemyError)
async def storage_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Storage failure on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(status_code=500, content={"detail": "Storage failure"})


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float


class NoteCreateRequest(BaseModel):
    title: str | None = Field(default=None, max_length=TITLE_MAX_LENGTH)
    content: str = Field(min_length=1, max_length=CONTENT_MAX_LENGTH)
    tags: list[str] = Field(default_factory=list)
    category_id: str | None = None


class NoteUpdateRequest(BaseModel):
    # Scheduling fields are deliberately absent
    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(default=None, max_length=TITLE_MAX_LENGTH)
    content: str | None = Field(default=None, min_length=1, max_length=CONTENT_MAX_LENGTH)
    tags: list[str] | None = None
    category_id: str | None = None


class MarkAsReadRequest(BaseModel):
    time_spent: int | None = Field(default=None, ge=0)  # seconds


class CategoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    color: str | None = None


class ReadEventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    read_date: datetime
    time_spent: int | None = None


class NoteResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str | None
    content: str
    tags: list[str]
    category_id: str | None
    read_count: int
    next_read_date: datetime
    last_read_date: datetime | None
    created_at: datetime
    updated_at: datetime
    frequency: str = ""
    category: CategoryResponse | None = None
    read_history: list[ReadEventResponse] = Field(default_factory=list)


class StatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total: int
    due_today: int
    read_today: int


class DailyStatResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    date: date
    notes_read: int
    notes_created: int
    total_time_spent: int


class ReminderDispatchResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    owner_id: str
    email: str
    due_count: int
    delivered: bool


def _to_response(note: Note, service: ReviewService) -> NoteResponse:
    response = NoteResponse.model_validate(note)
    response.frequency = service.policy.frequency_label(note.read_count)
    return response


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

start_time = time.time()


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Simple health check to verify server is reachable.
    """
    return HealthResponse(status="ok", version=VERSION, uptime_seconds=time.time() - start_time)


@app.get("/version")
async def get_version():
    return {"version": VERSION}


@app.post("/notes", response_model=NoteResponse, status_code=201)
async def create_note(req: NoteCreateRequest, owner_id: Owner, service: Service):
    note = await service.create_note(
        owner_id,
        content=req.content,
        title=req.title,
        tags=req.tags,
        category_id=req.category_id,
    )
    return _to_response(note, service)


@app.get("/notes", response_model=list[NoteResponse])
async def list_notes(owner_id: Owner, service: Service, category_id: str | None = None):
    """All notes, newest first, with their latest reads."""
    notes = await service.find_all(owner_id, category_id=category_id)
    return [_to_response(n, service) for n in notes]


@app.get("/notes/due", response_model=list[NoteResponse])
async def list_due_notes(owner_id: Owner, service: Service):
    """Notes to review today, soonest-due first."""
    notes = await service.find_due_for_reading(owner_id)
    return [_to_response(n, service) for n in notes]


@app.get("/notes/stats", response_model=StatsResponse)
async def get_stats(owner_id: Owner, service: Service):
    return await service.get_stats(owner_id)


@app.get("/notes/stats/daily", response_model=list[DailyStatResponse])
async def get_daily_stats(
    owner_id: Owner,
    service: Service,
    days: Annotated[int, Query(ge=1, le=366)] = DEFAULT_DAILY_STATS_DAYS,
):
    return await service.get_daily_stats(owner_id, days=days)


@app.get("/notes/{note_id}", response_model=NoteResponse)
async def get_note(note_id: str, owner_id: Owner, service: Service):
    """A note with its full read history, newest first."""
    return _to_response(await service.find_one(owner_id, note_id), service)


@app.patch("/notes/{note_id}", response_model=NoteResponse)
async def update_note(note_id: str, req: NoteUpdateRequest, owner_id: Owner, service: Service):
    changes = req.model_dump(exclude_unset=True)
    return _to_response(await service.update_note(owner_id, note_id, changes), service)


@app.post("/notes/{note_id}/read", response_model=NoteResponse)
async def mark_as_read(
    note_id: str,
    owner_id: Owner,
    service: Service,
    req: MarkAsReadRequest | None = None,
):
    time_spent = req.time_spent if req else None
    logger.info(f"Read requested for note {note_id}")
    return _to_response(await service.mark_as_read(owner_id, note_id, time_spent), service)


@app.delete("/notes/{note_id}")
async def delete_note(note_id: str, owner_id: Owner, service: Service):
    return await service.remove_note(owner_id, note_id)


@app.post("/reminders/run", response_model=list[ReminderDispatchResponse])
async def run_reminders(
    owner_id: Owner,
    reminders: Annotated[ReminderService, Depends(get_reminder_service)],
):
    """
    Run the current hour's reminder pass for the caller only.

    The pass over every subscriber is an operator task: `forgetmenot remind run`.
    """
    return await reminders.run(owner_id=owner_id)
