"""ForgetMeNot CLI: root commands plus the notes/config/remind subgroups."""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Annotated

import typer

from forgetmenot.application.config import AppConfig, resolve_config
from forgetmenot.application.factory import get_note_repository, get_notifier
from forgetmenot.application.note_import import import_markdown
from forgetmenot.application.reminder_service import ReminderService
from forgetmenot.application.review_service import ReviewService
from forgetmenot.domain.errors import DomainError
from forgetmenot.domain.notes.models import Note
from forgetmenot.domain.reminders.models import ReminderSubscription

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="forgetmenot: spaced-repetition reminders for your notes.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

notes_app = typer.Typer(help="Create, review and manage notes.", no_args_is_help=True)
app.add_typer(notes_app, name="notes")

config_app = typer.Typer(help="Manage forgetmenot configuration.")
app.add_typer(config_app, name="config")

remind_app = typer.Typer(help="Daily review reminders.", no_args_is_help=True)
app.add_typer(remind_app, name="remind")

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

OwnerOption = Annotated[
    str | None, typer.Option("--owner", "-o", help="Owner id. Defaults to 'default_owner'.")
]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run a coroutine, turning domain errors into a red message and exit code 1."""
    try:
        return asyncio.run(coro)
    except (DomainError, ValueError) as e:
        typer.secho(str(e), fg="red", err=True)
        raise typer.Exit(1) from e


async def _service(config: AppConfig) -> ReviewService:
    return ReviewService(await get_note_repository(config))


def _owner(config: AppConfig, owner: str | None) -> str:
    return owner or config.default_owner


def _note_line(note: Note) -> str:
    first_line = next((line for line in note.content.splitlines() if line.strip()), "")
    title = note.title or first_line.strip()[:60] or "(untitled)"
    due = note.next_read_date.date().isoformat()
    return f"{note.id}  {title}  (reads: {note.read_count}, next: {due})"


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 0,
):
    """Global settings for forgetmenot."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    if verbose:
        level = logging.DEBUG if verbose > 1 else logging.INFO
    else:
        # An explicit log_level (env or config file) applies; otherwise stay quiet
        config = resolve_config()
        level = config.log_level if "log_level" in config.model_fields_set else logging.WARNING
    logging.getLogger().setLevel(level)


# ---------------------------------------------------------------------------
# Root commands
# ---------------------------------------------------------------------------


@app.command()
def serve(
    port: Annotated[int | None, typer.Option(help="Port to bind the server to.")] = None,
    host: Annotated[str | None, typer.Option(help="Host to bind the server to.")] = None,
    reload: Annotated[bool, typer.Option(help="Enable auto-reload.")] = False,
):
    """Start the HTTP API server."""
    import uvicorn

    config = resolve_config({"host": host, "port": port})
    uvicorn.run("forgetmenot.server:app", host=config.host, port=config.port, reload=reload)


@app.command()
def logs(
    path_only: Annotated[
        bool, typer.Option("--path", help="Print the log directory instead of opening it.")
    ] = False,
):
    """Open the log directory (the server writes server.log there)."""
    config = resolve_config()
    config.log_dir.mkdir(parents=True, exist_ok=True)
    if path_only:
        typer.echo(str(config.log_dir))
        return
    typer.launch(str(config.log_dir), locate=False)


@app.command()
def stats(
    owner: OwnerOption = None,
    daily: Annotated[
        int | None, typer.Option("--daily", help="Also show the last N days of activity.")
    ] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Show note totals, notes due today and reads today."""
    config = resolve_config()
    owner_id = _owner(config, owner)

    async def run():
        service = await _service(config)
        summary = await service.get_stats(owner_id)
        history = await service.get_daily_stats(owner_id, days=daily) if daily else []
        return summary, history

    summary, history = _run(run())

    if json_output:
        payload = {
            "total": summary.total,
            "due_today": summary.due_today,
            "read_today": summary.read_today,
        }
        if daily:
            payload["daily"] = [
                {
                    "date": s.date.isoformat(),
                    "notes_read": s.notes_read,
                    "notes_created": s.notes_created,
                    "total_time_spent": s.total_time_spent,
                }
                for s in history
            ]
        typer.echo(json.dumps(payload, indent=2))
        return

    typer.echo(
        f"Total: {summary.total}  Due today: {summary.due_today}  "
        f"Read today: {summary.read_today}"
    )
    for s in history:
        typer.echo(f"  {s.date.isoformat()}  read={s.notes_read}  created={s.notes_created}")


# ---------------------------------------------------------------------------
# Notes subgroup
# ---------------------------------------------------------------------------


@notes_app.command("add")
def notes_add(
    content: Annotated[str, typer.Argument(help="Note body.")],
    title: Annotated[str | None, typer.Option(help="Optional title.")] = None,
    tag: Annotated[list[str] | None, typer.Option("--tag", "-t", help="Tag (repeatable).")] = None,
    category: Annotated[str | None, typer.Option(help="Category id.")] = None,
    owner: OwnerOption = None,
):
    """Create a note; its first review is tomorrow."""
    config = resolve_config()

    async def run():
        service = await _service(config)
        return await service.create_note(
            _owner(config, owner), content=content, title=title, tags=tag, category_id=category
        )

    note = _run(run())
    typer.secho(f"Created {note.id}, first review on {note.next_read_date.date()}", fg="green")


@notes_app.command("list")
def notes_list(
    category: Annotated[str | None, typer.Option(help="Filter by category id.")] = None,
    owner: OwnerOption = None,
):
    """List notes, newest first."""
    config = resolve_config()

    async def run():
        service = await _service(config)
        return await service.find_all(_owner(config, owner), category_id=category)

    notes = _run(run())
    if not notes:
        typer.secho("No notes found.", fg="yellow")
        return
    for note in notes:
        typer.echo(_note_line(note))


@notes_app.command("due")
def notes_due(owner: OwnerOption = None):
    """List notes to review today, most overdue first."""
    config = resolve_config()

    async def run():
        service = await _service(config)
        return await service.find_due_for_reading(_owner(config, owner))

    notes = _run(run())
    if not notes:
        typer.secho("Nothing to review today.", fg="green")
        return
    typer.echo(f"Due: {len(notes)}")
    for note in notes:
        typer.echo(_note_line(note))


@notes_app.command("show")
def notes_show(
    note_id: Annotated[str, typer.Argument(help="Note id.")],
    owner: OwnerOption = None,
):
    """Show a note and its read history."""
    config = resolve_config()

    async def run():
        service = await _service(config)
        return service, await service.find_one(_owner(config, owner), note_id)

    service, note = _run(run())
    if note.title:
        typer.secho(note.title, bold=True)
    typer.echo(note.content)
    typer.echo("")
    typer.echo(
        f"Reads: {note.read_count}  Next: {note.next_read_date.date()}  "
        f"Cadence: {service.policy.frequency_label(note.read_count)}"
    )
    if note.tags:
        typer.echo(f"Tags: {', '.join(note.tags)}")
    for event in note.read_history:
        spent = f"  ({event.time_spent}s)" if event.time_spent is not None else ""
        typer.echo(f"  read {event.read_date.isoformat(timespec='minutes')}{spent}")


@notes_app.command("read")
def notes_read(
    note_id: Annotated[str, typer.Argument(help="Note id.")],
    time_spent: Annotated[
        int | None, typer.Option("--time-spent", min=0, help="Seconds spent reading.")
    ] = None,
    owner: OwnerOption = None,
):
    """Mark a note as read and schedule its next review."""
    config = resolve_config()

    async def run():
        service = await _service(config)
        return await service.mark_as_read(_owner(config, owner), note_id, time_spent)

    note = _run(run())
    typer.secho(
        f"Read #{note.read_count}. Next review on {note.next_read_date.date()}.", fg="green"
    )


@notes_app.command("edit")
def notes_edit(
    note_id: Annotated[str, typer.Argument(help="Note id.")],
    content: Annotated[str | None, typer.Option(help="New body.")] = None,
    title: Annotated[str | None, typer.Option(help="New title.")] = None,
    tag: Annotated[
        list[str] | None, typer.Option("--tag", "-t", help="Replace tags (repeatable).")
    ] = None,
    category: Annotated[str | None, typer.Option(help="New category id.")] = None,
    owner: OwnerOption = None,
):
    """Edit a note's content. The review schedule is left untouched."""
    changes = {"content": content, "title": title, "tags": tag, "category_id": category}
    changes = {k: v for k, v in changes.items() if v is not None}
    if not changes:
        typer.secho("Nothing to change.", fg="yellow")
        raise typer.Exit(2)

    config = resolve_config()

    async def run():
        service = await _service(config)
        return await service.update_note(_owner(config, owner), note_id, changes)

    note = _run(run())
    typer.secho(f"Updated {note.id}.", fg="green")


@notes_app.command("delete")
def notes_delete(
    note_id: Annotated[str, typer.Argument(help="Note id.")],
    force: Annotated[bool, typer.Option("--force", "-f", help="Skip confirmation.")] = False,
    owner: OwnerOption = None,
):
    """Delete a note and its read history."""
    if not force:
        typer.confirm(f"Delete note {note_id}?", abort=True)

    config = resolve_config()

    async def run():
        service = await _service(config)
        return await service.remove_note(_owner(config, owner), note_id)

    result = _run(run())
    typer.secho(result["message"], fg="green")


@notes_app.command("import")
def notes_import(
    path: Annotated[Path, typer.Argument(help="Markdown file or directory.", exists=True)],
    owner: OwnerOption = None,
):
    """Import Markdown files (YAML frontmatter may set title and tags)."""
    config = resolve_config()

    async def run():
        service = await _service(config)
        return await import_markdown(service, _owner(config, owner), path)

    notes = _run(run())
    typer.secho(f"Imported {len(notes)} note(s).", fg="green")


# ---------------------------------------------------------------------------
# Remind subgroup
# ---------------------------------------------------------------------------


@remind_app.command("subscribe")
def remind_subscribe(
    email: Annotated[str, typer.Argument(help="Where reminders go.")],
    first_name: Annotated[str | None, typer.Option(help="Name used in the greeting.")] = None,
    at: Annotated[str | None, typer.Option("--at", help="Reminder time, HH:MM.")] = None,
    disable: Annotated[bool, typer.Option("--disable", help="Turn reminders off.")] = False,
    owner: OwnerOption = None,
):
    """Set reminder preferences for an owner."""
    config = resolve_config()
    subscription = ReminderSubscription(
        owner_id=_owner(config, owner),
        email=email,
        first_name=first_name,
        reminder_time=at or config.reminder_default_time,
        enabled=not disable,
    )

    async def run():
        store = await get_note_repository(config)
        return await store.save_subscription(subscription)

    _run(run())
    state = "disabled" if disable else f"daily at {subscription.reminder_time}"
    typer.secho(f"Reminders for {email}: {state}", fg="green")


@remind_app.command("run")
def remind_run():
    """Send the reminders due this hour."""
    config = resolve_config()

    async def run():
        repository = await get_note_repository(config)
        reminders = ReminderService(repository, repository, get_notifier(config))
        return await reminders.run()

    dispatches = _run(run())
    sent = sum(1 for d in dispatches if d.delivered)
    typer.echo(f"Reminders sent: {sent}/{len(dispatches)}")
    if sent < len(dispatches):
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show():
    """Display final resolved configuration."""
    config = resolve_config()
    d = {k: str(v) if isinstance(v, Path) else v for k, v in config.model_dump().items()}
    typer.echo(json.dumps(d, indent=2))
