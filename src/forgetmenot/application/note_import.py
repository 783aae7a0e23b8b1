"""Import notes from Markdown files with optional YAML frontmatter."""

import logging
from pathlib import Path
from typing import Any

import yaml

from forgetmenot.application.review_service import ReviewService
from forgetmenot.domain.constants import CONTENT_MAX_LENGTH, TITLE_MAX_LENGTH
from forgetmenot.domain.notes.models import Note

logger = logging.getLogger(__name__)


class FrontmatterError(ValueError):
    """The YAML block between the --- fences could not be parsed."""


def parse_frontmatter(md_text: str) -> tuple[dict[str, Any], str]:
    """Split Markdown into (frontmatter dict, body).
    Uses line-by-line parsing instead of regex for reliability.
    """
    # Handle potential BOM (Byte Order Mark)
    md_text = md_text.lstrip("\ufeff")
    lines = md_text.split("\n")

    if not lines or lines[0].strip() != "---":
        return {}, md_text

    yaml_end_line = None
    for i, line in enumerate(lines[1:], start=1):
        if line.strip() == "---":
            yaml_end_line = i
            break

    if yaml_end_line is None:
        return {}, md_text

    raw = "\n".join(lines[1:yaml_end_line])
    body = "\n".join(lines[yaml_end_line + 1 :])

    # Fix tabs (common user error)
    if "\t" in raw:
        raw = raw.replace("\t", "  ")

    try:
        meta = yaml.safe_load(raw) or {}
    except yaml.YAMLError as e:
        raise FrontmatterError(str(e)) from e
    if not isinstance(meta, dict):
        raise FrontmatterError("frontmatter must be a mapping")

    return meta, body


def _normalize_tags(raw: Any) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, str):
        return [t.strip() for t in raw.split(",") if t.strip()]
    return [str(t).strip() for t in raw if str(t).strip()]


def iter_markdown_files(root: Path) -> list[Path]:
    if root.is_file():
        return [root]
    return sorted(p for p in root.rglob("*.md") if p.is_file())


async def import_markdown(service: ReviewService, owner_id: str, path: Path) -> list[Note]:
    """
    Create one note per Markdown file under `path`.

    `title` and `tags` come from the frontmatter (title falls back to the file
    stem); the body is the content. Empty bodies are skipped. Every file is
    parsed before anything is created, so a broken file imports nothing.
    """
    drafts: list[tuple[Path, str, str, list[str]]] = []

    for file_path in iter_markdown_files(path):
        try:
            meta, body = parse_frontmatter(file_path.read_text(encoding="utf-8"))
        except FrontmatterError as e:
            raise FrontmatterError(f"{file_path}: {e}") from e
        content = body.strip()
        if not content:
            logger.debug(f"[import] Skipped {file_path.name}: empty body")
            continue
        if len(content) > CONTENT_MAX_LENGTH:
            logger.warning(f"[import] Skipped {file_path.name}: longer than {CONTENT_MAX_LENGTH}")
            continue

        title = str(meta.get("title") or file_path.stem)[:TITLE_MAX_LENGTH]
        drafts.append((file_path, title, content, _normalize_tags(meta.get("tags"))))

    created: list[Note] = []
    for file_path, title, content, tags in drafts:
        note = await service.create_note(owner_id, content=content, title=title, tags=tags)
        logger.info(f"[import] {file_path.name} -> {note.id}")
        created.append(note)

    return created
