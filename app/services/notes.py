"""Note CRUD scoped to the calling user."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List

from app.types.contracts import NoteRecord
from app.types.errors import ContentTooLong, InvalidContent, NotFound
import db

MAX_CONTENT_CHARS = 1000


def validate_content(content: str) -> str:
    """Return the trimmed content or raise."""
    trimmed = (content or "").strip()
    if not trimmed:
        raise InvalidContent()
    if len(trimmed) > MAX_CONTENT_CHARS:
        raise ContentTooLong()
    return trimmed


async def _owned_note(user_id: str, note_id: str) -> NoteRecord:
    note = await db.get_note(note_id)
    if note is None or note.user_id != user_id:
        raise NotFound("Note not found.")
    return note


async def list_notes(user_id: str) -> List[NoteRecord]:
    return await db.list_notes(user_id, newest_first=True)


async def create_note(user_id: str, content: str, priority: str) -> NoteRecord:
    content = validate_content(content)
    return await db.insert_note(user_id, content, priority, datetime.now(timezone.utc))


async def update_note(user_id: str, note_id: str, content: str, priority: str) -> None:
    content = validate_content(content)
    await _owned_note(user_id, note_id)
    await db.update_note(
        note_id,
        {"content": content, "priority": priority, "updated_at": datetime.now(timezone.utc)},
    )


async def set_muted(user_id: str, note_id: str, muted: bool) -> None:
    await _owned_note(user_id, note_id)
    await db.update_note(note_id, {"is_muted": muted, "updated_at": datetime.now(timezone.utc)})


async def delete_note(user_id: str, note_id: str) -> None:
    await _owned_note(user_id, note_id)
    await db.delete_note(note_id)
