"""Shared fixtures: an in-memory stand-in for the ``db`` helpers."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable, Sequence
from uuid import uuid4

import pytest

import db
from app.types.contracts import DestinationRecord, NoteRecord, ScheduleRecord
from app.types.errors import NotFound

UTC = timezone.utc

DB_HELPERS = (
    "insert_note",
    "get_note",
    "list_notes",
    "update_note",
    "delete_note",
    "insert_schedule",
    "get_schedule",
    "list_schedules",
    "update_schedule",
    "delete_schedule",
    "fetch_due_schedules",
    "advance_schedule",
    "upsert_destination",
    "list_active_destinations",
    "disable_destinations",
    "record_delivery_success",
    "dispose_engine",
)


class FakeStore:
    def __init__(self) -> None:
        self.notes: dict[str, NoteRecord] = {}
        self.schedules: dict[str, ScheduleRecord] = {}
        self.destinations: dict[str, DestinationRecord] = {}  # keyed by token

    # -- seeding ------------------------------------------------------
    def add_note(
        self,
        user_id: str = "user-1",
        content: str = "remember this",
        priority: str = "low",
        times_sent: int = 0,
        last_sent_at: datetime | None = None,
        is_muted: bool = False,
        created_at: datetime | None = None,
    ) -> NoteRecord:
        created_at = created_at or datetime(2025, 1, 1, tzinfo=UTC)
        note = NoteRecord(
            id=str(uuid4()),
            user_id=user_id,
            content=content,
            priority=priority,
            is_muted=is_muted,
            times_sent=times_sent,
            last_sent_at=last_sent_at,
            created_at=created_at,
            updated_at=created_at,
        )
        self.notes[note.id] = note
        return note

    def add_schedule(
        self,
        user_id: str = "user-1",
        hour: int = 9,
        minute: int = 0,
        timezone: str = "UTC",
        notes_per_reminder: int = 1,
        enabled: bool = True,
        next_run_at: datetime | None = None,
    ) -> ScheduleRecord:
        created = datetime(2025, 1, 1, tzinfo=UTC)
        schedule = ScheduleRecord(
            id=str(uuid4()),
            user_id=user_id,
            hour=hour,
            minute=minute,
            timezone=timezone,
            notes_per_reminder=notes_per_reminder,
            enabled=enabled,
            next_run_at=next_run_at or created,
            created_at=created,
            updated_at=created,
        )
        self.schedules[schedule.id] = schedule
        return schedule

    def add_destination(
        self,
        user_id: str = "user-1",
        token: str | None = None,
        platform: str = "ios",
        disabled: bool = False,
    ) -> DestinationRecord:
        dest = DestinationRecord(
            id=str(uuid4()),
            user_id=user_id,
            token=token or f"ExponentPushToken[{uuid4().hex[:22]}]",
            platform=platform,
            disabled=disabled,
            last_registered_at=datetime(2025, 1, 1, tzinfo=UTC),
        )
        self.destinations[dest.token] = dest
        return dest

    # -- notes --------------------------------------------------------
    async def insert_note(self, user_id: str, content: str, priority: str, now: datetime) -> NoteRecord:
        return self.add_note(user_id=user_id, content=content, priority=priority, created_at=now)

    async def get_note(self, note_id: str) -> NoteRecord | None:
        return self.notes.get(note_id)

    async def list_notes(
        self,
        user_id: str,
        limit: int | None = None,
        newest_first: bool = True,
        include_muted: bool = True,
    ) -> list[NoteRecord]:
        rows = [
            n for n in self.notes.values()
            if n.user_id == user_id and (include_muted or not n.is_muted)
        ]
        rows.sort(key=lambda n: n.created_at, reverse=newest_first)
        return rows[:limit] if limit is not None else rows

    async def update_note(self, note_id: str, values: dict[str, Any]) -> None:
        if note_id in self.notes:
            self.notes[note_id] = self.notes[note_id].model_copy(update=values)

    async def delete_note(self, note_id: str) -> None:
        self.notes.pop(note_id, None)

    # -- schedules ----------------------------------------------------
    async def insert_schedule(
        self,
        user_id: str,
        hour: int,
        minute: int,
        timezone: str,
        notes_per_reminder: int,
        next_run_at: datetime,
        now: datetime,
    ) -> ScheduleRecord:
        schedule = self.add_schedule(
            user_id=user_id,
            hour=hour,
            minute=minute,
            timezone=timezone,
            notes_per_reminder=notes_per_reminder,
            next_run_at=next_run_at,
        )
        schedule = schedule.model_copy(update={"created_at": now, "updated_at": now})
        self.schedules[schedule.id] = schedule
        return schedule

    async def get_schedule(self, schedule_id: str) -> ScheduleRecord | None:
        return self.schedules.get(schedule_id)

    async def list_schedules(self, user_id: str) -> list[ScheduleRecord]:
        return [s for s in self.schedules.values() if s.user_id == user_id]

    async def update_schedule(self, schedule_id: str, values: dict[str, Any]) -> None:
        if schedule_id in self.schedules:
            self.schedules[schedule_id] = self.schedules[schedule_id].model_copy(update=values)

    async def delete_schedule(self, schedule_id: str) -> None:
        self.schedules.pop(schedule_id, None)

    async def fetch_due_schedules(self, now: datetime, limit: int = 32) -> list[ScheduleRecord]:
        due = [s for s in self.schedules.values() if s.next_run_at <= now]
        due.sort(key=lambda s: s.next_run_at)
        return due[:limit]

    async def advance_schedule(
        self,
        schedule_id: str,
        expected_next_run_at: datetime,
        next_run_at: datetime,
        now: datetime,
    ) -> bool:
        current = self.schedules.get(schedule_id)
        if current is None or current.next_run_at != expected_next_run_at:
            return False
        self.schedules[schedule_id] = current.model_copy(
            update={"next_run_at": next_run_at, "updated_at": now}
        )
        return True

    # -- destinations -------------------------------------------------
    async def upsert_destination(self, user_id: str, token: str, platform: str, now: datetime) -> None:
        existing = self.destinations.get(token)
        if existing:
            self.destinations[token] = existing.model_copy(
                update={"user_id": user_id, "platform": platform, "disabled": False, "last_registered_at": now}
            )
            return
        dest = self.add_destination(user_id=user_id, token=token, platform=platform)
        self.destinations[token] = dest.model_copy(update={"last_registered_at": now})

    async def list_active_destinations(self, user_id: str) -> list[DestinationRecord]:
        return [d for d in self.destinations.values() if d.user_id == user_id and not d.disabled]

    async def disable_destinations(self, tokens: Iterable[str]) -> int:
        changed = 0
        for token in tokens:
            dest = self.destinations.get(token)
            if dest and not dest.disabled:
                self.destinations[token] = dest.model_copy(update={"disabled": True})
                changed += 1
        return changed

    # -- delivery bookkeeping -----------------------------------------
    async def record_delivery_success(
        self,
        schedule_id: str,
        note_ids: Sequence[str],
        delivered_at: datetime,
    ) -> None:
        if any(note_id not in self.notes for note_id in note_ids):
            raise NotFound("Note not found during reminder delivery.")
        for note_id in note_ids:
            note = self.notes[note_id]
            self.notes[note_id] = note.model_copy(
                update={
                    "times_sent": note.times_sent + 1,
                    "last_sent_at": delivered_at,
                    "updated_at": delivered_at,
                }
            )
        await self.update_schedule(
            schedule_id, {"last_run_at": delivered_at, "updated_at": delivered_at}
        )

    async def dispose_engine(self) -> None:
        return None


@pytest.fixture
def store(monkeypatch):
    fake = FakeStore()
    for name in DB_HELPERS:
        monkeypatch.setattr(db, name, getattr(fake, name))
    return fake
