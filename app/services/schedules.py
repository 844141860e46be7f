"""Reminder schedule CRUD and the manual test trigger.

Validation always runs before any write, so a rejected request leaves the
store untouched.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, List, Optional

from app.types.contracts import ScheduleRecord
from app.types.errors import InvalidNotesPerReminder, InvalidTime, NoEnabledSchedule, NotFound
from app.utils.time import assert_valid_timezone, compute_next_run_at
import db

MIN_NOTES_PER_REMINDER = 1
MAX_NOTES_PER_REMINDER = 10


def _is_int(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, float) and value.is_integer()


def validate_time(hour: Any, minute: Any) -> tuple[int, int]:
    if not _is_int(hour) or not _is_int(minute):
        raise InvalidTime("Hour and minute must be integers.")
    hour, minute = int(hour), int(minute)
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise InvalidTime("Time must be in 24-hour range.")
    return hour, minute


def validate_notes_per_reminder(value: Any) -> int:
    if not _is_int(value):
        raise InvalidNotesPerReminder("Notes per reminder must be an integer.")
    value = int(value)
    if not MIN_NOTES_PER_REMINDER <= value <= MAX_NOTES_PER_REMINDER:
        raise InvalidNotesPerReminder(
            f"Notes per reminder must be between {MIN_NOTES_PER_REMINDER} and {MAX_NOTES_PER_REMINDER}."
        )
    return value


async def _owned_schedule(user_id: str, schedule_id: str) -> ScheduleRecord:
    schedule = await db.get_schedule(schedule_id)
    if schedule is None or schedule.user_id != user_id:
        raise NotFound("Schedule not found.")
    return schedule


async def list_schedules(user_id: str) -> List[ScheduleRecord]:
    rows = await db.list_schedules(user_id)
    return sorted(rows, key=lambda s: (s.hour, s.minute))


async def create_schedule(
    user_id: str,
    hour: Any,
    minute: Any,
    timezone_name: str,
    notes_per_reminder: Optional[Any] = None,
) -> ScheduleRecord:
    hour, minute = validate_time(hour, minute)
    if notes_per_reminder is None:
        notes_per_reminder = MIN_NOTES_PER_REMINDER
    notes_per_reminder = validate_notes_per_reminder(notes_per_reminder)
    assert_valid_timezone(timezone_name)

    now = datetime.now(timezone.utc)
    next_run_at = compute_next_run_at(hour, minute, timezone_name, from_dt=now)
    return await db.insert_schedule(
        user_id, hour, minute, timezone_name, notes_per_reminder, next_run_at, now
    )


async def update_schedule(
    user_id: str,
    schedule_id: str,
    hour: Any,
    minute: Any,
    timezone_name: str,
    notes_per_reminder: Any,
) -> None:
    await _owned_schedule(user_id, schedule_id)
    hour, minute = validate_time(hour, minute)
    notes_per_reminder = validate_notes_per_reminder(notes_per_reminder)
    assert_valid_timezone(timezone_name)

    now = datetime.now(timezone.utc)
    await db.update_schedule(
        schedule_id,
        {
            "hour": hour,
            "minute": minute,
            "timezone": timezone_name,
            "notes_per_reminder": notes_per_reminder,
            "next_run_at": compute_next_run_at(hour, minute, timezone_name, from_dt=now),
            "updated_at": now,
        },
    )


async def set_enabled(user_id: str, schedule_id: str, enabled: bool) -> None:
    """Enabling recomputes ``next_run_at`` from now; disabling freezes it."""
    schedule = await _owned_schedule(user_id, schedule_id)
    now = datetime.now(timezone.utc)
    values: dict[str, Any] = {"enabled": enabled, "updated_at": now}
    if enabled:
        values["next_run_at"] = compute_next_run_at(
            schedule.hour, schedule.minute, schedule.timezone, from_dt=now
        )
    await db.update_schedule(schedule_id, values)


async def delete_schedule(user_id: str, schedule_id: str) -> None:
    await _owned_schedule(user_id, schedule_id)
    await db.delete_schedule(schedule_id)


async def trigger_test_reminder(user_id: str, enqueue: Callable[[str], None]) -> str:
    """Enqueue one delivery for the caller's soonest enabled schedule."""
    enabled = [s for s in await db.list_schedules(user_id) if s.enabled]
    if not enabled:
        raise NoEnabledSchedule()
    schedule = min(enabled, key=lambda s: s.next_run_at)
    enqueue(schedule.id)
    return schedule.id
