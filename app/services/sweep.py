"""Advance due schedules and hand their deliveries off to the queue."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from app.types.errors import InvalidTimezone
from app.utils.time import compute_next_run_at
from config import settings
import db

_LOGGER = logging.getLogger(__name__)

# Parking interval for a schedule whose zone no longer resolves.
UNRESOLVABLE_ZONE_DELAY = timedelta(days=1)


async def process_due_schedules(
    enqueue: Callable[[str], None],
    now: Optional[datetime] = None,
    limit: Optional[int] = None,
) -> int:
    """Advance every due schedule, enqueue the enabled ones, return that count.

    ``next_run_at`` is persisted before ``enqueue`` is called, so a crash in
    between loses at most one delivery and never repeats it. The advance is a
    compare-and-set on the value that was read, so overlapping sweeps enqueue
    each due run once. Disabled schedules are advanced too, so re-enabling
    them does not replay a backlog.
    """
    now = now or datetime.now(timezone.utc)
    limit = limit or settings.SWEEP_BATCH_SIZE

    due = await db.fetch_due_schedules(now, limit=limit)
    if not due:
        return 0

    enqueued = 0
    for schedule in due:
        try:
            next_run_at = compute_next_run_at(
                schedule.hour, schedule.minute, schedule.timezone, from_dt=now
            )
        except InvalidTimezone:
            _LOGGER.error(
                "Schedule %s has an unresolvable timezone %r; parking it for a day",
                schedule.id, schedule.timezone,
            )
            await db.advance_schedule(
                schedule.id, schedule.next_run_at, now + UNRESOLVABLE_ZONE_DELAY, now
            )
            continue

        won = await db.advance_schedule(schedule.id, schedule.next_run_at, next_run_at, now)
        if not won:
            _LOGGER.debug("Schedule %s already advanced by another sweep", schedule.id)
            continue

        if not schedule.enabled:
            continue

        enqueue(schedule.id)
        enqueued += 1

    _LOGGER.info("Sweep finished due=%d enqueued=%d", len(due), enqueued)
    return enqueued
