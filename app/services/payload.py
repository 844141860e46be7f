"""Read-only snapshot of everything one delivery needs."""

from __future__ import annotations

from typing import Optional

from app.types.contracts import DeliveryPayload, NoteCandidate
from config import settings
import db


async def load_delivery_payload(schedule_id: str) -> Optional[DeliveryPayload]:
    """Return ``None`` when the schedule is gone or disabled."""
    schedule = await db.get_schedule(schedule_id)
    if schedule is None or not schedule.enabled:
        return None

    notes = await db.list_notes(
        schedule.user_id,
        limit=settings.NOTE_CANDIDATE_LIMIT,
        newest_first=False,
        include_muted=not settings.EXCLUDE_MUTED_NOTES,
    )
    destinations = await db.list_active_destinations(schedule.user_id)

    return DeliveryPayload(
        schedule_id=schedule.id,
        user_id=schedule.user_id,
        notes_per_reminder=schedule.notes_per_reminder or 1,
        notes=[
            NoteCandidate(
                id=n.id,
                content=n.content,
                priority=n.priority,
                times_sent=n.times_sent,
                last_sent_at=n.last_sent_at,
            )
            for n in notes
        ],
        tokens=[d.token for d in destinations if not d.disabled],
    )
