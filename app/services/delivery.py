"""One delivery attempt for a reminder schedule.

Flow:
1. Load the payload snapshot (notes + live push tokens).
2. Pick ``notes_per_reminder`` notes with the weighted selector.
3. Send one push message per (note, token) pair in a single gateway call.
4. Read the tickets back by position:
   • ``DeviceNotRegistered`` → disable that destination.
   • any ``ok`` for a note → bump its send stats and stamp the schedule.

The two write-backs are independent; a missing note during recording raises
``NotFound`` without undoing destination disabling.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from app.services import selector
from app.services.payload import load_delivery_payload
from app.types.contracts import DeliveryResult, NoteCandidate, PushMessage, PushTicket
from app.utils import push
from config import settings
import db

_LOGGER = logging.getLogger(__name__)

MAX_BODY_CHARS = 180
ELLIPSIS = "..."


@dataclass(frozen=True)
class _Outbound:
    note_id: str
    token: str
    message: PushMessage


def truncate_body(content: str) -> str:
    if len(content) <= MAX_BODY_CHARS:
        return content
    return content[: MAX_BODY_CHARS - len(ELLIPSIS)] + ELLIPSIS


def build_messages(
    schedule_id: str,
    notes: Sequence[NoteCandidate],
    tokens: Sequence[str],
) -> List[_Outbound]:
    return [
        _Outbound(
            note_id=note.id,
            token=token,
            message=PushMessage(
                to=token,
                title=settings.PUSH_TITLE,
                body=truncate_body(note.content),
                data={
                    "noteId": note.id,
                    "scheduleId": schedule_id,
                    "priority": note.priority,
                },
            ),
        )
        for note in notes
        for token in tokens
    ]


def interpret_tickets(
    outbound: Sequence[_Outbound],
    tickets: Sequence[Optional[PushTicket]],
) -> tuple[List[str], List[str]]:
    """Return ``(delivered_note_ids, invalid_tokens)`` in first-seen order.

    Tickets are matched to messages purely by index.
    """
    if len(tickets) != len(outbound):
        _LOGGER.warning(
            "Push gateway returned %d tickets for %d messages; unmatched entries ignored",
            len(tickets), len(outbound),
        )

    delivered: dict[str, None] = {}
    invalid: dict[str, None] = {}
    for item, ticket in zip(outbound, tickets):
        if ticket is None:
            continue
        if ticket.status == "ok":
            delivered[item.note_id] = None
        elif ticket.error == push.DEVICE_NOT_REGISTERED:
            invalid[item.token] = None
    return list(delivered), list(invalid)


async def deliver_for_schedule(
    schedule_id: str,
    now: Optional[datetime] = None,
) -> DeliveryResult:
    payload = await load_delivery_payload(schedule_id)

    if payload is None or not payload.tokens or not payload.notes:
        token_count = len(payload.tokens) if payload else 0
        _LOGGER.info(
            "Nothing to deliver schedule=%s tokens=%d notes=%d",
            schedule_id, token_count, len(payload.notes) if payload else 0,
        )
        return DeliveryResult(delivered=False, token_count=token_count)

    chosen = selector.pick_weighted(payload.notes, payload.notes_per_reminder, now=now)
    if not chosen:
        return DeliveryResult(delivered=False, token_count=len(payload.tokens))

    outbound = build_messages(payload.schedule_id, chosen, payload.tokens)
    # requests is blocking; keep the event loop free while the gateway answers
    tickets = await asyncio.to_thread(push.send_push_messages, [o.message for o in outbound])

    delivered_ids, invalid_tokens = interpret_tickets(outbound, tickets)

    if invalid_tokens:
        disabled = await db.disable_destinations(invalid_tokens)
        _LOGGER.info(
            "Disabled %d unregistered destinations schedule=%s tokens=%s",
            disabled, schedule_id, [push.mask_token(t) for t in invalid_tokens],
        )

    if delivered_ids:
        delivered_at = now or datetime.now(timezone.utc)
        await db.record_delivery_success(payload.schedule_id, delivered_ids, delivered_at)

    _LOGGER.info(
        "Delivery finished schedule=%s notes=%d tokens=%d delivered=%d",
        schedule_id, len(chosen), len(payload.tokens), len(delivered_ids),
    )
    return DeliveryResult(delivered=bool(delivered_ids), token_count=len(payload.tokens))
