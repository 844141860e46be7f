"""Reminder sweep + delivery Celery tasks."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, TypeVar

from app.celery_app import celery_app
from app.services import delivery, sweep
import db

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


def _run_async(factory: Callable[[], Awaitable[T]]) -> T:
    """Run async service code inside a sync task.

    The engine is disposed before the loop closes so pooled asyncpg
    connections never outlive the loop they were opened on.
    """
    async def _main() -> T:
        try:
            return await factory()
        finally:
            await db.dispose_engine()

    return asyncio.run(_main())


def enqueue_delivery(schedule_id: str) -> None:
    """Fire-and-forget: queue one delivery without waiting on it."""
    celery_app.send_task(
        "app.workers.reminder.deliver",
        args=[schedule_id],
        queue="reminder",
    )


# ---------------------------------------------------------------------------
# Celery Tasks
# ---------------------------------------------------------------------------

@celery_app.task(name="app.workers.reminder.dispatch_due", bind=True)
def dispatch_due(self) -> int:  # noqa: D401
    """Advance due schedules and enqueue a delivery for each enabled one."""
    return _run_async(lambda: sweep.process_due_schedules(enqueue_delivery))


# Acked on receipt; a redelivered push would reach the device twice.
@celery_app.task(name="app.workers.reminder.deliver", bind=True, acks_late=False)
def deliver(self, schedule_id: str) -> dict[str, Any]:  # noqa: D401
    """Run one delivery attempt. Failures are not retried; the next due run tries again."""
    try:
        result = _run_async(lambda: delivery.deliver_for_schedule(schedule_id))
    except Exception:
        _LOGGER.exception("Delivery failed schedule=%s", schedule_id)
        raise
    return result.model_dump()
