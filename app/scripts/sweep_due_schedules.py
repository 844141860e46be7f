"""One-shot sweep for platforms that run cron instead of Celery beat.
Run every minute:
    python -m app.scripts.sweep_due_schedules
Deliveries are still handed to the Celery ``reminder`` queue.
"""

from __future__ import annotations

import asyncio
import logging

from app.services.sweep import process_due_schedules
from app.workers.reminder import enqueue_delivery
import db

_LOGGER = logging.getLogger(__name__)


async def main() -> int:
    try:
        return await process_due_schedules(enqueue_delivery)
    finally:
        await db.dispose_engine()


if __name__ == "__main__":  # pragma: no cover
    _LOGGER.info("[CRON] sweep_due_schedules: job started")
    try:
        enqueued = asyncio.run(main())
        _LOGGER.info("[CRON] sweep_due_schedules: enqueued %d deliveries", enqueued)
    except Exception:
        _LOGGER.exception("[CRON] sweep_due_schedules: job failed")
        raise
