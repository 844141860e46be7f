"""Push destination registration."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from app.types.errors import InvalidToken
from app.utils.push import is_push_token, mask_token
import db

_LOGGER = logging.getLogger(__name__)


async def register_destination(user_id: str, token: str, platform: str) -> None:
    """Upsert by token: an existing row is re-owned, re-enabled and refreshed."""
    if not is_push_token(token):
        raise InvalidToken()
    await db.upsert_destination(user_id, token, platform, datetime.now(timezone.utc))
    _LOGGER.info("Registered push destination token=%s platform=%s", mask_token(token), platform)
