"""Thin client for the Expo push gateway.

The gateway answers ``{"data": ticket | [ticket, ...]}`` where tickets line up
index-for-index with the messages that were sent.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence

import requests
from pydantic import ValidationError
from tenacity import (
    retry,
    stop_after_attempt,
    wait_random_exponential,
    retry_if_exception_type,
)

from app.types.contracts import PushMessage, PushTicket
from config import settings

_LOGGER = logging.getLogger(__name__)

EXPO_TOKEN_PREFIXES = ("ExponentPushToken[", "ExpoPushToken[")
DEVICE_NOT_REGISTERED = "DeviceNotRegistered"

# Only retry when the request never reached the gateway; anything later could
# double-send.
RETRY_ERRORS = (requests.ConnectTimeout,)


def is_push_token(token: str) -> bool:
    return isinstance(token, str) and token.startswith(EXPO_TOKEN_PREFIXES)


def mask_token(token: str) -> str:
    if len(token) <= 16:
        return token[:4] + "..."
    return token[:12] + "..." + token[-4:]


def _headers() -> dict[str, str]:
    headers = {
        "Accept": "application/json",
        "Accept-Encoding": "gzip, deflate",
        "Content-Type": "application/json",
    }
    if settings.PUSH_ACCESS_TOKEN:
        headers["Authorization"] = f"Bearer {settings.PUSH_ACCESS_TOKEN}"
    return headers


def parse_tickets(body: Any) -> List[Optional[PushTicket]]:
    """Normalise the gateway's ``data`` member to a list of tickets.

    An entry that does not look like a ticket becomes ``None`` so later
    entries keep their index.
    """
    data = body.get("data") if isinstance(body, dict) else None
    if data is None:
        return []
    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list):
        return []
    tickets: List[Optional[PushTicket]] = []
    for item in data:
        try:
            tickets.append(PushTicket.model_validate(item))
        except ValidationError:
            _LOGGER.warning("Unreadable push ticket at index %d: %r", len(tickets), item)
            tickets.append(None)
    return tickets


@retry(
    wait=wait_random_exponential(multiplier=1, max=10),
    stop=stop_after_attempt(3),
    retry=retry_if_exception_type(RETRY_ERRORS),
    reraise=True,
)
def send_push_messages(messages: Sequence[PushMessage]) -> List[Optional[PushTicket]]:
    """POST the whole batch in one request and return the per-message tickets."""
    resp = requests.post(
        settings.PUSH_GATEWAY_URL,
        json=[m.model_dump() for m in messages],
        headers=_headers(),
        timeout=settings.PUSH_TIMEOUT,
    )
    resp.raise_for_status()
    tickets = parse_tickets(resp.json())
    _LOGGER.info("Push gateway accepted batch size=%d tickets=%d", len(messages), len(tickets))
    return tickets
