"""Pydantic models shared by the API, the storage helpers and the workers.

Records mirror the three persisted collections. They are built straight from
ORM rows (``from_attributes``) so services never touch SQLAlchemy objects.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

Priority = Literal["low", "medium", "high"]
Platform = Literal["ios", "android", "web"]


# ──────────────────────────────
# Persisted records
# ──────────────────────────────


class NoteRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    content: str
    priority: Priority
    is_muted: bool = False
    times_sent: int = 0
    last_sent_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class ScheduleRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    hour: int
    minute: int
    timezone: str
    notes_per_reminder: int = 1
    enabled: bool = True
    next_run_at: datetime
    last_run_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class DestinationRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    token: str
    platform: Platform
    disabled: bool = False
    last_registered_at: datetime


# ──────────────────────────────
# Request bodies
# ──────────────────────────────


class NoteIn(BaseModel):
    content: str
    priority: Priority


class NoteMuteIn(BaseModel):
    muted: bool


class ScheduleIn(BaseModel):
    # Raw JSON values; the schedules service rejects anything that is not a
    # whole number with the domain error code.
    hour: Any
    minute: Any
    timezone: str
    notes_per_reminder: Optional[Any] = None


class ScheduleUpdateIn(ScheduleIn):
    notes_per_reminder: Any


class ScheduleEnabledIn(BaseModel):
    enabled: bool


class PushTokenIn(BaseModel):
    token: str
    platform: Platform


# ──────────────────────────────
# Delivery pipeline
# ──────────────────────────────


class NoteCandidate(BaseModel):
    """A note as seen by the weighted selector."""

    id: str
    content: str
    priority: Priority
    times_sent: int = 0
    last_sent_at: Optional[datetime] = None


class DeliveryPayload(BaseModel):
    schedule_id: str
    user_id: str
    notes_per_reminder: int = 1
    notes: List[NoteCandidate] = Field(default_factory=list)
    tokens: List[str] = Field(default_factory=list)


class PushMessage(BaseModel):
    to: str
    title: str
    body: str
    sound: str = "default"
    data: Dict[str, Any] = Field(default_factory=dict)


class PushTicket(BaseModel):
    """One entry of the gateway's ``data`` array."""

    status: Literal["ok", "error"]
    id: Optional[str] = None
    message: Optional[str] = None
    details: Optional[Dict[str, Any]] = None

    @field_validator("details", mode="before")
    def _details_dict(cls, v):  # noqa: N805
        return v if isinstance(v, dict) else None

    @property
    def error(self) -> Optional[str]:
        return (self.details or {}).get("error")


class DeliveryResult(BaseModel):
    delivered: bool
    token_count: int
