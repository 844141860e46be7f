"""
Async DB helpers for notes, reminder schedules and push destinations.
Uses SQLAlchemy 2.0 + asyncpg driver – no raw SQL strings in app code.

Every helper is a single short transaction; there is no transaction spanning
the sweep and a delivery.
"""

from __future__ import annotations

import os
from datetime import datetime
from typing import Any, AsyncGenerator, Iterable, Sequence
from uuid import uuid4

from sqlalchemy import (
    Boolean, DateTime, Index, Integer, String, Text, delete, select, update
)
from sqlalchemy.orm import (
    DeclarativeBase, Mapped, mapped_column
)
from sqlalchemy.ext.asyncio import (
    create_async_engine, async_sessionmaker, AsyncSession
)

from app.types.contracts import DestinationRecord, NoteRecord, ScheduleRecord
from app.types.errors import NotFound

# ──────────────────────────────────────────────────────────────────────
# 1. Declarative metadata
# ──────────────────────────────────────────────────────────────────────
class Base(DeclarativeBase):
    pass

# ──────────────────────────────────────────────────────────────────────
# 2. Lazy engine / session factory
# ──────────────────────────────────────────────────────────────────────
_engine = None
_session_maker: async_sessionmaker[AsyncSession] | None = None

def _build_url() -> str:
    url = os.getenv("DATABASE_URL") or os.getenv("DATABASE_PUBLIC_URL")
    if not url:
        raise RuntimeError("DATABASE_URL not set")
    if "+asyncpg" not in url:
        url = url.replace("postgres://", "postgresql+asyncpg://", 1).replace(
            "postgresql://", "postgresql+asyncpg://", 1
        )
    return url

def get_engine():
    global _engine
    if _engine is None:
        _engine = create_async_engine(_build_url(), pool_size=5, max_overflow=5)
    return _engine

def get_session() -> AsyncGenerator[AsyncSession, None]:
    global _session_maker
    if _session_maker is None:
        _session_maker = async_sessionmaker(get_engine(), expire_on_commit=False)
    async def _session_scope():
        async with _session_maker() as session:
            yield session
    return _session_scope()

def _new_id() -> str:
    return str(uuid4())

# ──────────────────────────────────────────────────────────────────────
# 3. ORM models
# ──────────────────────────────────────────────────────────────────────

class Note(Base):
    __tablename__ = "notes"

    id:           Mapped[str]  = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id:      Mapped[str]  = mapped_column(String(255))
    content:      Mapped[str]  = mapped_column(Text)
    priority:     Mapped[str]  = mapped_column(String(8))
    is_muted:     Mapped[bool] = mapped_column(Boolean, default=False)
    times_sent:   Mapped[int]  = mapped_column(Integer, default=0)
    last_sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at:   Mapped[datetime] = mapped_column(DateTime(timezone=True))
    updated_at:   Mapped[datetime] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        Index("ix_notes_user_id_created_at", "user_id", "created_at"),
    )


class ReminderSchedule(Base):
    __tablename__ = "reminder_schedules"

    id:                 Mapped[str]  = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id:            Mapped[str]  = mapped_column(String(255), index=True)
    hour:               Mapped[int]  = mapped_column(Integer)
    minute:             Mapped[int]  = mapped_column(Integer)
    timezone:           Mapped[str]  = mapped_column(String(64))
    notes_per_reminder: Mapped[int]  = mapped_column(Integer, default=1)
    enabled:            Mapped[bool] = mapped_column(Boolean, default=True)
    next_run_at:        Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    last_run_at:        Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at:         Mapped[datetime] = mapped_column(DateTime(timezone=True))
    updated_at:         Mapped[datetime] = mapped_column(DateTime(timezone=True))


class PushDestination(Base):
    __tablename__ = "push_destinations"

    id:                 Mapped[str]  = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id:            Mapped[str]  = mapped_column(String(255), index=True)
    token:              Mapped[str]  = mapped_column(String(255), unique=True)
    platform:           Mapped[str]  = mapped_column(String(16))
    disabled:           Mapped[bool] = mapped_column(Boolean, default=False)
    last_registered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))


# ──────────────────────────────────────────────────────────────────────
# 4. DDL helper (run once at startup or from Alembic)
# ──────────────────────────────────────────────────────────────────────
async def create_all():
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# ──────────────────────────────────────────────────────────────────────
# 5. CRUD helpers
# ──────────────────────────────────────────────────────────────────────

# 5.1 Notes ------------------------------------------------------------
async def insert_note(user_id: str, content: str, priority: str, now: datetime) -> NoteRecord:
    note = Note(
        id=_new_id(),
        user_id=user_id,
        content=content,
        priority=priority,
        is_muted=False,
        times_sent=0,
        created_at=now,
        updated_at=now,
    )
    async for s in get_session():
        s.add(note)
        await s.commit()
    return NoteRecord.model_validate(note)


async def get_note(note_id: str) -> NoteRecord | None:
    async for s in get_session():
        note = await s.get(Note, note_id)
        return NoteRecord.model_validate(note) if note else None


async def list_notes(
    user_id: str,
    limit: int | None = None,
    newest_first: bool = True,
    include_muted: bool = True,
) -> list[NoteRecord]:
    async for s in get_session():
        stmt = select(Note).where(Note.user_id == user_id)
        if not include_muted:
            stmt = stmt.where(Note.is_muted.is_(False))
        order = Note.created_at.desc() if newest_first else Note.created_at.asc()
        stmt = stmt.order_by(order)
        if limit is not None:
            stmt = stmt.limit(limit)
        res = await s.execute(stmt)
        return [NoteRecord.model_validate(n) for n in res.scalars()]


async def update_note(note_id: str, values: dict[str, Any]) -> None:
    async for s in get_session():
        await s.execute(update(Note).where(Note.id == note_id).values(**values))
        await s.commit()


async def delete_note(note_id: str) -> None:
    async for s in get_session():
        await s.execute(delete(Note).where(Note.id == note_id))
        await s.commit()


# 5.2 Reminder schedules -----------------------------------------------
async def insert_schedule(
    user_id: str,
    hour: int,
    minute: int,
    timezone: str,
    notes_per_reminder: int,
    next_run_at: datetime,
    now: datetime,
) -> ScheduleRecord:
    schedule = ReminderSchedule(
        id=_new_id(),
        user_id=user_id,
        hour=hour,
        minute=minute,
        timezone=timezone,
        notes_per_reminder=notes_per_reminder,
        enabled=True,
        next_run_at=next_run_at,
        created_at=now,
        updated_at=now,
    )
    async for s in get_session():
        s.add(schedule)
        await s.commit()
    return ScheduleRecord.model_validate(schedule)


async def get_schedule(schedule_id: str) -> ScheduleRecord | None:
    async for s in get_session():
        schedule = await s.get(ReminderSchedule, schedule_id)
        return ScheduleRecord.model_validate(schedule) if schedule else None


async def list_schedules(user_id: str) -> list[ScheduleRecord]:
    async for s in get_session():
        res = await s.execute(
            select(ReminderSchedule).where(ReminderSchedule.user_id == user_id)
        )
        return [ScheduleRecord.model_validate(r) for r in res.scalars()]


async def update_schedule(schedule_id: str, values: dict[str, Any]) -> None:
    async for s in get_session():
        await s.execute(
            update(ReminderSchedule)
            .where(ReminderSchedule.id == schedule_id)
            .values(**values)
        )
        await s.commit()


async def delete_schedule(schedule_id: str) -> None:
    async for s in get_session():
        await s.execute(delete(ReminderSchedule).where(ReminderSchedule.id == schedule_id))
        await s.commit()


# 5.3 Due lookup for the sweep ----------------------------------------
async def fetch_due_schedules(now: datetime, limit: int = 32) -> list[ScheduleRecord]:
    async for s in get_session():
        stmt = (
            select(ReminderSchedule)
            .where(ReminderSchedule.next_run_at <= now)
            .order_by(ReminderSchedule.next_run_at)
            .limit(limit)
        )
        res = await s.execute(stmt)
        return [ScheduleRecord.model_validate(r) for r in res.scalars()]


async def advance_schedule(
    schedule_id: str,
    expected_next_run_at: datetime,
    next_run_at: datetime,
    now: datetime,
) -> bool:
    """Move ``next_run_at`` forward only if nobody else has moved it yet.

    Returns ``True`` when this call won the row.
    """
    async for s in get_session():
        res = await s.execute(
            update(ReminderSchedule)
            .where(
                ReminderSchedule.id == schedule_id,
                ReminderSchedule.next_run_at == expected_next_run_at,
            )
            .values(next_run_at=next_run_at, updated_at=now)
        )
        await s.commit()
        return res.rowcount == 1


# 5.4 Push destinations ------------------------------------------------
async def upsert_destination(user_id: str, token: str, platform: str, now: datetime) -> None:
    async for s in get_session():
        res = await s.execute(select(PushDestination).where(PushDestination.token == token))
        row = res.scalar_one_or_none()
        if row:
            row.user_id = user_id
            row.platform = platform
            row.disabled = False
            row.last_registered_at = now
        else:
            s.add(
                PushDestination(
                    id=_new_id(),
                    user_id=user_id,
                    token=token,
                    platform=platform,
                    disabled=False,
                    last_registered_at=now,
                )
            )
        await s.commit()


async def list_active_destinations(user_id: str) -> list[DestinationRecord]:
    async for s in get_session():
        res = await s.execute(
            select(PushDestination).where(
                PushDestination.user_id == user_id,
                PushDestination.disabled.is_(False),
            )
        )
        return [DestinationRecord.model_validate(d) for d in res.scalars()]


async def disable_destinations(tokens: Iterable[str]) -> int:
    tokens = list(tokens)
    if not tokens:
        return 0
    async for s in get_session():
        res = await s.execute(
            update(PushDestination)
            .where(
                PushDestination.token.in_(tokens),
                PushDestination.disabled.is_(False),
            )
            .values(disabled=True)
        )
        await s.commit()
        return res.rowcount or 0


# 5.5 Delivery bookkeeping ---------------------------------------------
async def record_delivery_success(
    schedule_id: str,
    note_ids: Sequence[str],
    delivered_at: datetime,
) -> None:
    """Bump send stats on every delivered note and stamp the schedule.

    Raises ``NotFound`` if a note vanished since the payload was loaded; the
    whole recording is rolled back in that case.
    """
    async for s in get_session():
        async with s.begin():
            for note_id in note_ids:
                res = await s.execute(
                    update(Note)
                    .where(Note.id == note_id)
                    .values(
                        times_sent=Note.times_sent + 1,
                        last_sent_at=delivered_at,
                        updated_at=delivered_at,
                    )
                    .returning(Note.id)
                )
                if res.scalar_one_or_none() is None:
                    raise NotFound("Note not found during reminder delivery.")

            await s.execute(
                update(ReminderSchedule)
                .where(ReminderSchedule.id == schedule_id)
                .values(last_run_at=delivered_at, updated_at=delivered_at)
            )


async def dispose_engine():
    global _engine, _session_maker
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_maker = None
