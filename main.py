import logging
from typing import List, Optional

from fastapi import Depends, FastAPI, Request, status
from fastapi.responses import JSONResponse

import db
from app.services import notes as notes_service
from app.services import push_tokens as push_tokens_service
from app.services import schedules as schedules_service
from app.types.contracts import (
    NoteIn,
    NoteMuteIn,
    NoteRecord,
    PushTokenIn,
    ScheduleEnabledIn,
    ScheduleIn,
    ScheduleRecord,
    ScheduleUpdateIn,
)
from app.types.errors import ReminderError, Unauthenticated
from app.workers import reminder as reminder_worker
from config import settings

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
_LOGGER = logging.getLogger(__name__)

app = FastAPI(title="Throw Notes")

@app.on_event("shutdown")
async def shutdown_event():
    await db.dispose_engine()


@app.exception_handler(ReminderError)
async def reminder_error_handler(request: Request, exc: ReminderError):
    if exc.status_code >= 500:
        _LOGGER.error("Request failed %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# --------------------------------------------
# Caller identity
# --------------------------------------------

def current_user_id(request: Request) -> str:
    """Identity set by the authenticating proxy in front of this API."""
    user_id: Optional[str] = request.headers.get(settings.AUTH_USER_HEADER)
    if not user_id or not user_id.strip():
        raise Unauthenticated()
    return user_id.strip()


# --------------------------------------------
# Notes
# --------------------------------------------

@app.get("/v1/notes", response_model=List[NoteRecord])
async def list_notes(user_id: str = Depends(current_user_id)):
    return await notes_service.list_notes(user_id)


@app.post("/v1/notes", response_model=NoteRecord, status_code=status.HTTP_201_CREATED)
async def create_note(body: NoteIn, user_id: str = Depends(current_user_id)):
    return await notes_service.create_note(user_id, body.content, body.priority)


@app.put("/v1/notes/{note_id}", status_code=status.HTTP_204_NO_CONTENT)
async def update_note(note_id: str, body: NoteIn, user_id: str = Depends(current_user_id)):
    await notes_service.update_note(user_id, note_id, body.content, body.priority)


@app.patch("/v1/notes/{note_id}/mute", status_code=status.HTTP_204_NO_CONTENT)
async def mute_note(note_id: str, body: NoteMuteIn, user_id: str = Depends(current_user_id)):
    await notes_service.set_muted(user_id, note_id, body.muted)


@app.delete("/v1/notes/{note_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_note(note_id: str, user_id: str = Depends(current_user_id)):
    await notes_service.delete_note(user_id, note_id)


# --------------------------------------------
# Reminder schedules
# --------------------------------------------

@app.get("/v1/schedules", response_model=List[ScheduleRecord])
async def list_schedules(user_id: str = Depends(current_user_id)):
    return await schedules_service.list_schedules(user_id)


@app.post("/v1/schedules", response_model=ScheduleRecord, status_code=status.HTTP_201_CREATED)
async def create_schedule(body: ScheduleIn, user_id: str = Depends(current_user_id)):
    return await schedules_service.create_schedule(
        user_id, body.hour, body.minute, body.timezone, body.notes_per_reminder
    )


@app.put("/v1/schedules/{schedule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def update_schedule(
    schedule_id: str,
    body: ScheduleUpdateIn,
    user_id: str = Depends(current_user_id),
):
    await schedules_service.update_schedule(
        user_id, schedule_id, body.hour, body.minute, body.timezone, body.notes_per_reminder
    )


@app.patch("/v1/schedules/{schedule_id}/enabled", status_code=status.HTTP_204_NO_CONTENT)
async def set_schedule_enabled(
    schedule_id: str,
    body: ScheduleEnabledIn,
    user_id: str = Depends(current_user_id),
):
    await schedules_service.set_enabled(user_id, schedule_id, body.enabled)


@app.delete("/v1/schedules/{schedule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_schedule(schedule_id: str, user_id: str = Depends(current_user_id)):
    await schedules_service.delete_schedule(user_id, schedule_id)


@app.post("/v1/reminders/test", status_code=status.HTTP_202_ACCEPTED)
async def trigger_test_reminder(user_id: str = Depends(current_user_id)):
    schedule_id = await schedules_service.trigger_test_reminder(
        user_id, reminder_worker.enqueue_delivery
    )
    return {"schedule_id": schedule_id}


# --------------------------------------------
# Push destinations
# --------------------------------------------

@app.post("/v1/push-tokens", status_code=status.HTTP_204_NO_CONTENT)
async def register_push_token(body: PushTokenIn, user_id: str = Depends(current_user_id)):
    await push_tokens_service.register_destination(user_id, body.token, body.platform)
