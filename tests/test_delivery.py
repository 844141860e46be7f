from datetime import datetime, timedelta, timezone

import pytest

from app.services import delivery
from app.services.payload import load_delivery_payload
from app.types.contracts import PushTicket
from app.types.errors import NotFound
from app.utils import push
from app.workers import reminder as reminder_worker
from config import settings

UTC = timezone.utc
NOW = datetime(2025, 6, 2, 13, 0, tzinfo=UTC)


class FakeGateway:
    """Stands in for the Expo push endpoint; records every batch it receives."""

    def __init__(self, tickets=None, on_send=None):
        self.tickets = tickets
        self.on_send = on_send
        self.batches = []

    def __call__(self, messages):
        self.batches.append(list(messages))
        if self.on_send:
            self.on_send()
        if self.tickets is None:
            return [PushTicket(status="ok") for _ in messages]
        return push.parse_tickets({"data": self.tickets})


@pytest.fixture
def gateway(monkeypatch):
    fake = FakeGateway()
    monkeypatch.setattr(push, "send_push_messages", fake)
    return fake


@pytest.mark.asyncio
async def test_partial_failure_disables_one_destination_and_counts_note_once(store, gateway):
    schedule = store.add_schedule()
    note = store.add_note(priority="high", times_sent=2)
    good = store.add_destination()
    dead = store.add_destination()
    gateway.tickets = [
        {"status": "ok", "id": "ticket-1"},
        {"status": "error", "message": "gone", "details": {"error": "DeviceNotRegistered"}},
    ]

    result = await delivery.deliver_for_schedule(schedule.id, now=NOW)

    assert result.delivered is True
    assert result.token_count == 2
    assert [m.to for m in gateway.batches[0]] == [good.token, dead.token]
    assert store.destinations[dead.token].disabled is True
    assert store.destinations[good.token].disabled is False
    assert store.notes[note.id].times_sent == 3
    assert store.notes[note.id].last_sent_at == NOW
    assert store.schedules[schedule.id].last_run_at == NOW


@pytest.mark.asyncio
async def test_messages_carry_note_and_schedule_metadata(store, gateway):
    schedule = store.add_schedule()
    note = store.add_note(content="Call mom", priority="medium")
    dest = store.add_destination()

    await delivery.deliver_for_schedule(schedule.id, now=NOW)

    [message] = gateway.batches[0]
    assert message.to == dest.token
    assert message.title == settings.PUSH_TITLE
    assert message.body == "Call mom"
    assert message.sound == "default"
    assert message.data == {"noteId": note.id, "scheduleId": schedule.id, "priority": "medium"}


@pytest.mark.asyncio
async def test_more_notes_requested_than_exist(store, gateway):
    schedule = store.add_schedule(notes_per_reminder=3)
    notes = [store.add_note(), store.add_note(priority="high")]
    tokens = [store.add_destination().token, store.add_destination().token]

    result = await delivery.deliver_for_schedule(schedule.id, now=NOW)

    assert result.delivered is True
    batch = gateway.batches[0]
    assert len(batch) == 4
    assert {m.data["noteId"] for m in batch} == {n.id for n in notes}
    # note-major ordering: each note fans out over every token in turn
    assert [m.to for m in batch] == tokens + tokens
    assert all(store.notes[n.id].times_sent == 1 for n in notes)


@pytest.mark.asyncio
async def test_no_destinations_means_no_send(store, gateway):
    schedule = store.add_schedule()
    store.add_note()
    store.add_destination(disabled=True)

    result = await delivery.deliver_for_schedule(schedule.id, now=NOW)

    assert (result.delivered, result.token_count) == (False, 0)
    assert gateway.batches == []


@pytest.mark.asyncio
async def test_no_notes_reports_token_count(store, gateway):
    schedule = store.add_schedule()
    store.add_destination()
    store.add_destination()
    store.add_note(user_id="someone-else")

    result = await delivery.deliver_for_schedule(schedule.id, now=NOW)

    assert (result.delivered, result.token_count) == (False, 2)
    assert gateway.batches == []
    assert store.schedules[schedule.id].last_run_at is None


@pytest.mark.asyncio
async def test_missing_or_disabled_schedule(store, gateway):
    disabled = store.add_schedule(enabled=False)
    store.add_note()
    store.add_destination()

    assert (await delivery.deliver_for_schedule("does-not-exist")).delivered is False
    result = await delivery.deliver_for_schedule(disabled.id)
    assert (result.delivered, result.token_count) == (False, 0)
    assert gateway.batches == []


@pytest.mark.asyncio
async def test_all_errors_record_nothing(store, gateway):
    schedule = store.add_schedule()
    note = store.add_note()
    dest = store.add_destination()
    gateway.tickets = [{"status": "error", "details": {"error": "MessageRateExceeded"}}]

    result = await delivery.deliver_for_schedule(schedule.id, now=NOW)

    assert result.delivered is False
    assert store.notes[note.id].times_sent == 0
    assert store.destinations[dest.token].disabled is False
    assert store.schedules[schedule.id].last_run_at is None


@pytest.mark.asyncio
async def test_short_ticket_list_ignores_unmatched_messages(store, gateway):
    schedule = store.add_schedule()
    note = store.add_note()
    store.add_destination()
    second = store.add_destination()
    gateway.tickets = [{"status": "ok"}]

    result = await delivery.deliver_for_schedule(schedule.id, now=NOW)

    assert result.delivered is True
    assert store.notes[note.id].times_sent == 1
    assert store.destinations[second.token].disabled is False


@pytest.mark.asyncio
async def test_extra_tickets_are_ignored(store, gateway):
    schedule = store.add_schedule()
    note = store.add_note()
    store.add_destination()
    gateway.tickets = [
        {"status": "ok"},
        {"status": "ok"},
        {"status": "error", "details": {"error": "DeviceNotRegistered"}},
    ]

    result = await delivery.deliver_for_schedule(schedule.id, now=NOW)

    assert result.delivered is True
    assert store.notes[note.id].times_sent == 1
    assert not any(d.disabled for d in store.destinations.values())


@pytest.mark.asyncio
async def test_unreadable_ticket_does_not_block_the_rest(store, gateway):
    schedule = store.add_schedule()
    note = store.add_note()
    unknown = store.add_destination()
    dead = store.add_destination()
    store.add_destination()
    gateway.tickets = [
        {"status": "queued", "id": 7},
        {"status": "error", "details": {"error": "DeviceNotRegistered"}},
        {"status": "ok"},
    ]

    result = await delivery.deliver_for_schedule(schedule.id, now=NOW)

    assert result.delivered is True
    assert store.notes[note.id].times_sent == 1
    assert store.destinations[dead.token].disabled is True
    assert store.destinations[unknown.token].disabled is False


@pytest.mark.asyncio
async def test_note_deleted_mid_flight_is_a_hard_fault(store, gateway):
    schedule = store.add_schedule()
    note = store.add_note()
    store.add_destination()
    dead = store.add_destination()
    gateway.tickets = [
        {"status": "ok"},
        {"status": "error", "details": {"error": "DeviceNotRegistered"}},
    ]
    gateway.on_send = lambda: store.notes.pop(note.id)

    with pytest.raises(NotFound):
        await delivery.deliver_for_schedule(schedule.id, now=NOW)

    assert store.destinations[dead.token].disabled is True
    assert store.schedules[schedule.id].last_run_at is None


@pytest.mark.asyncio
async def test_long_content_is_truncated(store, gateway):
    schedule = store.add_schedule()
    store.add_note(content="x" * 400)
    store.add_destination()

    await delivery.deliver_for_schedule(schedule.id, now=NOW)

    body = gateway.batches[0][0].body
    assert len(body) == 180
    assert body.endswith("...")
    assert body[:177] == "x" * 177


def test_truncate_body_leaves_short_text_alone():
    assert delivery.truncate_body("x" * 180) == "x" * 180
    assert delivery.truncate_body("x" * 181) == "x" * 177 + "..."


@pytest.mark.asyncio
async def test_payload_snapshot(store):
    schedule = store.add_schedule(notes_per_reminder=2)
    older = store.add_note(created_at=NOW - timedelta(days=2))
    newer = store.add_note(created_at=NOW - timedelta(days=1), last_sent_at=NOW, times_sent=4)
    live = store.add_destination()
    store.add_destination(disabled=True)
    store.add_destination(user_id="someone-else")

    payload = await load_delivery_payload(schedule.id)

    assert payload.schedule_id == schedule.id
    assert payload.notes_per_reminder == 2
    assert [n.id for n in payload.notes] == [older.id, newer.id]
    assert payload.notes[1].times_sent == 4
    assert payload.tokens == [live.token]


@pytest.mark.asyncio
async def test_payload_caps_candidate_notes(store, monkeypatch):
    monkeypatch.setattr(settings, "NOTE_CANDIDATE_LIMIT", 3)
    schedule = store.add_schedule()
    for day in range(5):
        store.add_note(created_at=NOW - timedelta(days=day))

    payload = await load_delivery_payload(schedule.id)

    assert len(payload.notes) == 3


@pytest.mark.asyncio
async def test_muted_notes_excluded_when_configured(store, monkeypatch):
    schedule = store.add_schedule()
    muted = store.add_note(is_muted=True)
    audible = store.add_note()

    included = await load_delivery_payload(schedule.id)
    assert {n.id for n in included.notes} == {muted.id, audible.id}

    monkeypatch.setattr(settings, "EXCLUDE_MUTED_NOTES", True)
    filtered = await load_delivery_payload(schedule.id)
    assert [n.id for n in filtered.notes] == [audible.id]


def test_deliver_task_returns_result(store, gateway):
    schedule = store.add_schedule()
    store.add_note()
    store.add_destination()

    result = reminder_worker.deliver.apply(args=[schedule.id]).get()

    assert result == {"delivered": True, "token_count": 1}


def test_deliver_task_is_acked_on_receipt():
    assert reminder_worker.deliver.acks_late is False
    assert reminder_worker.dispatch_due.acks_late is True
