from .db import (
    Base,
    get_engine,
    create_all,
    insert_note,
    get_note,
    list_notes,
    update_note,
    delete_note,
    insert_schedule,
    get_schedule,
    list_schedules,
    update_schedule,
    delete_schedule,
    fetch_due_schedules,
    advance_schedule,
    upsert_destination,
    list_active_destinations,
    disable_destinations,
    record_delivery_success,
    dispose_engine,
)  # noqa: F401
