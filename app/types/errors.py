"""Error taxonomy shared by the API, the services and the workers.

Every error carries a machine-readable ``code`` plus a human ``message`` so the
HTTP layer can render it without knowing the concrete class.
"""

from __future__ import annotations


class ReminderError(Exception):
    code = "INTERNAL"
    status_code = 500
    default_message = "Unexpected error."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message}


class InvalidTimezone(ReminderError):
    code = "INVALID_TIMEZONE"
    status_code = 400
    default_message = "Timezone is invalid."


class InvalidTime(ReminderError):
    code = "INVALID_TIME"
    status_code = 400
    default_message = "Time must be in 24-hour range."


class InvalidNotesPerReminder(ReminderError):
    code = "INVALID_NOTES_PER_REMINDER"
    status_code = 400
    default_message = "Notes per reminder must be between 1 and 10."


class InvalidContent(ReminderError):
    code = "INVALID_CONTENT"
    status_code = 400
    default_message = "Note content cannot be empty."


class ContentTooLong(ReminderError):
    code = "CONTENT_TOO_LONG"
    status_code = 400
    default_message = "Note content must be 1000 characters or less."


class InvalidToken(ReminderError):
    code = "INVALID_TOKEN"
    status_code = 400
    default_message = "Token is not a valid Expo push token."


class NotFound(ReminderError):
    code = "NOT_FOUND"
    status_code = 404
    default_message = "Not found."


class NoEnabledSchedule(ReminderError):
    code = "NO_ENABLED_SCHEDULE"
    status_code = 409
    default_message = "Enable at least one reminder time before sending a test reminder."


class Unauthenticated(ReminderError):
    code = "UNAUTHENTICATED"
    status_code = 401
    default_message = "You must be logged in."
