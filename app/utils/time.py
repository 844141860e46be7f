"""Wall-clock to absolute-instant conversion for daily reminder slots.

All instants returned here are timezone-aware UTC datetimes.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone as dt_timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.types.errors import InvalidTimezone

UTC = dt_timezone.utc

# Today's occurrence must be at least this far ahead of "from" to be used.
_GRACE = timedelta(seconds=1)
_MAX_ITERATIONS = 4

_ZONE_CACHE: dict[str, ZoneInfo] = {}


def _get_zone(name: str) -> ZoneInfo:
    if not isinstance(name, str) or not name.strip():
        raise InvalidTimezone(f"Invalid timezone: {name!r}")
    zone = _ZONE_CACHE.get(name)
    if zone is not None:
        return zone
    try:
        zone = ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError) as exc:
        raise InvalidTimezone(f"Invalid timezone: {name}") from exc
    _ZONE_CACHE[name] = zone
    return zone


def assert_valid_timezone(name: str) -> None:
    """Raise ``InvalidTimezone`` unless *name* is a resolvable IANA zone."""
    _get_zone(name)


def _wall_clock(at: datetime, zone: ZoneInfo) -> datetime:
    """Render *at* in *zone* and re-label the wall-clock reading as UTC."""
    return at.astimezone(zone).replace(tzinfo=UTC)


def local_to_utc(local: datetime, zone: ZoneInfo) -> datetime:
    """Resolve a naive wall-clock *local* in *zone* to an absolute instant.

    Guess the instant, render it back in the zone, shift by the wall-clock
    delta and try again. Offsets change at most once around any given day, so
    this settles within a few rounds. Skipped or repeated wall-clock times
    (DST) resolve to whichever fixed point is reached first.
    """
    target = local.replace(tzinfo=UTC)
    guess = target
    for _ in range(_MAX_ITERATIONS):
        difference = target - _wall_clock(guess, zone)
        if not difference:
            return guess
        guess += difference
    return guess


def compute_next_run_at(
    hour: int,
    minute: int,
    timezone: str,
    from_dt: datetime | None = None,
) -> datetime:
    """Next instant at which *hour*:*minute* occurs in *timezone* after *from_dt*."""
    zone = _get_zone(timezone)

    if from_dt is None:
        from_dt = datetime.now(UTC)
    elif from_dt.tzinfo is None:
        raise ValueError("from_dt must be timezone-aware")

    now_local = from_dt.astimezone(zone)
    today = date(now_local.year, now_local.month, now_local.day)

    candidate = local_to_utc(datetime(today.year, today.month, today.day, hour, minute), zone)
    if candidate > from_dt + _GRACE:
        return candidate

    tomorrow = today + timedelta(days=1)
    return local_to_utc(datetime(tomorrow.year, tomorrow.month, tomorrow.day, hour, minute), zone)
