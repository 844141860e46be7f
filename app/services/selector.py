"""Priority/decay/recency weighted note picking.

Sampling is without replacement and deliberately unseeded; two calls with the
same pool are independent draws.
"""

from __future__ import annotations

import random
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from app.types.contracts import NoteCandidate

BASE_WEIGHTS = {"high": 6.0, "medium": 3.0, "low": 1.0}
SEND_DECAY = 0.6
MIN_RECENCY = 0.15
RECENCY_WINDOW_SECONDS = 86_400.0

_RNG = random.Random()


def note_weight(note: NoteCandidate, now: datetime) -> float:
    base = BASE_WEIGHTS.get(note.priority, 1.0)
    decay = 1.0 / (1.0 + note.times_sent * SEND_DECAY)

    if note.last_sent_at is None:
        recency = 1.0
    else:
        elapsed = (now - note.last_sent_at).total_seconds() / RECENCY_WINDOW_SECONDS
        recency = max(MIN_RECENCY, min(1.0, elapsed))

    return base * decay * recency


def _pick_one(
    pool: Sequence[NoteCandidate],
    now: datetime,
    rng: random.Random,
) -> Optional[NoteCandidate]:
    if not pool:
        return None

    weighted = [(note, note_weight(note, now)) for note in pool]
    total = sum(weight for _, weight in weighted)
    if total <= 0:
        return pool[0]

    cursor = rng.random() * total
    for note, weight in weighted:
        cursor -= weight
        if cursor <= 0:
            return note
    # float rounding can leave a sliver of cursor behind
    return weighted[-1][0]


def pick_weighted(
    candidates: Sequence[NoteCandidate],
    count: int,
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
) -> List[NoteCandidate]:
    """Draw up to *count* distinct notes; the result is in selection order."""
    now = now or datetime.now(timezone.utc)
    rng = rng or _RNG

    remaining = list(candidates)
    selected: List[NoteCandidate] = []

    for _ in range(min(count, len(remaining))):
        chosen = _pick_one(remaining, now, rng)
        if chosen is None:
            break
        selected.append(chosen)
        remaining = [note for note in remaining if note.id != chosen.id]

    return selected
