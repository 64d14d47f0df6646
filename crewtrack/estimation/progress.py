"""
Pure progress estimator. No I/O, no side-effects.

Projects how far a participant has run from their last confirmed checkpoint,
assuming they keep the average pace of that split. The projection is bounded
below by the checkpoint distance and above by the course distance.
"""
from __future__ import annotations

import math
import re
from datetime import datetime, timezone
from typing import Optional

from crewtrack.models import ParticipantRecord

_HMS_RE = re.compile(r"^(\d+):([0-5]\d):([0-5]\d)$")
_MS_RE = re.compile(r"^(\d+):([0-5]\d)$")
_SECONDS_RE = re.compile(r"^\d+$")

# Pace divisor used when the checkpoint sits at 0 km
PACE_FLOOR_KM = 1.0


def parse_duration(text: Optional[str]) -> Optional[int]:
    """
    Parse a split into seconds.

    Accepts "H:MM:SS", "M:SS" or a bare non-negative integer of seconds.
    Anything else returns None.
    """
    if text is None:
        return None
    s = text.strip()
    m = _HMS_RE.match(s)
    if m:
        h, mm, ss = map(int, m.groups())
        return h * 3600 + mm * 60 + ss
    m = _MS_RE.match(s)
    if m:
        mm, ss = map(int, m.groups())
        return mm * 60 + ss
    if _SECONDS_RE.match(s):
        return int(s)
    return None


def estimate_distance(
    distance_mark_km: Optional[float],
    split: Optional[str],
    race_start: Optional[datetime],
    course_distance_km: float,
    now: Optional[datetime] = None,
) -> Optional[float]:
    """Projected distance in km, or None when no estimate is possible."""
    if race_start is None or distance_mark_km is None:
        return None
    split_seconds = parse_duration(split)
    if split_seconds is None:
        return None

    divisor = distance_mark_km if distance_mark_km > 0 else PACE_FLOOR_KM
    pace = split_seconds / divisor  # seconds per km
    if pace <= 0:
        return None

    now = now or datetime.now(timezone.utc)
    elapsed = (now - race_start).total_seconds()
    if not math.isfinite(elapsed) or elapsed < 0:
        return distance_mark_km  # no forward projection before the start

    projected = elapsed / pace
    # Floor wins over the cap when the checkpoint is past the configured course
    upper = max(course_distance_km, distance_mark_km)
    return min(max(projected, distance_mark_km), upper)


def apply_estimate(
    record: ParticipantRecord,
    race_start: Optional[datetime],
    course_distance_km: float,
    now: Optional[datetime] = None,
) -> ParticipantRecord:
    est = estimate_distance(
        record.distance_mark_km, record.split, race_start, course_distance_km, now=now
    )
    return record.model_copy(update={"estimated_distance_km": est})
