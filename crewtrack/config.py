"""Central configuration: results source, course constants, refresh timing."""
from __future__ import annotations

import os
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from crewtrack.exceptions import ConfigurationError

# ── Results source ────────────────────────────────────────────────────────────
SOURCE_URL = os.environ.get("SOURCE_URL", "").strip()
USER_AGENT = os.environ.get("USER_AGENT", "crew-tracker/1.1")
FETCH_TIMEOUT_SECONDS = os.environ.get("FETCH_TIMEOUT_SECONDS", "20")
TEAM_NAME = os.environ.get("TEAM_NAME", "").strip()  # case-sensitive substring

# ── Refresh timing ────────────────────────────────────────────────────────────
POLL_INTERVAL_SECONDS = os.environ.get("POLL_INTERVAL_SECONDS", "30")
REFRESH_COOLDOWN_SECONDS = os.environ.get("REFRESH_COOLDOWN_SECONDS", "30")

# ── Course ────────────────────────────────────────────────────────────────────
RACE_START = os.environ.get("RACE_START", "").strip()  # ISO-8601, naive → UTC
COURSE_DISTANCE_KM = os.environ.get("COURSE_DISTANCE_KM", "42.195")

HALF_COURSE_KM = 21.0975
FULL_COURSE_KM = 42.195

# ── Broadcast ─────────────────────────────────────────────────────────────────
SUBSCRIBER_QUEUE_SIZE = 16
KEEPALIVE_SECONDS = 15.0

# Shown for registered bibs that never supplied a display name
NAME_NOT_PROVIDED = "(name not provided)"


class TrackerSettings(BaseModel):
    """Immutable process-wide settings consumed by the pipeline."""

    model_config = {"frozen": True}

    source_url: str = ""
    user_agent: str = "crew-tracker/1.1"
    fetch_timeout: float = Field(20.0, gt=0)
    team_filter: str = ""
    poll_interval: float = Field(30.0, gt=0)
    refresh_cooldown: float = Field(30.0, ge=0)
    race_start: Optional[datetime] = None
    course_distance_km: float = Field(FULL_COURSE_KM, gt=0)

    @field_validator("race_start", mode="before")
    @classmethod
    def _blank_start_is_unset(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("race_start")
    @classmethod
    def _naive_start_is_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


def load_settings() -> TrackerSettings:
    """Build settings from the environment-derived constants above."""
    try:
        return TrackerSettings(
            source_url=SOURCE_URL,
            user_agent=USER_AGENT,
            fetch_timeout=FETCH_TIMEOUT_SECONDS,
            team_filter=TEAM_NAME,
            poll_interval=POLL_INTERVAL_SECONDS,
            refresh_cooldown=REFRESH_COOLDOWN_SECONDS,
            race_start=RACE_START,
            course_distance_km=COURSE_DISTANCE_KM,
        )
    except ValidationError as e:
        first = e.errors()[0]
        parameter = ".".join(str(p) for p in first.get("loc", ()))
        raise ConfigurationError(
            f"Invalid configuration: {first.get('msg')}",
            parameter=parameter,
            received=first.get("input"),
        ) from e
