"""Pydantic models for participant rows, snapshots and API payloads."""
from __future__ import annotations

from typing import Optional, Union

from pydantic import BaseModel, Field


# ── Participants ──────────────────────────────────────────────────────────────

class ParticipantRecord(BaseModel):
    bib: str                                       # digits; not deduplicated
    name: str
    team: str = ""
    split: str = ""                                # raw checkpoint text, opaque
    distance_mark_km: Optional[float] = None       # last confirmed checkpoint
    estimated_distance_km: Optional[float] = None  # derived each cycle


# ── Snapshot ──────────────────────────────────────────────────────────────────

class Snapshot(BaseModel):
    """Current view of all tracked participants. Replaced, never merged."""

    model_config = {"frozen": True}

    ts: int = 0                                    # epoch milliseconds
    rows: list[ParticipantRecord] = Field(default_factory=list)


# ── API payloads ──────────────────────────────────────────────────────────────

class RefreshResult(BaseModel):
    accepted: bool = True
    timestamp: int                                 # ts of the published snapshot
    row_count: int

    @classmethod
    def from_snapshot(cls, snapshot: Snapshot) -> "RefreshResult":
        return cls(timestamp=snapshot.ts, row_count=len(snapshot.rows))


class JoinBody(BaseModel):
    bib: Union[str, int]
    display: Optional[str] = None


class WhitelistBody(BaseModel):
    bibs: list[Union[str, int]] = Field(default_factory=list)
