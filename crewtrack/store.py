"""Single-slot holder for the current snapshot."""
from __future__ import annotations

from crewtrack.models import Snapshot


class SnapshotStore:
    def __init__(self, initial: Snapshot | None = None) -> None:
        self._current = initial or Snapshot()

    def current(self) -> Snapshot:
        return self._current

    def publish(self, snapshot: Snapshot) -> None:
        # Snapshots are frozen; swapping the reference is the whole publish
        self._current = snapshot
