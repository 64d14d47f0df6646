"""In-memory registry of tracked bibs and display-name overrides.

Lives for the process lifetime, no backing store. Every mutation is a single
assignment or a single set/dict operation, so readers on the event loop never
see a half-applied ``replace_all``.
"""
from __future__ import annotations

import logging
from typing import Iterable, Optional

from crewtrack.config import NAME_NOT_PROVIDED
from crewtrack.models import ParticipantRecord

log = logging.getLogger(__name__)


def normalize_bib(bib) -> str:
    return str(bib if bib is not None else "").strip()


class Registry:
    def __init__(self, bibs: Iterable = ()) -> None:
        self._bibs: frozenset[str] = frozenset(b for b in map(normalize_bib, bibs) if b)
        self._names: dict[str, str] = {}

    # ── Mutation ──────────────────────────────────────────────────────────────

    def add(self, bib) -> bool:
        """Track ``bib``. Returns False if it was already tracked or blank."""
        b = normalize_bib(bib)
        if not b or b in self._bibs:
            return False
        self._bibs = self._bibs | {b}
        return True

    def set_display_name(self, bib, name: str) -> None:
        """Upsert a name override. Does not change which bibs are tracked."""
        b = normalize_bib(bib)
        if not b:
            return
        name = (name or "").strip()
        if name:
            self._names[b] = name
        else:
            self._names.pop(b, None)

    def register(self, bib, display_name: Optional[str] = None) -> str:
        """Self-registration: track the bib and record its display name, if any."""
        b = normalize_bib(bib)
        if not b:
            raise ValueError("bib must not be blank")
        self.add(b)
        if display_name and display_name.strip():
            self.set_display_name(b, display_name)
        log.info("Registered bib %s", b)
        return b

    def replace_all(self, bibs: Iterable) -> int:
        """Swap the tracked set for ``bibs`` in one assignment; names are kept."""
        new_bibs = frozenset(b for b in map(normalize_bib, bibs) if b)
        self._bibs = new_bibs
        log.info("Registry replaced: %d bibs tracked", len(new_bibs))
        return len(new_bibs)

    # ── Queries ───────────────────────────────────────────────────────────────

    @property
    def bibs(self) -> frozenset[str]:
        return self._bibs

    def display_name(self, bib) -> Optional[str]:
        return self._names.get(normalize_bib(bib))

    def __len__(self) -> int:
        return len(self._bibs)

    def __contains__(self, bib) -> bool:
        return normalize_bib(bib) in self._bibs

    # ── Row shaping ───────────────────────────────────────────────────────────

    def apply_overrides(self, rows: list[ParticipantRecord]) -> list[ParticipantRecord]:
        names = self._names
        return [
            r.model_copy(update={"name": names[r.bib]}) if r.bib in names else r
            for r in rows
        ]

    def filter(self, rows: list[ParticipantRecord]) -> list[ParticipantRecord]:
        """Identity while the registry is empty, else keep registered bibs only."""
        bibs = self._bibs
        if not bibs:
            return list(rows)
        return [r for r in rows if r.bib in bibs]

    def build_fallback(self) -> list[ParticipantRecord]:
        """One placeholder row per tracked bib, so nobody disappears from view."""
        names = self._names
        return [
            ParticipantRecord(bib=b, name=names.get(b, NAME_NOT_PROVIDED))
            for b in sorted(self._bibs, key=_bib_sort_key)
        ]


def _bib_sort_key(bib: str) -> tuple[int, int, str]:
    if bib.isdigit():
        return (0, int(bib), bib)
    return (1, 0, bib)
