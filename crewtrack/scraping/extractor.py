"""
Best-effort extraction of participant rows from a results page.

Two heuristics, tried in order; the first that yields rows wins:

1. List mode, a results table with one row per participant. Cells are
   bib | name | team | split | ...
2. Detail mode, a single participant's page. Bib, name and team are found next to
   their labels, progress taken from the split row with the furthest
   recognisable checkpoint.

Nothing in here raises on odd markup; an unmatched pattern is just an empty
result.
"""
from __future__ import annotations

import re
from typing import Callable, Iterator, Optional

from bs4 import BeautifulSoup

from crewtrack.config import FULL_COURSE_KM, HALF_COURSE_KM
from crewtrack.models import ParticipantRecord

_BIB_RE = re.compile(r"^\d{1,6}$")
_BIB_IN_TEXT_RE = re.compile(r"\b(\d{1,6})\b")
_WS_RE = re.compile(r"\s+")

# Checkpoint markers, checked in this order
_KM_RE = re.compile(r"(\d+(?:\.\d+)?)\s*km?\b", re.IGNORECASE)
_HALF_RE = re.compile(r"\bhalf\b|하프", re.IGNORECASE)
_FULL_RE = re.compile(r"\bfull\b|\bfinish|풀코스|완주|골인|도착", re.IGNORECASE)
_CP_RE = re.compile(r"(\d+)\s*cp\b|\bcp\s*(\d+)", re.IGNORECASE)

_CLOCK_RE = re.compile(r"\b\d{1,2}:\d{2}(?::\d{2})?\b")

BIB_LABELS = ("bib", "bib no", "bib number", "race no", "race number", "number", "no", "배번", "배번호", "번호")
NAME_LABELS = ("name", "runner", "athlete", "participant", "이름", "성명", "선수명")
TEAM_LABELS = ("team", "club", "affiliation", "group", "팀", "팀명", "소속", "클럽", "동호회")


# ── Small matchers ────────────────────────────────────────────────────────────

def _text(node) -> str:
    return _WS_RE.sub(" ", node.get_text(" ", strip=True)).strip()


def _normalize_label(label: str) -> str:
    label = label.strip().lower().rstrip(":：.").lstrip("#").strip()
    return _WS_RE.sub(" ", label)


def parse_distance_marker(text: str) -> Optional[float]:
    """Map a checkpoint label ("30K", "Half", "CP3", ...) to km, or None."""
    if not text:
        return None
    m = _KM_RE.search(text)
    if m:
        return float(m.group(1))
    if _HALF_RE.search(text):
        return HALF_COURSE_KM
    if _FULL_RE.search(text):
        return FULL_COURSE_KM
    m = _CP_RE.search(text)
    if m:
        return float(m.group(1) or m.group(2))
    return None


def _row_cells(soup: BeautifulSoup, cell_tags) -> Iterator[list[str]]:
    """Cell texts of every row-like structure: table rows and ARIA rows."""
    for tr in soup.find_all("tr"):
        yield [_text(c) for c in tr.find_all(cell_tags, recursive=False)]
    for row in soup.find_all(attrs={"role": "row"}):
        if row.name == "tr":
            continue
        yield [_text(c) for c in row.find_all(attrs={"role": ["cell", "gridcell"]})]


def _cell_pairs(soup: BeautifulSoup) -> Iterator[tuple[str, str]]:
    for cells in _row_cells(soup, ["th", "td"]):
        for i in range(len(cells) - 1):
            yield cells[i], cells[i + 1]


def _term_pairs(soup: BeautifulSoup) -> Iterator[tuple[str, str]]:
    for dt in soup.find_all("dt"):
        dd = dt.find_next_sibling("dd")
        if dd is not None:
            yield _text(dt), _text(dd)


_LABEL_SHAPES: tuple[Callable[[BeautifulSoup], Iterator[tuple[str, str]]], ...] = (
    _cell_pairs,
    _term_pairs,
)


def _find_labeled(
    soup: BeautifulSoup,
    labels: tuple[str, ...],
    accept: Callable[[str], Optional[str]] = lambda v: v or None,
) -> Optional[str]:
    for shape in _LABEL_SHAPES:
        for label, value in shape(soup):
            if _normalize_label(label) in labels:
                accepted = accept(value)
                if accepted:
                    return accepted
    return None


def _bib_from_value(value: str) -> Optional[str]:
    m = _BIB_IN_TEXT_RE.search(value or "")
    return m.group(1) if m else None


# ── List mode ─────────────────────────────────────────────────────────────────

def extract_list_rows(soup: BeautifulSoup) -> list[ParticipantRecord]:
    rows: list[ParticipantRecord] = []
    for cells in _row_cells(soup, "td"):
        if len(cells) < 2:
            continue  # header or decorative row
        bib, name = cells[0], cells[1]
        if not _BIB_RE.match(bib) or not name:
            continue
        distance = None
        for text in cells[3:]:
            distance = parse_distance_marker(text)
            if distance is not None:
                break
        rows.append(ParticipantRecord(
            bib=bib,
            name=name,
            team=cells[2] if len(cells) > 2 else "",
            split=cells[3] if len(cells) > 3 else "",
            distance_mark_km=distance,
        ))
    return rows


# ── Detail mode ───────────────────────────────────────────────────────────────

def _current_checkpoint(soup: BeautifulSoup) -> tuple[Optional[float], str]:
    """(distance, split) of the row holding the furthest recognised checkpoint."""
    best_km: Optional[float] = None
    best_split = ""
    for cells in _row_cells(soup, ["th", "td"]):
        row_km: Optional[float] = None
        marker_idx = -1
        for i, text in enumerate(cells):
            km = parse_distance_marker(text)
            if km is not None and (row_km is None or km > row_km):
                row_km, marker_idx = km, i
        if row_km is None or (best_km is not None and row_km <= best_km):
            continue
        best_km = row_km
        best_split = ""
        for i, text in enumerate(cells):
            if i == marker_idx:
                continue
            m = _CLOCK_RE.search(text)
            if m:
                best_split = m.group(0)
                break
    return best_km, best_split


def extract_detail_row(soup: BeautifulSoup) -> list[ParticipantRecord]:
    bib = _find_labeled(soup, BIB_LABELS, _bib_from_value)
    name = _find_labeled(soup, NAME_LABELS)
    if not bib or not name:
        return []
    team = _find_labeled(soup, TEAM_LABELS) or ""
    distance, split = _current_checkpoint(soup)
    return [ParticipantRecord(bib=bib, name=name, team=team, split=split, distance_mark_km=distance)]


# ── Main entry point ──────────────────────────────────────────────────────────

def extract_participants(markup: Optional[str], team_filter: str = "") -> list[ParticipantRecord]:
    """
    Participant rows found in ``markup``; empty when neither heuristic matches.

    ``team_filter`` drops rows whose team is set and does not contain it
    (case-sensitive). Rows without a team are kept.
    """
    if not markup:
        return []
    soup = BeautifulSoup(markup, "html.parser")
    rows = extract_list_rows(soup) or extract_detail_row(soup)
    if team_filter:
        rows = [r for r in rows if not r.team or team_filter in r.team]
    return rows
