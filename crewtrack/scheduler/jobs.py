"""
Refresh pipeline, the single write authority for the published snapshot.

Flow per cycle:
  fetch → extract (list, else detail) → display-name overrides → estimate
  → registry filter → fallback rows if nothing matched → publish → broadcast

Triggers:
  every POLL_INTERVAL  → scheduled_refresh()   (APScheduler interval job)
  viewer request       → request_refresh()     (rejected inside the cooldown)
  admin request        → force_refresh()       (no cooldown)
"""
from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from crewtrack.broadcast.snapshot_broadcaster import SnapshotBroadcaster
from crewtrack.config import TrackerSettings
from crewtrack.estimation.progress import apply_estimate
from crewtrack.exceptions import FetchError, RefreshTooSoon
from crewtrack.models import ParticipantRecord, Snapshot
from crewtrack.registry import Registry
from crewtrack.scraping.extractor import extract_participants
from crewtrack.scraping.fetcher import Fetcher
from crewtrack.store import SnapshotStore

log = logging.getLogger(__name__)

REFRESH_JOB_ID = "refresh_snapshot"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PipelineOrchestrator:
    def __init__(
        self,
        settings: TrackerSettings,
        registry: Registry,
        store: SnapshotStore,
        broadcaster: SnapshotBroadcaster,
        fetcher: Fetcher,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.settings = settings
        self.registry = registry
        self.store = store
        self.broadcaster = broadcaster
        self.fetcher = fetcher
        self._clock = clock
        self._now = now
        self._lock = asyncio.Lock()
        self._last_started: Optional[float] = None

    # ── Stages ────────────────────────────────────────────────────────────────

    async def _scrape(self) -> list[ParticipantRecord]:
        try:
            markup = await self.fetcher.fetch()
        except FetchError as e:
            log.warning("Scrape skipped: %s", e.message, extra={"error": e.to_dict()})
            return []
        if markup is None:
            return []
        try:
            rows = extract_participants(markup, team_filter=self.settings.team_filter)
        except Exception:
            log.exception("Extraction failed for %s", self.fetcher.source_url)
            return []
        if not rows:
            log.info("No participant rows recognised in %s", self.fetcher.source_url)
        return rows

    def _shape(self, rows: list[ParticipantRecord], now: datetime) -> list[ParticipantRecord]:
        rows = self.registry.apply_overrides(rows)
        rows = [
            apply_estimate(r, self.settings.race_start, self.settings.course_distance_km, now=now)
            for r in rows
        ]
        filtered = self.registry.filter(rows)
        if not filtered and len(self.registry):
            return self.registry.build_fallback()
        return filtered

    # ── Triggers ──────────────────────────────────────────────────────────────

    async def run_cycle(self) -> Snapshot:
        """Run one full cycle. Always ends with a publish, even with zero rows."""
        async with self._lock:
            self._last_started = self._clock()
            scraped = await self._scrape()
            now = self._now()
            rows = self._shape(scraped, now)
            snapshot = Snapshot(ts=int(now.timestamp() * 1000), rows=rows)
            self.store.publish(snapshot)
            delivered = await self.broadcaster.push(snapshot)
        log.info(
            "Refresh done: %d scraped, %d published, %d subscribers",
            len(scraped), len(rows), delivered,
        )
        return snapshot

    def cooldown_remaining(self) -> float:
        if self._last_started is None:
            return 0.0
        elapsed = self._clock() - self._last_started
        return max(0.0, self.settings.refresh_cooldown - elapsed)

    async def request_refresh(self) -> Snapshot:
        """Manual refresh; raises RefreshTooSoon without touching any state."""
        remaining = self.cooldown_remaining()
        if remaining > 0 or self._lock.locked():
            raise RefreshTooSoon(remaining)
        return await self.run_cycle()

    async def force_refresh(self) -> Snapshot:
        return await self.run_cycle()


# ── Periodic job ──────────────────────────────────────────────────────────────

async def scheduled_refresh(orchestrator: PipelineOrchestrator) -> None:
    try:
        await orchestrator.run_cycle()
    except Exception:
        # Keep the interval job alive; the next tick tries again
        log.exception("Scheduled refresh failed")


def setup_scheduler(orchestrator: PipelineOrchestrator, poll_interval: float) -> AsyncIOScheduler:
    """Start the scheduler with one interval refresh job, first run immediately."""
    scheduler = AsyncIOScheduler(timezone="UTC")
    scheduler.add_job(
        scheduled_refresh,
        "interval",
        seconds=poll_interval,
        args=[orchestrator],
        id=REFRESH_JOB_ID,
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        next_run_time=datetime.now(timezone.utc),
    )
    scheduler.start()
    log.info("Refresh job scheduled every %.0fs", poll_interval)
    return scheduler
