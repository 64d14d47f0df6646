"""Shared pytest fixtures for crew tracker tests."""

from datetime import datetime, timedelta, timezone

import httpx
import pytest

from crewtrack.broadcast.snapshot_broadcaster import SnapshotBroadcaster
from crewtrack.config import TrackerSettings
from crewtrack.registry import Registry
from crewtrack.scheduler.jobs import PipelineOrchestrator
from crewtrack.scraping.fetcher import Fetcher
from crewtrack.store import SnapshotStore

SOURCE_URL = "https://results.example.com/live"
NOW = datetime(2025, 11, 2, 11, 0, 0, tzinfo=timezone.utc)

LIST_HTML = """
<html><body>
<table class="results">
  <tr><th>Bib</th><th>Name</th><th>Team</th><th>Split</th><th>Point</th></tr>
  <tr><td>101</td><td>Kim</td><td>TeamA</td><td>2:15:30</td><td>30k</td></tr>
  <tr><td>202</td><td>Lee</td><td>TeamB</td><td>1:02:10</td><td>15K</td></tr>
  <tr><td>303</td><td>Park</td><td>TeamA Seoul</td><td>abc</td><td>10km</td></tr>
  <tr><td colspan="5">Updated every minute</td></tr>
</table>
</body></html>
"""

DETAIL_HTML = """
<html><body>
<dl>
  <dt>배번</dt><dd>5123</dd>
  <dt>이름</dt><dd>홍길동</dd>
  <dt>소속</dt><dd>Crew Runners</dd>
</dl>
<table>
  <tr><th>구간</th><th>기록</th></tr>
  <tr><td>5K</td><td>0:25:10</td></tr>
  <tr><td>10K</td><td>0:51:02</td></tr>
  <tr><td>하프</td><td>1:49:40</td></tr>
</table>
</body></html>
"""


class FakeClock:
    """Monotonic clock the tests can move forward by hand."""

    def __init__(self, start: float = 1000.0):
        self.value = start

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


@pytest.fixture
def settings() -> TrackerSettings:
    return TrackerSettings(
        source_url=SOURCE_URL,
        race_start=NOW - timedelta(hours=3),
        course_distance_km=42.195,
        refresh_cooldown=30,
        poll_interval=30,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def page():
    """Mutable response served by the mock transport: set .status / .body."""

    class Page:
        status = 200
        body = LIST_HTML
        requests: list = []

    Page.requests = []
    return Page


@pytest.fixture
def transport(page) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        page.requests.append(request)
        return httpx.Response(page.status, text=page.body)

    return httpx.MockTransport(handler)


@pytest.fixture
def make_orchestrator(settings, transport, clock):
    def _make(registry: Registry | None = None, settings_override: TrackerSettings | None = None):
        cfg = settings_override or settings
        store = SnapshotStore()
        fetcher = Fetcher(cfg.source_url, timeout=cfg.fetch_timeout, user_agent=cfg.user_agent, transport=transport)
        return PipelineOrchestrator(
            cfg,
            registry if registry is not None else Registry(),
            store,
            SnapshotBroadcaster(store),
            fetcher,
            clock=clock,
            now=lambda: NOW,
        )

    return _make
