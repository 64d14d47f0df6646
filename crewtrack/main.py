"""
FastAPI application entry point.

Routes:
  GET  /api/crew              current snapshot {ts, rows}
  GET  /events                server-sent events, one message per publish
  WS   /ws/crew               same messages over a WebSocket, plus
                              {"type": "ping"} keepalive frames when idle
  POST /api/refresh           manual refresh (cooldown applies)

  POST /api/join              register a bib with an optional display name

  POST /api/admin/whitelist   replace the tracked bib set
  POST /api/admin/refresh     immediate refresh, no cooldown

  GET  /healthz

Credential checks and the HTML viewer/registration pages live in front of
this service; nothing here authenticates.

Run with:  uvicorn crewtrack.main:app
"""
from __future__ import annotations

import logging
import math
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional

import httpx
from fastapi import (
    APIRouter, Depends, FastAPI, HTTPException, Request, WebSocket,
    WebSocketDisconnect,
)
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, StreamingResponse

from crewtrack.broadcast.snapshot_broadcaster import SnapshotBroadcaster
from crewtrack.config import KEEPALIVE_SECONDS, TrackerSettings, load_settings
from crewtrack.exceptions import RefreshTooSoon
from crewtrack.models import JoinBody, RefreshResult, Snapshot, WhitelistBody
from crewtrack.registry import Registry, normalize_bib
from crewtrack.scheduler.jobs import PipelineOrchestrator, setup_scheduler
from crewtrack.scraping.fetcher import Fetcher
from crewtrack.store import SnapshotStore

log = logging.getLogger("uvicorn.error")


# ── Process-wide context ──────────────────────────────────────────────────────

@dataclass
class Tracker:
    settings: TrackerSettings
    registry: Registry
    store: SnapshotStore
    broadcaster: SnapshotBroadcaster
    fetcher: Fetcher
    orchestrator: PipelineOrchestrator


def build_tracker(
    settings: TrackerSettings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Tracker:
    registry = Registry()
    store = SnapshotStore()
    broadcaster = SnapshotBroadcaster(store)
    fetcher = Fetcher(
        settings.source_url,
        timeout=settings.fetch_timeout,
        user_agent=settings.user_agent,
        transport=transport,
    )
    orchestrator = PipelineOrchestrator(settings, registry, store, broadcaster, fetcher)
    return Tracker(settings, registry, store, broadcaster, fetcher, orchestrator)


def get_tracker(request: Request) -> Tracker:
    return request.app.state.tracker


def format_sse(message: str) -> str:
    return f"data: {message}\n\n"


router = APIRouter()


# ── Viewer ────────────────────────────────────────────────────────────────────

@router.get("/api/crew", response_model=Snapshot)
async def get_crew(tracker: Tracker = Depends(get_tracker)):
    return tracker.store.current()


@router.get("/events")
async def events(request: Request, tracker: Tracker = Depends(get_tracker)):
    async def stream():
        sub = tracker.broadcaster.subscribe()
        try:
            while True:
                msg = await sub.next(timeout=KEEPALIVE_SECONDS)
                if msg is None:
                    if await request.is_disconnected():
                        break
                    yield ": keepalive\n\n"
                    continue
                yield format_sse(msg)
        finally:
            sub.close()

    return StreamingResponse(
        stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


@router.websocket("/ws/crew")
async def ws_crew(websocket: WebSocket):
    tracker: Tracker = websocket.app.state.tracker
    await websocket.accept()
    sub = tracker.broadcaster.subscribe()
    try:
        while True:
            msg = await sub.next(timeout=KEEPALIVE_SECONDS)
            if msg is None:
                # Control frame, not a snapshot: it has "type" and no "ts"
                await websocket.send_json({"type": "ping"})
                continue
            await websocket.send_text(msg)
    except WebSocketDisconnect:
        pass
    except Exception:
        log.exception("WebSocket error on /ws/crew")
    finally:
        sub.close()


@router.post("/api/refresh", response_model=RefreshResult)
async def refresh(tracker: Tracker = Depends(get_tracker)):
    try:
        snapshot = await tracker.orchestrator.request_refresh()
    except RefreshTooSoon as e:
        return JSONResponse(
            status_code=429,
            content={"accepted": False, "detail": e.message, "retry_after": round(e.retry_after, 1)},
            headers={"Retry-After": str(math.ceil(e.retry_after))},
        )
    return RefreshResult.from_snapshot(snapshot)


# ── Registration ──────────────────────────────────────────────────────────────

@router.post("/api/join")
async def join(body: JoinBody, tracker: Tracker = Depends(get_tracker)):
    bib = normalize_bib(body.bib)
    if not bib:
        raise HTTPException(400, "missing bib")
    tracker.registry.register(bib, body.display)
    return {"ok": True, "bib": bib, "display": tracker.registry.display_name(bib)}


# ── Admin ─────────────────────────────────────────────────────────────────────

@router.post("/api/admin/whitelist")
async def admin_whitelist(body: WhitelistBody, refresh: bool = False, tracker: Tracker = Depends(get_tracker)):
    count = tracker.registry.replace_all(body.bibs)
    if refresh:
        await tracker.orchestrator.force_refresh()
    return {"ok": True, "count": count}


@router.post("/api/admin/refresh", response_model=RefreshResult)
async def admin_refresh(tracker: Tracker = Depends(get_tracker)):
    snapshot = await tracker.orchestrator.force_refresh()
    return RefreshResult.from_snapshot(snapshot)


@router.get("/healthz", response_class=PlainTextResponse)
async def healthz():
    return "ok"


# ── App factory ───────────────────────────────────────────────────────────────

def create_app(settings: Optional[TrackerSettings] = None, tracker: Optional[Tracker] = None) -> FastAPI:
    tracker = tracker or build_tracker(settings or load_settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.scheduler = setup_scheduler(tracker.orchestrator, tracker.settings.poll_interval)
        log.info("crew tracker polling %s", tracker.settings.source_url or "(no source)")
        yield
        app.state.scheduler.shutdown(wait=False)
        await tracker.fetcher.aclose()

    app = FastAPI(title="CrewTracker", lifespan=lifespan)
    app.state.tracker = tracker
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)
    return app


app = create_app()
