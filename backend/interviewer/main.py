from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import asyncio
import logging
import os

from core.config import (
    FLUSH_INTERVAL_SEC,
    INTERVIEW_DURATION_SEC,
    INTERVIEW_ENFORCE_DEADLINE,
    INTERVIEW_ROLE,
    SESSION_CLEANUP_INTERVAL_SEC,
    SESSION_CLEANUP_TTL_SEC,
)
from interviewer.api.recordings import router as recordings_router
from interviewer.api.ws_voice import router as interview_ws_router
from interviewer.schemas import HealthResponse
from interviewer.session.registry import session_registry
from interviewer.system_metrics import get_metrics_snapshot

app = FastAPI(title="Voice Mock Interviewer")
logger = logging.getLogger("interviewer.main")


def _get_allowed_origins() -> list[str]:
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if not raw:
        return ["*"]
    return [item.strip() for item in raw.split(",") if item.strip()]


_allowed_origins = _get_allowed_origins()

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
    allow_credentials=False,
)

_session_cleanup_task: asyncio.Task | None = None


@app.on_event("startup")
async def startup_banner():
    global _session_cleanup_task
    logger.info("[SYSTEM] CORS allow_origins=%s", _allowed_origins)
    logger.info(
        "[SYSTEM] interview role=%s duration_sec=%s flush_interval_sec=%s enforce_deadline=%s",
        INTERVIEW_ROLE,
        INTERVIEW_DURATION_SEC,
        FLUSH_INTERVAL_SEC,
        INTERVIEW_ENFORCE_DEADLINE,
    )

    async def _session_cleanup_loop():
        while True:
            await asyncio.sleep(SESSION_CLEANUP_INTERVAL_SEC)
            removed = session_registry.cleanup_inactive(SESSION_CLEANUP_TTL_SEC)
            if removed > 0:
                logger.info("[SYSTEM] cleaned inactive sessions=%s", removed)

    _session_cleanup_task = asyncio.create_task(_session_cleanup_loop())


@app.on_event("shutdown")
async def shutdown_handler():
    global _session_cleanup_task
    if _session_cleanup_task is not None:
        _session_cleanup_task.cancel()
        try:
            await _session_cleanup_task
        except asyncio.CancelledError:
            pass
        finally:
            _session_cleanup_task = None
    logger.info("[SYSTEM] shutdown complete")


@app.get("/healthz", response_model=HealthResponse)
async def healthz():
    return {"status": "ok", "service": "interviewer"}


@app.get("/api/system/metrics")
def system_metrics_route():
    return get_metrics_snapshot(extra={
        "sessions_active": session_registry.active_count(),
        "active_session_ids": session_registry.active_session_ids(),
    })


app.include_router(interview_ws_router)
app.include_router(recordings_router)
