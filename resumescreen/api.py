"""FastAPI surface: trigger a job, read its status and ranking, stream completions."""
from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from sqlalchemy import text

from . import config
from .errors import PipelineBusyError
from .logging_config import configure_logging
from .models import Screening
from .notifications import NotificationChannel
from .repository import CandidateRepository, JobDescriptionStore

configure_logging()
logger = logging.getLogger(__name__)

# Seconds a relay thread waits for one WebSocket send before giving up
RELAY_SEND_TIMEOUT = 10.0

app = FastAPI(title="Resume Screening API")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


class PipelineRecord(BaseModel):
    job_id: str
    status: str
    failed_stage: Optional[str] = None
    error: Optional[str] = None
    candidates_ingested: int = 0
    files_failed: int = 0
    candidates_ranked: int = 0
    created_at: str
    updated_at: str


class ScreeningList(BaseModel):
    job_id: str
    screenings: List[Screening]


# ==================== DEPENDENCIES ====================

def get_orchestrator():
    from .tasks import get_orchestrator as _get

    return _get()


def get_job_descriptions() -> JobDescriptionStore:
    return JobDescriptionStore()


def get_repository() -> CandidateRepository:
    return CandidateRepository()


def get_notifier() -> NotificationChannel:
    from .tasks import get_notifier as _get

    return _get()


# ==================== ROUTES ====================

@app.get("/", tags=["health"])
def root() -> Dict[str, str]:
    return {"message": "Resume screening API is running. Try POST /jobs/{job_id}/process."}


@app.post("/jobs/{job_id}/process", response_model=PipelineRecord, status_code=202)
async def process_job(
    job_id: str,
    force: bool = False,
    orchestrator=Depends(get_orchestrator),
    job_descriptions: JobDescriptionStore = Depends(get_job_descriptions),
) -> Dict[str, Any]:
    """
    Queue ingestion and screening of every resume uploaded for a job.

    `force` abandons a run that still looks in flight (operator recovery).
    """
    if await job_descriptions.get(job_id) is None:
        raise HTTPException(status_code=404, detail=f"Job description {job_id} not found")

    try:
        record = await asyncio.to_thread(orchestrator.submit, job_id, force)
    except PipelineBusyError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc

    logger.info(f"[Job {job_id}] Submitted for processing")
    return record


@app.get("/jobs/{job_id}/status", response_model=PipelineRecord)
def job_status(job_id: str, orchestrator=Depends(get_orchestrator)) -> Dict[str, Any]:
    record = orchestrator.store.get(job_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"No pipeline run for job {job_id}")
    return record


@app.get("/jobs/{job_id}/screenings", response_model=ScreeningList)
async def job_screenings(
    job_id: str,
    repository: CandidateRepository = Depends(get_repository),
) -> Dict[str, Any]:
    screenings = await repository.list_screenings(job_id)
    return {"job_id": job_id, "screenings": screenings}


@app.get("/health", tags=["health"])
async def health() -> Dict[str, Any]:
    from .db import get_engine

    payload: Dict[str, Any] = {"status": "ok"}

    try:
        await asyncio.to_thread(config.get_redis().ping)
        payload["redis"] = "healthy"
    except Exception as e:
        logger.error(f"Redis health check failed: {e}")
        payload["redis"] = f"unhealthy: {e}"
        payload["status"] = "degraded"

    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
        payload["database"] = "healthy"
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        payload["database"] = f"unhealthy: {e}"
        payload["status"] = "degraded"

    return payload


@app.websocket("/ws/notifications")
async def notifications(websocket: WebSocket, notifier: NotificationChannel = Depends(get_notifier)):
    """
    Relay screening:complete events to a connected browser.

    The subscription is read on a worker thread that owns it from open to
    close: it stops within one poll interval of `stop` being set, even when
    this handler is cancelled instead of seeing the disconnect.
    """
    await websocket.accept()
    logger.info("Client connected to notifications")

    loop = asyncio.get_running_loop()
    stop = threading.Event()

    def pump() -> None:
        events = notifier.listen(timeout=config.NOTIFICATION_POLL_SECONDS)
        try:
            for event in events:
                if stop.is_set():
                    break
                if event is not None:
                    asyncio.run_coroutine_threadsafe(websocket.send_json(event), loop).result(timeout=RELAY_SEND_TIMEOUT)
        finally:
            events.close()

    async def wait_for_disconnect() -> None:
        while (await websocket.receive())["type"] != "websocket.disconnect":
            pass

    relay_task = asyncio.ensure_future(asyncio.to_thread(pump))
    watch_task = asyncio.create_task(wait_for_disconnect())
    try:
        await asyncio.wait({relay_task, watch_task}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        stop.set()
        watch_task.cancel()

    outcomes = await asyncio.gather(relay_task, watch_task, return_exceptions=True)
    error = outcomes[0]
    if isinstance(error, Exception) and not isinstance(error, WebSocketDisconnect):
        logger.error(f"Notification relay stopped: {error}")
    logger.info("Client disconnected from notifications")
