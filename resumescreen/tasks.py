"""Celery tasks for the two pipeline stages."""
import asyncio
import logging
from functools import lru_cache
from typing import Any, Dict, Optional

from celery import Task
from celery.signals import worker_process_init

from . import config
from .celery_app import celery_app
from .logging_config import configure_logging
from .notifications import NotificationChannel
from .pipeline import PROCESS_RESUME, SCREEN_RESUMES, PipelineOrchestrator, build_orchestrator

logger = logging.getLogger(__name__)

# One event loop per worker process, so pooled DB and HTTP connections
# stay bound to the loop that created them.
_loop: Optional[asyncio.AbstractEventLoop] = None


def run_async(coro):
    global _loop
    if _loop is None or _loop.is_closed():
        _loop = asyncio.new_event_loop()
        asyncio.set_event_loop(_loop)
    return _loop.run_until_complete(coro)


def enqueue(task_name: str, job_id: str):
    """Put a stage on the resume queue."""
    task = {PROCESS_RESUME: process_resume, SCREEN_RESUMES: screen_resumes}[task_name]
    return task.apply_async(args=[job_id], queue=config.RESUME_QUEUE)


@lru_cache(maxsize=1)
def get_notifier() -> NotificationChannel:
    """
    The process-wide channel, initialized when Redis allows it.

    A channel that failed to initialize is still returned: broadcasts on it
    are logged and dropped, and the pipeline runs on without them.
    """
    notifier = NotificationChannel()
    try:
        notifier.initialize()
    except Exception as e:
        logger.error(f"❌ Notification channel unavailable: {e}; completions will not be broadcast")
    return notifier


@lru_cache(maxsize=1)
def get_orchestrator() -> PipelineOrchestrator:
    return build_orchestrator(enqueue=enqueue, notifier=get_notifier())


@worker_process_init.connect
def _init_worker(**_kwargs):
    configure_logging()
    get_notifier()


class CallbackTask(Task):
    """Base task that logs the outcome of every stage."""

    def on_success(self, retval, task_id, args, kwargs):
        logger.info(f"✅ Task {self.name}[{task_id}] succeeded for job {args[0] if args else '?'}")

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        logger.error(f"❌ Task {self.name}[{task_id}] failed for job {args[0] if args else '?'}: {exc}")


@celery_app.task(bind=True, base=CallbackTask, name=PROCESS_RESUME, max_retries=0)
def process_resume(self, job_id: str) -> Dict[str, Any]:
    """Celery task: ingest every resume uploaded for a job, then queue screening."""
    logger.info(f"[Task {self.request.id}] process-resume for job {job_id}")
    result = run_async(get_orchestrator().handle_process(job_id))
    return {
        "job_id": job_id,
        "candidate_ids": result.candidate_ids,
        "failed_files": [f.key for f in result.failed_files],
    }


@celery_app.task(bind=True, base=CallbackTask, name=SCREEN_RESUMES, max_retries=0)
def screen_resumes(self, job_id: str) -> Dict[str, Any]:
    """Celery task: rank a job's candidates and announce completion."""
    logger.info(f"[Task {self.request.id}] screen-resumes for job {job_id}")
    ranked = run_async(get_orchestrator().handle_screen(job_id))
    return {"job_id": job_id, "ranked": len(ranked)}
