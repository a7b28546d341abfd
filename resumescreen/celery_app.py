"""Celery application: the durable queue behind the two pipeline stages."""
import logging

from celery import Celery

from . import config

logger = logging.getLogger(__name__)

celery_app = Celery(
    "resumescreen",
    broker=config.CELERY_BROKER_URL,
    backend=config.CELERY_RESULT_BACKEND,
    include=["resumescreen.tasks"],
)

celery_app.conf.update(
    # Task execution settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Failure records stay inspectable for a week
    result_expires=7 * 24 * 3600,
    result_extended=True,

    task_default_queue=config.RESUME_QUEUE,

    # A dequeued task runs at most once: ack on receipt, never requeue
    task_acks_late=False,
    task_reject_on_worker_lost=False,

    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,

    # Monitoring
    worker_send_task_events=True,
    task_send_sent_event=True,
)

logger.debug(f"Celery configured with broker: {config.CELERY_BROKER_URL}")
