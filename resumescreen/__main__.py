"""Console entry points: serve the API, submit a job, or run a job inline."""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections import deque
from typing import Deque, List, Optional, Tuple

from .logging_config import configure_logging

logger = logging.getLogger(__name__)


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("resumescreen.api:app", host=args.host, port=args.port, reload=False)
    return 0


def _enqueue(args: argparse.Namespace) -> int:
    from .tasks import get_orchestrator

    record = get_orchestrator().submit(args.job_id, force=args.force)
    print(f"Job {args.job_id}: {record['status']}")
    return 0


async def _run_inline(job_id: str) -> int:
    """Run both stages in this process, without Celery."""
    from .db import init_models
    from .notifications import NotificationChannel
    from .jobs import InMemoryPipelineStore
    from .pipeline import build_orchestrator

    await init_models()

    pending: Deque[Tuple[str, str]] = deque()
    notifier = NotificationChannel()
    try:
        notifier.initialize()
    except Exception as e:
        logger.error(f"Notification channel unavailable: {e}")

    orchestrator = build_orchestrator(
        enqueue=lambda task, jid: pending.append((task, jid)),
        notifier=notifier,
        store=InMemoryPipelineStore(),
    )
    orchestrator.submit(job_id)
    while pending:
        task_name, jid = pending.popleft()
        await orchestrator.dispatch(task_name, jid)

    record = orchestrator.store.get(job_id)
    print(
        f"Job {job_id}: {record['status']} "
        f"(ingested={record['candidates_ingested']}, failed_files={record['files_failed']}, "
        f"ranked={record['candidates_ranked']})"
    )
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    configure_logging()

    parser = argparse.ArgumentParser(prog="resumescreen", description="Resume screening pipeline")
    sub = parser.add_subparsers(dest="command", required=True)

    api = sub.add_parser("api", help="Serve the HTTP API")
    api.add_argument("--host", default="0.0.0.0")
    api.add_argument("--port", type=int, default=8000)

    enqueue = sub.add_parser("enqueue", help="Queue a job for ingestion and screening")
    enqueue.add_argument("job_id")
    enqueue.add_argument("--force", action="store_true", help="Abandon a run that still looks in flight")

    run = sub.add_parser("run", help="Run both stages for a job inline (no Celery)")
    run.add_argument("job_id")

    args = parser.parse_args(argv)

    if args.command == "api":
        return _serve(args)
    if args.command == "enqueue":
        return _enqueue(args)
    return asyncio.run(_run_inline(args.job_id))


if __name__ == "__main__":
    sys.exit(main())
