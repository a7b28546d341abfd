"""Two-stage pipeline driver: ingestion, then screening, then a completion event."""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional

from .. import config
from ..jobs import PipelineStatus, PipelineStore, get_pipeline_store
from ..models import RankedCandidate
from ..notifications import NotificationChannel
from .ingestion_stage import IngestionResult, IngestionStage
from .screening_stage import ScreeningStage

logger = logging.getLogger(__name__)

PROCESS_RESUME = "process-resume"
SCREEN_RESUMES = "screen-resumes"

# enqueue(task_name, job_id)
Enqueue = Callable[[str, str], Any]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PipelineOrchestrator:
    """
    Drives one job through its pipeline record.

    Each handler runs exactly one stage. A failed stage marks the job failed
    and re-raises so the queue records the failure; nothing is enqueued
    after a failure.

    The state store, the notifier and the queue are blocking clients; the
    async handlers call them through worker threads.
    """

    def __init__(
        self,
        ingestion: IngestionStage,
        screening: ScreeningStage,
        store: PipelineStore,
        notifier: NotificationChannel,
        enqueue: Enqueue,
        stale_after: Optional[float] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.ingestion = ingestion
        self.screening = screening
        self.store = store
        self.notifier = notifier
        self.enqueue = enqueue
        self.stale_after = config.PIPELINE_STALE_AFTER if stale_after is None else stale_after
        self.clock = clock

    def submit(self, job_id: str, force: bool = False) -> dict:
        """
        The external entry point: queue a job's first stage.

        Raises:
            PipelineBusyError: an earlier run is still in flight and not stale
        """
        record = self.store.claim(job_id, stale_after=self.stale_after, force=force, now=self.clock())
        self._enqueue(PROCESS_RESUME, job_id, stage="ingestion")
        return record

    async def dispatch(self, task_name: str, job_id: str):
        if task_name == PROCESS_RESUME:
            return await self.handle_process(job_id)
        if task_name == SCREEN_RESUMES:
            return await self.handle_screen(job_id)
        raise ValueError(f"Unknown task: {task_name}")

    async def handle_process(self, job_id: str) -> IngestionResult:
        await self._transition(job_id, PipelineStatus.INGESTING)
        try:
            result = await self.ingestion.run(job_id)
        except Exception as exc:
            await asyncio.to_thread(self._fail, job_id, "ingestion", exc)
            raise

        counts = {
            "candidates_ingested": len(result.candidate_ids),
            "files_failed": len(result.failed_files),
        }
        if not result.candidate_ids:
            # Nothing new to rank: the job ends here, silently
            await self._transition(job_id, PipelineStatus.COMPLETED, **counts)
            return result

        await self._transition(job_id, PipelineStatus.SCREENING_QUEUED, **counts)
        await asyncio.to_thread(self._enqueue, SCREEN_RESUMES, job_id, "screening")
        return result

    async def handle_screen(self, job_id: str) -> List[RankedCandidate]:
        record = await asyncio.to_thread(self.store.get, job_id)
        if record is None or record["status"] in (
            PipelineStatus.COMPLETED.value,
            PipelineStatus.FAILED.value,
        ):
            # Screening was triggered on its own, outside a full run
            await self._transition(job_id, PipelineStatus.SCREENING_QUEUED)

        await self._transition(job_id, PipelineStatus.SCREENING)
        try:
            ranked = await self.screening.run(job_id)
        except Exception as exc:
            await asyncio.to_thread(self._fail, job_id, "screening", exc)
            raise

        await self._transition(job_id, PipelineStatus.COMPLETED, candidates_ranked=len(ranked))
        await asyncio.to_thread(self.notifier.screening_complete, job_id)
        return ranked

    async def _transition(self, job_id: str, status: PipelineStatus, **fields: Any) -> dict:
        return await asyncio.to_thread(self.store.transition, job_id, status, **fields)

    def _enqueue(self, task_name: str, job_id: str, stage: str) -> None:
        try:
            self.enqueue(task_name, job_id)
        except Exception as exc:
            self._fail(job_id, stage, exc)
            raise
        logger.info(f"[Job {job_id}] Enqueued {task_name}")

    def _fail(self, job_id: str, stage: str, exc: Exception) -> None:
        logger.error(f"[Job {job_id}] ❌ {stage} failed: {exc}")
        self.store.transition(
            job_id,
            PipelineStatus.FAILED,
            failed_stage=stage,
            error=f"{type(exc).__name__}: {exc}",
        )


def build_orchestrator(
    enqueue: Enqueue,
    notifier: NotificationChannel,
    store: Optional[PipelineStore] = None,
) -> PipelineOrchestrator:
    """Wire the stages to the production collaborators."""
    from ..ingestion import EmbeddingGenerator, ProfileExtractor
    from ..repository import CandidateRepository, JobDescriptionStore
    from ..storage import ResumeStorage

    jobs = JobDescriptionStore()
    repository = CandidateRepository()
    embedder = EmbeddingGenerator()

    return PipelineOrchestrator(
        ingestion=IngestionStage(
            storage=ResumeStorage(),
            jobs=jobs,
            extractor=ProfileExtractor(),
            embedder=embedder,
            repository=repository,
        ),
        screening=ScreeningStage(jobs=jobs, embedder=embedder, repository=repository),
        store=store or get_pipeline_store(),
        notifier=notifier,
        enqueue=enqueue,
    )
