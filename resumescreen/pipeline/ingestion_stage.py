"""Stage 1: turn every resume uploaded for a job into a stored candidate profile."""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, List, Optional, Tuple, Union

from .. import config
from ..errors import MissingJobDescriptionError
from ..ingestion import EmbeddingGenerator, ProfileExtractor, extract_text
from ..models import CandidateProfile
from ..repository import CandidateRepository, JobDescriptionStore
from ..storage import ResumeStorage

logger = logging.getLogger(__name__)

TextExtractor = Callable[[str, bytes], Awaitable[str]]


@dataclass
class FailedFile:
    key: str
    error: str


@dataclass
class IngestionResult:
    job_id: str
    candidate_ids: List[str] = field(default_factory=list)
    failed_files: List[FailedFile] = field(default_factory=list)

    @property
    def files_seen(self) -> int:
        return len(self.candidate_ids) + len(self.failed_files)


class IngestionStage:
    """
    Lists a job's resume files, extracts one profile per file concurrently
    and inserts all successful profiles in a single batch.

    A file that fails at any step is logged and left out of the batch; the
    other files of the job are unaffected.
    """

    def __init__(
        self,
        storage: ResumeStorage,
        jobs: JobDescriptionStore,
        extractor: ProfileExtractor,
        embedder: EmbeddingGenerator,
        repository: CandidateRepository,
        text_extractor: TextExtractor = extract_text,
        max_concurrency: Optional[int] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.storage = storage
        self.jobs = jobs
        self.extractor = extractor
        self.embedder = embedder
        self.repository = repository
        self.text_extractor = text_extractor
        self.max_concurrency = max_concurrency or config.MAX_CONCURRENT_EXTRACTIONS
        self.clock = clock

    async def run(self, job_id: str) -> IngestionResult:
        if await self.jobs.get(job_id) is None:
            raise MissingJobDescriptionError(job_id)

        result = IngestionResult(job_id=job_id)

        keys = await self.storage.list_keys(job_id)
        if not keys:
            logger.info(f"[Job {job_id}] No resumes uploaded; nothing to ingest")
            return result

        logger.info(f"[Job {job_id}] Ingesting {len(keys)} resumes (concurrency={self.max_concurrency})")

        semaphore = asyncio.Semaphore(self.max_concurrency)
        now = self.clock()
        outcomes = await asyncio.gather(
            *(self._process_guarded(job_id, key, now, semaphore) for key in keys)
        )

        profiles: List[CandidateProfile] = []
        for key, outcome in outcomes:
            if isinstance(outcome, Exception):
                result.failed_files.append(FailedFile(key=key, error=str(outcome)))
            else:
                profiles.append(outcome)

        if result.failed_files:
            logger.warning(
                f"[Job {job_id}] {len(result.failed_files)}/{len(keys)} resumes failed and were skipped"
            )

        if not profiles:
            logger.warning(f"[Job {job_id}] No resume could be processed; nothing inserted")
            return result

        result.candidate_ids = await self.repository.insert_candidates(profiles)
        logger.info(f"[Job {job_id}] ✅ Inserted {len(result.candidate_ids)} candidates")
        return result

    async def _process_guarded(
        self,
        job_id: str,
        key: str,
        now: datetime,
        semaphore: asyncio.Semaphore,
    ) -> Tuple[str, Union[CandidateProfile, Exception]]:
        """Run one file's pipeline; returns (key, profile_or_exception)."""
        async with semaphore:
            try:
                return key, await self.process_file(key, now)
            except Exception as exc:
                logger.exception(f"[Job {job_id}] ❌ Failed to process {key}: {exc}")
                return key, exc

    async def process_file(self, key: str, now: datetime) -> CandidateProfile:
        """Download, parse, extract and embed a single resume."""
        data = await self.storage.get_bytes(key)
        text = await self.text_extractor(key, data)
        resume = await self.extractor.extract(text, now)
        embedding = await self.embedder.embed(resume.search_text(), prefix="passage")

        return CandidateProfile(
            **resume.model_dump(),
            resume_url=key,
            resume_hash="",
            embedding=embedding,
        )
