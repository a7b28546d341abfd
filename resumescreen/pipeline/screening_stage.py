"""Stage 2: rank a job's candidates against its description and store the ranking."""
import logging
from typing import List

from ..errors import MissingJobDescriptionError
from ..ingestion import EmbeddingGenerator
from ..models import RankedCandidate, Screening
from ..repository import CandidateRepository, JobDescriptionStore
from .ranker import rank_candidates

logger = logging.getLogger(__name__)


class ScreeningStage:
    """Callable on its own: it re-checks the job description every run."""

    def __init__(
        self,
        jobs: JobDescriptionStore,
        embedder: EmbeddingGenerator,
        repository: CandidateRepository,
    ):
        self.jobs = jobs
        self.embedder = embedder
        self.repository = repository

    async def run(self, job_id: str) -> List[RankedCandidate]:
        jd = await self.jobs.get(job_id)
        if jd is None:
            raise MissingJobDescriptionError(job_id)

        jd_embedding = await self.embedder.embed(jd.description, prefix="query")

        candidates = await self.repository.select_by_job_prefix(job_id)
        logger.info(f"[Job {job_id}] Screening {len(candidates)} candidates")

        ranked = rank_candidates(candidates, jd_embedding)
        if not ranked:
            logger.warning(f"[Job {job_id}] No rankable candidates; no screenings written")
            return []

        screenings = [
            Screening(jd_id=jd.id, candidate_id=r.candidate_id, rank=r.rank, is_shortlisted=False)
            for r in ranked
        ]
        await self.repository.insert_screenings(screenings)

        logger.info(
            f"[Job {job_id}] ✅ Ranked {len(ranked)} candidates "
            f"(top: {ranked[0].resume_url}, similarity={ranked[0].similarity:.3f})"
        )
        return ranked
