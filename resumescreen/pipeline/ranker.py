"""Cosine-similarity ranking of candidates against a job description."""
import logging
from typing import List, Sequence

import numpy as np

from ..errors import EmbeddingError
from ..models import CandidateProfile, RankedCandidate

logger = logging.getLogger(__name__)


def cosine_similarities(matrix: np.ndarray, query: np.ndarray) -> np.ndarray:
    """
    1 - cosine distance between every row of `matrix` and `query`.

    A zero vector has no direction; its similarity is 0.0.
    """
    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
    dots = matrix @ query
    with np.errstate(divide="ignore", invalid="ignore"):
        sims = np.where(norms > 0, dots / norms, 0.0)
    return sims


def rank_candidates(
    candidates: Sequence[CandidateProfile],
    jd_embedding: Sequence[float],
) -> List[RankedCandidate]:
    """
    Rank candidates by descending similarity to the job description.

    Ranks are dense (1..N). Ties keep the input order, so a fixed input
    produces a fixed ranking. Candidates without an embedding are not
    ranking-eligible and are left out.
    """
    eligible = [c for c in candidates if c.embedding]
    skipped = len(candidates) - len(eligible)
    if skipped:
        logger.warning(f"Skipping {skipped} candidates without an embedding")
    if not eligible:
        return []

    query = np.asarray(jd_embedding, dtype=np.float64)
    try:
        matrix = np.asarray([c.embedding for c in eligible], dtype=np.float64)
    except ValueError as e:
        raise EmbeddingError(f"Candidate embeddings have inconsistent dimensions: {e}") from e
    if matrix.shape[1] != query.shape[0]:
        raise EmbeddingError(
            f"Candidate embeddings are {matrix.shape[1]}-dim, job description is {query.shape[0]}-dim"
        )

    sims = cosine_similarities(matrix, query)
    order = np.argsort(-sims, kind="stable")

    ranked = [
        RankedCandidate(
            candidate_id=eligible[i].id,
            resume_url=eligible[i].resume_url,
            similarity=float(sims[i]),
            rank=position,
        )
        for position, i in enumerate(order, start=1)
    ]

    logger.info(
        "Ranked %d candidates (top=%.3f, bottom=%.3f)",
        len(ranked),
        ranked[0].similarity,
        ranked[-1].similarity,
    )
    return ranked
