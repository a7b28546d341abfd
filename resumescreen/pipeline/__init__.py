"""Ingestion and screening stages and the orchestrator that chains them."""
from .ingestion_stage import FailedFile, IngestionResult, IngestionStage
from .orchestrator import (
    PROCESS_RESUME,
    SCREEN_RESUMES,
    PipelineOrchestrator,
    build_orchestrator,
)
from .ranker import cosine_similarities, rank_candidates
from .screening_stage import ScreeningStage

__all__ = [
    "FailedFile",
    "IngestionResult",
    "IngestionStage",
    "PROCESS_RESUME",
    "SCREEN_RESUMES",
    "PipelineOrchestrator",
    "build_orchestrator",
    "cosine_similarities",
    "rank_candidates",
    "ScreeningStage",
]
