"""Resume ingestion and semantic screening pipeline."""
from .models import CandidateProfile, JobDescription, RankedCandidate, Screening
from .notifications import SCREENING_COMPLETE, NotificationChannel

__all__ = [
    "CandidateProfile",
    "JobDescription",
    "RankedCandidate",
    "Screening",
    "NotificationChannel",
    "SCREENING_COMPLETE",
]
