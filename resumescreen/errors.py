"""Exceptions raised by the screening pipeline."""
from __future__ import annotations


class ResumeScreenError(Exception):
    """Base class for every pipeline error."""


class ConfigurationError(ResumeScreenError):
    """A required setting is missing or unusable."""


class MissingJobDescriptionError(ResumeScreenError):
    """The job description a stage was asked to work on does not exist."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Missing job description: {job_id}")


class UnsupportedFileFormatError(ResumeScreenError):
    """A resume file could not be turned into plain text."""

    def __init__(self, filename: str, reason: str = ""):
        self.filename = filename
        message = f"Unsupported file format: {filename}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class ExtractionError(ResumeScreenError):
    """The structured-generation call failed or returned an invalid profile."""


class EmbeddingError(ResumeScreenError):
    """The embedding generator returned an unusable vector."""


class InvalidTransitionError(ResumeScreenError):
    """A pipeline record was asked to move to a state it cannot reach."""

    def __init__(self, job_id: str, current: str, target: str):
        self.job_id = job_id
        self.current = current
        self.target = target
        super().__init__(f"Job {job_id}: cannot move from '{current}' to '{target}'")


class PipelineBusyError(ResumeScreenError):
    """A job was submitted while an earlier run of it is still in flight."""

    def __init__(self, job_id: str, status: str):
        self.job_id = job_id
        self.status = status
        super().__init__(f"Job {job_id} is already in flight (status={status})")
