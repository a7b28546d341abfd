"""Candidate, screening and job-description persistence."""
from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from resumescreen.db import (
    CandidateRow,
    JobDescriptionRow,
    ScreeningRow,
    new_id,
    get_session_factory,
    session_scope,
    utcnow,
)
from resumescreen.models import (
    CandidateProfile,
    ContactDetails,
    JobDescription,
    Screening,
)

logger = logging.getLogger(__name__)


def job_prefix(job_id: str) -> str:
    """Storage keys of a job's resumes start with this prefix."""
    return f"{job_id}-"


def _to_row(profile: CandidateProfile) -> CandidateRow:
    return CandidateRow(
        id=profile.id or new_id(),
        name=profile.name,
        contact_details=profile.contact_details.model_dump(),
        professional_title=profile.professional_title,
        professional_summary=profile.professional_summary,
        social_links=[link.model_dump() for link in profile.social_links],
        project_links=[link.model_dump() for link in profile.project_links],
        experience=profile.experience,
        education=profile.education,
        total_experience=profile.total_experience,
        exceptional_ability=profile.exceptional_ability,
        tech_stack=list(profile.tech_stack),
        skills=profile.skills,
        resume_url=profile.resume_url,
        resume_hash=profile.resume_hash,
        embedding=profile.embedding,
    )


def _to_profile(row: CandidateRow) -> CandidateProfile:
    return CandidateProfile(
        id=row.id,
        name=row.name or "",
        contact_details=ContactDetails(**(row.contact_details or {})),
        professional_title=row.professional_title,
        professional_summary=row.professional_summary,
        social_links=row.social_links,
        project_links=row.project_links,
        experience=row.experience,
        education=row.education,
        total_experience=row.total_experience,
        exceptional_ability=row.exceptional_ability,
        tech_stack=row.tech_stack,
        skills=row.skills,
        resume_url=row.resume_url,
        resume_hash=row.resume_hash,
        embedding=row.embedding,
    )


class CandidateRepository:
    """Candidate and screening rows; every call is its own short transaction."""

    def __init__(self, session_factory: Optional[async_sessionmaker[AsyncSession]] = None):
        self._session_factory = session_factory or get_session_factory()

    async def insert_candidates(self, profiles: Sequence[CandidateProfile]) -> List[str]:
        """Insert all profiles in one transaction and return their generated ids."""
        if not profiles:
            return []

        rows = [_to_row(profile) for profile in profiles]
        async with session_scope(self._session_factory) as session:
            session.add_all(rows)

        logger.info(f"Inserted {len(rows)} candidates")
        return [row.id for row in rows]

    async def select_by_job_prefix(self, job_id: str) -> List[CandidateProfile]:
        stmt = (
            select(CandidateRow)
            .where(CandidateRow.resume_url.startswith(job_prefix(job_id), autoescape=True))
            .order_by(CandidateRow.created_at, CandidateRow.id)
        )
        async with self._session_factory() as session:
            result = await session.scalars(stmt)
            return [_to_profile(row) for row in result.all()]

    async def insert_screenings(self, screenings: Sequence[Screening]) -> None:
        """Insert one screening pass; all rows share one created_at."""
        if not screenings:
            return

        created_at = utcnow()
        rows = [
            ScreeningRow(
                id=s.id or new_id(),
                jd=s.jd_id,
                candidate=s.candidate_id,
                rank=s.rank,
                is_shortlisted=s.is_shortlisted,
                created_at=created_at,
                updated_at=created_at,
            )
            for s in screenings
        ]
        async with session_scope(self._session_factory) as session:
            session.add_all(rows)

        logger.info(f"Inserted {len(rows)} screenings for job {screenings[0].jd_id}")

    async def list_screenings(self, job_id: str) -> List[Screening]:
        """Screenings of the most recent pass for a job, best rank first."""
        latest = (
            select(func.max(ScreeningRow.created_at))
            .where(ScreeningRow.jd == job_id)
            .scalar_subquery()
        )
        stmt = (
            select(ScreeningRow)
            .where(ScreeningRow.jd == job_id, ScreeningRow.created_at == latest)
            .order_by(ScreeningRow.rank)
        )
        async with self._session_factory() as session:
            result = await session.scalars(stmt)
            return [
                Screening(
                    id=row.id,
                    jd_id=row.jd,
                    candidate_id=row.candidate,
                    rank=row.rank,
                    is_shortlisted=row.is_shortlisted,
                )
                for row in result.all()
            ]


class JobDescriptionStore:
    """Read-only view of job descriptions owned by the main application."""

    def __init__(self, session_factory: Optional[async_sessionmaker[AsyncSession]] = None):
        self._session_factory = session_factory or get_session_factory()

    async def get(self, job_id: str) -> Optional[JobDescription]:
        async with self._session_factory() as session:
            row = await session.get(JobDescriptionRow, job_id)
            if row is None:
                return None
            return JobDescription.model_validate(row)
