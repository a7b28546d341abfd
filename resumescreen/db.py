"""Async SQLAlchemy engine, session factory and table definitions."""
from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from functools import lru_cache
from typing import AsyncIterator, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from resumescreen import config

logger = logging.getLogger(__name__)


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class JobDescriptionRow(Base):
    __tablename__ = "job_description"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )


class CandidateRow(Base):
    __tablename__ = "candidate"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[Optional[str]] = mapped_column(Text)
    contact_details: Mapped[Optional[dict]] = mapped_column(JSON)
    professional_title: Mapped[Optional[str]] = mapped_column(Text)
    professional_summary: Mapped[Optional[str]] = mapped_column(Text)
    social_links: Mapped[Optional[list]] = mapped_column(JSON)
    project_links: Mapped[Optional[list]] = mapped_column(JSON)
    experience: Mapped[Optional[str]] = mapped_column(Text)
    education: Mapped[Optional[str]] = mapped_column(Text)
    total_experience: Mapped[Optional[float]] = mapped_column(Float)
    exceptional_ability: Mapped[Optional[str]] = mapped_column(Text)
    tech_stack: Mapped[Optional[list]] = mapped_column(JSON)
    skills: Mapped[Optional[str]] = mapped_column(Text)
    resume_url: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    resume_hash: Mapped[str] = mapped_column(Text, nullable=False)
    embedding: Mapped[Optional[list]] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )


class ScreeningRow(Base):
    __tablename__ = "screening"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    jd: Mapped[str] = mapped_column(
        String(36), ForeignKey("job_description.id"), nullable=False, index=True
    )
    candidate: Mapped[str] = mapped_column(
        String(36), ForeignKey("candidate.id"), nullable=False
    )
    rank: Mapped[int] = mapped_column(Integer, nullable=False)
    is_shortlisted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # Every row of one screening pass shares the same created_at
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )


# ============================================
# Engine / sessions
# ============================================

def build_engine(url: Optional[str] = None) -> AsyncEngine:
    """Create an async engine; pool sizing only applies to server databases."""
    url = url or config.DATABASE_URL
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=False)
    return create_async_engine(
        url,
        pool_size=config.DB_POOL_SIZE,
        max_overflow=config.DB_MAX_OVERFLOW,
        pool_timeout=config.DB_POOL_TIMEOUT,
        pool_recycle=config.DB_POOL_RECYCLE,
        pool_pre_ping=True,
        echo=False,
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@lru_cache(maxsize=1)
def get_engine() -> AsyncEngine:
    logger.info("Creating database engine")
    return build_engine()


@lru_cache(maxsize=1)
def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return build_session_factory(get_engine())


@asynccontextmanager
async def session_scope(
    factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """Session that commits on success and rolls back on error."""
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:
            await session.rollback()
            logger.error(f"Database error: {e}")
            raise


async def init_models(engine: Optional[AsyncEngine] = None) -> None:
    """Create any missing tables."""
    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
