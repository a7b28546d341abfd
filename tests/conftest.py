"""Shared fakes for the pipeline collaborators."""
import re
from typing import Dict, List, Optional

import pytest
import pytest_asyncio

from resumescreen.db import build_engine, build_session_factory, init_models
from resumescreen.errors import ExtractionError
from resumescreen.jobs import InMemoryPipelineStore
from resumescreen.models import CandidateProfile, JobDescription, ResumeData, Screening
from resumescreen.notifications import NotificationChannel
from resumescreen.repository import CandidateRepository, JobDescriptionStore

VOCABULARY = ["go", "postgres", "backend", "react", "css", "figma"]


def bag_of_words(text: str) -> List[float]:
    tokens = re.findall(r"[a-z]+", text.lower())
    return [float(tokens.count(word)) for word in VOCABULARY]


class FakeStorage:
    def __init__(self, files: Optional[Dict[str, bytes]] = None, broken: Optional[set] = None):
        self.files = dict(files or {})
        self.broken = broken or set()
        self.list_calls: List[str] = []
        self.get_calls: List[str] = []

    async def list_keys(self, job_id: str) -> List[str]:
        self.list_calls.append(job_id)
        return [key for key in self.files if key.startswith(f"{job_id}-")]

    async def get_bytes(self, key: str) -> bytes:
        self.get_calls.append(key)
        if key in self.broken:
            raise IOError(f"cannot read {key}")
        return self.files[key]


class FakeJobStore:
    def __init__(self, *jds: JobDescription):
        self.jds = {jd.id: jd for jd in jds}

    async def get(self, job_id: str) -> Optional[JobDescription]:
        return self.jds.get(job_id)


class FakeExtractor:
    """Resume text is 'name|skills|tech1,tech2'; 'garbage' fails validation."""

    def __init__(self):
        self.calls = []

    async def extract(self, resume_text: str, now) -> ResumeData:
        self.calls.append((resume_text, now))
        if resume_text == "garbage":
            raise ExtractionError("LLM returned an invalid profile")
        name, skills, tech = resume_text.split("|")
        return ResumeData(
            name=name,
            experience=f"{name} experience",
            skills=skills,
            tech_stack=[t for t in tech.split(",") if t],
        )


class FakeEmbedder:
    def __init__(self):
        self.calls = []

    async def embed(self, text: str, prefix: str = "passage") -> List[float]:
        self.calls.append((text, prefix))
        return bag_of_words(text)


class FakeRepository:
    def __init__(self, fail_insert: bool = False):
        self.candidates: List[CandidateProfile] = []
        self.screenings: List[Screening] = []
        self.insert_calls = 0
        self.fail_insert = fail_insert

    async def insert_candidates(self, profiles):
        self.insert_calls += 1
        if self.fail_insert:
            raise RuntimeError("unique constraint violated")
        ids = []
        for profile in profiles:
            candidate_id = f"cand-{len(self.candidates) + 1}"
            self.candidates.append(profile.model_copy(update={"id": candidate_id}))
            ids.append(candidate_id)
        return ids

    async def select_by_job_prefix(self, job_id: str):
        return [c for c in self.candidates if c.resume_url.startswith(f"{job_id}-")]

    async def insert_screenings(self, screenings):
        self.screenings.extend(screenings)


class FakeRedis:
    def __init__(self, fail: bool = False):
        self.published = []
        self.fail = fail

    def publish(self, channel: str, message: str) -> int:
        if self.fail:
            raise ConnectionError("redis down")
        self.published.append((channel, message))
        return 1


async def text_from_bytes(filename: str, data: bytes) -> str:
    return data.decode("utf-8")


def resume(name: str, skills: str, tech: str = "") -> bytes:
    return f"{name}|{skills}|{tech}".encode("utf-8")


@pytest.fixture()
def jd_j1() -> JobDescription:
    return JobDescription(
        id="j1",
        user_id="user-1",
        title="Senior Backend Engineer",
        description="Senior backend engineer, Go and Postgres",
    )


@pytest.fixture()
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture()
def notifier(fake_redis) -> NotificationChannel:
    return NotificationChannel(channel="test-events", client_factory=lambda: fake_redis).initialize()


@pytest.fixture()
def pipeline_store() -> InMemoryPipelineStore:
    return InMemoryPipelineStore()


@pytest_asyncio.fixture()
async def session_factory(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_models(engine)
    yield build_session_factory(engine)
    await engine.dispose()


@pytest.fixture()
def sql_repository(session_factory) -> CandidateRepository:
    return CandidateRepository(session_factory)


@pytest.fixture()
def sql_job_store(session_factory) -> JobDescriptionStore:
    return JobDescriptionStore(session_factory)
