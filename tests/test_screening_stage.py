import pytest

from resumescreen.errors import MissingJobDescriptionError
from resumescreen.models import CandidateProfile
from resumescreen.pipeline.screening_stage import ScreeningStage

from conftest import FakeEmbedder, FakeJobStore, FakeRepository, bag_of_words


def seed(repository, url, text, embedding=True):
    candidate_id = f"cand-{len(repository.candidates) + 1}"
    repository.candidates.append(
        CandidateProfile(
            id=candidate_id,
            name=url,
            resume_url=url,
            embedding=bag_of_words(text) if embedding else None,
        )
    )
    return candidate_id


class TestScreeningStage:
    async def test_missing_job_description_raises_before_embedding(self, jd_j1):
        embedder = FakeEmbedder()
        repository = FakeRepository()
        stage = ScreeningStage(jobs=FakeJobStore(jd_j1), embedder=embedder, repository=repository)

        with pytest.raises(MissingJobDescriptionError):
            await stage.run("nope")

        assert embedder.calls == []
        assert repository.screenings == []

    async def test_job_description_embedded_as_query(self, jd_j1):
        embedder = FakeEmbedder()
        stage = ScreeningStage(jobs=FakeJobStore(jd_j1), embedder=embedder, repository=FakeRepository())

        await stage.run("j1")

        assert embedder.calls == [(jd_j1.description, "query")]

    async def test_backend_candidate_ranked_first(self, jd_j1):
        repository = FakeRepository()
        alice = seed(repository, "j1-alice.pdf", "go postgres backend")
        bob = seed(repository, "j1-bob.pdf", "react css figma")
        stage = ScreeningStage(jobs=FakeJobStore(jd_j1), embedder=FakeEmbedder(), repository=repository)

        ranked = await stage.run("j1")

        assert [r.candidate_id for r in ranked] == [alice, bob]
        assert [(s.candidate_id, s.rank) for s in repository.screenings] == [(alice, 1), (bob, 2)]
        assert all(s.jd_id == "j1" for s in repository.screenings)
        assert not any(s.is_shortlisted for s in repository.screenings)

    async def test_other_jobs_candidates_excluded(self, jd_j1):
        repository = FakeRepository()
        mine = seed(repository, "j1-a.pdf", "go")
        seed(repository, "j10-b.pdf", "go postgres backend")
        seed(repository, "j2-c.pdf", "go postgres")
        stage = ScreeningStage(jobs=FakeJobStore(jd_j1), embedder=FakeEmbedder(), repository=repository)

        ranked = await stage.run("j1")

        assert [r.candidate_id for r in ranked] == [mine]

    async def test_no_candidates_writes_nothing(self, jd_j1):
        repository = FakeRepository()
        stage = ScreeningStage(jobs=FakeJobStore(jd_j1), embedder=FakeEmbedder(), repository=repository)

        assert await stage.run("j1") == []
        assert repository.screenings == []

    async def test_unembedded_candidates_not_screened(self, jd_j1):
        repository = FakeRepository()
        seed(repository, "j1-a.pdf", "go", embedding=False)
        ranked_id = seed(repository, "j1-b.pdf", "postgres")
        stage = ScreeningStage(jobs=FakeJobStore(jd_j1), embedder=FakeEmbedder(), repository=repository)

        await stage.run("j1")

        assert [s.candidate_id for s in repository.screenings] == [ranked_id]

    async def test_rerun_produces_same_ranking(self, jd_j1):
        repository = FakeRepository()
        for i, text in enumerate(["go", "css", "postgres backend", "figma", "go go"]):
            seed(repository, f"j1-{i}.pdf", text)
        stage = ScreeningStage(jobs=FakeJobStore(jd_j1), embedder=FakeEmbedder(), repository=repository)

        first = await stage.run("j1")
        second = await stage.run("j1")

        assert [(r.candidate_id, r.rank) for r in first] == [(r.candidate_id, r.rank) for r in second]
