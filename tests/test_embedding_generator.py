import numpy as np
import pytest

from resumescreen.errors import EmbeddingError
from resumescreen.ingestion.embedding_generator import EmbeddingGenerator, normalize_text


class FakeEncoder:
    def __init__(self, dimension=4):
        self.dimension = dimension
        self.inputs = []
        self.kwargs = []

    def encode(self, text, **kwargs):
        self.inputs.append(text)
        self.kwargs.append(kwargs)
        return np.full(self.dimension, 0.5, dtype=np.float32)


class TestNormalizeText:
    def test_newlines_become_spaces(self):
        assert normalize_text("Go\nPostgres\r\n  Redis") == "Go Postgres Redis"


class TestEmbeddingGenerator:
    async def test_passage_prefix_by_default(self):
        encoder = FakeEncoder()
        generator = EmbeddingGenerator(encoder=encoder, dimension=4)

        vector = await generator.embed("Backend\nengineer")

        assert encoder.inputs == ["passage: Backend engineer"]
        assert encoder.kwargs[0]["normalize_embeddings"] is True
        assert vector == [0.5, 0.5, 0.5, 0.5]
        assert all(isinstance(x, float) for x in vector)

    async def test_query_prefix(self):
        encoder = FakeEncoder()

        await EmbeddingGenerator(encoder=encoder, dimension=4).embed("Go developer", prefix="query")

        assert encoder.inputs == ["query: Go developer"]

    async def test_wrong_dimension_raises(self):
        generator = EmbeddingGenerator(encoder=FakeEncoder(dimension=3), dimension=4)

        with pytest.raises(EmbeddingError):
            await generator.embed("text")
