"""Generate fixed-dimension embeddings with a sentence-transformers model."""
import asyncio
import logging
from typing import List, Literal, Optional

from .. import config
from ..errors import EmbeddingError

logger = logging.getLogger(__name__)

# E5 models need "passage:" for documents and "query:" for what they are matched against
Prefix = Literal["passage", "query"]


def normalize_text(text: str) -> str:
    """Collapse newlines to spaces before encoding."""
    return " ".join(text.replace("\r", " ").replace("\n", " ").split())


class EmbeddingGenerator:
    """Turns text into a normalized vector of length `dimension`."""

    def __init__(self, encoder=None, dimension: Optional[int] = None):
        self._encoder = encoder
        self.dimension = dimension if dimension is not None else config.EMBED_DIM

    @property
    def encoder(self):
        if self._encoder is None:
            self._encoder = config.get_encoder()
        return self._encoder

    def _encode(self, text: str) -> List[float]:
        vector = self.encoder.encode(
            text,
            normalize_embeddings=True,
            convert_to_numpy=True,
            show_progress_bar=False,
        )
        return [float(x) for x in vector]

    async def embed(self, text: str, prefix: Prefix = "passage") -> List[float]:
        """
        Embed one text.

        Args:
            text: Text to embed; newlines are normalized to spaces
            prefix: 'passage' for resumes, 'query' for the job description

        Raises:
            EmbeddingError: the model returned a vector of the wrong size
        """
        prefixed = f"{prefix}: {normalize_text(text)}"
        vector = await asyncio.to_thread(self._encode, prefixed)

        if len(vector) != self.dimension:
            raise EmbeddingError(
                f"Expected a {self.dimension}-dim embedding, got {len(vector)}"
            )
        return vector
