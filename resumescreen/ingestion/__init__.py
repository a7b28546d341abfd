"""Resume text extraction, structured profile extraction and embeddings."""
from .file_parser import extract_text, parse_file
from .llm_extractor import ProfileExtractor
from .embedding_generator import EmbeddingGenerator, normalize_text

__all__ = [
    "extract_text",
    "parse_file",
    "ProfileExtractor",
    "EmbeddingGenerator",
    "normalize_text",
]
