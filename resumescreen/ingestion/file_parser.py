"""Turn raw resume bytes into plain text (PDF, or a generic Word document)."""
import asyncio
import io
import logging
import zipfile
from pathlib import PurePosixPath

from docx import Document
from docx.opc.exceptions import PackageNotFoundError
from pypdf import PdfReader
from pypdf.errors import PdfReadError

from ..errors import UnsupportedFileFormatError

logger = logging.getLogger(__name__)


def parse_file(filename: str, file_bytes: bytes) -> str:
    """
    Parse a resume file and extract text.

    The strategy is chosen from the extension alone: ".pdf" goes through
    pypdf, everything else is treated as a Word document.

    Raises:
        UnsupportedFileFormatError: the bytes cannot be read with the chosen
            strategy, or no text could be extracted.
    """
    suffix = PurePosixPath(filename).suffix.lower()

    if suffix == ".pdf":
        logger.debug(f"   → {filename}: PDF")
        text = _parse_pdf(filename, file_bytes)
    else:
        logger.debug(f"   → {filename}: document")
        text = _parse_document(filename, file_bytes)

    if not text.strip():
        raise UnsupportedFileFormatError(filename, "no extractable text")

    logger.info(f"   → Extracted {len(text)} chars from {filename}")
    return text


async def extract_text(filename: str, file_bytes: bytes) -> str:
    """parse_file() off the event loop."""
    return await asyncio.to_thread(parse_file, filename, file_bytes)


def _parse_pdf(filename: str, file_bytes: bytes) -> str:
    """Extract text from PDF using pypdf."""
    try:
        reader = PdfReader(io.BytesIO(file_bytes))
        text_parts = []
        for page in reader.pages:
            text = page.extract_text()
            if text:
                text_parts.append(text)
        return "\n".join(text_parts)
    except (PdfReadError, ValueError) as e:
        logger.error(f"   ❌ PDF parsing failed for {filename}: {e}")
        raise UnsupportedFileFormatError(filename, str(e)) from e


def _parse_document(filename: str, file_bytes: bytes) -> str:
    """Extract text from DOCX using python-docx, paragraphs then tables."""
    try:
        doc = Document(io.BytesIO(file_bytes))
    except (zipfile.BadZipFile, PackageNotFoundError, KeyError, ValueError) as e:
        logger.error(f"   ❌ Document parsing failed for {filename}: {e}")
        raise UnsupportedFileFormatError(filename, str(e)) from e

    text_parts = [p.text for p in doc.paragraphs if p.text.strip()]

    for table in doc.tables:
        for row in table.rows:
            for cell in row.cells:
                if cell.text.strip():
                    text_parts.append(cell.text)

    return "\n".join(text_parts)
