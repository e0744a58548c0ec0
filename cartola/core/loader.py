"""
Statement loading: text from CSV/TXT files and PDFs (via pdfplumber).
"""
import io
from pathlib import Path
from typing import List, Optional, Union
import logging

import pdfplumber

logger = logging.getLogger(__name__)

LIGATURES = {
    'ﬁ': 'fi',
    'ﬂ': 'fl',
    'ﬀ': 'ff',
    'ﬃ': 'ffi',
    'ﬄ': 'ffl',
}


class StatementLoadError(ValueError):
    """The statement file could not be read as text."""


class StatementLoader:
    """Reads a statement file, or its uploaded bytes, into plain text."""

    def __init__(self, source: Union[Path, bytes], filename: Optional[str] = None):
        self.source = source
        if filename is None and isinstance(source, Path):
            filename = source.name
        self.filename = filename or ""

    @property
    def is_pdf(self) -> bool:
        return self.filename.lower().endswith('.pdf')

    def _read_bytes(self) -> bytes:
        if isinstance(self.source, bytes):
            return self.source

        try:
            return Path(self.source).read_bytes()
        except OSError as e:
            raise StatementLoadError(f"Cannot read statement file {self.source}: {e}") from e

    def load(self) -> str:
        """
        Load the statement text.

        Returns:
            Document text, one line per row

        Raises:
            StatementLoadError: If the file cannot be read or a PDF has no text
        """
        data = self._read_bytes()

        if self.is_pdf:
            return self._load_pdf(data)

        return self._decode(data)

    def _load_pdf(self, data: bytes) -> str:
        pages: List[str] = []
        try:
            with pdfplumber.open(io.BytesIO(data)) as pdf:
                logger.info(f"Loaded PDF with {len(pdf.pages)} pages")
                for i, page in enumerate(pdf.pages, 1):
                    text = page.extract_text() or ""
                    for ligature, replacement in LIGATURES.items():
                        text = text.replace(ligature, replacement)
                    pages.append(text)
                    logger.debug(f"Page {i}: {len(text)} characters extracted")
        except Exception as e:
            logger.error(f"Error loading PDF: {e}")
            raise StatementLoadError(f"Cannot read PDF {self.filename}: {e}") from e

        content = '\n'.join(pages)
        if not content.strip():
            raise StatementLoadError(f"No text found in PDF {self.filename}")

        return content

    @staticmethod
    def _decode(data: bytes) -> str:
        try:
            return data.decode('utf-8-sig')
        except UnicodeDecodeError:
            logger.debug("Statement is not UTF-8, decoding as latin-1")
            return data.decode('latin-1')


def load_statement_text(source: Union[Path, bytes], filename: Optional[str] = None) -> str:
    """
    Read a statement into text.

    Args:
        source: File path or raw uploaded bytes
        filename: Original name, needed to recognise PDFs given as bytes

    Returns:
        Statement text
    """
    return StatementLoader(source, filename).load()
