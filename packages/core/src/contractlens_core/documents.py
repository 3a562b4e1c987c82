"""Load TXT / PDF / DOCX contracts as normalised plain text."""

from __future__ import annotations

import codecs
import logging
from pathlib import Path

import docx
from PyPDF2 import PdfReader
from PyPDF2.errors import PdfReadError

from contractlens_core.errors import (
    DocumentTooLarge,
    EmptyDocument,
    FileReadFailed,
    InvalidFileType,
    UnsupportedFileType,
)
from contractlens_core.models import DocumentKind, LoadedDocument

logger = logging.getLogger(__name__)

_KINDS = {
    ".txt": DocumentKind.PLAIN_TEXT,
    ".pdf": DocumentKind.PDF,
    ".docx": DocumentKind.DOCX,
}

# UTF-16 is only tried when the file starts with a byte-order mark.
_TEXT_ENCODINGS = ("utf-8-sig", "gb18030")

CHARS_PER_TOKEN = 3.8


def estimate_tokens(text: str) -> int:
    """Rough token estimate: characters / 3.8, rounded half-to-even, at least 1."""
    if not text:
        return 0
    return max(1, round(len(text) / CHARS_PER_TOKEN))


def detect_kind(path: str | Path) -> DocumentKind:
    suffix = Path(path).suffix
    if not suffix:
        raise InvalidFileType()
    kind = _KINDS.get(suffix.lower())
    if kind is None:
        raise UnsupportedFileType(suffix.lstrip("."))
    return kind


class DocumentLoader:
    def load(self, path: str | Path, max_estimated_tokens: int | None = None) -> LoadedDocument:
        """Read ``path`` and return its text with character and token counts.

        Raises a ReviewError subclass for unknown types, unreadable or empty
        files, and documents whose estimate exceeds ``max_estimated_tokens``.
        """
        path = Path(path)
        kind = detect_kind(path)

        if kind == DocumentKind.PLAIN_TEXT:
            raw = self._load_text(path)
        elif kind == DocumentKind.PDF:
            raw = self._load_pdf(path)
        else:
            raw = self._load_docx(path)

        text = raw.replace("\r\n", "\n").replace("\r", "\n").strip()
        if not text:
            raise EmptyDocument()

        estimated = estimate_tokens(text)
        if max_estimated_tokens is not None and estimated > max_estimated_tokens:
            raise DocumentTooLarge(estimated, max_estimated_tokens)

        logger.debug("Loaded %s (%s, %d chars, ~%d tokens)", path.name, kind.value, len(text), estimated)
        return LoadedDocument(kind=kind, text=text, character_count=len(text), estimated_token_count=estimated)

    def _load_text(self, path: Path) -> str:
        try:
            data = path.read_bytes()
        except OSError as e:
            raise FileReadFailed() from e
        if data.startswith((codecs.BOM_UTF16_LE, codecs.BOM_UTF16_BE)):
            try:
                return data.decode("utf-16")
            except UnicodeDecodeError as e:
                raise FileReadFailed() from e
        for encoding in _TEXT_ENCODINGS:
            try:
                return data.decode(encoding)
            except UnicodeDecodeError:
                continue
        raise FileReadFailed()

    def _load_pdf(self, path: Path) -> str:
        try:
            reader = PdfReader(str(path))
        except OSError as e:
            raise FileReadFailed() from e
        except PdfReadError as e:
            # Not a PDF we can open.
            raise UnsupportedFileType(path.suffix.lstrip(".")) from e

        pages = []
        for page in reader.pages:
            content = (page.extract_text() or "").strip()
            if content:
                pages.append(content)
        if not pages:
            raise EmptyDocument()
        return "\n\n".join(pages)

    def _load_docx(self, path: Path) -> str:
        try:
            document = docx.Document(str(path))
        except Exception as e:
            raise FileReadFailed() from e
        return "\n".join(p.text for p in document.paragraphs)
