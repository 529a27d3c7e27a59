"""
PDF extraction: per-page text and outline entries.

The sectioners never read files; this provider turns a PDF on disk into the
page strings and bookmarks they consume. Any object with the same three
methods can stand in for it (tests use an in-memory fake).
"""

import logging
from pathlib import Path
from typing import Any, Protocol

from ..sectioning import PdfOutlineItem, PdfPage

logger = logging.getLogger(__name__)


class PdfExtractor(Protocol):
    """Reads page count, page texts and outline from a PDF file."""

    def page_count(self, path: Path) -> int: ...

    def extract_pages(self, path: Path) -> list[PdfPage]: ...

    def extract_outline(self, path: Path) -> list[PdfOutlineItem]: ...


class PypdfExtractor:
    """PdfExtractor backed by pypdf.

    Errors propagate as OSError/pypdf exceptions; the importer decides how
    to surface them.
    """

    def _reader(self, path: Path):
        from pypdf import PdfReader
        return PdfReader(path)

    def page_count(self, path: Path) -> int:
        return len(self._reader(path).pages)

    def extract_pages(self, path: Path) -> list[PdfPage]:
        """Text of every page, 1-based, blank string for pages without a text layer."""
        reader = self._reader(path)
        pages = []
        for i, page in enumerate(reader.pages):
            text = page.extract_text() or ""
            pages.append(PdfPage(page_number=i + 1, text=text.replace("\r\n", "\n").strip()))
        return pages

    def extract_outline(self, path: Path) -> list[PdfOutlineItem]:
        """Flatten the bookmark tree to one entry per page.

        Where several bookmarks land on the same page, the shallowest one
        (chapter over section over subsection) names the page; ties keep the
        first in document order.
        """
        reader = self._reader(path)
        best: dict[int, tuple[int, str]] = {}
        for depth, item in _walk_outline(reader.outline, 0):
            title = getattr(item, "title", None)
            if not title or not str(title).strip():
                continue
            try:
                page_index = reader.get_destination_page_number(item)
            except Exception as e:
                logger.debug("Skipping outline entry %r: %s", title, e)
                continue
            if page_index is None or page_index < 0:
                continue
            page_number = page_index + 1
            existing = best.get(page_number)
            if existing is None or depth < existing[0]:
                best[page_number] = (depth, str(title).strip())

        return [
            PdfOutlineItem(title=title, page_number=page_number)
            for page_number, (_, title) in sorted(best.items())
        ]


def _walk_outline(nodes: list[Any], depth: int):
    """Yield (depth, destination) for a pypdf outline (nested lists = children)."""
    for node in nodes:
        if isinstance(node, list):
            yield from _walk_outline(node, depth + 1)
        else:
            yield depth, node


def get_pdf_extractor(name: str) -> PdfExtractor:
    """Resolve the configured extractor name."""
    if name == "pypdf":
        return PypdfExtractor()
    raise ValueError(f"Unknown PDF extractor: {name!r}. Available: ['pypdf']")
