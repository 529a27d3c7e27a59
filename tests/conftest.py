"""
Shared pytest fixtures for marginalia tests.

Provides a deterministic id generator, an in-memory PDF extractor and
helpers for writing source files, so tests never depend on real PDFs or
random ids.
"""

import sqlite3
from pathlib import Path

import pytest

from marginalia.api import Workspace
from marginalia.config import StoreConfig
from marginalia.ids import SequentialIdGenerator
from marginalia.sectioning import PdfOutlineItem, PdfPage


class FakePdfExtractor:
    """
    In-memory PdfExtractor keyed by file name.

    Register page texts (and optionally an outline) per file name; the file
    itself only needs to exist on disk for fingerprinting.
    """

    def __init__(self):
        self.documents: dict[str, tuple[list[str], list[PdfOutlineItem]]] = {}
        self.outline_error: Exception | None = None

    def add(self, name: str, pages: list[str], outline: list[tuple[str, int]] = ()) -> None:
        self.documents[name] = (
            pages,
            [PdfOutlineItem(title, page) for title, page in outline],
        )

    def _lookup(self, path: Path):
        return self.documents[Path(path).name]

    def page_count(self, path: Path) -> int:
        return len(self._lookup(path)[0])

    def extract_pages(self, path: Path) -> list[PdfPage]:
        pages, _ = self._lookup(path)
        return [PdfPage(i + 1, text) for i, text in enumerate(pages)]

    def extract_outline(self, path: Path) -> list[PdfOutlineItem]:
        if self.outline_error is not None:
            raise self.outline_error
        return list(self._lookup(path)[1])


@pytest.fixture
def ids():
    """Deterministic ids: doc-1, rev-1, sec-1, ..."""
    return SequentialIdGenerator()


@pytest.fixture
def fake_pdf():
    return FakePdfExtractor()


@pytest.fixture
def store_config(tmp_path):
    return StoreConfig(path=tmp_path / "store", workspace_id="ws-test")


@pytest.fixture
def workspace(store_config, ids, fake_pdf):
    """A fresh workspace on a temp store, closed after the test."""
    ws = Workspace(config=store_config, ids=ids, pdf_extractor=fake_pdf)
    yield ws
    ws.close()


@pytest.fixture
def docs_dir(tmp_path):
    path = tmp_path / "docs"
    path.mkdir()
    return path


def _write_source(directory: Path, name: str, text: str) -> Path:
    path = directory / name
    path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture
def write_source(docs_dir):
    """Write a UTF-8 source file into docs_dir: write_source(name, text) -> Path."""
    return lambda name, text: _write_source(docs_dir, name, text)


def _table_snapshot(db_path: Path) -> dict[str, list[tuple]]:
    """Full contents of every table, for byte-identical before/after checks."""
    conn = sqlite3.connect(str(db_path))
    try:
        tables = [
            "documents", "document_revisions", "sections", "notes",
            "note_reassignment_queue", "provocations",
        ]
        return {
            table: conn.execute(f"SELECT * FROM {table} ORDER BY rowid").fetchall()
            for table in tables
        }
    finally:
        conn.close()


@pytest.fixture
def table_snapshot():
    """table_snapshot(db_path) -> every row of every table."""
    return _table_snapshot
