"""Tests for import preparation: validation, limits, sectioning, anchors."""

import pytest

from marginalia.config import LimitsConfig
from marginalia.errors import (
    ConflictError,
    ErrorCode,
    InternalError,
    NotFoundError,
    ValidationError,
)
from marginalia.ingest import prepare_import


class TestValidation:

    def test_unsupported_extension(self, write_source):
        path = write_source("notes.docx", "text")
        with pytest.raises(ValidationError) as exc_info:
            prepare_import(path)
        assert exc_info.value.message == "Unsupported file type. Supported types: .pdf, .txt, .md."
        assert exc_info.value.code == ErrorCode.VALIDATION

    def test_empty_path(self):
        with pytest.raises(ValidationError, match="Source path is required"):
            prepare_import("   ")

    def test_missing_file(self, docs_dir):
        with pytest.raises(NotFoundError, match="Source file not found"):
            prepare_import(docs_dir / "gone.md")

    def test_extension_is_case_insensitive(self, write_source):
        prepared = prepare_import(write_source("README.MD", "# Hi\nthere"))
        assert prepared.file_type == "md"


class TestWordLimit:
    """Word limits for .txt/.md are checked before sectioning."""

    def test_limit_is_inclusive(self, write_source):
        path = write_source("exact.txt", " ".join(["word"] * 25_000))
        prepared = prepare_import(path)
        assert prepared.word_count == 25_000

    def test_one_word_over_fails(self, write_source):
        path = write_source("over.txt", " ".join(["word"] * 25_001))
        with pytest.raises(ConflictError) as exc_info:
            prepare_import(path)
        assert "25,000-word" in exc_info.value.message
        assert exc_info.value.details == {"limitWords": 25_000, "actualWords": 25_001}

    def test_markdown_counts_visible_words(self, write_source):
        path = write_source("a.md", "# One\n\n[two](http://a.b/c/d/e/f/g/h)")
        with pytest.raises(ConflictError):
            prepare_import(path, limits=LimitsConfig(word_limit=1))
        assert prepare_import(path, limits=LimitsConfig(word_limit=2)).word_count == 2


class TestPdf:

    def test_page_limit(self, write_source, fake_pdf):
        path = write_source("big.pdf", "%PDF-fake")
        fake_pdf.add("big.pdf", ["text"] * 51)
        with pytest.raises(ConflictError, match="50-page"):
            prepare_import(path, pdf_extractor=fake_pdf)

    def test_no_text_layer(self, write_source, fake_pdf):
        path = write_source("scan.pdf", "%PDF-fake")
        fake_pdf.add("scan.pdf", ["", "  ", "\n"])
        with pytest.raises(ConflictError, match="OCR is not supported"):
            prepare_import(path, pdf_extractor=fake_pdf)

    def test_extraction_failure_is_internal(self, write_source):
        path = write_source("broken.pdf", "%PDF-fake")

        class Broken:
            def page_count(self, path):
                raise OSError("bad xref")

        with pytest.raises(InternalError, match="Failed to read PDF metadata"):
            prepare_import(path, pdf_extractor=Broken())

    def test_unreadable_outline_is_ignored(self, write_source, fake_pdf):
        path = write_source("doc.pdf", "%PDF-fake")
        fake_pdf.add("doc.pdf", ["page one", "page two"], outline=[("Intro", 1)])
        fake_pdf.outline_error = ValueError("bad outline")
        prepared = prepare_import(path, pdf_extractor=fake_pdf)
        assert [s.heading for s in prepared.sections] == ["Pages 1-2"]

    def test_outline_sections_carry_pages(self, write_source, fake_pdf):
        path = write_source("doc.pdf", "%PDF-fake")
        fake_pdf.add("doc.pdf", ["a", "b", "c"], outline=[("Intro", 1), ("Body", 2)])
        prepared = prepare_import(path, pdf_extractor=fake_pdf)
        assert prepared.page_count == 3
        assert [(s.heading, s.page_start, s.page_end) for s in prepared.sections] == [
            ("Intro", 1, 1), ("Body", 2, 3),
        ]


class TestAnchoredSections:

    def test_sections_get_anchor_keys_and_order(self, write_source):
        path = write_source("a.md", "pre\n# Intro\na\n# Intro\nb\n# Crème\nc")
        prepared = prepare_import(path)
        assert [(s.order_index, s.anchor_key, s.ordinal) for s in prepared.sections] == [
            (0, "document#1", 1),
            (1, "intro#1", 1),
            (2, "intro#2", 2),
            (3, "creme#1", 1),
        ]
        assert prepared.title == "a.md"
        assert prepared.fingerprint.size == path.stat().st_size
