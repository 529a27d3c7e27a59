"""
Import preparation: everything that happens before a transaction.

prepare_import() validates the path and file type, enforces word/page
limits, sections the content, assigns anchors and captures the source
fingerprint. It never touches the store, so a limit or format error can
never leave persisted state behind.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .anchors import assign_anchors
from .config import LimitsConfig
from .errors import ConflictError, InternalError, NotFoundError, ValidationError
from .fingerprint import SourceFingerprint, capture_fingerprint
from .providers.pdf import PdfExtractor, PypdfExtractor
from .sectioning import ParsedSection, section_markdown, section_pdf, section_txt
from .wordcount import count_markdown_words, count_words

logger = logging.getLogger(__name__)

SUPPORTED_TYPES = {".pdf": "pdf", ".txt": "txt", ".md": "md"}

IMPORT_ERROR_MESSAGES = {
    "unsupported_type": "Unsupported file type. Supported types: .pdf, .txt, .md.",
    "pdf_ocr_not_supported": "OCR is not supported for scanned or non-text PDFs.",
}


def text_over_limit_message(limit: int) -> str:
    return f"File exceeds the {limit:,}-word limit for .txt/.md imports."


def pdf_over_limit_message(limit: int) -> str:
    return f"File exceeds the {limit:,}-page limit for PDF imports."


@dataclass(frozen=True)
class ImportedSection:
    """A sectioned, anchored section ready to persist."""
    heading: str
    content: str
    order_index: int
    anchor_key: str
    ordinal: int
    page_start: Optional[int] = None
    page_end: Optional[int] = None


@dataclass(frozen=True)
class PreparedImport:
    """Result of preparing a source file for import or re-import."""
    source_path: Path
    title: str
    file_type: str
    fingerprint: SourceFingerprint
    sections: tuple[ImportedSection, ...]
    word_count: Optional[int] = None
    page_count: Optional[int] = None


def resolve_source(source_path: str | Path) -> tuple[Path, str]:
    """Normalize a source path and detect its file type.

    Raises:
        ValidationError: Empty path or unsupported extension
    """
    raw = str(source_path).strip()
    if not raw:
        raise ValidationError("Source path is required", {"field": "sourcePath"})

    path = Path(raw).expanduser().resolve()
    suffix = path.suffix.lower()
    file_type = SUPPORTED_TYPES.get(suffix)
    if file_type is None:
        raise ValidationError(
            IMPORT_ERROR_MESSAGES["unsupported_type"],
            {"sourcePath": str(path), "extension": suffix},
        )
    return path, file_type


def ensure_source_exists(path: Path) -> None:
    """Raise NotFoundError unless path is an existing regular file."""
    try:
        if path.is_file():
            return
        exists = path.exists()
    except OSError as e:
        raise InternalError(
            "Failed to read source file metadata", {"sourcePath": str(path), "error": str(e)}
        ) from e
    if exists:
        raise ValidationError("Source path is not a file", {"sourcePath": str(path)})
    raise NotFoundError("Source file not found", {"sourcePath": str(path)})


def anchor_sections(sections: list[ParsedSection]) -> tuple[ImportedSection, ...]:
    """Attach anchor keys and order indexes to sectioner output."""
    anchors = assign_anchors(section.heading for section in sections)
    return tuple(
        ImportedSection(
            heading=section.heading,
            content=section.content,
            order_index=index,
            anchor_key=anchor.key,
            ordinal=anchor.ordinal,
            page_start=section.start_page,
            page_end=section.end_page,
        )
        for index, (section, anchor) in enumerate(zip(sections, anchors))
    )


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ValidationError(
            "Source file is not valid UTF-8 text", {"sourcePath": str(path)}
        ) from e
    except OSError as e:
        raise InternalError(
            "Failed to read source file", {"sourcePath": str(path), "error": str(e)}
        ) from e


def _ensure_within_word_limit(word_count: int, limit: int) -> None:
    if word_count > limit:
        raise ConflictError(
            text_over_limit_message(limit),
            {"limitWords": limit, "actualWords": word_count},
        )


def _section_text(
    path: Path, file_type: str, limits: LimitsConfig
) -> tuple[list[ParsedSection], int]:
    text = _read_text(path)
    if file_type == "md":
        word_count = count_markdown_words(text)
        _ensure_within_word_limit(word_count, limits.word_limit)
        return section_markdown(text), word_count

    word_count = count_words(text)
    _ensure_within_word_limit(word_count, limits.word_limit)
    return section_txt(text, limits.fallback_chunk_words), word_count


def _section_pdf(
    path: Path, extractor: PdfExtractor, limits: LimitsConfig
) -> tuple[list[ParsedSection], int]:
    try:
        page_count = extractor.page_count(path)
    except Exception as e:
        raise InternalError(
            "Failed to read PDF metadata", {"sourcePath": str(path), "error": str(e)}
        ) from e

    if page_count > limits.page_limit:
        raise ConflictError(
            pdf_over_limit_message(limits.page_limit),
            {"limitPages": limits.page_limit, "actualPages": page_count},
        )

    try:
        pages = extractor.extract_pages(path)
    except Exception as e:
        raise InternalError(
            "Failed to extract PDF text", {"sourcePath": str(path), "error": str(e)}
        ) from e

    if not any(page.text.strip() for page in pages):
        raise ConflictError(
            IMPORT_ERROR_MESSAGES["pdf_ocr_not_supported"], {"sourcePath": str(path)}
        )

    try:
        outline = extractor.extract_outline(path)
    except Exception as e:
        # An unreadable outline only costs the outline strategy
        logger.warning("Ignoring unreadable PDF outline for %s: %s", path.name, e)
        outline = []

    return section_pdf(pages, outline or None), page_count


def prepare_import(
    source_path: str | Path,
    *,
    limits: Optional[LimitsConfig] = None,
    pdf_extractor: Optional[PdfExtractor] = None,
) -> PreparedImport:
    """
    Validate, section and fingerprint a source file.

    Args:
        source_path: Path to a .txt, .md or .pdf file
        limits: Word/page limits (defaults: 25,000 words, 50 pages)
        pdf_extractor: PDF reader (defaults to pypdf)

    Returns:
        PreparedImport with anchored sections and the source fingerprint

    Raises:
        ValidationError: Empty path, unsupported type, undecodable text
        NotFoundError: Source file missing
        ConflictError: Word/page limit exceeded, PDF without a text layer
        InternalError: Unreadable file or PDF
    """
    limits = limits or LimitsConfig()
    path, file_type = resolve_source(source_path)
    ensure_source_exists(path)

    try:
        fingerprint = capture_fingerprint(path)
    except FileNotFoundError as e:
        raise NotFoundError("Source file not found", {"sourcePath": str(path)}) from e
    except OSError as e:
        raise InternalError(
            "Failed to read source file", {"sourcePath": str(path), "error": str(e)}
        ) from e

    word_count: Optional[int] = None
    page_count: Optional[int] = None
    if file_type == "pdf":
        parsed, page_count = _section_pdf(path, pdf_extractor or PypdfExtractor(), limits)
    else:
        parsed, word_count = _section_text(path, file_type, limits)

    sections = anchor_sections(parsed)
    logger.debug(
        "Prepared %s (%s): %d sections", path.name, file_type, len(sections)
    )
    return PreparedImport(
        source_path=path,
        title=path.name,
        file_type=file_type,
        fingerprint=fingerprint,
        sections=sections,
        word_count=word_count,
        page_count=page_count,
    )


__all__ = [
    "ImportedSection",
    "PreparedImport",
    "prepare_import",
    "resolve_source",
]
