"""
PDF sectioner over already-extracted page text.

Strategies, in priority order:
1. Outline (bookmarks): one section per outline entry, spanning pages up to
   the next entry.
2. Heading detection: the plain-text heading heuristic applied line by line
   across all pages.
3. Two-page buckets titled ``Pages {start}-{end}``.
"""

import logging
from typing import Optional, Sequence

from .base import (
    DOCUMENT_HEADING,
    ParsedSection,
    PdfOutlineItem,
    PdfPage,
    is_heading_like_line,
    normalize_heading,
    split_lines,
)

logger = logging.getLogger(__name__)

PAGES_PER_BUCKET = 2


def _join_pages(pages: Sequence[PdfPage], start: int, end: int) -> str:
    return "\n\n".join(
        page.text for page in pages if start <= page.page_number <= end
    ).strip()


def section_by_outline(
    pages: Sequence[PdfPage], outline: Sequence[PdfOutlineItem]
) -> list[ParsedSection]:
    """Map outline entries to page-range sections.

    Entries pointing outside the document's page range are dropped. Pages
    before the first entry become a leading 'Document' section. When several
    entries share a page, only the last of them opens a section.
    """
    first_page = pages[0].page_number
    last_page = pages[-1].page_number
    entries = sorted(
        (
            item for item in outline
            if isinstance(item.page_number, int)
            and first_page <= item.page_number <= last_page
        ),
        key=lambda item: item.page_number,
    )
    if not entries:
        return []

    sections: list[ParsedSection] = []
    first_outline_page = entries[0].page_number
    if first_outline_page > first_page:
        sections.append(ParsedSection(
            DOCUMENT_HEADING,
            _join_pages(pages, first_page, first_outline_page - 1),
            start_page=first_page,
            end_page=first_outline_page - 1,
        ))

    for i, current in enumerate(entries):
        start = current.page_number
        end = entries[i + 1].page_number - 1 if i + 1 < len(entries) else last_page
        if end < start:
            continue
        sections.append(ParsedSection(
            normalize_heading(current.title),
            _join_pages(pages, start, end),
            start_page=start,
            end_page=end,
        ))

    return sections


def section_by_heading_detection(pages: Sequence[PdfPage]) -> list[ParsedSection]:
    """Apply the plain-text heading heuristic across page lines.

    A section spans from its heading's page to the next heading's page
    (inclusive), or to the last page.
    """
    rows = [
        (line, page.page_number)
        for page in pages
        for line in split_lines(page.text)
    ]
    heading_rows = [i for i, (line, _) in enumerate(rows) if is_heading_like_line(line)]
    if not heading_rows:
        return []

    last_page = pages[-1].page_number
    sections: list[ParsedSection] = []

    first = heading_rows[0]
    if first > 0:
        preface = "\n".join(line for line, _ in rows[:first]).strip()
        if preface:
            sections.append(ParsedSection(
                DOCUMENT_HEADING,
                preface,
                start_page=pages[0].page_number,
                end_page=rows[first][1],
            ))

    for n, index in enumerate(heading_rows):
        next_index = heading_rows[n + 1] if n + 1 < len(heading_rows) else None
        end = next_index if next_index is not None else len(rows)
        line, page_number = rows[index]
        sections.append(ParsedSection(
            normalize_heading(line),
            "\n".join(text for text, _ in rows[index + 1:end]).strip(),
            start_line=index,
            start_page=page_number,
            end_page=rows[next_index][1] if next_index is not None else last_page,
        ))

    return sections


def section_by_page_buckets(
    pages: Sequence[PdfPage], per_bucket: int = PAGES_PER_BUCKET
) -> list[ParsedSection]:
    """Bucket pages two at a time, blank pages included."""
    sections: list[ParsedSection] = []
    for i in range(0, len(pages), per_bucket):
        bucket = pages[i:i + per_bucket]
        start = bucket[0].page_number
        end = bucket[-1].page_number
        sections.append(ParsedSection(
            f"Pages {start}-{end}",
            "\n\n".join(page.text for page in bucket).strip(),
            start_page=start,
            end_page=end,
        ))
    return sections


def section_pdf(
    pages: Sequence[PdfPage],
    outline: Optional[Sequence[PdfOutlineItem]] = None,
) -> list[ParsedSection]:
    """Section a PDF from its page texts and optional outline.

    Pages are ordered by page number first, so input order does not matter.
    Never returns an empty list: a PDF with no pages yields one empty
    'Document' section.
    """
    ordered = sorted(pages, key=lambda page: page.page_number)
    if not ordered:
        return [ParsedSection(DOCUMENT_HEADING, "")]

    if outline:
        sections = section_by_outline(ordered, outline)
        if sections:
            logger.debug("PDF: %d outline sections", len(sections))
            return sections

    sections = section_by_heading_detection(ordered)
    if sections:
        logger.debug("PDF: %d heading-detected sections", len(sections))
        return sections

    sections = section_by_page_buckets(ordered)
    logger.debug("PDF: %d page buckets of %d", len(sections), PAGES_PER_BUCKET)
    return sections
