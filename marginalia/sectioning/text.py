"""
Plain-text sectioner.

Heading-like lines delimit sections. Text without any heading-like line is
bucketed by paragraphs into numbered sections of bounded word count.
"""

import logging
import re

from ..config import DEFAULT_FALLBACK_CHUNK_WORDS
from ..wordcount import count_words, tokenize_words
from .base import ParsedSection, is_heading_like_line, normalize_heading, split_lines
from .markdown import Boundary, sections_from_boundaries

logger = logging.getLogger(__name__)

_PARAGRAPH_BREAK_RE = re.compile(r"\n\s*\n")


def split_paragraph(paragraph: str, max_words: int) -> list[str]:
    """Split a paragraph longer than max_words into max_words-sized chunks.

    Chunks are the paragraph's words joined by single spaces; a paragraph
    within budget is returned unchanged (trimmed).
    """
    words = tokenize_words(paragraph)
    if len(words) <= max_words:
        return [paragraph.strip()]
    return [" ".join(words[i:i + max_words]) for i in range(0, len(words), max_words)]


def paragraph_sections(
    source: str, max_words: int = DEFAULT_FALLBACK_CHUNK_WORDS
) -> list[ParsedSection]:
    """Greedily pack paragraphs into 'Section N' buckets of at most max_words.

    A single oversized paragraph is split first, so every bucket respects
    the budget. Empty input yields one empty 'Section 1'.
    """
    paragraphs = [p.strip() for p in _PARAGRAPH_BREAK_RE.split(source)]
    paragraphs = [p for p in paragraphs if p]
    if not paragraphs:
        return [ParsedSection("Section 1", "", 0)]

    chunks = [chunk for p in paragraphs for chunk in split_paragraph(p, max_words)]

    sections: list[ParsedSection] = []
    bucket: list[str] = []
    bucket_words = 0

    def flush() -> None:
        nonlocal bucket, bucket_words
        if bucket:
            sections.append(ParsedSection(
                f"Section {len(sections) + 1}",
                "\n\n".join(bucket).strip(),
                0,
            ))
        bucket = []
        bucket_words = 0

    for chunk in chunks:
        words = count_words(chunk)
        if bucket_words > 0 and bucket_words + words > max_words:
            flush()
        bucket.append(chunk)
        bucket_words += words
    flush()

    return sections


def section_txt(
    source: str, max_words: int = DEFAULT_FALLBACK_CHUNK_WORDS
) -> list[ParsedSection]:
    """Split plain text at heading-like lines, or by paragraph buckets.

    Never returns an empty list.
    """
    lines = split_lines(source)
    boundaries = [
        Boundary(normalize_heading(line), i, i + 1)
        for i, line in enumerate(lines)
        if is_heading_like_line(line)
    ]

    if not boundaries:
        sections = paragraph_sections(source, max_words)
        logger.debug("Text: no heading-like lines, %d paragraph buckets", len(sections))
        return sections

    logger.debug("Text: %d heading-like lines", len(boundaries))
    return sections_from_boundaries(lines, boundaries)
