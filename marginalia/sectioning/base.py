"""
Shared types and heading heuristics for the format sectioners.
"""

import re
from dataclasses import dataclass
from typing import Optional

# Heading shown for content that precedes the first detected boundary,
# and for sources with no boundaries at all.
DOCUMENT_HEADING = "Document"

NUMBERED_HEADING_RE = re.compile(r"^\d+(\.\d+)*\s+\S+")
TITLE_STYLE_RE = re.compile(r"^[A-Za-z][A-Za-z0-9 /&()'\\-]{1,80}:$")
_SENTENCE_END_RE = re.compile(r"[.?!]$")

LINE_SPLIT_RE = re.compile(r"\r?\n")


@dataclass(frozen=True)
class ParsedSection:
    """One section produced by a sectioner, before anchors are assigned.

    ``start_line`` is the zero-based line of the heading in the source
    (0 for synthesized sections). PDF sections carry an inclusive page range.
    """
    heading: str
    content: str
    start_line: int = 0
    start_page: Optional[int] = None
    end_page: Optional[int] = None


@dataclass(frozen=True)
class PdfPage:
    """Already-extracted text of one PDF page (1-based page number)."""
    page_number: int
    text: str


@dataclass(frozen=True)
class PdfOutlineItem:
    """A bookmark pointing at a 1-based page."""
    title: str
    page_number: int


def normalize_heading(value: str) -> str:
    """Trim a heading; blank headings become 'Section'."""
    trimmed = value.strip()
    return trimmed if trimmed else "Section"


def split_lines(source: str) -> list[str]:
    return LINE_SPLIT_RE.split(source)


def _is_short_all_caps_heading(line: str) -> bool:
    """3-80 chars, at least two words, >=80% uppercase letters, no sentence end."""
    if len(line) < 3 or len(line) > 80:
        return False
    if _SENTENCE_END_RE.search(line):
        return False
    if len(line.split()) < 2:
        return False
    letters = [ch for ch in line if ch.isalpha()]
    if not letters:
        return False
    upper = sum(1 for ch in letters if ch == ch.upper())
    return upper / len(letters) >= 0.8


def is_heading_like_line(line: str) -> bool:
    """Plain-text heading heuristic shared by the txt and PDF sectioners.

    A line is heading-like if it is a numbered heading (``2.1 Methods``),
    a short all-caps line (``RESULTS AND DISCUSSION``), or a short
    title-style line ending in a colon (``Background:``).
    """
    trimmed = line.strip()
    if not trimmed:
        return False
    return bool(
        NUMBERED_HEADING_RE.match(trimmed)
        or _is_short_all_caps_heading(trimmed)
        or TITLE_STYLE_RE.match(trimmed)
    )
