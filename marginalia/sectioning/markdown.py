"""
Markdown sectioner: boundaries at ATX and Setext headings.
"""

import logging
import re
from dataclasses import dataclass

from .base import DOCUMENT_HEADING, ParsedSection, normalize_heading, split_lines

logger = logging.getLogger(__name__)

ATX_HEADING_RE = re.compile(r"^\s{0,3}#{1,6}\s+(.+?)\s*#*\s*$")
SETEXT_UNDERLINE_RE = re.compile(r"^\s*(=+|-+)\s*$")


@dataclass(frozen=True)
class Boundary:
    """A heading position: the heading line and where its body starts."""
    heading: str
    start_line: int
    content_start_line: int


def markdown_boundaries(lines: list[str]) -> list[Boundary]:
    """Find ATX (``## Title``) and Setext (``Title`` over ``===``) headings."""
    boundaries: list[Boundary] = []
    i = 0
    while i < len(lines):
        line = lines[i]
        atx = ATX_HEADING_RE.match(line)
        if atx:
            boundaries.append(Boundary(normalize_heading(atx.group(1)), i, i + 1))
            i += 1
            continue

        next_line = lines[i + 1] if i + 1 < len(lines) else ""
        if line.strip() and SETEXT_UNDERLINE_RE.match(next_line):
            boundaries.append(Boundary(normalize_heading(line), i, i + 2))
            i += 2
            continue
        i += 1
    return boundaries


def sections_from_boundaries(
    lines: list[str], boundaries: list[Boundary]
) -> list[ParsedSection]:
    """Slice lines into sections, with a leading 'Document' section for
    non-empty content before the first boundary."""
    sections: list[ParsedSection] = []

    first = boundaries[0]
    if first.start_line > 0:
        preface = "\n".join(lines[:first.start_line]).strip()
        if preface:
            sections.append(ParsedSection(DOCUMENT_HEADING, preface, 0))

    for i, current in enumerate(boundaries):
        end = boundaries[i + 1].start_line if i + 1 < len(boundaries) else len(lines)
        content = "\n".join(lines[current.content_start_line:end]).strip()
        sections.append(ParsedSection(current.heading, content, current.start_line))

    return sections


def section_markdown(source: str) -> list[ParsedSection]:
    """Split a Markdown source into heading-delimited sections.

    With no headings at all, the whole source is a single 'Document'
    section. Never returns an empty list.
    """
    lines = split_lines(source)
    boundaries = markdown_boundaries(lines)

    if not boundaries:
        logger.debug("Markdown: no headings, single Document section")
        return [ParsedSection(DOCUMENT_HEADING, source.strip(), 0)]

    logger.debug("Markdown: %d heading boundaries", len(boundaries))
    return sections_from_boundaries(lines, boundaries)
