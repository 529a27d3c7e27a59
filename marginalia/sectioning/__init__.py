"""
Format sectioners: deterministic splitting of source text into sections.

Every sectioner is a pure function of its input and returns at least one
section.
"""

from .base import DOCUMENT_HEADING, ParsedSection, PdfOutlineItem, PdfPage, is_heading_like_line
from .markdown import section_markdown
from .pdf import section_pdf
from .text import section_txt

__all__ = [
    "DOCUMENT_HEADING",
    "ParsedSection",
    "PdfOutlineItem",
    "PdfPage",
    "is_heading_like_line",
    "section_markdown",
    "section_pdf",
    "section_txt",
]
