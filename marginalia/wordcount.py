"""
Unicode-aware word counting for import limits.

A word is a maximal run of letters and digits in any script. Markdown is
reduced to its visible text before counting so syntax does not inflate the
total.
"""

import re

# Letters and digits in any script ([^\W_] is \w without the underscore)
_WORD_RE = re.compile(r"[^\W_]+")

_FENCED_BACKTICK_RE = re.compile(r"```.*?```", re.DOTALL)
_FENCED_TILDE_RE = re.compile(r"~~~.*?~~~", re.DOTALL)
_INLINE_CODE_RE = re.compile(r"`([^`]*)`")
_IMAGE_RE = re.compile(r"!\[([^\]]*)\]\(([^)]+)\)")
_LINK_RE = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")
_HEADING_MARK_RE = re.compile(r"^\s{0,3}(#{1,6})\s+", re.MULTILINE)
_QUOTE_MARK_RE = re.compile(r"^\s{0,3}>\s?", re.MULTILINE)
_BULLET_MARK_RE = re.compile(r"^\s{0,3}(\*|-|\+)\s+", re.MULTILINE)
_ORDERED_MARK_RE = re.compile(r"^\s{0,3}\d+\.\s+", re.MULTILINE)
_EMPHASIS_RE = re.compile(r"\*\*|__|\*|_|~~")
_HTML_TAG_RE = re.compile(r"<[^>]+>")


def tokenize_words(text: str) -> list[str]:
    """Split text into Unicode words."""
    return _WORD_RE.findall(text)


def count_words(text: str) -> int:
    """Count Unicode words in plain text."""
    return sum(1 for _ in _WORD_RE.finditer(text))


def markdown_to_plain_text(markdown: str) -> str:
    """Strip code fences, link/image syntax, block markers, emphasis and HTML.

    Inline code keeps its text; fenced blocks are dropped entirely.
    """
    text = _FENCED_BACKTICK_RE.sub(" ", markdown)
    text = _FENCED_TILDE_RE.sub(" ", text)
    text = _INLINE_CODE_RE.sub(r"\1", text)
    text = _IMAGE_RE.sub(r"\1", text)
    text = _LINK_RE.sub(r"\1", text)
    text = _HEADING_MARK_RE.sub("", text)
    text = _QUOTE_MARK_RE.sub("", text)
    text = _BULLET_MARK_RE.sub("", text)
    text = _ORDERED_MARK_RE.sub("", text)
    text = _EMPHASIS_RE.sub(" ", text)
    return _HTML_TAG_RE.sub(" ", text)


def count_markdown_words(markdown: str) -> int:
    """Count words in the visible text of a Markdown document."""
    return count_words(markdown_to_plain_text(markdown))
