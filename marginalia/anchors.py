"""
Anchor keys: the stable cross-revision join key for sections.

A heading is normalized to a slug (diacritics stripped, lowercased, runs of
non-alphanumerics collapsed to one hyphen) and paired with a per-slug
ordinal counted within one sectioning pass: ``intro#1``, ``intro#2``.
"""

import re
import unicodedata
from dataclasses import dataclass
from typing import Iterable

FALLBACK_SLUG = "section"
MAX_SLUG_LENGTH = 80

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True)
class Anchor:
    """Slug plus 1-based ordinal among equal slugs in the same pass."""
    slug: str
    ordinal: int

    @property
    def key(self) -> str:
        return build_anchor_key(self.slug, self.ordinal)


def normalize_heading_slug(heading: str) -> str:
    """Normalize a heading to its slug.

    >>> normalize_heading_slug("Crème Brûlée")
    'creme-brulee'
    >>> normalize_heading_slug("???")
    'section'
    """
    # Lowercase first: some uppercase letters lowercase to a base + combining mark
    decomposed = unicodedata.normalize("NFKD", heading.lower())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    slug = _NON_ALNUM_RE.sub("-", stripped).strip("-")
    return (slug or FALLBACK_SLUG)[:MAX_SLUG_LENGTH]


def build_anchor_key(slug: str, ordinal: int) -> str:
    return f"{slug}#{ordinal}"


def assign_anchors(headings: Iterable[str]) -> list[Anchor]:
    """Assign anchors to an ordered heading sequence.

    Counters start fresh on every call, so the same sequence always yields
    the same anchors.
    """
    counts: dict[str, int] = {}
    anchors = []
    for heading in headings:
        slug = normalize_heading_slug(heading)
        counts[slug] = counts.get(slug, 0) + 1
        anchors.append(Anchor(slug, counts[slug]))
    return anchors


def build_anchor_keys(headings: Iterable[str]) -> list[str]:
    """Anchor key strings for an ordered heading sequence."""
    return [anchor.key for anchor in assign_anchors(headings)]
