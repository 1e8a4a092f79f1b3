"""Line-pattern heuristics for spotting section headings.

Headings double as the document's topic list. Three patterns are accepted:

- Title-like lines: an uppercase first letter followed by letters, digits,
  whitespace and ``,;:-`` only, so no sentence punctuation anywhere.
- Numbered headings: ``1. Introduction``, ``2) Methods``.
- ``Chapter 3`` / ``Section 4`` (case-insensitive).

The casing rules are English-centric; lines in scripts without an
uppercase/lowercase distinction are not recognised as title-like.
"""

from __future__ import annotations

import re

MAX_HEADING_LENGTH = 100
DEFAULT_MAX_HEADINGS = 30

_TITLE_RE = re.compile(r"^[A-Z][A-Za-z\s\d,:;-]*$")
_NUMBERED_RE = re.compile(r"^\d+[.)]\s")
_CHAPTER_RE = re.compile(r"^(?:chapter|section)\s+\d+", re.IGNORECASE)


def is_heading(line: str) -> bool:
    """Return True if *line* looks like a section heading."""
    candidate = line.strip()
    if not 0 < len(candidate) < MAX_HEADING_LENGTH:
        return False
    return bool(
        _TITLE_RE.match(candidate)
        or _NUMBERED_RE.match(candidate)
        or _CHAPTER_RE.match(candidate)
    )


def extract_headings(text: str, max_headings: int = DEFAULT_MAX_HEADINGS) -> list[str]:
    """Collect probable headings from *text* in first-seen order.

    Args:
        text: Normalized document text, one logical line per ``\\n``.
        max_headings: Upper bound on the number of headings returned.

    Returns:
        Unique trimmed heading lines, at most *max_headings* of them.
    """
    headings: dict[str, None] = {}
    for line in text.split("\n"):
        if len(headings) >= max_headings:
            break
        candidate = line.strip()
        if is_heading(candidate):
            headings.setdefault(candidate, None)
    return list(headings)
