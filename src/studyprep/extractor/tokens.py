"""Cheap token estimate used for chunk budgeting.

One token is taken to be roughly four characters. The estimate is not tied
to any tokenizer; it only has to be stable and monotonic in text length.
"""

import math

CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> int:
    """Return ``ceil(len(text) / 4)``."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)
