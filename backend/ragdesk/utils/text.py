"""Text processing helpers."""

from __future__ import annotations

import math


def estimate_tokens(text: str) -> int:
    """Approximate model tokens as one token per four characters."""
    return math.ceil(len(text) / 4)
