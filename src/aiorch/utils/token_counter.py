"""
Approximate token estimation.

Counts are character based (roughly four characters per token). They are
cheap and provider independent: good enough for budget checks, not billing
accurate.
"""

import math
from typing import Iterable

CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> int:
    """Estimate tokens for a text: character count divided by 4, rounded up."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


class TokenCounter:
    """
    Character-based token estimator.

    Every count is ``ceil(total_characters / 4)`` over the serialized content.
    """

    def count_text(self, text: str) -> int:
        return estimate_tokens(text)

    def count_texts(self, texts: Iterable[str]) -> int:
        """Estimate tokens for the concatenation of several texts."""
        return estimate_tokens("".join(texts))
