# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Stable-prefix extraction for streaming recognizer hypotheses.

Streaming recognizers rewrite the last few words of a hypothesis as more
audio arrives. Only the leading words that are unchanged between two
consecutive hypotheses are trusted for matching.
"""

from collections.abc import Sequence

# Fewer stable words than this is too little signal to locate a phrase
MIN_STABLE_WORDS: int = 2


def stable_prefix_length(previous: Sequence[str], current: Sequence[str]) -> int:
    """
    Count how many leading words of ``current`` match ``previous``.

    Comparison stops at the first mismatch; a later agreement after a
    revised word does not count.

    Args:
        previous: Tokens from the last processed hypothesis
        current: Tokens from the newest hypothesis

    Returns:
        Length of the common prefix
    """
    stable_count: int = 0
    for prev, cur in zip(previous, current):
        if prev != cur:
            break
        stable_count += 1
    return stable_count


def is_actionable(stable_count: int) -> bool:
    """Check if a stable prefix is long enough to act on."""
    return stable_count >= MIN_STABLE_WORDS
