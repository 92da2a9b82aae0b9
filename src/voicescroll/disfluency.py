# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Disfluency filtering and confidence gating for recognized tokens.
"""

from collections.abc import Iterable, Sequence

from .script_index import normalize_word
from .transcription_provider import RecognizedToken

# Common filler words dropped before phrase matching
FILLER_WORDS: frozenset[str] = frozenset([
    'um', 'uh', 'like', 'so', 'actually', 'basically', 'right', 'well',
    'okay', 'hmm', 'ah', 'er',
])

# Two-word fillers, checked before single words
FILLER_BIGRAMS: frozenset[tuple[str, str]] = frozenset([
    ('you', 'know'),
])


def is_filler_word(word: str) -> bool:
    """Check if a word is a common filler word that can be skipped."""
    return word in FILLER_WORDS


def filter_fillers(tokens: Sequence[str]) -> list[str]:
    """
    Remove filler words and filler bigrams from a token sequence.

    Scans greedily left to right. When a bigram matches, both of its words
    are consumed, so "you know know" keeps the second "know".

    Args:
        tokens: Normalized tokens

    Returns:
        Tokens with fillers removed, order preserved
    """
    result: list[str] = []
    i: int = 0
    while i < len(tokens):
        if i + 1 < len(tokens) and (tokens[i], tokens[i + 1]) in FILLER_BIGRAMS:
            i += 2
            continue
        if not is_filler_word(tokens[i]):
            result.append(tokens[i])
        i += 1
    return result


def gate_by_confidence(
    tokens: Iterable[RecognizedToken],
    min_confidence: float = 0.5
) -> list[str]:
    """
    Drop low-confidence tokens and normalize the rest.

    A confidence of zero means the recognizer did not score the token
    (on-device partials, for example), so it is accepted.

    Args:
        tokens: Recognized tokens with optional confidences
        min_confidence: Tokens scored below this are dropped

    Returns:
        Normalized token texts that passed the gate
    """
    return [
        normalize_word(token.text)
        for token in tokens
        if not 0 < token.confidence < min_confidence
    ]
