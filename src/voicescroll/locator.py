# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Fuzzy phrase location within a bounded forward window of the script.

The spoken phrase is compared character by character against script
substrings of similar word count, so recognizer misspellings, merged words
("every thing" / "everything") and a leaked filler or two still match.
A proximity penalty keeps the cursor from leaping to a better but distant
match of a repeated phrase.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from rapidfuzz.distance import Levenshtein

from .script_index import ScriptIndex

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PhraseMatch:
    """Best candidate found for a spoken phrase."""
    start_index: int
    end_index: int  # Last script word covered by the match
    distance: int  # Character edit distance
    score: float  # distance plus proximity penalty


class PhraseLocator:
    """
    Locates spoken phrases in a prepared script.

    The cost of one lookup is bounded by the window size times the number of
    word-count variants, independent of script length.
    """

    def __init__(
        self,
        script: ScriptIndex,
        forward_window_words: int = 30,
        max_distance_ratio: float = 0.4,
        proximity_penalty: float = 0.3,
        length_slack: int = 2
    ) -> None:
        """
        Args:
            script: The prepared script to search
            forward_window_words: Number of start positions searched ahead
                of the cursor
            max_distance_ratio: Largest accepted edit distance as a fraction
                of the phrase length in characters
            proximity_penalty: Score added per word between the cursor and
                the candidate start
            length_slack: Candidate word counts range over phrase length
                plus or minus this many words
        """
        self.script = script
        self.forward_window_words = forward_window_words
        self.max_distance_ratio = max_distance_ratio
        self.proximity_penalty = proximity_penalty
        self.length_slack = length_slack

    def find_best_match(self, phrase: Sequence[str], search_from: int) -> PhraseMatch | None:
        """
        Find the lowest-scoring script substring for a phrase.

        Args:
            phrase: Normalized spoken words
            search_from: First script index a match may start at

        Returns:
            The best PhraseMatch, or None if nothing is close enough
        """
        word_count: int = len(self.script)
        if not phrase or word_count == 0:
            return None

        search_from = max(0, search_from)
        search_end: int = min(search_from + self.forward_window_words, word_count)
        if search_from >= search_end:
            return None

        phrase_string: str = ' '.join(phrase)
        max_distance: int = int(len(phrase_string) * self.max_distance_ratio)
        min_words: int = max(1, len(phrase) - self.length_slack)
        max_words: int = len(phrase) + self.length_slack

        best: PhraseMatch | None = None
        for start in range(search_from, search_end):
            penalty: float = (start - search_from) * self.proximity_penalty
            if best is not None and penalty > best.score:
                # Every later start scores at least this much
                break
            for count in range(min_words, max_words + 1):
                end: int = start + count
                if end > word_count:
                    break
                candidate: str = self.script.phrase(start, end)
                distance: int = Levenshtein.distance(
                    phrase_string, candidate, score_cutoff=max_distance)
                if distance > max_distance:
                    continue
                score: float = distance + penalty
                if best is None or score < best.score:
                    best = PhraseMatch(start, end - 1, distance, score)

        return best

    def locate(self, phrase: Sequence[str], search_from: int) -> int | None:
        """
        Find where a spoken phrase ends in the script.

        Args:
            phrase: Normalized spoken words (the last few stable words)
            search_from: The confirmed cursor; matches never start before it

        Returns:
            Index of the last script word of the best match, or None
        """
        match: PhraseMatch | None = self.find_best_match(phrase, search_from)
        if match is None:
            logger.debug("No match for %r from %d", ' '.join(phrase), search_from)
            return None
        logger.debug(
            "Matched %r at [%d, %d] (distance=%d, score=%.1f)",
            ' '.join(phrase), match.start_index, match.end_index,
            match.distance, match.score)
        return match.end_index
