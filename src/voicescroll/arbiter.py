# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Cursor arbitration: decides whether a located phrase moves the cursor.

Small forward moves are normal reading cadence and commit immediately.
Large forward moves are usually false matches (a repeated phrase, a
homophone, recognizer noise) and must be seen several times in a row
before they commit. The cursor never moves backward except on resync.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)


class ArbiterDecision(Enum):
    """What the arbiter did with a candidate index."""
    IGNORED = "ignored"  # Behind the cursor, or no candidate
    COMMITTED = "committed"  # Small jump, accepted on sight
    PENDING = "pending"  # New large jump target, awaiting confirmation
    CONFIRMING = "confirming"  # Large jump seen again, not yet trusted
    CONFIRMED_LARGE_JUMP = "confirmed_large_jump"  # Large jump accepted

    @property
    def moved(self) -> bool:
        """True if the confirmed index changed."""
        return self in (ArbiterDecision.COMMITTED, ArbiterDecision.CONFIRMED_LARGE_JUMP)


@dataclass
class AlignmentState:
    """Mutable alignment state, owned by a single VoiceTracker."""
    confirmed_index: int = 0
    previous_stable_tokens: list[str] = field(default_factory=list)
    pending_large_jump: int | None = None
    jump_confirmations: int = 0

    def clear_history(self) -> None:
        """Forget phrase history and any pending jump, keeping the cursor."""
        self.previous_stable_tokens = []
        self.pending_large_jump = None
        self.jump_confirmations = 0


class CursorArbiter:
    """
    Forward-only, debounced cursor state machine.

    Operates on an AlignmentState it shares with the VoiceTracker, so a
    resync through either clears the same history.
    """

    def __init__(
        self,
        state: AlignmentState | None = None,
        max_small_jump: int = 10,
        confirm_threshold: int = 3,
        jump_tolerance: int = 3,
        look_ahead_words: int = 4
    ) -> None:
        """
        Args:
            state: Shared alignment state (a fresh one if None)
            max_small_jump: Largest forward move committed immediately
            confirm_threshold: Sightings needed to commit a large jump
            jump_tolerance: How far a repeat sighting may be from the
                pending target and still count as the same target
            look_ahead_words: Words added to the confirmed index for display
        """
        self.state = state if state is not None else AlignmentState()
        self.max_small_jump = max_small_jump
        self.confirm_threshold = confirm_threshold
        self.jump_tolerance = jump_tolerance
        self.look_ahead_words = look_ahead_words

    @property
    def confirmed_index(self) -> int:
        """The script index accepted as the speaker's position."""
        return self.state.confirmed_index

    def submit(self, candidate: int | None) -> ArbiterDecision:
        """
        Offer a candidate end index from the locator.

        Args:
            candidate: Located index, or None if nothing matched

        Returns:
            The decision taken
        """
        state: AlignmentState = self.state
        if candidate is None or candidate < state.confirmed_index:
            return ArbiterDecision.IGNORED

        jump: int = candidate - state.confirmed_index
        if jump <= self.max_small_jump:
            state.confirmed_index = candidate
            state.pending_large_jump = None
            state.jump_confirmations = 0
            logger.debug("Committed word %d (jump=%d)", candidate, jump)
            return ArbiterDecision.COMMITTED

        pending: int | None = state.pending_large_jump
        # Tolerance is measured against the first sighting, which is not
        # moved by later sightings.
        if pending is None or abs(candidate - pending) > self.jump_tolerance:
            state.pending_large_jump = candidate
            state.jump_confirmations = 1
            logger.debug("Large jump pending to word %d (jump=%d)", candidate, jump)
            return ArbiterDecision.PENDING

        state.jump_confirmations += 1
        logger.debug(
            "Large jump confirmation %d/%d to word %d",
            state.jump_confirmations, self.confirm_threshold, candidate)
        if state.jump_confirmations < self.confirm_threshold:
            return ArbiterDecision.CONFIRMING

        # The latest sighting is the freshest estimate of the speaker position
        state.confirmed_index = candidate
        state.pending_large_jump = None
        state.jump_confirmations = 0
        logger.info("Large jump confirmed to word %d", candidate)
        return ArbiterDecision.CONFIRMED_LARGE_JUMP

    def display_index(self, last_index: int) -> int:
        """
        Word to highlight and scroll to.

        Leads the confirmed index by the look-ahead so the display keeps
        pace with speech rather than with the slower finalized transcript.

        Args:
            last_index: Index of the script's final word

        Returns:
            min(confirmed + look-ahead, last_index), never negative
        """
        return max(0, min(self.state.confirmed_index + self.look_ahead_words, last_index))

    def resync(self, word_index: int) -> None:
        """
        Move the cursor to an externally chosen position.

        Phrase history is dropped so stale words cannot immediately re-match
        the abandoned position.
        """
        self.state.confirmed_index = max(0, word_index)
        self.state.clear_history()
        logger.debug("Position synced to word %d", self.state.confirmed_index)

    def reset(self) -> None:
        """Return to the start of the script with no history."""
        self.resync(0)
