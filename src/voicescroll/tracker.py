# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Voice tracking module that aligns streaming recognizer hypotheses with the
script.

Each hypothesis runs through the pipeline:

1. Confidence gating and normalization
2. Filler word removal
3. Stable-prefix detection against the previous hypothesis
4. Fuzzy phrase location in a forward window
5. Cursor arbitration (forward only, debounced large jumps)

and, when the cursor moves, the look-ahead display index is reported to
``on_position``.
"""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from . import debug_log
from .arbiter import AlignmentState, ArbiterDecision, CursorArbiter
from .config import DEFAULT_CONFIG, TrackingSettings
from .disfluency import filter_fillers, gate_by_confidence
from .locator import PhraseLocator
from .script_index import ScriptIndex, prepare, prepare_markdown
from .stabilizer import is_actionable, stable_prefix_length
from .transcription_provider import TranscriptionHypothesis

logger = logging.getLogger(__name__)


@dataclass
class TrackingUpdate:
    """Outcome of processing one hypothesis."""
    decision: ArbiterDecision
    stable_count: int = 0
    candidate: int | None = None
    confirmed_index: int = 0
    display_index: int = 0


class VoiceTracker:
    """
    Tracks the speaker's position in a script from recognizer hypotheses.

    All methods must be called from a single execution context; the engine
    runs them on its event loop.
    """

    def __init__(
        self,
        phrase_match_length: int = 6,
        forward_window_words: int = 30,
        max_small_jump: int = 10,
        large_jump_confirm_threshold: int = 3,
        large_jump_tolerance: int = 3,
        max_distance_ratio: float = 0.4,
        proximity_penalty: float = 0.3,
        min_confidence: float = 0.5,
        look_ahead_words: int = 4,
        on_position: Callable[[int], None] | None = None
    ) -> None:
        """
        Initialize the voice tracker.

        Args:
            phrase_match_length: Trailing stable words used as the match phrase
            forward_window_words: Script words searched ahead of the cursor
            max_small_jump: Largest forward move committed immediately
            large_jump_confirm_threshold: Sightings needed for a large jump
            large_jump_tolerance: Allowed drift between large jump sightings
            max_distance_ratio: Edit distance tolerance relative to phrase length
            proximity_penalty: Score penalty per word away from the cursor
            min_confidence: Recognized words scored below this are dropped
            look_ahead_words: Display lead over the confirmed index
            on_position: Called with the display index whenever it changes
        """
        self.phrase_match_length = phrase_match_length
        self.min_confidence = min_confidence
        self.on_position = on_position

        self.state = AlignmentState()
        self.arbiter = CursorArbiter(
            self.state,
            max_small_jump=max_small_jump,
            confirm_threshold=large_jump_confirm_threshold,
            jump_tolerance=large_jump_tolerance,
            look_ahead_words=look_ahead_words,
        )
        self._forward_window_words = forward_window_words
        self._max_distance_ratio = max_distance_ratio
        self._proximity_penalty = proximity_penalty

        self.script: ScriptIndex = prepare("")
        self.locator = self._make_locator(self.script)
        self.current_word_index: int = 0

    @classmethod
    def from_settings(
        cls,
        settings: TrackingSettings | None = None,
        on_position: Callable[[int], None] | None = None
    ) -> 'VoiceTracker':
        """Build a tracker from the ``tracking`` config section."""
        values: dict = dict(DEFAULT_CONFIG["tracking"])
        if settings:
            unknown: set[str] = set(settings) - set(values)
            if unknown:
                logger.warning("Ignoring unknown tracking settings: %s", sorted(unknown))
            values.update({k: v for k, v in settings.items() if k in values})
        return cls(on_position=on_position, **values)

    def _make_locator(self, script: ScriptIndex) -> PhraseLocator:
        return PhraseLocator(
            script,
            forward_window_words=self._forward_window_words,
            max_distance_ratio=self._max_distance_ratio,
            proximity_penalty=self._proximity_penalty,
        )

    @property
    def confirmed_index(self) -> int:
        """Highest script index accepted as spoken."""
        return self.state.confirmed_index

    @property
    def words(self) -> tuple[str, ...]:
        """Normalized script words."""
        return self.script.tokens

    def prepare_script(self, script: str | ScriptIndex, is_markdown: bool = False) -> ScriptIndex:
        """
        Load a new script and reset tracking to its start.

        Args:
            script: Script text, or an already prepared ScriptIndex
            is_markdown: Render the text as Markdown before indexing

        Returns:
            The ScriptIndex now being tracked
        """
        if isinstance(script, ScriptIndex):
            self.script = script
        elif is_markdown:
            self.script = prepare_markdown(script)
        else:
            self.script = prepare(script)
        self.locator = self._make_locator(self.script)
        self.reset()
        return self.script

    def process_hypothesis(self, hypothesis: TranscriptionHypothesis) -> TrackingUpdate:
        """
        Run one recognizer hypothesis through the alignment pipeline.

        Never raises for bad input: unmatched speech simply leaves the
        cursor where it is.

        Args:
            hypothesis: The recognizer's current best guess

        Returns:
            TrackingUpdate describing what happened
        """
        words: list[str] = gate_by_confidence(hypothesis.tokens, self.min_confidence)
        return self.process_tokens(words)

    def process_tokens(self, words: Sequence[str]) -> TrackingUpdate:
        """
        Run already-normalized hypothesis words through the pipeline.

        Args:
            words: Normalized words of the full hypothesis

        Returns:
            TrackingUpdate describing what happened
        """
        state: AlignmentState = self.state
        clean_words: list[str] = filter_fillers(words)
        if not clean_words:
            return self._no_change(ArbiterDecision.IGNORED)

        stable_count: int = stable_prefix_length(state.previous_stable_tokens, clean_words)
        state.previous_stable_tokens = clean_words
        debug_log.log_hypothesis(clean_words, stable_count)

        if not is_actionable(stable_count) or self.script.is_empty:
            return self._no_change(ArbiterDecision.IGNORED, stable_count)

        phrase: list[str] = clean_words[max(0, stable_count - self.phrase_match_length):stable_count]
        search_from: int = state.confirmed_index
        candidate: int | None = self.locator.locate(phrase, search_from)
        debug_log.log_match(phrase, search_from, candidate)
        if candidate is None:
            return self._no_change(ArbiterDecision.IGNORED, stable_count)

        decision: ArbiterDecision = self.arbiter.submit(candidate)
        debug_log.log_decision(candidate, decision.value, state.confirmed_index)

        update = TrackingUpdate(
            decision=decision,
            stable_count=stable_count,
            candidate=candidate,
            confirmed_index=state.confirmed_index,
            display_index=self.current_word_index,
        )
        if decision.moved:
            display_index: int = self.arbiter.display_index(self.script.last_index)
            logger.debug(
                "Matched at word %d, display at %d (%s)",
                state.confirmed_index, display_index, decision.value)
            update.display_index = display_index
            self._set_display_index(display_index)
        return update

    def _no_change(self, decision: ArbiterDecision, stable_count: int = 0) -> TrackingUpdate:
        return TrackingUpdate(
            decision=decision,
            stable_count=stable_count,
            confirmed_index=self.state.confirmed_index,
            display_index=self.current_word_index,
        )

    def _set_display_index(self, display_index: int) -> None:
        self.current_word_index = display_index
        if self.on_position is not None:
            self.on_position(display_index)

    def resync(self, word_index: int) -> None:
        """
        Resume tracking from a word the user scrolled to.

        Does not notify ``on_position``; the caller already shows this word.
        """
        word_index = self.script.clamp(word_index)
        self.arbiter.resync(word_index)
        self.current_word_index = word_index
        debug_log.log_resync(word_index, "manual scroll")
        logger.info("Position synced to word %d", word_index)

    def begin_session(self) -> None:
        """
        Forget phrase history when the recognizer starts a new session.

        Stable-prefix comparison across unrelated sessions is meaningless;
        the cursor itself is kept.
        """
        self.state.clear_history()
        debug_log.log_resync(self.state.confirmed_index, "session restarted")
        logger.debug("Recognition session restarted, phrase history cleared")

    def reset(self) -> None:
        """Reset tracking to the beginning of the script."""
        self.arbiter.reset()
        self.current_word_index = 0

    @property
    def progress(self) -> float:
        """Get overall progress through the script (0.0 to 1.0)."""
        if self.script.is_empty:
            return 0.0
        return self.state.confirmed_index / len(self.script)
