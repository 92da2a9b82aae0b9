# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Tests for the full hypothesis-to-position pipeline in VoiceTracker.
"""

import pytest

from voicescroll.arbiter import ArbiterDecision
from voicescroll.tracker import TrackingUpdate, VoiceTracker
from voicescroll.transcription_provider import TranscriptionHypothesis

NUMBERED = " ".join(f"w{i}" for i in range(100))

# 40 distinct words: alpha=0 ... zulu=25, apple=26 ... strawberry=39
WORDS = (
    "alpha bravo charlie delta echo foxtrot golf hotel india juliet kilo lima "
    "mike november oscar papa quebec romeo sierra tango uniform victor whiskey "
    "xray yankee zulu apple banana cherry grape lemon mango melon orange peach "
    "pear plum quince raspberry strawberry"
)


def words(text: str) -> list[str]:
    return text.split()


@pytest.fixture
def positions() -> list[int]:
    return []


@pytest.fixture
def tracker(positions: list[int]) -> VoiceTracker:
    t = VoiceTracker(on_position=positions.append)
    t.prepare_script(WORDS)
    return t


class TestEndToEnd:
    """A speaker reading straight through the script."""

    def test_first_hypothesis_is_never_actionable(self) -> None:
        tracker = VoiceTracker()
        tracker.prepare_script(NUMBERED)
        update: TrackingUpdate = tracker.process_tokens(words("w4 w5 w6 w7 w8 w9"))
        assert update.decision is ArbiterDecision.IGNORED
        assert update.stable_count == 0
        assert tracker.confirmed_index == 0

    def test_stable_phrase_commits_and_reports_look_ahead(self) -> None:
        reported: list[int] = []
        tracker = VoiceTracker(on_position=reported.append)
        tracker.prepare_script(NUMBERED)

        tracker.process_tokens(words("w4 w5 w6 w7 w8 w9"))
        update: TrackingUpdate = tracker.process_tokens(words("w4 w5 w6 w7 w8 w9 w10"))

        assert update.stable_count == 6
        assert update.candidate == 9
        assert update.decision is ArbiterDecision.COMMITTED
        assert tracker.confirmed_index == 9
        assert update.display_index == 13
        assert reported == [13]

    def test_word_by_word_reading_advances(
            self, tracker: VoiceTracker, positions: list[int]) -> None:
        """Matches never start behind the cursor, so progress comes in steps."""
        spoken: list[str] = []
        for word in words(WORDS)[:12]:
            spoken.append(word)
            tracker.process_tokens(list(spoken))
        assert tracker.confirmed_index >= 7
        assert positions == sorted(positions)
        assert positions[-1] == tracker.confirmed_index + 4

    def test_unchanged_position_not_reported_when_ignored(
            self, tracker: VoiceTracker, positions: list[int]) -> None:
        tracker.process_tokens(words("zzz yyy"))
        tracker.process_tokens(words("zzz yyy xxx"))
        assert positions == []


class TestFillersAndConfidence:
    """Disfluencies and unreliable words never reach the locator."""

    def test_fillers_removed_before_matching(
            self, tracker: VoiceTracker, positions: list[int]) -> None:
        tracker.process_tokens(words("um alpha bravo you know charlie"))
        update: TrackingUpdate = tracker.process_tokens(
            words("um alpha bravo you know charlie delta"))
        assert update.stable_count == 3
        assert tracker.confirmed_index == 2
        assert positions == [6]
        assert tracker.state.previous_stable_tokens == ["alpha", "bravo", "charlie", "delta"]

    def test_only_fillers_is_ignored(self, tracker: VoiceTracker) -> None:
        update: TrackingUpdate = tracker.process_tokens(words("um uh like"))
        assert update.decision is ArbiterDecision.IGNORED
        assert tracker.state.previous_stable_tokens == []

    def test_low_confidence_words_dropped(self, tracker: VoiceTracker) -> None:
        tracker.process_hypothesis(TranscriptionHypothesis.from_words(
            ["Alpha", "zzz", "bravo"], [0.9, 0.2, 0.9]))
        update: TrackingUpdate = tracker.process_hypothesis(TranscriptionHypothesis.from_words(
            ["Alpha", "zzz", "bravo", "charlie"], [0.9, 0.2, 0.9, 0.9]))
        assert update.stable_count == 2
        assert update.decision is ArbiterDecision.COMMITTED
        assert tracker.confirmed_index == 1

    def test_unscored_hypothesis_is_used(self, tracker: VoiceTracker) -> None:
        tracker.process_hypothesis(TranscriptionHypothesis.from_text("alpha bravo"))
        tracker.process_hypothesis(TranscriptionHypothesis.from_text("alpha bravo charlie"))
        assert tracker.confirmed_index == 1


class TestJumps:
    """Large forward jumps need confirmation; backward speech is ignored."""

    JUMP = words("tango uniform victor whiskey xray yankee zulu")

    def test_single_sighting_does_not_move(
            self, tracker: VoiceTracker, positions: list[int]) -> None:
        tracker.process_tokens(self.JUMP[:4])
        update: TrackingUpdate = tracker.process_tokens(self.JUMP[:5])
        assert update.candidate == 22
        assert update.decision is ArbiterDecision.PENDING
        assert tracker.confirmed_index == 0
        assert positions == []

    def test_repeated_sightings_commit(
            self, tracker: VoiceTracker, positions: list[int]) -> None:
        tracker.process_tokens(self.JUMP[:4])
        decisions: list[ArbiterDecision] = [
            tracker.process_tokens(self.JUMP[:n]).decision for n in (5, 6, 7)
        ]
        assert decisions == [
            ArbiterDecision.PENDING,
            ArbiterDecision.CONFIRMING,
            ArbiterDecision.CONFIRMED_LARGE_JUMP,
        ]
        # Sightings end at 22, 23, 24; the last one commits
        assert tracker.confirmed_index == 24
        assert positions == [28]

    def test_earlier_phrase_ignored(self, tracker: VoiceTracker) -> None:
        tracker.resync(22)
        tracker.process_tokens(words("alpha bravo"))
        update: TrackingUpdate = tracker.process_tokens(words("alpha bravo charlie"))
        assert update.decision is ArbiterDecision.IGNORED
        assert tracker.confirmed_index == 22


class TestResyncAndSessions:
    """External position changes and recognizer restarts."""

    def test_resync_moves_cursor_without_reporting(
            self, tracker: VoiceTracker, positions: list[int]) -> None:
        tracker.process_tokens(words("alpha bravo"))
        tracker.resync(30)
        assert tracker.confirmed_index == 30
        assert tracker.current_word_index == 30
        assert tracker.state.previous_stable_tokens == []
        assert positions == []

    def test_tracking_resumes_after_resync(self, tracker: VoiceTracker) -> None:
        tracker.resync(30)
        tracker.process_tokens(words("mango melon orange"))
        tracker.process_tokens(words("mango melon orange peach"))
        assert tracker.confirmed_index == 33

    def test_resync_clamps_to_script(self, tracker: VoiceTracker) -> None:
        tracker.resync(500)
        assert tracker.confirmed_index == 39
        tracker.resync(-5)
        assert tracker.confirmed_index == 0

    def test_session_restart_clears_stable_history(self, tracker: VoiceTracker) -> None:
        tracker.process_tokens(words("alpha bravo charlie"))
        tracker.begin_session()
        update: TrackingUpdate = tracker.process_tokens(words("alpha bravo charlie delta"))
        assert update.stable_count == 0
        assert update.decision is ArbiterDecision.IGNORED

    def test_session_restart_keeps_cursor(self, tracker: VoiceTracker) -> None:
        tracker.resync(12)
        tracker.begin_session()
        assert tracker.confirmed_index == 12

    def test_session_restart_drops_pending_jump(self, tracker: VoiceTracker) -> None:
        tracker.process_tokens(TestJumps.JUMP[:4])
        tracker.process_tokens(TestJumps.JUMP[:5])
        assert tracker.state.pending_large_jump == 22
        tracker.begin_session()
        assert tracker.state.pending_large_jump is None
        assert tracker.state.jump_confirmations == 0


class TestScriptLifecycle:
    """Preparing, resetting and empty scripts."""

    def test_prepare_script_resets(self, tracker: VoiceTracker) -> None:
        tracker.resync(20)
        tracker.prepare_script("one two three")
        assert tracker.confirmed_index == 0
        assert tracker.words == ("one", "two", "three")

    def test_markdown_script(self) -> None:
        tracker = VoiceTracker()
        tracker.prepare_script("# Title\n\nSome **bold** words", is_markdown=True)
        assert tracker.words == ("title", "some", "bold", "words")

    def test_empty_script_never_raises(self) -> None:
        tracker = VoiceTracker()
        tracker.prepare_script("")
        tracker.process_tokens(words("hello world"))
        update: TrackingUpdate = tracker.process_tokens(words("hello world again"))
        assert update.decision is ArbiterDecision.IGNORED
        assert tracker.confirmed_index == 0
        assert tracker.progress == 0.0

    def test_empty_hypothesis(self, tracker: VoiceTracker) -> None:
        assert tracker.process_tokens([]).decision is ArbiterDecision.IGNORED

    def test_progress(self, tracker: VoiceTracker) -> None:
        tracker.resync(20)
        assert tracker.progress == pytest.approx(0.5)

    def test_reset(self, tracker: VoiceTracker) -> None:
        tracker.resync(20)
        tracker.reset()
        assert tracker.confirmed_index == 0
        assert tracker.current_word_index == 0


class TestSettings:
    """Construction from the tracking config section."""

    def test_from_settings_uses_overrides(self) -> None:
        tracker = VoiceTracker.from_settings({"look_ahead_words": 0})  # type: ignore[typeddict-item]
        tracker.prepare_script(NUMBERED)
        tracker.process_tokens(words("w4 w5 w6 w7 w8 w9"))
        update: TrackingUpdate = tracker.process_tokens(words("w4 w5 w6 w7 w8 w9 w10"))
        assert update.display_index == 9

    def test_from_settings_ignores_unknown_keys(self, caplog: pytest.LogCaptureFixture) -> None:
        tracker = VoiceTracker.from_settings({"window_size": 8})  # type: ignore[typeddict-item]
        assert isinstance(tracker, VoiceTracker)
        assert "window_size" in caplog.text
