# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Tests for the prompter engine: wiring, mode switching and provider streams.
"""

import asyncio
from collections.abc import AsyncIterator

import pytest

from voicescroll.arbiter import ArbiterDecision
from voicescroll.config import DEFAULT_CONFIG
from voicescroll.engine import PrompterEngine
from voicescroll.layout import WordPositionMap
from voicescroll.transcription_provider import (
    ModelInfo,
    TranscriptionHypothesis,
    TranscriptionProvider,
)

NUMBERED = " ".join(f"w{i}" for i in range(100))


def hyp(text: str, session_id: int = 1) -> TranscriptionHypothesis:
    return TranscriptionHypothesis.from_text(text, session_id=session_id)


class FakeProvider(TranscriptionProvider):
    """Yields a fixed list of hypotheses, optionally failing at the end."""

    def __init__(self, hypotheses: list[TranscriptionHypothesis],
                 error: Exception | None = None, hold_open: bool = False) -> None:
        self.hypotheses = hypotheses
        self.error = error
        self.hold_open = hold_open
        self.stop_calls = 0
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> AsyncIterator[TranscriptionHypothesis]:
        self._running = True
        for hypothesis in self.hypotheses:
            await asyncio.sleep(0)
            yield hypothesis
        if self.error is not None:
            raise self.error
        while self.hold_open and self._running:
            await asyncio.sleep(0.01)

    def stop(self) -> None:
        self.stop_calls += 1
        self._running = False

    @staticmethod
    def get_available_models() -> list[ModelInfo]:
        return []


@pytest.fixture
def engine() -> PrompterEngine:
    e = PrompterEngine(frame_rate=None)
    e.prepare_script(NUMBERED)
    return e


class TestWiring:
    """Tracker, scroll controller and layout work together."""

    def test_prepare_script_builds_positions(self, engine: PrompterEngine) -> None:
        assert len(engine.scroll.word_positions) == 100

    def test_end_to_end_commit_reaches_highlight(self, engine: PrompterEngine) -> None:
        engine.enable_voice_tracking()
        engine.deliver_hypothesis(hyp("w4 w5 w6 w7 w8 w9"))
        update = engine.deliver_hypothesis(hyp("w4 w5 w6 w7 w8 w9 w10"))

        assert update is not None
        assert update.decision is ArbiterDecision.COMMITTED
        assert engine.tracker.confirmed_index == 9
        assert engine.scroll.display_highlight_index == 13

    def test_hypotheses_ignored_when_tracking_off(self, engine: PrompterEngine) -> None:
        assert engine.deliver_hypothesis(hyp("w4 w5 w6")) is None
        assert engine.tracker.state.previous_stable_tokens == []

    def test_session_change_clears_history(self, engine: PrompterEngine) -> None:
        engine.enable_voice_tracking()
        engine.deliver_hypothesis(hyp("w4 w5 w6 w7 w8 w9", session_id=1))
        update = engine.deliver_hypothesis(hyp("w4 w5 w6 w7 w8 w9 w10", session_id=2))
        assert update is not None
        assert update.stable_count == 0
        assert engine.tracker.confirmed_index == 0

    def test_manual_scroll_resyncs_tracker(self, engine: PrompterEngine) -> None:
        engine.set_word_positions(WordPositionMap({i: i * 10.0 for i in range(100)}))
        engine.enable_voice_tracking()
        engine.deliver_hypothesis(hyp("w1 w2 w3"))
        engine.manual_scroll(300.0)

        assert engine.tracker.confirmed_index == 40
        assert engine.tracker.state.previous_stable_tokens == []
        assert engine.scroll.display_highlight_index == 40

    def test_manual_scroll_outside_voice_tracking_animates(self, engine: PrompterEngine) -> None:
        engine.manual_scroll(100.0)
        for _ in range(20):
            engine.tick(1 / 60)
        assert engine.scroll.display_offset == 100.0
        assert engine.tracker.confirmed_index == 0

    def test_disable_fully_resets(self, engine: PrompterEngine) -> None:
        engine.enable_voice_tracking()
        engine.deliver_hypothesis(hyp("w4 w5 w6 w7 w8 w9"))
        engine.deliver_hypothesis(hyp("w4 w5 w6 w7 w8 w9 w10"))
        engine.disable_voice_tracking()

        assert engine.tracker.confirmed_index == 0
        assert engine.tracker.state.previous_stable_tokens == []
        assert engine.scroll.display_highlight_index is None

    def test_enable_starts_from_beginning(self, engine: PrompterEngine) -> None:
        engine.tracker.resync(50)
        engine.enable_voice_tracking()
        assert engine.tracker.confirmed_index == 0

    def test_on_frame_receives_state(self) -> None:
        frames: list[float] = []
        engine = PrompterEngine(frame_rate=None, on_frame=lambda s: frames.append(s.display_offset))
        engine.prepare_script(NUMBERED)
        engine.tick(1 / 60)
        assert frames == [0.0]

    def test_from_config(self) -> None:
        engine = PrompterEngine.from_config(DEFAULT_CONFIG, manual_clock=True)
        assert engine.display_link is None
        assert engine.scroll.ema_alpha == 0.13


class TestLifecycle:
    """Async start, provider consumption and shutdown."""

    @pytest.mark.asyncio
    async def test_consumes_provider_stream(self, engine: PrompterEngine) -> None:
        provider = FakeProvider([hyp("w4 w5 w6 w7 w8 w9"), hyp("w4 w5 w6 w7 w8 w9 w10")])
        await engine.start(provider)
        await engine.wait_until_stream_ends()

        assert engine.tracker.confirmed_index == 9
        assert not engine.is_listening
        assert provider.stop_calls >= 1
        await engine.stop()

    @pytest.mark.asyncio
    async def test_display_link_follows_mode(self) -> None:
        engine = PrompterEngine(frame_rate=120)
        engine.prepare_script(NUMBERED)
        await engine.start()
        assert engine.display_link is not None

        engine.enable_voice_tracking()
        assert engine.display_link.is_running
        await asyncio.sleep(0.05)
        assert engine.display_link.frame_count > 0

        engine.disable_voice_tracking()
        assert not engine.display_link.is_running
        await engine.stop()

    @pytest.mark.asyncio
    async def test_stream_failure_is_contained(self, engine: PrompterEngine, caplog) -> None:
        provider = FakeProvider([hyp("w4 w5 w6")], error=RuntimeError("device lost"))
        await engine.start(provider)
        await engine.wait_until_stream_ends()

        assert "Recognition stream failed" in caplog.text
        assert not engine.is_listening
        assert engine.voice_tracking_active
        await engine.stop()

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, engine: PrompterEngine) -> None:
        provider = FakeProvider([], hold_open=True)
        await engine.start(provider)
        assert engine.is_listening

        await engine.stop()
        await engine.stop()
        assert not engine.is_listening
        assert not engine.voice_tracking_active
        assert provider.stop_calls >= 1

    @pytest.mark.asyncio
    async def test_threadsafe_submission(self, engine: PrompterEngine) -> None:
        await engine.start()
        engine.enable_voice_tracking()
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(
            None, engine.submit_hypothesis_threadsafe, hyp("w4 w5 w6 w7 w8 w9"))
        await loop.run_in_executor(
            None, engine.submit_hypothesis_threadsafe, hyp("w4 w5 w6 w7 w8 w9 w10"))
        await asyncio.sleep(0.01)

        assert engine.tracker.confirmed_index == 9
        await engine.stop()

    def test_threadsafe_submission_requires_start(self, engine: PrompterEngine) -> None:
        with pytest.raises(RuntimeError):
            engine.submit_hypothesis_threadsafe(hyp("w1 w2"))
