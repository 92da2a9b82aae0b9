# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
The prompter engine: owns one tracking session and wires the voice tracker,
scroll controller, recognizer and display link together.

Every state mutation happens on the engine's event loop. Hypotheses from an
async provider are consumed on the loop directly; callback-style recognizers
running on their own threads hand hypotheses over with
``submit_hypothesis_threadsafe``.
"""

import asyncio
import contextlib
import logging
from collections.abc import Callable

from . import debug_log
from .config import DEFAULT_CONFIG, Config
from .display_link import DisplayLink
from .layout import LayoutEstimator, WordPositionMap
from .script_index import ScriptIndex
from .scroll import ScrollController, ScrollState
from .tracker import TrackingUpdate, VoiceTracker
from .transcription_provider import TranscriptionHypothesis, TranscriptionProvider

logger = logging.getLogger(__name__)


class PrompterEngine:
    """
    Explicitly owned tracking session.

    The tracker reports display indices straight to the scroll controller,
    and manual scrolls during voice tracking resync the tracker.
    """

    def __init__(
        self,
        tracker: VoiceTracker | None = None,
        scroll: ScrollController | None = None,
        layout: LayoutEstimator | None = None,
        frame_rate: float | None = 60.0,
        on_frame: Callable[[ScrollState], None] | None = None
    ) -> None:
        """
        Args:
            tracker: Voice tracker (default settings if None)
            scroll: Scroll controller (default settings if None)
            layout: Estimator used when no renderer supplies word positions
            frame_rate: Display link rate, or None to drive ``tick`` manually
            on_frame: Called after every tick with the scroll state
        """
        self.tracker = tracker or VoiceTracker()
        self.scroll = scroll or ScrollController()
        self.layout = layout or LayoutEstimator()
        self.on_frame = on_frame

        self.tracker.on_position = self.scroll.scroll_to_word_index
        self.scroll.on_manual_scroll = self.tracker.resync

        self.display_link: DisplayLink | None = (
            DisplayLink(self.tick, frame_rate) if frame_rate else None)

        self._provider: TranscriptionProvider | None = None
        self._recognition_task: asyncio.Task[None] | None = None
        self._session_id: int | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    @classmethod
    def from_config(
        cls,
        config: Config,
        on_frame: Callable[[ScrollState], None] | None = None,
        manual_clock: bool = False
    ) -> 'PrompterEngine':
        """Build an engine from a loaded configuration."""
        return cls(
            tracker=VoiceTracker.from_settings(config.get("tracking")),
            scroll=ScrollController(config.get("display"), config.get("scroll")),
            layout=LayoutEstimator.from_settings(config.get("display")),
            frame_rate=None if manual_clock else config.get(
                "frame_rate", DEFAULT_CONFIG["frame_rate"]),
            on_frame=on_frame,
        )

    @property
    def voice_tracking_active(self) -> bool:
        return self.scroll.voice_tracking_active

    @property
    def is_listening(self) -> bool:
        return self._recognition_task is not None and not self._recognition_task.done()

    # Script and layout

    def prepare_script(self, text: str, is_markdown: bool = False) -> ScriptIndex:
        """
        Load a new script, reset alignment and rebuild word positions.

        Returns:
            The prepared ScriptIndex
        """
        script: ScriptIndex = self.tracker.prepare_script(text, is_markdown=is_markdown)
        self.relayout()
        self.scroll.reset()
        if self.scroll.voice_tracking_active:
            self.scroll.disable_voice_tracking()
            self.scroll.enable_voice_tracking()
        debug_log.clear_logs()
        logger.info("Script loaded: %d words", len(script))
        return script

    def relayout(self) -> None:
        """Re-estimate word positions after a font, spacing or width change."""
        layout = self.layout.layout(self.tracker.script)
        self.scroll.set_word_positions(layout.positions)

    def set_word_positions(self, positions: WordPositionMap) -> None:
        """Use positions measured by a real renderer."""
        self.scroll.set_word_positions(positions)

    # Per-frame update

    def tick(self, delta_time: float) -> ScrollState:
        """Advance the control loop one frame."""
        state: ScrollState = self.scroll.tick(delta_time)
        if self.on_frame is not None:
            self.on_frame(state)
        if not self.scroll.needs_ticks:
            self._stop_display_link()
        return state

    def _sync_display_link(self) -> None:
        if self.display_link is None:
            return
        if self.scroll.needs_ticks:
            self.display_link.start()
        else:
            self.display_link.stop()

    def _stop_display_link(self) -> None:
        if self.display_link is not None:
            self.display_link.stop()

    # Constant-speed mode

    def play(self) -> None:
        self.scroll.play()
        self._sync_display_link()

    def pause(self) -> None:
        self.scroll.pause()
        self._sync_display_link()

    def toggle_play_pause(self) -> None:
        self.scroll.toggle_play_pause()
        self._sync_display_link()

    # Voice tracking

    def enable_voice_tracking(self) -> None:
        """Switch to voice-driven scrolling from the start of the script."""
        if self.scroll.voice_tracking_active:
            return
        self.tracker.reset()
        self.scroll.enable_voice_tracking()
        self._sync_display_link()

    def disable_voice_tracking(self) -> None:
        """
        Leave voice-driven scrolling.

        Alignment state is fully reset so nothing pending resurfaces when
        tracking is enabled again.
        """
        if not self.scroll.voice_tracking_active:
            return
        self.scroll.disable_voice_tracking()
        self.tracker.reset()
        self._sync_display_link()

    def deliver_hypothesis(self, hypothesis: TranscriptionHypothesis) -> TrackingUpdate | None:
        """
        Process one hypothesis. Must run on the engine's loop.

        Returns:
            The tracking update, or None when voice tracking is off
        """
        if not self.scroll.voice_tracking_active:
            return None
        if self._session_id is not None and hypothesis.session_id != self._session_id:
            self.session_restarted()
        self._session_id = hypothesis.session_id
        return self.tracker.process_hypothesis(hypothesis)

    def submit_hypothesis_threadsafe(self, hypothesis: TranscriptionHypothesis) -> None:
        """Hand a hypothesis over from a recognizer thread."""
        if self._loop is None:
            raise RuntimeError("Engine has not been started")
        self._loop.call_soon_threadsafe(self.deliver_hypothesis, hypothesis)

    def session_restarted(self) -> None:
        """The recognizer began a new session; drop phrase history."""
        self.tracker.begin_session()

    def manual_scroll(self, delta: float) -> None:
        """Apply a user scroll (arrow keys, scroll wheel)."""
        if self.scroll.voice_tracking_active:
            self.scroll.manual_adjust_while_voice_tracking(delta)
        else:
            self.scroll.smooth_scroll(delta)
            self._sync_display_link()

    # Lifecycle

    async def start(self, provider: TranscriptionProvider | None = None) -> None:
        """
        Bind to the running loop and, given a provider, start listening.

        Voice tracking is enabled when a provider is given.
        """
        self._loop = asyncio.get_running_loop()
        if provider is None:
            return
        self.enable_voice_tracking()
        await self.start_listening(provider)

    async def start_listening(self, provider: TranscriptionProvider) -> None:
        """Consume hypotheses from a provider until it stops."""
        if self.is_listening:
            return
        self._loop = asyncio.get_running_loop()
        self._provider = provider
        self._session_id = None
        self._recognition_task = self._loop.create_task(
            self._consume(provider), name="Recognition")

    async def _consume(self, provider: TranscriptionProvider) -> None:
        try:
            async for hypothesis in provider.start():
                self.deliver_hypothesis(hypothesis)
        except asyncio.CancelledError:
            raise
        except Exception as e:  # pylint: disable=broad-except
            # Upstream failure: stop advancing, keep the display alive
            logger.error("Recognition stream failed: %s", e, exc_info=True)
        finally:
            provider.stop()
        logger.info("Recognition stream ended")

    def request_stop(self) -> None:
        """End the current stream without waiting. Must run on the loop."""
        if self._provider is not None:
            self._provider.stop()
        if self._recognition_task is not None:
            self._recognition_task.cancel()

    async def stop_listening(self) -> None:
        """Stop the provider and wait for its stream to finish. Idempotent."""
        if self._provider is not None:
            self._provider.stop()
        task = self._recognition_task
        self._recognition_task = None
        self._provider = None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def wait_until_stream_ends(self) -> None:
        """Wait for the current provider's stream to end on its own."""
        if self._recognition_task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._recognition_task

    async def stop(self) -> None:
        """Stop listening, leave voice tracking and stop ticking. Idempotent."""
        await self.stop_listening()
        self.disable_voice_tracking()
        self.scroll.pause()
        self._stop_display_link()
