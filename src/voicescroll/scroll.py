# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Scroll and highlight control loop.

``ScrollController.tick(delta_time)`` is called once per display refresh and
moves the rendered offset in one of two mutually exclusive modes:

- Constant speed: the offset advances at a rate derived from a
  words-per-minute setting while playing.
- Voice tracking: the highlighted word steps toward the tracker's display
  index at a gap-dependent pace, and the offset follows the highlighted word
  through an exponential moving average.

The controller holds no timers of its own; whoever owns the display link
supplies the measured delta time, so a recorded sequence of deltas replays
deterministically.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass

from .config import DEFAULT_CONFIG, DisplaySettings, ScrollSettings
from .layout import WordPositionMap

logger = logging.getLogger(__name__)

MIN_SCROLL_SPEED: float = 10.0
MAX_SCROLL_SPEED: float = 300.0
SCROLL_SPEED_STEP: float = 10.0


@dataclass
class ScrollState:
    """Mutable per-frame state, read by the renderer every tick."""
    display_offset: float = 0.0
    target_offset: float = 0.0
    display_highlight_index: int | None = None
    target_highlight_index: int | None = None
    highlight_accumulator: float = 0.0
    is_playing: bool = False
    voice_tracking_active: bool = False
    # Manual smooth-scroll animation
    animating: bool = False
    animation_target: float = 0.0
    animation_step_delta: float = 0.0
    animation_steps_done: int = 0
    animation_elapsed: float = 0.0


class ScrollController:
    """
    Drives the rendered scroll offset and word highlight.

    Word positions come from the layout collaborator and must be replaced
    via ``set_word_positions`` whenever the layout changes.
    """

    def __init__(
        self,
        display: DisplaySettings | None = None,
        scroll: ScrollSettings | None = None,
        word_positions: WordPositionMap | None = None,
        on_manual_scroll: Callable[[int], None] | None = None
    ) -> None:
        """
        Args:
            display: Font, spacing, speed and viewport settings
            scroll: Smoothing and pacing constants
            word_positions: Initial word index -> offset map
            on_manual_scroll: Called with the word at the reading line after
                a manual adjustment during voice tracking
        """
        display_settings: dict = dict(DEFAULT_CONFIG["display"])
        display_settings.update(display or {})
        scroll_settings: dict = dict(DEFAULT_CONFIG["scroll"])
        scroll_settings.update(scroll or {})

        self.font_size: float = float(display_settings["font_size"])
        self.line_spacing: float = float(display_settings["line_spacing"])
        self.scroll_speed: float = float(display_settings["scroll_speed"])
        self.viewport_height: float = float(display_settings["viewport_height"])

        self.ema_alpha: float = float(scroll_settings["ema_alpha"])
        self.min_target_change: float = float(scroll_settings["min_target_change"])
        self.snap_threshold: float = float(scroll_settings["snap_threshold"])
        self.words_per_line: float = float(scroll_settings["words_per_line"])
        self.fast_advance_interval: float = float(scroll_settings["fast_advance_interval"])
        self.medium_advance_interval: float = float(scroll_settings["medium_advance_interval"])
        self.slow_advance_interval: float = float(scroll_settings["slow_advance_interval"])
        self.smooth_scroll_duration: float = float(scroll_settings["smooth_scroll_duration"])
        self.smooth_scroll_steps: int = max(1, int(scroll_settings["smooth_scroll_steps"]))

        self.state = ScrollState()
        self.word_positions: WordPositionMap = word_positions or WordPositionMap()
        self.on_manual_scroll = on_manual_scroll

    # Read-only views for the renderer

    @property
    def display_offset(self) -> float:
        """The offset to render this frame."""
        return self.state.display_offset

    @property
    def display_highlight_index(self) -> int | None:
        """The word to emphasize this frame, if any."""
        return self.state.display_highlight_index

    @property
    def is_playing(self) -> bool:
        return self.state.is_playing

    @property
    def voice_tracking_active(self) -> bool:
        return self.state.voice_tracking_active

    @property
    def needs_ticks(self) -> bool:
        """True while anything needs per-frame updates."""
        return self.state.voice_tracking_active or self.state.is_playing or self.state.animating

    @property
    def points_per_second(self) -> float:
        """Constant-speed scroll rate derived from the words-per-minute setting."""
        line_height: float = self.font_size + self.line_spacing
        lines_per_second: float = self.scroll_speed / self.words_per_line / 60
        return lines_per_second * line_height

    def set_word_positions(self, word_positions: WordPositionMap) -> None:
        """Replace the word position map after a layout change."""
        self.word_positions = word_positions

    def update_display_settings(self, display: DisplaySettings) -> None:
        """Apply new font, spacing, speed or viewport settings."""
        self.font_size = float(display.get("font_size", self.font_size))
        self.line_spacing = float(display.get("line_spacing", self.line_spacing))
        self.scroll_speed = float(display.get("scroll_speed", self.scroll_speed))
        self.viewport_height = float(display.get("viewport_height", self.viewport_height))

    # Constant-speed mode

    def play(self) -> None:
        """Start constant-speed scrolling."""
        if self.state.voice_tracking_active:
            logger.debug("Ignoring play while voice tracking is active")
            return
        self.state.is_playing = True

    def pause(self) -> None:
        """Stop constant-speed scrolling."""
        self.state.is_playing = False

    def toggle_play_pause(self) -> None:
        if self.state.is_playing:
            self.pause()
        else:
            self.play()

    def reset(self) -> None:
        """Pause and return to the top of the script."""
        self.pause()
        self.state.animating = False
        self.state.display_offset = 0.0
        self.state.target_offset = 0.0

    def speed_up(self) -> None:
        self.scroll_speed = min(self.scroll_speed + SCROLL_SPEED_STEP, MAX_SCROLL_SPEED)

    def speed_down(self) -> None:
        self.scroll_speed = max(self.scroll_speed - SCROLL_SPEED_STEP, MIN_SCROLL_SPEED)

    def adjust_offset(self, delta: float) -> None:
        """Shift the offset immediately, without animation."""
        self.state.display_offset = max(0.0, self.state.display_offset + delta)
        self.state.target_offset = self.state.display_offset

    def smooth_scroll(self, delta: float) -> None:
        """
        Animate the offset by ``delta`` over the smooth-scroll duration.

        A second call while animating retargets the final position without
        restarting the animation.
        """
        state: ScrollState = self.state
        state.animation_target = max(0.0, state.display_offset + delta)
        if state.animating:
            return
        state.animating = True
        state.animation_steps_done = 0
        state.animation_elapsed = 0.0
        state.animation_step_delta = (
            (state.animation_target - state.display_offset) / self.smooth_scroll_steps)

    # Voice-tracking mode

    def enable_voice_tracking(self) -> None:
        """
        Hand the offset to the voice tracker.

        Smoothing is seeded from the current offset so nothing jumps.
        """
        state: ScrollState = self.state
        state.voice_tracking_active = True
        state.is_playing = False
        state.animating = False
        state.target_offset = state.display_offset
        self._clear_highlight()
        logger.info("Voice tracking enabled at offset %.1f", state.display_offset)

    def disable_voice_tracking(self) -> None:
        """Stop following the voice tracker and drop highlight state."""
        self.state.voice_tracking_active = False
        self._clear_highlight()
        logger.info("Voice tracking disabled")

    def _clear_highlight(self) -> None:
        self.state.display_highlight_index = None
        self.state.target_highlight_index = None
        self.state.highlight_accumulator = 0.0

    def scroll_to_word_index(self, word_index: int) -> None:
        """
        Set the word the highlight should advance toward.

        The first target after enabling is shown directly; later targets are
        reached one word at a time by ``tick``.
        """
        state: ScrollState = self.state
        if not state.voice_tracking_active:
            return
        state.target_highlight_index = word_index
        if state.display_highlight_index is None or state.display_highlight_index > word_index:
            state.display_highlight_index = word_index
            state.highlight_accumulator = 0.0
            self._retarget_scroll(word_index)

    def manual_adjust_while_voice_tracking(self, delta: float) -> int | None:
        """
        Apply a user scroll during voice tracking.

        The shift bypasses smoothing, the word nearest the reading line
        becomes the highlight, and it is reported through
        ``on_manual_scroll`` so the tracker resumes from there.

        Returns:
            The word index now at the reading line, or None if unknown
        """
        state: ScrollState = self.state
        if not state.voice_tracking_active:
            return None
        adjusted: float = max(0.0, state.display_offset + delta)
        state.display_offset = adjusted
        state.target_offset = adjusted

        reading_line: float = adjusted + self.viewport_height * 0.5
        word_index: int | None = self.word_positions.nearest_index(reading_line)
        if word_index is None:
            return None
        state.display_highlight_index = word_index
        state.target_highlight_index = word_index
        state.highlight_accumulator = 0.0
        logger.debug("Manual scroll to offset %.1f, word %d", adjusted, word_index)
        if self.on_manual_scroll is not None:
            self.on_manual_scroll(word_index)
        return word_index

    # Per-frame update

    def tick(self, delta_time: float) -> ScrollState:
        """
        Advance one display frame.

        Args:
            delta_time: Seconds since the previous tick

        Returns:
            The updated state
        """
        delta_time = max(0.0, delta_time)
        state: ScrollState = self.state
        if state.voice_tracking_active:
            self._advance_highlight(delta_time)
            self._smooth_offset()
        else:
            if state.is_playing:
                state.display_offset += self.points_per_second * delta_time
            if state.animating:
                self._advance_animation(delta_time)
        return state

    def _advance_interval(self, gap: int) -> float:
        """Seconds per highlighted word; bigger gaps close faster."""
        if gap > 5:
            return self.fast_advance_interval
        if gap > 2:
            return self.medium_advance_interval
        return self.slow_advance_interval

    def _advance_highlight(self, delta_time: float) -> None:
        state: ScrollState = self.state
        target: int | None = state.target_highlight_index
        current: int | None = state.display_highlight_index
        if target is None or current is None:
            return
        if current >= target:
            state.highlight_accumulator = 0.0
            return

        state.highlight_accumulator += delta_time
        if state.highlight_accumulator < self._advance_interval(target - current):
            return
        state.highlight_accumulator = 0.0
        state.display_highlight_index = current + 1
        self._retarget_scroll(current + 1)

    def _retarget_scroll(self, word_index: int) -> None:
        """Center a word in the viewport, ignoring sub-threshold changes."""
        word_y: float | None = self.word_positions.get(word_index)
        if word_y is None:
            # Layout not ready for this word; keep the last valid target
            return
        new_target: float = max(0.0, word_y - self.viewport_height * 0.5)
        if abs(new_target - self.state.target_offset) >= self.min_target_change:
            self.state.target_offset = new_target

    def _smooth_offset(self) -> None:
        state: ScrollState = self.state
        diff: float = state.target_offset - state.display_offset
        state.display_offset += self.ema_alpha * diff
        if abs(diff) < self.snap_threshold:
            state.display_offset = state.target_offset

    def _advance_animation(self, delta_time: float) -> None:
        state: ScrollState = self.state
        step_duration: float = self.smooth_scroll_duration / self.smooth_scroll_steps
        state.animation_elapsed += delta_time
        while (state.animation_steps_done < self.smooth_scroll_steps
               and state.animation_elapsed >= state.animation_steps_done * step_duration):
            state.display_offset = max(0.0, state.display_offset + state.animation_step_delta)
            state.animation_steps_done += 1
        if state.animation_steps_done >= self.smooth_scroll_steps:
            state.display_offset = state.animation_target
            state.animating = False
