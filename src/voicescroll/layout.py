# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Word position mapping between script indices and vertical scroll offsets.

A real renderer measures where each word lands and hands the result to the
scroll controller as a WordPositionMap. For headless use (replays, tests,
the CLI) LayoutEstimator approximates the same map with a fixed-advance
line wrap.
"""

import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass

from .config import DEFAULT_CONFIG, DisplaySettings
from .script_index import ScriptIndex

logger = logging.getLogger(__name__)


class WordPositionMap(Mapping[int, float]):
    """Immutable word index -> vertical offset (top of the word's line)."""

    def __init__(self, offsets: Mapping[int, float] | None = None) -> None:
        self._offsets: dict[int, float] = dict(sorted((offsets or {}).items()))

    def __getitem__(self, index: int) -> float:
        return self._offsets[index]

    def __iter__(self) -> Iterator[int]:
        return iter(self._offsets)

    def __len__(self) -> int:
        return len(self._offsets)

    def __repr__(self) -> str:
        return f"WordPositionMap({len(self._offsets)} words)"

    def nearest_index(self, offset: float) -> int | None:
        """
        Reverse lookup: the word whose position is closest to ``offset``.

        Words sharing a line share a position; the earliest of them wins.

        Returns:
            Word index, or None if the map is empty
        """
        best_index: int | None = None
        best_diff: float = float('inf')
        for index, y in self._offsets.items():
            diff: float = abs(y - offset)
            if diff < best_diff:
                best_diff = diff
                best_index = index
        return best_index


@dataclass
class ScriptLayout:
    """Result of laying out a script."""
    positions: WordPositionMap
    word_to_line: list[int]
    line_count: int
    content_height: float


@dataclass
class LayoutEstimator:
    """
    Estimates word positions with a greedy fixed-advance line wrap.

    Rebuild the layout whenever the script, font size, line spacing or
    viewport width changes.
    """
    font_size: float = 32.0
    line_spacing: float = 12.0
    viewport_width: float = 720.0
    char_width: float = 0.55  # Average advance as a fraction of font size

    @classmethod
    def from_settings(cls, settings: DisplaySettings | None = None) -> 'LayoutEstimator':
        """Build an estimator from the ``display`` config section."""
        display = dict(DEFAULT_CONFIG["display"])
        if settings:
            display.update(settings)
        return cls(
            font_size=float(display["font_size"]),
            line_spacing=float(display["line_spacing"]),
            viewport_width=float(display["viewport_width"]),
            char_width=float(display["char_width"]),
        )

    @property
    def line_height(self) -> float:
        """Distance between consecutive line tops."""
        return self.font_size + self.line_spacing

    @property
    def chars_per_line(self) -> int:
        """How many characters fit on one line."""
        advance: float = self.font_size * self.char_width
        if advance <= 0:
            return 1
        return max(1, int(self.viewport_width / advance))

    def layout(self, script: ScriptIndex) -> ScriptLayout:
        """
        Lay out a script and return each word's line top.

        Source newlines start a new line and blank source lines are kept as
        empty lines, so paragraph gaps scroll like the rendered text.
        """
        limit: int = self.chars_per_line
        offsets: dict[int, float] = {}
        word_to_line: list[int] = []
        word_index: int = 0
        line: int = 0

        for source_line in script.raw_text.split('\n'):
            used: int = 0
            for word in source_line.split():
                if word_index >= len(script):
                    break
                needed: int = len(word) if used == 0 else used + 1 + len(word)
                if used > 0 and needed > limit:
                    line += 1
                    needed = len(word)
                used = needed
                offsets[word_index] = line * self.line_height
                word_to_line.append(line)
                word_index += 1
            line += 1

        line_count: int = line if script.raw_text else 0
        logger.debug(
            "Laid out %d words on %d lines (%d chars/line)",
            word_index, line_count, limit)
        return ScriptLayout(
            positions=WordPositionMap(offsets),
            word_to_line=word_to_line,
            line_count=line_count,
            content_height=line_count * self.line_height,
        )
