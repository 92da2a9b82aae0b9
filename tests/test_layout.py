# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Tests for word position estimation and reverse lookup.
"""

from voicescroll.layout import LayoutEstimator, ScriptLayout, WordPositionMap
from voicescroll.script_index import prepare


def small_estimator() -> LayoutEstimator:
    """Five characters per line, 10pt lines."""
    return LayoutEstimator(font_size=10.0, line_spacing=0.0, viewport_width=55.0, char_width=1.0)


class TestWordPositionMap:
    """Tests for the index -> offset mapping."""

    def test_mapping_interface(self) -> None:
        positions = WordPositionMap({2: 20.0, 0: 0.0, 1: 10.0})
        assert list(positions) == [0, 1, 2]
        assert positions[1] == 10.0
        assert positions.get(7) is None
        assert len(positions) == 3

    def test_nearest_index(self) -> None:
        positions = WordPositionMap({0: 0.0, 1: 0.0, 2: 10.0, 3: 20.0})
        assert positions.nearest_index(6.0) == 2
        assert positions.nearest_index(100.0) == 3

    def test_nearest_index_prefers_earliest_on_tie(self) -> None:
        positions = WordPositionMap({0: 0.0, 1: 0.0, 2: 10.0})
        assert positions.nearest_index(4.0) == 0
        assert positions.nearest_index(5.0) == 0

    def test_nearest_index_empty(self) -> None:
        assert WordPositionMap().nearest_index(50.0) is None


class TestLayoutEstimator:
    """Tests for the fixed-advance line wrap."""

    def test_metrics(self) -> None:
        estimator = small_estimator()
        assert estimator.line_height == 10.0
        assert estimator.chars_per_line == 5

    def test_wraps_long_lines(self) -> None:
        result: ScriptLayout = small_estimator().layout(prepare("aa bb cc\ndd"))
        assert dict(result.positions) == {0: 0.0, 1: 0.0, 2: 10.0, 3: 20.0}
        assert result.word_to_line == [0, 0, 1, 2]
        assert result.line_count == 3
        assert result.content_height == 30.0

    def test_blank_lines_take_space(self) -> None:
        result: ScriptLayout = small_estimator().layout(prepare("aa\n\nbb"))
        assert dict(result.positions) == {0: 0.0, 1: 20.0}

    def test_overlong_word_gets_own_line(self) -> None:
        result: ScriptLayout = small_estimator().layout(prepare("a extraordinary b"))
        assert result.word_to_line == [0, 1, 2]

    def test_every_word_has_a_position(self) -> None:
        script = prepare("The quick brown fox jumps over the lazy dog. " * 20)
        result: ScriptLayout = LayoutEstimator().layout(script)
        assert len(result.positions) == len(script)
        offsets = [result.positions[i] for i in range(len(script))]
        assert offsets == sorted(offsets)

    def test_empty_script(self) -> None:
        result: ScriptLayout = LayoutEstimator().layout(prepare(""))
        assert len(result.positions) == 0
        assert result.line_count == 0

    def test_from_settings(self) -> None:
        estimator = LayoutEstimator.from_settings({"font_size": 20.0})  # type: ignore[typeddict-item]
        assert estimator.font_size == 20.0
        assert estimator.line_spacing == 12.0
        assert estimator.line_height == 32.0
