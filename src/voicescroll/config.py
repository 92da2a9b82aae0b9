# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Configuration for voicescroll.

Every tuning constant of the alignment pipeline and the scroll control loop
has a default here; a `.voicescroll.yaml` in the working directory overrides
any subset of them.
"""

import logging
from pathlib import Path
from typing import Any, TypedDict

import yaml

logger = logging.getLogger(__name__)

CONFIG_FILENAME: str = ".voicescroll.yaml"


class DisplaySettings(TypedDict):
    """Font metrics, viewport size and constant scroll speed."""
    font_size: float
    line_spacing: float
    scroll_speed: float  # words per minute
    viewport_height: float
    viewport_width: float
    char_width: float  # average glyph advance, as a fraction of font size


class TrackingSettings(TypedDict):
    """Alignment pipeline constants."""
    phrase_match_length: int
    forward_window_words: int
    max_small_jump: int
    large_jump_confirm_threshold: int
    large_jump_tolerance: int
    max_distance_ratio: float
    proximity_penalty: float
    min_confidence: float
    look_ahead_words: int


class ScrollSettings(TypedDict):
    """Scroll smoothing and highlight pacing constants."""
    ema_alpha: float
    min_target_change: float
    snap_threshold: float
    words_per_line: float
    fast_advance_interval: float
    medium_advance_interval: float
    slow_advance_interval: float
    smooth_scroll_duration: float
    smooth_scroll_steps: int


class TranscriptionConfig(TypedDict):
    """Which recognizer backend and model to use."""
    provider: str  # "vosk" or "replay"
    model_id: str  # A key of VoskProvider.MODELS, or a replay file path
    model_path: str | None  # Unpacked model directory overriding the cache


class Config(TypedDict):
    """The whole configuration file."""
    transcription: TranscriptionConfig
    audio_device: int | None
    chunk_ms: int
    frame_rate: float
    display: DisplaySettings
    tracking: TrackingSettings
    scroll: ScrollSettings


DEFAULT_CONFIG: Config = {
    "transcription": {
        "provider": "vosk",
        "model_id": "vosk-en-us-small",
        "model_path": None,
    },

    "audio_device": None,
    "chunk_ms": 100,

    # Display refresh cadence for the scroll control loop
    "frame_rate": 60.0,

    "display": {
        "font_size": 32.0,
        "line_spacing": 12.0,
        "scroll_speed": 60.0,
        "viewport_height": 200.0,
        "viewport_width": 720.0,
        "char_width": 0.55,
    },

    "tracking": {
        # Spoken words used to build the match phrase
        "phrase_match_length": 6,
        # Script words searched ahead of the confirmed position
        "forward_window_words": 30,
        "max_small_jump": 10,
        "large_jump_confirm_threshold": 3,
        "large_jump_tolerance": 3,
        "max_distance_ratio": 0.4,
        "proximity_penalty": 0.3,
        "min_confidence": 0.5,
        # Compensates recognition latency when choosing what to highlight
        "look_ahead_words": 4,
    },

    "scroll": {
        # ~350ms to 95% convergence at 60fps
        "ema_alpha": 0.13,
        "min_target_change": 3.0,
        "snap_threshold": 0.5,
        "words_per_line": 8.0,
        "fast_advance_interval": 0.04,
        "medium_advance_interval": 0.08,
        "slow_advance_interval": 0.12,
        "smooth_scroll_duration": 0.15,
        "smooth_scroll_steps": 10,
    },
}


def get_config_path() -> Path:
    """The per-project config file lives next to wherever voicescroll is run."""
    return Path.cwd() / CONFIG_FILENAME


def _deep_merge(base, override):
    """
    Layer ``override`` on top of ``base``, section by section.

    Nested sections are merged key by key and always copied, so the result
    never shares a section dict with either input (in particular, callers
    may freely edit a loaded config without touching DEFAULT_CONFIG).
    """
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict):
            section = merged.get(key)
            merged[key] = _deep_merge(section if isinstance(section, dict) else {}, value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: Path | None = None) -> Config:
    """
    Read the YAML config file and layer it over the defaults.

    A missing, unreadable or malformed file is not fatal: a warning is
    logged and the defaults are used.

    Args:
        config_path: File to read, or None for ``get_config_path()``

    Returns:
        A complete configuration, safe to modify
    """
    path: Path = config_path if config_path is not None else get_config_path()
    defaults: dict[str, Any] = _deep_merge({}, DEFAULT_CONFIG)
    if not path.exists():
        return defaults  # type: ignore[return-value]

    try:
        overrides: Any = yaml.safe_load(path.read_text(encoding='utf-8'))
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Could not load config from %s: %s", path, e)
        return defaults  # type: ignore[return-value]

    if overrides is None:
        return defaults  # type: ignore[return-value]
    if not isinstance(overrides, dict):
        logger.warning(
            "Ignoring config at %s: expected a mapping, got %s",
            path, type(overrides).__name__)
        return defaults  # type: ignore[return-value]
    logger.debug("Loaded config overrides from %s", path)
    return _deep_merge(defaults, overrides)  # type: ignore[return-value]


def save_config(config: Config, config_path: Path | None = None) -> bool:
    """
    Write ``config`` as YAML, in section order.

    Returns:
        False if the file could not be written (the error is logged)
    """
    path: Path = config_path if config_path is not None else get_config_path()
    try:
        path.write_text(
            yaml.dump(dict(config), default_flow_style=False, sort_keys=False),
            encoding='utf-8')
    except (OSError, yaml.YAMLError) as e:
        logger.error("Error saving config to %s: %s", path, e)
        return False
    logger.info("Saved config to %s", path)
    return True


def _section(config: Config, name: str) -> dict[str, Any]:
    """A copy of one config section, falling back to its defaults."""
    return dict(config.get(name) or DEFAULT_CONFIG[name])  # type: ignore[literal-required]


def get_display_settings(config: Config) -> DisplaySettings:
    return _section(config, "display")  # type: ignore[return-value]


def get_tracking_settings(config: Config) -> TrackingSettings:
    return _section(config, "tracking")  # type: ignore[return-value]


def get_scroll_settings(config: Config) -> ScrollSettings:
    return _section(config, "scroll")  # type: ignore[return-value]


def get_transcription_settings(config: Config) -> TranscriptionConfig:
    return _section(config, "transcription")  # type: ignore[return-value]


def update_config_display(config: Config, display_settings: dict[str, Any]) -> Config:
    """Return a copy of ``config`` with ``display_settings`` merged into its display section."""
    return _deep_merge(_deep_merge({}, config), {"display": display_settings})  # type: ignore[return-value]
