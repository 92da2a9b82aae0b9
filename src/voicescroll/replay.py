# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Recorded tracking sessions.

A replay file is YAML holding a script, a frame rate and a timed list of
events: recognizer hypotheses, session restarts and manual scrolls. Replays
can be streamed in real time through ``ReplayProvider`` or run
deterministically against a synthetic clock with ``run_replay``.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from .transcription_provider import TranscriptionHypothesis

if TYPE_CHECKING:
    from .engine import PrompterEngine

logger = logging.getLogger(__name__)

# Seconds the clock keeps running after the last event
DEFAULT_SETTLE_TIME: float = 2.0

EVENT_KINDS: tuple[str, ...] = ("tokens", "text", "restart", "scroll")


@dataclass(frozen=True)
class ReplayEvent:
    """One timed input. Exactly one of the payload fields is set."""
    at: float
    hypothesis: TranscriptionHypothesis | None = None
    restart: bool = False
    scroll: float | None = None


@dataclass
class ReplaySession:
    script: str | None
    frame_rate: float = 60.0
    events: list[ReplayEvent] = field(default_factory=list)
    is_markdown: bool = False

    @property
    def duration(self) -> float:
        """Time of the last event."""
        return self.events[-1].at if self.events else 0.0


@dataclass(frozen=True)
class FrameRecord:
    """Renderer-visible output of one replayed frame."""
    time: float
    display_offset: float
    display_highlight_index: int | None
    confirmed_index: int


def _parse_event(index: int, raw: Any) -> ReplayEvent:
    if not isinstance(raw, dict):
        raise ValueError(f"Event {index}: expected a mapping, got {type(raw).__name__}")
    at = raw.get("at")
    if isinstance(at, bool) or not isinstance(at, (int, float)) or at < 0:
        raise ValueError(f"Event {index}: 'at' must be a non-negative number")

    kinds: list[str] = [k for k in EVENT_KINDS if k in raw]
    if len(kinds) != 1:
        raise ValueError(
            f"Event {index}: expected exactly one of {', '.join(EVENT_KINDS)}")
    kind: str = kinds[0]

    if kind == "restart":
        if raw["restart"] is not True:
            raise ValueError(f"Event {index}: 'restart' must be true")
        return ReplayEvent(at=float(at), restart=True)

    if kind == "scroll":
        delta = raw["scroll"]
        if isinstance(delta, bool) or not isinstance(delta, (int, float)):
            raise ValueError(f"Event {index}: 'scroll' must be a number")
        return ReplayEvent(at=float(at), scroll=float(delta))

    if kind == "text":
        if not isinstance(raw["text"], str):
            raise ValueError(f"Event {index}: 'text' must be a string")
        words: list[str] = raw["text"].split()
    else:
        if not isinstance(raw["tokens"], list):
            raise ValueError(f"Event {index}: 'tokens' must be a list")
        words = [str(w) for w in raw["tokens"]]

    confidences = raw.get("confidences")
    if confidences is not None and not isinstance(confidences, list):
        raise ValueError(f"Event {index}: 'confidences' must be a list")
    try:
        hypothesis = TranscriptionHypothesis.from_words(
            words, confidences, is_final=bool(raw.get("final", False)))
    except (TypeError, ValueError) as e:
        raise ValueError(f"Event {index}: {e}") from e
    return ReplayEvent(at=float(at), hypothesis=hypothesis)


def _script_file(script: str, base_dir: Path | None) -> Path | None:
    """The file named by ``script``, or None when it holds inline text."""
    if "\n" in script:
        return None
    candidate: Path = (base_dir or Path.cwd()) / script
    try:
        return candidate if candidate.is_file() else None
    except OSError:
        # Inline text longer than the platform's file name limit
        return None


def parse_replay(data: Any, base_dir: Path | None = None) -> ReplaySession:
    """
    Build a session from parsed YAML.

    ``script`` may name a file (resolved against ``base_dir``) or hold the
    script text inline.

    Raises:
        ValueError: If the document or any event is malformed
    """
    if not isinstance(data, dict):
        raise ValueError("Replay file must contain a mapping")

    script: str | None = data.get("script")
    is_markdown: bool = bool(data.get("markdown", False))
    if script is not None:
        if not isinstance(script, str):
            raise ValueError("'script' must be a string")
        script_path: Path | None = _script_file(script, base_dir)
        if script_path is not None:
            is_markdown = is_markdown or script_path.suffix.lower() in (".md", ".markdown")
            script = script_path.read_text(encoding="utf-8")

    frame_rate = data.get("frame_rate", 60.0)
    if isinstance(frame_rate, bool) or not isinstance(frame_rate, (int, float)) or frame_rate <= 0:
        raise ValueError("'frame_rate' must be a positive number")

    raw_events = data.get("events", [])
    if not isinstance(raw_events, list):
        raise ValueError("'events' must be a list")
    events: list[ReplayEvent] = [_parse_event(i, e) for i, e in enumerate(raw_events)]
    # Stable sort keeps file order for events at the same time
    events.sort(key=lambda e: e.at)

    return ReplaySession(
        script=script,
        frame_rate=float(frame_rate),
        events=events,
        is_markdown=is_markdown,
    )


def load_replay(path: str | Path) -> ReplaySession:
    """Load and validate a replay file."""
    replay_path = Path(path)
    with open(replay_path, encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid replay file {replay_path}: {e}") from e
    session: ReplaySession = parse_replay(data, base_dir=replay_path.parent)
    logger.info("Loaded replay %s: %d events", replay_path, len(session.events))
    return session


def apply_event(engine: 'PrompterEngine', event: ReplayEvent) -> None:
    """Feed one event to the engine."""
    if event.hypothesis is not None:
        engine.deliver_hypothesis(event.hypothesis)
    elif event.restart:
        engine.session_restarted()
    elif event.scroll is not None:
        engine.manual_scroll(event.scroll)


def run_replay(
    engine: 'PrompterEngine',
    session: ReplaySession,
    settle_time: float = DEFAULT_SETTLE_TIME,
    prepare: bool = True
) -> list[FrameRecord]:
    """
    Run a session frame by frame against a synthetic clock.

    Events are applied at the first frame whose time reaches them, before
    that frame's tick. The result depends only on the session and the
    engine's settings.

    Args:
        engine: Engine to drive; its display link is not used
        session: The recorded session
        settle_time: Seconds to keep ticking after the last event
        prepare: Load the session's script and enable voice tracking first

    Returns:
        One record per frame
    """
    if prepare:
        if session.script is None:
            raise ValueError("Replay session has no script")
        engine.prepare_script(session.script, is_markdown=session.is_markdown)
        if not engine.scroll.voice_tracking_active:
            engine.scroll.enable_voice_tracking()

    frame_interval: float = 1.0 / session.frame_rate
    total_frames: int = int((session.duration + settle_time) * session.frame_rate) + 1
    records: list[FrameRecord] = []
    next_event: int = 0

    for frame in range(total_frames):
        now: float = frame * frame_interval
        while next_event < len(session.events) and session.events[next_event].at <= now:
            apply_event(engine, session.events[next_event])
            next_event += 1
        state = engine.tick(frame_interval)
        records.append(FrameRecord(
            time=now,
            display_offset=state.display_offset,
            display_highlight_index=state.display_highlight_index,
            confirmed_index=engine.tracker.confirmed_index,
        ))

    logger.debug("Replayed %d frames, %d events", len(records), next_event)
    return records
