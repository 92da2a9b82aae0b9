# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Debug logging of alignment decisions, for diagnosing drift between what was
said and where the prompter scrolled.

Writes logs/tracking.log with one line per hypothesis, phrase match, arbiter
decision and resync.

Logging is disabled by default. Call enable() to turn it on.
"""

from collections.abc import Sequence
from datetime import datetime
from pathlib import Path

# Log files location (in project root)
LOG_DIR: Path = Path(__file__).parent.parent.parent / "logs"
TRACKING_LOG: Path = LOG_DIR / "tracking.log"

# Global flag to control whether debug logging is enabled
_ENABLED: bool = False  # pylint: disable=invalid-name


def enable() -> None:
    """Enable debug logging."""
    global _ENABLED  # pylint: disable=global-statement
    _ENABLED = True


def disable() -> None:
    """Disable debug logging."""
    global _ENABLED  # pylint: disable=global-statement
    _ENABLED = False


def is_enabled() -> bool:
    """Check if debug logging is enabled."""
    return _ENABLED


def _ensure_log_dir() -> None:
    """Create log directory if it doesn't exist."""
    LOG_DIR.mkdir(parents=True, exist_ok=True)


def _timestamp() -> str:
    """Get current timestamp."""
    return datetime.now().strftime("%H:%M:%S.%f")[:-3]


def _write(line: str) -> None:
    _ensure_log_dir()
    with open(TRACKING_LOG, 'a', encoding='utf-8') as f:
        f.write(f"[{_timestamp()}] {line}\n")


def clear_logs() -> None:
    """Truncate the tracking log for a fresh session."""
    if not _ENABLED:
        return
    _ensure_log_dir()
    with open(TRACKING_LOG, 'w', encoding='utf-8') as f:
        f.write(
            f"=== New session started at {datetime.now().isoformat()} ===\n\n")


def log_hypothesis(tokens: Sequence[str], stable_count: int) -> None:
    """
    Log a filtered hypothesis and how much of it was stable.

    Args:
        tokens: Hypothesis tokens after confidence gating and filler removal
        stable_count: Length of the prefix shared with the previous hypothesis
    """
    if not _ENABLED:
        return
    _write(f"hypothesis     stable={stable_count:3d} tokens={list(tokens)[-12:]}")


def log_match(phrase: Sequence[str], search_from: int, candidate: int | None) -> None:
    """Log a phrase lookup and where it landed."""
    if not _ENABLED:
        return
    where: str = "none" if candidate is None else f"{candidate:4d}"
    _write(f"match          from={search_from:4d} end={where} phrase={list(phrase)}")


def log_decision(candidate: int, decision: str, confirmed_index: int) -> None:
    """
    Log what the arbiter did with a candidate.

    Args:
        candidate: Candidate end index from the locator
        decision: Arbiter decision name
        confirmed_index: Confirmed index after the decision
    """
    if not _ENABLED:
        return
    _write(f"{decision:15} candidate={candidate:4d} confirmed={confirmed_index:4d}")


def log_resync(word_index: int, reason: str) -> None:
    """Log an externally triggered resync."""
    if not _ENABLED:
        return
    _write(f"RESYNC: -> {word_index} ({reason})")
