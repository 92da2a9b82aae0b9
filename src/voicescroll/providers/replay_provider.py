# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Replay recognizer backend.

Streams the hypotheses recorded in a replay file at their recorded times.
Restart events bump the session id, the way a live recognizer reports a new
session. Manual scroll events are user input rather than recognizer output
and are skipped here.
"""

import asyncio
import logging
from collections.abc import AsyncIterator

from ..replay import ReplaySession, load_replay
from ..transcription_provider import ModelInfo, TranscriptionHypothesis, TranscriptionProvider

logger = logging.getLogger(__name__)


class ReplayProvider(TranscriptionProvider):
    """Plays back a recorded session in real time."""

    def __init__(
        self,
        model_id: str | None = None,
        session: ReplaySession | None = None,
        speed: float = 1.0,
        **_: object
    ) -> None:
        """
        Args:
            model_id: Path to a replay file (used when ``session`` is None)
            session: Already loaded session
            speed: Playback rate multiplier
        """
        if session is None:
            if model_id is None:
                raise ValueError("ReplayProvider needs a replay file or a session")
            session = load_replay(model_id)
        if speed <= 0:
            raise ValueError(f"speed must be positive, got {speed}")
        self.session = session
        self.speed = speed
        self.session_id: int = 0
        self._running: bool = False

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> AsyncIterator[TranscriptionHypothesis]:
        self._running = True
        self.session_id += 1
        loop = asyncio.get_running_loop()
        started: float = loop.time()
        try:
            for event in self.session.events:
                if not self._running:
                    break
                delay: float = started + event.at / self.speed - loop.time()
                if delay > 0:
                    await asyncio.sleep(delay)
                if not self._running:
                    break
                if event.restart:
                    self.session_id += 1
                    logger.debug("Replay session restarted (session %d)", self.session_id)
                elif event.hypothesis is not None:
                    yield TranscriptionHypothesis(
                        tokens=event.hypothesis.tokens,
                        is_final=event.hypothesis.is_final,
                        session_id=self.session_id,
                    )
        finally:
            self._running = False

    def stop(self) -> None:
        self._running = False

    @staticmethod
    def get_available_models() -> list[ModelInfo]:
        # Replay files are named directly on the command line
        return []
