# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Frame-synchronized periodic callback running on an asyncio event loop.

The callback receives the measured time since the previous frame and runs
on the loop itself, so it can mutate state shared with anything else
scheduled on that loop without locking.
"""

import asyncio
import logging
import time
from collections.abc import Callable

logger = logging.getLogger(__name__)


class DisplayLink:
    """Calls ``callback(delta_time)`` at a fixed frame rate while running."""

    def __init__(
        self,
        callback: Callable[[float], None],
        frame_rate: float = 60.0,
        clock: Callable[[], float] = time.perf_counter
    ) -> None:
        """
        Args:
            callback: Called once per frame with seconds since the last frame
            frame_rate: Target frames per second
            clock: Monotonic clock used to measure frame deltas
        """
        if frame_rate <= 0:
            raise ValueError(f"frame_rate must be positive, got {frame_rate}")
        self.callback = callback
        self.frame_interval: float = 1.0 / frame_rate
        self.clock = clock
        self.frame_count: int = 0
        self._task: asyncio.Task[None] | None = None
        self._last_frame_time: float = 0.0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start ticking. Must be called from a running event loop."""
        if self.is_running:
            return
        loop: asyncio.AbstractEventLoop = asyncio.get_running_loop()
        self._last_frame_time = self.clock()
        self._task = loop.create_task(self._run(), name="DisplayLink")
        logger.debug("Display link started at %.1f fps", 1.0 / self.frame_interval)

    def stop(self) -> None:
        """
        Stop ticking. Idempotent.

        No callback runs after this returns, since the callback only runs
        on the loop and cancellation is delivered before its next frame.
        """
        if self._task is None:
            return
        self._task.cancel()
        self._task = None
        logger.debug("Display link stopped after %d frames", self.frame_count)

    async def _run(self) -> None:
        try:
            while True:
                await asyncio.sleep(self.frame_interval)
                now: float = self.clock()
                delta_time: float = now - self._last_frame_time
                self._last_frame_time = now
                self.frame_count += 1
                try:
                    self.callback(delta_time)
                except Exception as e:  # pylint: disable=broad-except
                    logger.error("Error in frame callback: %s", e, exc_info=True)
        except asyncio.CancelledError:
            pass
