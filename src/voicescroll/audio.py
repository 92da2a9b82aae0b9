# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Microphone capture for the Vosk recognizer backend.

Audio arrives on a sounddevice callback thread and is handed over through a
queue as raw 16-bit mono PCM chunks.
"""

import logging
import queue
from collections.abc import Sequence
from typing import Any

import numpy as np
import numpy.typing as npt
import sounddevice as sd

logger = logging.getLogger(__name__)


class MicrophoneStream:
    """Captures audio from an input device in fixed-size chunks."""

    sample_rate: int
    chunk_duration_ms: int
    chunk_size: int
    device: int | None
    audio_queue: queue.Queue[bytes]
    stream: sd.RawInputStream | None

    def __init__(
        self,
        sample_rate: int = 16000,
        chunk_duration_ms: int = 100,
        device: int | None = None
    ) -> None:
        """
        Args:
            sample_rate: Sample rate in Hz (16000 is what the Vosk models expect)
            chunk_duration_ms: Duration of each audio chunk in milliseconds
            device: Audio device index, or None for default
        """
        self.sample_rate = sample_rate
        self.chunk_duration_ms = chunk_duration_ms
        self.chunk_size = int(sample_rate * chunk_duration_ms / 1000)
        self.device = device

        self.audio_queue = queue.Queue()
        self.stream = None

    @property
    def running(self) -> bool:
        return self.stream is not None

    def _audio_callback(
        self,
        indata: npt.NDArray[np.int16],
        frames: int,
        time: Any,
        status: sd.CallbackFlags
    ) -> None:
        """Called on the audio thread for each captured chunk."""
        if status:
            logger.warning("Audio status: %s", status)
        self.audio_queue.put(bytes(indata))

    def start(self) -> None:
        """Open the input device and start capturing."""
        if self.stream is not None:
            return
        self.stream = sd.RawInputStream(
            samplerate=self.sample_rate,
            blocksize=self.chunk_size,
            device=self.device,
            dtype=np.int16,
            channels=1,
            callback=self._audio_callback
        )
        self.stream.start()
        logger.info(
            "Audio capture started (device=%s, %d Hz, %d ms chunks)",
            self.device, self.sample_rate, self.chunk_duration_ms)

    def stop(self) -> None:
        """Stop capturing and close the device. Idempotent."""
        if self.stream is None:
            return
        self.stream.stop()
        self.stream.close()
        self.stream = None
        self.clear_queue()
        logger.info("Audio capture stopped")

    def get_chunk(self, timeout: float = 0.5) -> bytes | None:
        """
        Get the next audio chunk.

        Args:
            timeout: Maximum time to wait for a chunk

        Returns:
            Audio data as bytes, or None if timeout
        """
        try:
            return self.audio_queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def clear_queue(self) -> None:
        """Drop any pending audio chunks."""
        while True:
            try:
                self.audio_queue.get_nowait()
            except queue.Empty:
                break


def list_devices() -> list[tuple[int, str, int]]:
    """
    List audio input devices.

    Returns:
        (index, name, input channel count) for each device with inputs
    """
    devices: Sequence[Any] = sd.query_devices()
    inputs: list[tuple[int, str, int]] = []
    for i, device in enumerate(devices):
        dev: dict[str, Any] = dict(device)
        channels: int = int(dev.get('max_input_channels', 0))
        if channels > 0:
            inputs.append((i, str(dev.get('name', 'Unknown')), channels))
    return inputs
