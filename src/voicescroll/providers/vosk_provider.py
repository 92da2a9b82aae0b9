# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Vosk recognizer backend.

Streams microphone audio through a Kaldi recognizer. Partial results become
unscored hypotheses; final results carry per-word confidences, which the
tracker uses for confidence gating.
"""

import asyncio
import json
import logging
import os
import tempfile
import urllib.request
import zipfile
from collections.abc import AsyncIterator, Callable
from pathlib import Path
from typing import Any

from vosk import KaldiRecognizer, Model, SetLogLevel

from ..transcription_provider import (
    ModelInfo,
    RecognizedToken,
    TranscriptionHypothesis,
    TranscriptionProvider,
)

logger = logging.getLogger(__name__)

# Kaldi logs every utterance to stderr otherwise
SetLogLevel(-1)

MODEL_CACHE_DIR: Path = Path.home() / ".cache" / "voicescroll" / "models"


class VoskProvider(TranscriptionProvider):
    """Microphone capture recognized by a local Vosk model."""

    # Downloadable models, keyed by the id used on the command line
    MODELS: dict[str, dict[str, Any]] = {
        "vosk-en-us-small": {
            "dir": "vosk-model-small-en-us-0.15",
            "name": "English US - Small",
            "size_mb": 40,
            "url": "https://alphacephei.com/vosk/models/vosk-model-small-en-us-0.15.zip",
        },
        "vosk-en-us-medium": {
            "dir": "vosk-model-en-us-0.22",
            "name": "English US - Medium",
            "size_mb": 1800,
            "url": "https://alphacephei.com/vosk/models/vosk-model-en-us-0.22.zip",
        },
        "vosk-en-gb-small": {
            "dir": "vosk-model-small-en-gb-0.15",
            "name": "English GB - Small",
            "size_mb": 40,
            "url": "https://alphacephei.com/vosk/models/vosk-model-small-en-gb-0.15.zip",
        },
    }

    def __init__(
        self,
        model_id: str,
        sample_rate: int = 16000,
        device: int | None = None,
        chunk_ms: int = 100,
        model_path: str | None = None
    ) -> None:
        """
        Load the model and open (but do not start) the microphone.

        Args:
            model_id: Key of ``MODELS``, or a model directory
            sample_rate: Audio sample rate
            device: Audio input device index, or None for default
            chunk_ms: Audio chunk duration fed to the recognizer
            model_path: Custom model directory, overriding the model cache
        """
        self.sample_rate = sample_rate
        self.model_id = model_id
        self.model_path = model_path or self._get_model_path(model_id)

        if not Path(self.model_path).is_dir():
            raise RuntimeError(
                f"Vosk model not found at {self.model_path}. "
                f"Please download it with: voicescroll --download-model --model-id {model_id}"
            )

        logger.info("Loading Vosk model from: %s", self.model_path)
        self.model = Model(self.model_path)
        self.recognizer = self._new_recognizer()
        # PortAudio is loaded on import; only live capture needs it
        from ..audio import MicrophoneStream  # pylint: disable=import-outside-toplevel
        self.microphone = MicrophoneStream(
            sample_rate=sample_rate, chunk_duration_ms=chunk_ms, device=device)

        self.session_id: int = 0
        self._running: bool = False

    def _new_recognizer(self) -> KaldiRecognizer:
        recognizer = KaldiRecognizer(self.model, self.sample_rate)
        recognizer.SetWords(True)  # Per-word confidences on final results
        return recognizer

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> AsyncIterator[TranscriptionHypothesis]:
        """Capture audio and stream hypotheses until stopped."""
        if self._running:
            raise RuntimeError("Vosk provider is already running")
        self._running = True
        self.session_id += 1
        self.recognizer = self._new_recognizer()
        loop = asyncio.get_running_loop()
        self.microphone.start()
        try:
            while self._running:
                chunk: bytes | None = await loop.run_in_executor(
                    None, self.microphone.get_chunk, 0.05)
                if not chunk or not self._running:
                    continue
                hypothesis: TranscriptionHypothesis | None = await loop.run_in_executor(
                    None, self.process_audio, chunk)
                if hypothesis is not None:
                    yield hypothesis
        finally:
            self._running = False
            self.microphone.stop()

    def stop(self) -> None:
        """Stop streaming. Idempotent."""
        self._running = False

    def process_audio(self, audio_data: bytes) -> TranscriptionHypothesis | None:
        """
        Feed one audio chunk to the recognizer.

        Args:
            audio_data: Raw audio bytes (16-bit PCM, mono)

        Returns:
            The current hypothesis, or None if there is no speech yet
        """
        if self.recognizer.AcceptWaveform(audio_data):
            return self._parse_final(json.loads(self.recognizer.Result()))
        partial: dict[str, Any] = json.loads(self.recognizer.PartialResult())
        text: str = partial.get("partial", "").strip()
        if not text or self._is_vosk_artifact(text):
            return None
        return TranscriptionHypothesis.from_text(text, session_id=self.session_id)

    def _parse_final(self, result: dict[str, Any]) -> TranscriptionHypothesis | None:
        text: str = result.get("text", "").strip()
        if not text or self._is_vosk_artifact(text):
            return None
        words: list[dict[str, Any]] = result.get("result", [])
        if not words:
            return TranscriptionHypothesis.from_text(
                text, is_final=True, session_id=self.session_id)
        return TranscriptionHypothesis(
            tokens=tuple(
                RecognizedToken(w.get("word", ""), float(w.get("conf", 0.0)))
                for w in words
            ),
            is_final=True,
            session_id=self.session_id,
        )

    @staticmethod
    def get_available_models() -> list[ModelInfo]:
        return [
            ModelInfo(
                id=model_id,
                name=info["name"],
                provider="vosk",
                size_mb=info["size_mb"],
                description=f"{info['name']} Kaldi model ({info['dir']})",
            )
            for model_id, info in VoskProvider.MODELS.items()
        ]

    @staticmethod
    def download_model(
        model_id: str,
        target_dir: str | None = None,
        progress_callback: Callable[[str, int], None] | None = None
    ) -> str:
        """
        Fetch and unpack a model into the cache, unless it is already there.

        Args:
            model_id: Key of ``MODELS``
            target_dir: Cache directory override
            progress_callback: Called with (stage, percent) where stage is
                "downloading", "extracting" or "complete"

        Returns:
            The unpacked model directory

        Raises:
            ValueError: If ``model_id`` is not a known model
        """
        if model_id not in VoskProvider.MODELS:
            raise ValueError(
                f"Unknown Vosk model: {model_id}. "
                f"Choose from: {', '.join(VoskProvider.MODELS)}"
            )
        model_info: dict[str, Any] = VoskProvider.MODELS[model_id]

        def report(stage: str, percent: int) -> None:
            if progress_callback is not None:
                progress_callback(stage, percent)

        cache_dir: Path = Path(target_dir) if target_dir else MODEL_CACHE_DIR
        model_dir: Path = cache_dir / model_info["dir"]
        if model_dir.exists():
            logger.info("Model %s already cached at %s", model_id, model_dir)
            report("complete", 100)
            return str(model_dir)

        cache_dir.mkdir(parents=True, exist_ok=True)
        logger.info("Downloading %s from %s", model_id, model_info["url"])

        def on_block(blocks: int, block_size: int, total_size: int) -> None:
            if total_size > 0:
                report("downloading", min(100, blocks * block_size * 100 // total_size))

        # The archive is written and closed before extraction so it can be
        # removed afterwards on every platform.
        fd, archive = tempfile.mkstemp(suffix=".zip", prefix=f"{model_id}-")
        os.close(fd)
        try:
            report("downloading", 0)
            urllib.request.urlretrieve(model_info["url"], archive, on_block)
            report("extracting", 0)
            with zipfile.ZipFile(archive) as zf:
                zf.extractall(cache_dir)
        finally:
            Path(archive).unlink(missing_ok=True)

        report("complete", 100)
        logger.info("Model %s installed to %s", model_id, model_dir)
        return str(model_dir)

    @classmethod
    def _get_model_path(cls, model_id: str) -> str:
        """Cache location of a known model; anything else is taken as a path."""
        if model_id in cls.MODELS:
            return str(MODEL_CACHE_DIR / cls.MODELS[model_id]["dir"])
        return model_id

    @staticmethod
    def _is_vosk_artifact(text: str) -> bool:
        """A lone "the" is what Vosk emits for silence and noise."""
        return text.lower() == "the"
