# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Base interface for streaming speech recognizers.

A provider turns some audio source into a stream of hypotheses. Each
hypothesis is the recognizer's current best guess for the whole utterance
and may revise any suffix of the one before it.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable, Sequence
from dataclasses import dataclass, field


@dataclass(frozen=True)
class RecognizedToken:
    """A single recognized word with an optional confidence.

    A confidence of 0.0 means the recognizer did not score the word.
    """
    text: str
    confidence: float = 0.0


@dataclass(frozen=True)
class TranscriptionHypothesis:
    """The recognizer's current best guess for the utterance so far."""

    tokens: tuple[RecognizedToken, ...] = field(default_factory=tuple)
    is_final: bool = False
    # Incremented by the provider whenever the upstream session restarts
    session_id: int = 0

    @classmethod
    def from_text(cls, text: str, is_final: bool = False,
                  session_id: int = 0) -> 'TranscriptionHypothesis':
        """Build an unscored hypothesis from plain recognizer text."""
        return cls(
            tokens=tuple(RecognizedToken(w) for w in text.split() if w),
            is_final=is_final,
            session_id=session_id,
        )

    @classmethod
    def from_words(cls, words: Sequence[str],
                   confidences: Sequence[float] | None = None,
                   is_final: bool = False,
                   session_id: int = 0) -> 'TranscriptionHypothesis':
        """Build a hypothesis from parallel word and confidence lists."""
        if confidences is not None and len(confidences) != len(words):
            raise ValueError(
                f"Got {len(confidences)} confidences for {len(words)} words")
        scores: Sequence[float] = confidences if confidences is not None else [0.0] * len(words)
        return cls(
            tokens=tuple(RecognizedToken(w, float(c)) for w, c in zip(words, scores)),
            is_final=is_final,
            session_id=session_id,
        )

    @property
    def text(self) -> str:
        """The hypothesis as a single string."""
        return ' '.join(t.text for t in self.tokens)

    def __repr__(self) -> str:
        status: str = "final" if self.is_final else "partial"
        return f"TranscriptionHypothesis({status}: '{self.text}')"


@dataclass
class ModelInfo:
    """Information about an available transcription model."""

    id: str  # Unique identifier (e.g., "vosk-en-us-small")
    name: str  # Display name (e.g., "English US - Small")
    provider: str  # Provider name ("vosk" or "replay")
    size_mb: int | None = None
    description: str | None = None


class TranscriptionProvider(ABC):
    """Base interface for streaming recognizers.

    ``start`` returns an async iterator of hypotheses for one listening
    session; ``stop`` ends it. ``stop`` must be safe to call more than once
    and before ``start``.
    """

    @abstractmethod
    def start(self) -> AsyncIterator[TranscriptionHypothesis]:
        """
        Begin recognition and stream hypotheses.

        Returns:
            Async iterator that ends when the provider is stopped or the
            source is exhausted
        """

    @abstractmethod
    def stop(self) -> None:
        """Stop recognition and release the audio source."""

    @property
    @abstractmethod
    def is_running(self) -> bool:
        """True between start() and stop()."""

    @staticmethod
    @abstractmethod
    def get_available_models() -> list[ModelInfo]:
        """
        Get list of available models for this provider.

        Returns:
            List of ModelInfo objects describing available models
        """

    @staticmethod
    def download_model(model_id: str, target_dir: str | None = None,
                       progress_callback: Callable[[str, int], None] | None = None) -> str:
        """
        Download a model if not already present.

        Args:
            model_id: Model identifier to download
            target_dir: Optional target directory, or None for default

        Returns:
            Path to the downloaded model directory
        """
        raise ValueError(f"Model {model_id} cannot be downloaded by this provider")
