"""
voicescroll - Teleprompter scrolling driven by streaming speech recognition.

Recognizer hypotheses are aligned against the script with a fuzzy phrase
locator, and a per-frame control loop turns the confirmed position into a
smooth scroll offset and word highlight.
"""

__version__ = "0.1.0"

from .engine import PrompterEngine
from .layout import LayoutEstimator, WordPositionMap
from .script_index import ScriptIndex, prepare, prepare_markdown
from .scroll import ScrollController, ScrollState
from .tracker import TrackingUpdate, VoiceTracker
from .transcription_provider import (
    RecognizedToken,
    TranscriptionHypothesis,
    TranscriptionProvider,
)

__all__ = [
    "PrompterEngine",
    "LayoutEstimator",
    "WordPositionMap",
    "ScriptIndex",
    "prepare",
    "prepare_markdown",
    "ScrollController",
    "ScrollState",
    "TrackingUpdate",
    "VoiceTracker",
    "RecognizedToken",
    "TranscriptionHypothesis",
    "TranscriptionProvider",
]
