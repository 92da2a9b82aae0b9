# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Recognizer backends, looked up by the name used on the command line and in
the ``transcription.provider`` config key.
"""

from pathlib import Path

from ..transcription_provider import ModelInfo, TranscriptionProvider
from .replay_provider import ReplayProvider
from .vosk_provider import MODEL_CACHE_DIR, VoskProvider

PROVIDER_REGISTRY: dict[str, type[TranscriptionProvider]] = {
    "vosk": VoskProvider,
    "replay": ReplayProvider,
}


def get_provider_class(provider_name: str) -> type[TranscriptionProvider]:
    """
    Raises:
        ValueError: If no backend is registered under ``provider_name``
    """
    try:
        return PROVIDER_REGISTRY[provider_name]
    except KeyError:
        raise ValueError(
            f"Unknown provider: {provider_name}. "
            f"Available providers: {', '.join(PROVIDER_REGISTRY)}"
        ) from None


def create_provider(
    provider_name: str, model_id: str, **kwargs: object
) -> TranscriptionProvider:
    """
    Instantiate a recognizer backend.

    Args:
        provider_name: Registry key ("vosk" or "replay")
        model_id: Vosk model key, or the replay file for "replay"
        **kwargs: Backend options such as ``device`` or ``chunk_ms``;
            backends ignore options they do not take
    """
    provider_class = get_provider_class(provider_name)
    return provider_class(model_id, **kwargs)  # type: ignore[call-arg]


def get_provider_models(provider_name: str) -> list[ModelInfo]:
    """Models offered by one backend; empty for unknown names."""
    if provider_name not in PROVIDER_REGISTRY:
        return []
    return PROVIDER_REGISTRY[provider_name].get_available_models()


def get_all_available_models() -> list[ModelInfo]:
    return [model for name in PROVIDER_REGISTRY for model in get_provider_models(name)]


def is_model_downloaded(model_id: str) -> bool:
    """
    True if a Vosk model is unpacked in the model cache.

    An id that is not a known model is treated as a model directory path.
    """
    model_info = VoskProvider.MODELS.get(model_id)
    if model_info is None:
        return Path(model_id).exists()
    return (MODEL_CACHE_DIR / model_info["dir"]).exists()


__all__ = [
    "PROVIDER_REGISTRY",
    "ReplayProvider",
    "VoskProvider",
    "create_provider",
    "get_all_available_models",
    "get_provider_class",
    "get_provider_models",
    "is_model_downloaded",
]
