"""Upstream image providers.

Importing this package registers every built-in provider with
:data:`provider_registry`.
"""

from thumbcraft.core.providers.base import (
    ImagePayload,
    ProviderBase,
    ProviderRegistry,
    ProviderResponse,
    ResponseChunk,
    SingleResponse,
    StreamingResponse,
    collect_images,
    provider_registry,
)
from thumbcraft.core.providers.gemini import GeminiProvider
from thumbcraft.core.providers.openai_images import OpenAIImagesProvider

__all__ = [
    "GeminiProvider",
    "ImagePayload",
    "OpenAIImagesProvider",
    "ProviderBase",
    "ProviderRegistry",
    "ProviderResponse",
    "ResponseChunk",
    "SingleResponse",
    "StreamingResponse",
    "collect_images",
    "provider_registry",
]
