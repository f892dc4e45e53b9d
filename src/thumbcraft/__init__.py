"""Thumbcraft - Multi-provider AI thumbnail generation service."""

__version__ = "0.1.0"

from thumbcraft.core.config import ThumbcraftConfig, config
from thumbcraft.core.providers import ProviderBase, provider_registry

# Import providers to ensure they're registered
from thumbcraft.core.providers import GeminiProvider, OpenAIImagesProvider  # noqa: F401

__all__ = [
    "ProviderBase",
    "provider_registry",
    "ThumbcraftConfig",
    "config",
    "GeminiProvider",
    "OpenAIImagesProvider",
]
