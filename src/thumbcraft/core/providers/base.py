"""Base classes, response shapes and registry for image providers.

This module provides the foundation for supporting multiple upstream image
generation services in Thumbcraft.  Each service (Gemini, OpenAI Images, ...)
has its own provider class that implements a common interface while handling
the service's request format and credentials.

Provider Pattern
----------------
The orchestrator never talks to an SDK directly.  It asks a provider for a
:class:`ProviderResponse` and hands that response to :func:`collect_images`,
which turns it into a flat list of image buffers.  Each provider
encapsulates:
- Client construction from explicit configuration
- Request building for text-to-image and image-to-image modes
- Mapping the SDK response onto a streaming or single response shape

Response Shapes
---------------
Upstream services answer in one of two shapes:
- **Streaming**: a lazy, finite, non-restartable sequence of chunks.  Each
  chunk carries either a text aside or one inline image payload.
- **Single**: one response object holding zero or more inline images.

Both shapes carry images as :class:`ImagePayload` objects whose ``data`` is
base64 text.  Some SDKs hand back already-decoded bytes; those pass through
unchanged.

Usage Example
-------------
    >>> from thumbcraft.core.providers import provider_registry
    >>> from thumbcraft.core.config import config
    >>>
    >>> provider_registry.list_available()
    ['gemini', 'openai-images']
    >>> provider = provider_registry.instantiate("gemini", config)
    >>> response = await provider.generate(request, slot=1)
    >>> buffers = await collect_images(response, slot=1)

See Also
--------
- GenerationOrchestrator: Fans requests out across providers
- ThumbcraftConfig: Credentials and provider chains
"""

from __future__ import annotations

import base64
import binascii
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

from thumbcraft.core.config import ThumbcraftConfig
from thumbcraft.core.errors import ProviderResponseError
from thumbcraft.core.models import GenerationMode, GenerationRequest

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Response shapes
# ---------------------------------------------------------------------------


@dataclass
class ImagePayload:
    """One inline image embedded in a provider response."""

    data: str | bytes
    mime_type: str = "image/png"

    def decode(self) -> bytes:
        """Decode the payload into raw image bytes.

        Raises:
            ProviderResponseError: If ``data`` is not valid base64
        """
        if isinstance(self.data, bytes):
            return self.data
        try:
            return base64.b64decode(self.data, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ProviderResponseError(f"Invalid base64 image payload: {e}") from e


@dataclass
class ResponseChunk:
    """One partial result from a streaming provider."""

    text: str | None = None
    image: ImagePayload | None = None


@dataclass
class StreamingResponse:
    """A provider response delivered as an async stream of chunks."""

    chunks: AsyncIterator[ResponseChunk]


@dataclass
class SingleResponse:
    """A provider response delivered as one object."""

    images: list[ImagePayload] = field(default_factory=list)
    text: str | None = None


ProviderResponse = StreamingResponse | SingleResponse


async def collect_images(
    response: ProviderResponse,
    slot: int,
    provider_name: str = "provider",
) -> list[bytes]:
    """Flatten either response shape into image buffers in arrival order.

    Text asides are logged and dropped.  A response with no image payload
    yields an empty list, which callers treat as a soft failure.

    Args:
        response: Streaming or single provider response
        slot: Slot index, used for log correlation only
        provider_name: Provider name, used for log correlation only

    Returns
    -------
    list[bytes]
        Decoded image buffers

    Raises
    ------
    ProviderResponseError
        If a payload cannot be decoded
    TypeError
        If ``response`` is neither response shape
    """
    buffers: list[bytes] = []

    if isinstance(response, StreamingResponse):
        async for chunk in response.chunks:
            if chunk.image is not None:
                buffers.append(chunk.image.decode())
                logger.info("Image %d received from %s", slot, provider_name)
            elif chunk.text:
                logger.info("%s response for image %d: %s", provider_name, slot, chunk.text)
    elif isinstance(response, SingleResponse):
        if response.text:
            logger.info("%s response for image %d: %s", provider_name, slot, response.text)
        for payload in response.images:
            buffers.append(payload.decode())
        if buffers:
            logger.info("Image %d received from %s (%d payloads)", slot, provider_name, len(buffers))
    else:
        raise TypeError(f"Unsupported provider response: {type(response).__name__}")

    return buffers


# ---------------------------------------------------------------------------
# Provider base class
# ---------------------------------------------------------------------------


class ProviderBase(ABC):
    """Abstract base class for all image providers.

    Providers give the orchestrator a uniform view of heterogeneous upstream
    services.  Each provider must implement:
    - A credential readiness check
    - One generation call returning a :data:`ProviderResponse`

    Attributes
    ----------
    name : str
        Registry key used in provider chains (e.g., "gemini")
    description : str
        Brief description of the upstream service
    supported_modes : tuple[GenerationMode, ...]
        Generation modes this provider can serve
    config : ThumbcraftConfig
        Configuration object holding credentials and model names

    Notes
    -----
    - Clients are built lazily on first use, or injected for tests
    - Providers raise on failure; retry and fallback live in the orchestrator
    - Rate limiting must surface as an error carrying HTTP status 429
    """

    name: str = "base"
    description: str = "Base class for image providers"
    supported_modes: tuple[GenerationMode, ...] = (GenerationMode.TEXT_TO_IMAGE,)
    version: str = "0.1.0"

    def __init__(self, config: ThumbcraftConfig, client: Any | None = None) -> None:
        """Initialize the provider.

        Args:
            config: Configuration object holding credentials and model names
            client: Pre-built SDK client; built from ``config`` when omitted
        """
        self.config = config
        self._client = client

        logger.info(f"Initialized {self.name} provider")

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        """Check whether credentials for this provider are available.

        Returns
        -------
        bool
            True if the provider can be called
        """

    @abstractmethod
    def _build_client(self) -> Any:
        """Construct the SDK client from configuration."""

    @property
    def client(self) -> Any:
        """SDK client, constructed on first access."""
        if self._client is None:
            self._client = self._build_client()
        return self._client

    def supports(self, mode: GenerationMode) -> bool:
        """Check whether this provider can serve a generation mode."""
        return GenerationMode(mode) in self.supported_modes

    @abstractmethod
    async def generate(self, request: GenerationRequest, slot: int) -> ProviderResponse:
        """Issue one generation call for one slot.

        Args:
            request: The orchestrator's request (prompt, mode, reference image)
            slot: Slot index for log correlation

        Returns
        -------
        ProviderResponse
            Streaming or single response holding zero or more images

        Raises
        ------
        Exception
            Any SDK or network error; rate limits carry status 429
        """

    def get_provider_info(self) -> dict[str, Any]:
        """Get information about this provider.

        Returns
        -------
        dict[str, Any]
            Dictionary containing provider metadata
        """
        return {
            "name": self.name,
            "description": self.description,
            "supported_modes": [mode.value for mode in self.supported_modes],
            "version": self.version,
            "is_configured": self.is_configured,
        }


class ProviderRegistry:
    """Registry for managing available image providers.

    The registry provides a central location for discovering and
    instantiating providers by the names used in provider chains.

    Usage
    -----
    Registering a new provider:

        >>> from thumbcraft.core.providers import provider_registry
        >>> provider_registry.register(MyProvider)

    Building a chain:

        >>> chain = [provider_registry.instantiate(name, config)
        ...          for name in config.text_to_image_providers]

    Notes
    -----
    - Providers must be registered before they can be instantiated
    - Registry is global and shared across the application
    """

    def __init__(self) -> None:
        """Initialize the provider registry."""
        self._providers: dict[str, type[ProviderBase]] = {}

    def register(self, provider_class: type[ProviderBase]) -> type[ProviderBase]:
        """Register a provider class.

        Args:
            provider_class: Provider class to register

        Returns
        -------
        type[ProviderBase]
            The class itself, so this can be used as a decorator
        """
        provider_name = provider_class.name

        if provider_name in self._providers:
            logger.warning(f"Provider '{provider_name}' is already registered, overwriting")

        self._providers[provider_name] = provider_class
        logger.debug(f"Registered provider: {provider_name}")
        return provider_class

    def instantiate(
        self,
        provider_name: str,
        config: ThumbcraftConfig,
        client: Any | None = None,
    ) -> ProviderBase:
        """Create an instance of a registered provider.

        Args:
            provider_name: Name of the provider to instantiate
            config: Configuration object
            client: Optional pre-built SDK client

        Returns
        -------
        ProviderBase
            New instance of the specified provider

        Raises
        ------
        KeyError
            If provider_name is not registered
        """
        if provider_name not in self._providers:
            available = ", ".join(self.list_available())
            raise KeyError(f"Provider '{provider_name}' not found. Available providers: {available}")

        return self._providers[provider_name](config=config, client=client)

    def get_provider_class(self, provider_name: str) -> type[ProviderBase] | None:
        """Get the provider class for a given name."""
        return self._providers.get(provider_name)

    def list_available(self) -> list[str]:
        """List all registered provider names."""
        return list(self._providers.keys())

    def get_provider_info(self, provider_name: str) -> dict[str, Any] | None:
        """Get static information about a registered provider.

        Args:
            provider_name: Name of the provider

        Returns
        -------
        dict[str, Any] | None
            Provider metadata or None if not found
        """
        provider_class = self._providers.get(provider_name)
        if provider_class is None:
            return None
        return {
            "name": provider_class.name,
            "description": provider_class.description,
            "supported_modes": [mode.value for mode in provider_class.supported_modes],
            "version": provider_class.version,
        }

    def get_providers_by_mode(self, mode: GenerationMode) -> list[dict[str, Any]]:
        """Get all providers that support a specific generation mode."""
        mode = GenerationMode(mode)
        return [
            self.get_provider_info(name)
            for name, provider_class in self._providers.items()
            if mode in provider_class.supported_modes
        ]


# Global provider registry instance
provider_registry = ProviderRegistry()
