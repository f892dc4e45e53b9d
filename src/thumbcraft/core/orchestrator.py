"""Multi-provider generation orchestration for Thumbcraft.

This module provides :class:`GenerationOrchestrator`, the single point of
control for turning one prompt into up to ``count`` image buffers.

Key Responsibilities
--------------------
- **Fail-fast readiness**: if no provider in the chain for the requested
  mode has credentials, :class:`ProviderConfigurationError` is raised before
  any slot starts.
- **Concurrent fan-out**: ``count`` independent slots are started at once
  and awaited together.  There is no worker pool and no concurrency cap.
- **Fallback chains**: each slot tries the configured providers in priority
  order and stops at the first one that returns at least one image.
- **Rate-limit retry**: every provider call runs under a
  :class:`~thumbcraft.core.retry.RetryPolicy`; only HTTP 429 failures are
  retried, everything else moves on to the next provider.
- **Partial-failure tolerance**: a slot whose providers all fail yields
  zero buffers.  The batch still succeeds with fewer images.
- **Burst smoothing**: in image-to-image mode every slot after the first
  waits ``slot_stagger_seconds`` before its primary attempt.

Usage
-----
::

    from thumbcraft.core.config import config
    from thumbcraft.core.orchestrator import GenerationOrchestrator

    orchestrator = GenerationOrchestrator.from_config(config)
    buffers = await orchestrator.generate("a neon city skyline", count=4)

See Also
--------
- :mod:`thumbcraft.core.providers`: provider implementations and response
  normalisation.
- :mod:`thumbcraft.api.main`: the FastAPI application that owns the
  orchestrator instance.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence

from thumbcraft.core.config import ThumbcraftConfig
from thumbcraft.core.errors import ProviderConfigurationError
from thumbcraft.core.mime import detect_mime_type
from thumbcraft.core.models import GenerationMode, GenerationRequest
from thumbcraft.core.providers.base import ProviderBase, ProviderRegistry, collect_images, provider_registry
from thumbcraft.core.retry import RetryPolicy

logger = logging.getLogger(__name__)


class GenerationOrchestrator:
    """Fans one generation request out across provider chains.

    Attributes:
        _chains (dict[GenerationMode, list[ProviderBase]]):
            Providers per mode in priority order.  Unconfigured providers are
            skipped at call time.
        _retry_policy (RetryPolicy):
            Policy wrapped around every provider call.
        _slot_stagger_seconds (float):
            Delay before each image-to-image slot beyond the first.
    """

    def __init__(
        self,
        chains: Mapping[GenerationMode, Sequence[ProviderBase]],
        retry_policy: RetryPolicy | None = None,
        slot_stagger_seconds: float = 0.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialise the orchestrator.

        Args:
            chains: Provider lists keyed by mode, primary first.
            retry_policy: Rate-limit policy; defaults to one retry after 2s.
            slot_stagger_seconds: Pre-slot delay for image-to-image slots.
            sleep: Coroutine used for the stagger delay.
        """
        self._chains: dict[GenerationMode, list[ProviderBase]] = {
            GenerationMode(mode): list(providers) for mode, providers in chains.items()
        }
        self._retry_policy = retry_policy or RetryPolicy()
        self._slot_stagger_seconds = slot_stagger_seconds
        self._sleep = sleep

    @classmethod
    def from_config(
        cls,
        config: ThumbcraftConfig,
        registry: ProviderRegistry = provider_registry,
    ) -> GenerationOrchestrator:
        """Build an orchestrator from configuration.

        Each provider name is instantiated once and shared between the
        text-to-image and image-to-image chains.

        Args:
            config: Application configuration.
            registry: Registry used to resolve provider names.

        Returns:
            A ready-to-use orchestrator.

        Raises:
            KeyError: If a chain names an unregistered provider.
        """
        instances: dict[str, ProviderBase] = {}

        def resolve(name: str) -> ProviderBase:
            if name not in instances:
                instances[name] = registry.instantiate(name, config)
            return instances[name]

        chains = {mode: [resolve(name) for name in config.provider_chain(mode)] for mode in GenerationMode}
        retry_policy = RetryPolicy(
            max_attempts=config.rate_limit_max_attempts,
            backoff_seconds=config.rate_limit_backoff_seconds,
        )
        return cls(chains, retry_policy=retry_policy, slot_stagger_seconds=config.slot_stagger_seconds)

    # -- Readiness ----------------------------------------------------------

    def chain(self, mode: GenerationMode) -> list[ProviderBase]:
        """Return every provider listed for ``mode``, configured or not."""
        return list(self._chains.get(GenerationMode(mode), []))

    def configured_chain(self, mode: GenerationMode) -> list[ProviderBase]:
        """Return the providers that can currently serve ``mode``, in order."""
        mode = GenerationMode(mode)
        return [p for p in self._chains.get(mode, []) if p.supports(mode) and p.is_configured]

    def is_ready(self, mode: GenerationMode | None = None) -> bool:
        """Check whether at least one provider can serve the mode.

        Args:
            mode: Mode to check.  ``None`` checks every mode.
        """
        modes = [GenerationMode(mode)] if mode is not None else list(GenerationMode)
        return all(self.configured_chain(m) for m in modes)

    # -- Generation ---------------------------------------------------------

    async def generate(
        self,
        prompt: str,
        count: int,
        reference_image: bytes | None = None,
        reference_mime_type: str | None = None,
    ) -> list[bytes]:
        """Generate up to ``count`` images for a prompt.

        Args:
            prompt: Final generation prompt.
            count: Number of slots to run (1-4, clamped by the caller).
            reference_image: Reference image bytes; implies image-to-image.
            reference_mime_type: MIME type of the reference; detected from
                magic bytes when omitted.

        Returns:
            Between 0 and ``count`` image buffers, in slot-completion order.

        Raises:
            ProviderConfigurationError: No configured provider for the mode.
            ValueError: ``count`` is outside 1-4.
        """
        if reference_image is not None and reference_mime_type is None:
            reference_mime_type = detect_mime_type(reference_image)

        request = GenerationRequest(
            prompt=prompt,
            count=count,
            reference_image=reference_image,
            reference_mime_type=reference_mime_type,
        )

        chain = self.configured_chain(request.mode)
        if not chain:
            raise ProviderConfigurationError(
                f"No configured provider for {request.mode.value}; "
                "set GEMINI_API_KEY or OPENAI_API_KEY"
            )

        logger.info(
            "Generating %d images (%s) via %s for prompt: %r",
            count,
            request.mode.value,
            " -> ".join(p.name for p in chain),
            prompt,
        )

        tasks = [
            asyncio.ensure_future(self._run_slot(request, chain, slot))
            for slot in range(1, count + 1)
        ]

        buffers: list[bytes] = []
        for finished in asyncio.as_completed(tasks):
            buffers.extend(await finished)

        if len(buffers) > count:
            logger.info("Providers returned %d images, keeping %d", len(buffers), count)
            buffers = buffers[:count]

        logger.info("Successfully generated %d of %d images", len(buffers), count)
        return buffers

    async def _run_slot(
        self,
        request: GenerationRequest,
        chain: list[ProviderBase],
        slot: int,
    ) -> list[bytes]:
        """Run one slot through the fallback chain.  Never raises."""
        try:
            if (
                request.mode is GenerationMode.IMAGE_TO_IMAGE
                and slot > 1
                and self._slot_stagger_seconds > 0
                and chain[0].supports(GenerationMode.IMAGE_TO_IMAGE)
            ):
                await self._sleep(self._slot_stagger_seconds)

            for provider in chain:
                try:
                    images = await self._retry_policy.call(
                        lambda provider=provider: self._attempt(provider, request, slot)
                    )
                except Exception as e:
                    logger.warning("Error generating image %d with %s: %s", slot, provider.name, e)
                    continue

                if images:
                    return images
                logger.warning("%s returned no image for slot %d", provider.name, slot)

            logger.error("All providers failed for image %d", slot)
            return []
        except Exception:
            logger.exception("Unexpected failure in image slot %d", slot)
            return []

    @staticmethod
    async def _attempt(provider: ProviderBase, request: GenerationRequest, slot: int) -> list[bytes]:
        response = await provider.generate(request, slot)
        return await collect_images(response, slot, provider.name)
