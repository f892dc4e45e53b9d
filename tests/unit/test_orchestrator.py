"""Tests for thumbcraft.core.orchestrator — concurrent fan-out with fallback.

Tests cover:
- Fail-fast when no provider is configured
- Concurrent slot execution
- Partial failure tolerance
- Fallback order and soft failures
- Rate-limit retry inside a slot
- Image-to-image stagger
- Truncation to the requested count
- Construction from configuration
"""

from __future__ import annotations

import asyncio

import pytest

from thumbcraft.core.errors import ProviderConfigurationError
from thumbcraft.core.models import GenerationMode
from thumbcraft.core.orchestrator import GenerationOrchestrator
from thumbcraft.core.providers import GeminiProvider, OpenAIImagesProvider
from thumbcraft.core.retry import RetryPolicy
from conftest import (
    JPEG_BYTES,
    PNG_BYTES,
    FakeProvider,
    FakeRateLimitError,
    FakeServerError,
    single_response,
    streaming_response,
)


class RecordingSleep:
    """Async sleep replacement that records requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def make_orchestrator(*providers, retry_sleep=None, **kwargs) -> GenerationOrchestrator:
    """Build an orchestrator using the same chain for both modes."""
    retry_policy = RetryPolicy(backoff_seconds=2.0, sleep=retry_sleep or RecordingSleep())
    chains = {mode: list(providers) for mode in GenerationMode}
    return GenerationOrchestrator(chains, retry_policy=retry_policy, **kwargs)


class TestReadiness:
    """Test configuration checks before any slot runs."""

    @pytest.mark.asyncio
    async def test_no_configured_provider_raises_without_calls(self):
        provider = FakeProvider(configured=False)
        orchestrator = make_orchestrator(provider)

        with pytest.raises(ProviderConfigurationError):
            await orchestrator.generate("a castle", 4)
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_empty_chain_raises(self):
        orchestrator = GenerationOrchestrator({})
        with pytest.raises(ProviderConfigurationError):
            await orchestrator.generate("a castle", 1)

    def test_configured_chain_filters_unconfigured_and_unsupported(self):
        ready = FakeProvider(name="ready")
        offline = FakeProvider(name="offline", configured=False)
        t2i_only = FakeProvider(name="t2i", modes=(GenerationMode.TEXT_TO_IMAGE,))
        orchestrator = make_orchestrator(offline, t2i_only, ready)

        assert orchestrator.configured_chain(GenerationMode.TEXT_TO_IMAGE) == [t2i_only, ready]
        assert orchestrator.configured_chain(GenerationMode.IMAGE_TO_IMAGE) == [ready]
        assert orchestrator.chain(GenerationMode.IMAGE_TO_IMAGE) == [offline, t2i_only, ready]

    def test_is_ready(self):
        t2i_only = FakeProvider(modes=(GenerationMode.TEXT_TO_IMAGE,))
        orchestrator = make_orchestrator(t2i_only)

        assert orchestrator.is_ready(GenerationMode.TEXT_TO_IMAGE) is True
        assert orchestrator.is_ready(GenerationMode.IMAGE_TO_IMAGE) is False
        assert orchestrator.is_ready() is False

    @pytest.mark.asyncio
    async def test_invalid_count_rejected(self):
        orchestrator = make_orchestrator(FakeProvider())
        with pytest.raises(ValueError):
            await orchestrator.generate("a castle", 5)


class TestFanOut:
    """Test concurrent slot execution and partial failures."""

    @pytest.mark.asyncio
    async def test_all_slots_succeed(self):
        provider = FakeProvider()
        orchestrator = make_orchestrator(provider)

        buffers = await orchestrator.generate("a castle", 4)

        assert buffers == [PNG_BYTES] * 4
        assert sorted(slot for slot, _ in provider.calls) == [1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_slots_run_concurrently(self):
        """Every slot must be in flight before any of them can finish."""
        count = 4
        all_started = asyncio.Event()
        provider = None

        async def responder(request, slot, call_number):
            if len(provider.calls) == count:
                all_started.set()
            await all_started.wait()
            return single_response(PNG_BYTES)

        provider = FakeProvider(responder)
        orchestrator = make_orchestrator(provider)

        buffers = await asyncio.wait_for(orchestrator.generate("a castle", count), timeout=2.0)
        assert len(buffers) == count

    @pytest.mark.asyncio
    async def test_partial_failure_returns_fewer_images(self):
        async def responder(request, slot, call_number):
            if slot in (2, 4):
                raise FakeServerError(f"slot {slot} failed")
            return single_response(PNG_BYTES)

        orchestrator = make_orchestrator(FakeProvider(responder))

        assert await orchestrator.generate("a castle", 4) == [PNG_BYTES, PNG_BYTES]

    @pytest.mark.asyncio
    async def test_total_failure_returns_empty_list(self):
        async def responder(request, slot, call_number):
            raise FakeServerError("down")

        orchestrator = make_orchestrator(FakeProvider(responder))

        assert await orchestrator.generate("a castle", 3) == []

    @pytest.mark.asyncio
    async def test_results_truncated_to_count(self):
        async def responder(request, slot, call_number):
            return single_response(PNG_BYTES, JPEG_BYTES)

        orchestrator = make_orchestrator(FakeProvider(responder))

        buffers = await orchestrator.generate("a castle", 2)
        assert len(buffers) == 2

    @pytest.mark.asyncio
    async def test_request_carries_prompt_and_mode(self):
        provider = FakeProvider()
        orchestrator = make_orchestrator(provider)

        await orchestrator.generate("snowy", 1, reference_image=JPEG_BYTES)

        _, request = provider.calls[0]
        assert request.prompt == "snowy"
        assert request.mode is GenerationMode.IMAGE_TO_IMAGE
        assert request.reference_mime_type == "image/jpeg"


class TestFallback:
    """Test per-slot fallback through the provider chain."""

    @pytest.mark.asyncio
    async def test_secondary_used_after_primary_error(self):
        async def fail(request, slot, call_number):
            raise FakeServerError("primary down")

        primary = FakeProvider(fail, name="primary")
        secondary = FakeProvider(name="secondary")
        orchestrator = make_orchestrator(primary, secondary)

        assert await orchestrator.generate("a castle", 1) == [PNG_BYTES]
        assert len(primary.calls) == 1
        assert len(secondary.calls) == 1

    @pytest.mark.asyncio
    async def test_secondary_not_called_when_primary_succeeds(self):
        primary = FakeProvider(name="primary")
        secondary = FakeProvider(name="secondary")
        orchestrator = make_orchestrator(primary, secondary)

        await orchestrator.generate("a castle", 2)

        assert len(primary.calls) == 2
        assert secondary.calls == []

    @pytest.mark.asyncio
    async def test_text_only_response_falls_through(self):
        async def text_only(request, slot, call_number):
            return streaming_response("I can only describe it")

        primary = FakeProvider(text_only, name="primary")
        secondary = FakeProvider(name="secondary")
        orchestrator = make_orchestrator(primary, secondary)

        assert await orchestrator.generate("a castle", 1) == [PNG_BYTES]
        assert len(secondary.calls) == 1

    @pytest.mark.asyncio
    async def test_unconfigured_provider_skipped(self):
        offline = FakeProvider(name="offline", configured=False)
        ready = FakeProvider(name="ready")
        orchestrator = make_orchestrator(offline, ready)

        assert await orchestrator.generate("a castle", 1) == [PNG_BYTES]
        assert offline.calls == []

    @pytest.mark.asyncio
    async def test_invalid_payload_falls_through(self):
        from thumbcraft.core.providers.base import ImagePayload, SingleResponse

        async def garbage(request, slot, call_number):
            return SingleResponse(images=[ImagePayload(data="%%%")])

        primary = FakeProvider(garbage, name="primary")
        secondary = FakeProvider(name="secondary")
        orchestrator = make_orchestrator(primary, secondary)

        assert await orchestrator.generate("a castle", 1) == [PNG_BYTES]


class TestRateLimitRetry:
    """Test rate-limit retry within a slot."""

    @pytest.mark.asyncio
    async def test_rate_limit_then_success(self):
        async def responder(request, slot, call_number):
            if call_number == 1:
                raise FakeRateLimitError()
            return single_response(PNG_BYTES)

        sleep = RecordingSleep()
        provider = FakeProvider(responder)
        orchestrator = make_orchestrator(provider, retry_sleep=sleep)

        assert await orchestrator.generate("a castle", 1) == [PNG_BYTES]
        assert len(provider.calls) == 2
        assert sleep.delays == [2.0]

    @pytest.mark.asyncio
    async def test_repeated_rate_limit_moves_to_secondary(self):
        async def limited(request, slot, call_number):
            raise FakeRateLimitError()

        primary = FakeProvider(limited, name="primary")
        secondary = FakeProvider(name="secondary")
        orchestrator = make_orchestrator(primary, secondary)

        assert await orchestrator.generate("a castle", 1) == [PNG_BYTES]
        assert len(primary.calls) == 2
        assert len(secondary.calls) == 1

    @pytest.mark.asyncio
    async def test_non_rate_limit_error_not_retried(self):
        async def responder(request, slot, call_number):
            raise FakeServerError("bad request")

        sleep = RecordingSleep()
        provider = FakeProvider(responder)
        orchestrator = make_orchestrator(provider, retry_sleep=sleep)

        assert await orchestrator.generate("a castle", 1) == []
        assert len(provider.calls) == 1
        assert sleep.delays == []


class TestStagger:
    """Test the image-to-image pre-slot delay."""

    @pytest.mark.asyncio
    async def test_image_to_image_staggers_later_slots(self):
        sleep = RecordingSleep()
        orchestrator = make_orchestrator(FakeProvider(), slot_stagger_seconds=1.0, sleep=sleep)

        buffers = await orchestrator.generate("snowy", 3, reference_image=PNG_BYTES)

        assert len(buffers) == 3
        assert sleep.delays == [1.0, 1.0]

    @pytest.mark.asyncio
    async def test_text_to_image_not_staggered(self):
        sleep = RecordingSleep()
        orchestrator = make_orchestrator(FakeProvider(), slot_stagger_seconds=1.0, sleep=sleep)

        await orchestrator.generate("castle", 3)

        assert sleep.delays == []


class TestFromConfig:
    """Test building the orchestrator from configuration."""

    def test_chains_follow_config_order(self, test_config):
        orchestrator = GenerationOrchestrator.from_config(test_config)

        t2i = orchestrator.chain(GenerationMode.TEXT_TO_IMAGE)
        i2i = orchestrator.chain(GenerationMode.IMAGE_TO_IMAGE)
        assert [type(p) for p in t2i] == [GeminiProvider, OpenAIImagesProvider]
        assert t2i[0] is i2i[0]
        assert orchestrator.is_ready() is True

    def test_missing_keys_not_ready(self, test_config):
        unconfigured = test_config.model_copy(update={"gemini_api_key": None, "openai_api_key": None})
        orchestrator = GenerationOrchestrator.from_config(unconfigured)

        assert orchestrator.is_ready() is False

    def test_unknown_provider_name(self, test_config):
        broken = test_config.model_copy(update={"text_to_image_providers": ["nope"]})
        with pytest.raises(KeyError):
            GenerationOrchestrator.from_config(broken)
