"""Shared pytest fixtures for Thumbcraft tests."""

import base64
import shutil
import tempfile
from pathlib import Path
from types import SimpleNamespace
from typing import Generator
from unittest.mock import AsyncMock, MagicMock

import pytest

from thumbcraft.core.config import ThumbcraftConfig
from thumbcraft.core.models import GenerationMode, GenerationRequest
from thumbcraft.core.providers.base import (
    ImagePayload,
    ProviderBase,
    ResponseChunk,
    SingleResponse,
    StreamingResponse,
)

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 16


class FakeRateLimitError(Exception):
    """Stand-in for an SDK error carrying HTTP 429."""

    status_code = 429


class FakeServerError(Exception):
    """Stand-in for a non-retryable SDK error."""

    status_code = 500


def single_response(*images: bytes, text: str | None = None) -> SingleResponse:
    """Build a single-object provider response from raw image bytes."""
    return SingleResponse(
        images=[ImagePayload(data=base64.b64encode(img).decode("ascii")) for img in images],
        text=text,
    )


def streaming_response(*items: bytes | str) -> StreamingResponse:
    """Build a streaming provider response; bytes become images, str become text."""

    async def chunks():
        for item in items:
            if isinstance(item, bytes):
                yield ResponseChunk(image=ImagePayload(data=base64.b64encode(item).decode("ascii")))
            else:
                yield ResponseChunk(text=item)

    return StreamingResponse(chunks=chunks())


class FakeProvider(ProviderBase):
    """Scriptable provider that records every call.

    ``responder`` is an async callable ``(request, slot, call_number)`` that
    returns a provider response or raises.
    """

    name = "fake"
    supported_modes = (GenerationMode.TEXT_TO_IMAGE, GenerationMode.IMAGE_TO_IMAGE)

    def __init__(
        self,
        responder=None,
        *,
        name: str = "fake",
        configured: bool = True,
        modes: tuple[GenerationMode, ...] | None = None,
    ) -> None:
        super().__init__(config=None, client=object())
        self.name = name
        self._configured = configured
        if modes is not None:
            self.supported_modes = modes
        self._responder = responder or self._default_responder
        self.calls: list[tuple[int, GenerationRequest]] = []

    @staticmethod
    async def _default_responder(request, slot, call_number):
        return single_response(PNG_BYTES)

    @property
    def is_configured(self) -> bool:
        return self._configured

    def _build_client(self):
        return None

    async def generate(self, request, slot):
        self.calls.append((slot, request))
        return await self._responder(request, slot, len(self.calls))


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to temporary directory

    Cleanup:
        Directory is removed after test completes
    """
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path) -> ThumbcraftConfig:
    """Create a test configuration with temporary directories and fake keys.

    Args:
        temp_dir: Temporary directory from fixture

    Returns:
        ThumbcraftConfig instance for testing
    """
    return ThumbcraftConfig(
        _env_file=None,
        gemini_api_key="test-gemini-key",
        openai_api_key="test-openai-key",
        data_dir=temp_dir / "data",
        static_dir=temp_dir / "static",
        gallery_dir=temp_dir / "static" / "gallery",
        rate_limit_backoff_seconds=0.0,
        slot_stagger_seconds=0.0,
    )


@pytest.fixture
def fake_openai_client() -> MagicMock:
    """OpenAI client mock whose chat completion returns an enhanced prompt."""
    client = MagicMock()
    client.chat.completions.create = AsyncMock(
        return_value=SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content="  A vivid enhanced prompt.  "))]
        )
    )
    return client


@pytest.fixture
def api_provider() -> FakeProvider:
    """Provider used by the API test client; returns one PNG per call."""
    return FakeProvider(name="fake-api")


@pytest.fixture
def test_client(temp_dir: Path, test_config: ThumbcraftConfig, api_provider, fake_openai_client):
    """FastAPI TestClient with every collaborator replaced by a test double.

    The application lifespan runs first, then ``app.state`` is rebound to
    the fakes so no network or real credentials are needed.
    """
    from fastapi.testclient import TestClient

    from thumbcraft.api.history_store import HistoryStore
    from thumbcraft.api.main import app
    from thumbcraft.api.storage import LocalImageStorage
    from thumbcraft.core.enhancer import PromptEnhancer
    from thumbcraft.core.orchestrator import GenerationOrchestrator
    from thumbcraft.core.retry import RetryPolicy

    with TestClient(app) as client:
        app.state.orchestrator = GenerationOrchestrator(
            {
                GenerationMode.TEXT_TO_IMAGE: [api_provider],
                GenerationMode.IMAGE_TO_IMAGE: [api_provider],
            },
            retry_policy=RetryPolicy(backoff_seconds=0.0),
        )
        app.state.enhancer = PromptEnhancer(test_config, client=fake_openai_client)
        app.state.storage = LocalImageStorage(test_config.gallery_dir)
        app.state.history = HistoryStore(temp_dir / "history.json", limit=100)
        yield client
