"""Gemini multimodal image provider.

Uses the google-genai SDK's async streaming API.  The model answers with a
stream of partial responses; each part is either a text aside or one inline
image, and both are forwarded as :class:`ResponseChunk` objects.

Image-to-image requests attach the reference image as an inline part with
the detected MIME type and wrap the user's prompt in an instruction that
keeps the model anchored to the reference.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any

from google import genai
from google.genai import types

from thumbcraft.core.mime import detect_mime_type
from thumbcraft.core.models import GenerationMode, GenerationRequest
from thumbcraft.core.providers.base import (
    ImagePayload,
    ProviderBase,
    ResponseChunk,
    StreamingResponse,
    provider_registry,
)

logger = logging.getLogger(__name__)

_REFERENCE_INSTRUCTION = (
    "You are an AI image generator that creates new images based on a reference image "
    "provided by the user. IMPORTANT: Always use the provided reference image as the "
    "foundation for your generation. The new image should maintain key visual elements, "
    "composition, or style from the reference image while incorporating the user's "
    "requested modifications or transformations. Never ignore the reference image - it "
    "should always influence your output."
)


def build_reference_prompt(prompt: str) -> str:
    """Wrap a user prompt with the reference-preserving instruction."""
    return (
        f"{_REFERENCE_INSTRUCTION}\n\n"
        f"User request: {prompt}\n\n"
        "Please generate a new image that references and builds upon the provided image "
        "while fulfilling the user's request."
    )


class GeminiProvider(ProviderBase):
    """Streaming multimodal provider backed by Gemini image models."""

    name = "gemini"
    description = "Gemini multimodal model with inline image output (streaming)"
    supported_modes = (GenerationMode.TEXT_TO_IMAGE, GenerationMode.IMAGE_TO_IMAGE)

    @property
    def is_configured(self) -> bool:
        return bool(self.config.gemini_api_key)

    def _build_client(self) -> genai.Client:
        return genai.Client(api_key=self.config.gemini_api_key)

    def build_contents(self, request: GenerationRequest) -> list[types.Content]:
        """Build the user turn for a request.

        Text-to-image sends the prompt alone.  Image-to-image sends the
        wrapped prompt followed by the reference image bytes.
        """
        if request.mode is GenerationMode.TEXT_TO_IMAGE:
            parts = [types.Part.from_text(text=request.prompt)]
        else:
            mime_type = request.reference_mime_type or detect_mime_type(request.reference_image)
            parts = [
                types.Part.from_text(text=build_reference_prompt(request.prompt)),
                types.Part.from_bytes(data=request.reference_image, mime_type=mime_type),
            ]
        return [types.Content(role="user", parts=parts)]

    async def generate(self, request: GenerationRequest, slot: int) -> StreamingResponse:
        logger.info("Generating image %d with %s (%s)", slot, self.name, request.mode.value)
        stream = await self.client.aio.models.generate_content_stream(
            model=self.config.gemini_image_model,
            contents=self.build_contents(request),
            config=types.GenerateContentConfig(response_modalities=["IMAGE", "TEXT"]),
        )
        return StreamingResponse(chunks=self._iter_chunks(stream))

    async def _iter_chunks(self, stream: AsyncIterator[Any]) -> AsyncIterator[ResponseChunk]:
        async for response in stream:
            candidates = getattr(response, "candidates", None) or []
            if not candidates:
                continue
            content = getattr(candidates[0], "content", None)
            parts = getattr(content, "parts", None) or []
            for part in parts:
                inline_data = getattr(part, "inline_data", None)
                if inline_data is not None and getattr(inline_data, "data", None):
                    yield ResponseChunk(
                        image=ImagePayload(
                            data=inline_data.data,
                            mime_type=getattr(inline_data, "mime_type", None) or "image/png",
                        )
                    )
                elif getattr(part, "text", None):
                    yield ResponseChunk(text=part.text)


provider_registry.register(GeminiProvider)
