"""OpenAI dedicated image-model provider.

Uses the OpenAI SDK's async images API.  Each call returns one response
object whose ``data`` entries carry base64 images (``b64_json``), mapped onto
a :class:`SingleResponse`.  Image-to-image requests go through the edits
endpoint with the reference image uploaded as a file part.
"""

from __future__ import annotations

import logging
from typing import Any

from openai import AsyncOpenAI

from thumbcraft.core.mime import detect_mime_type
from thumbcraft.core.models import GenerationMode, GenerationRequest
from thumbcraft.core.providers.base import (
    ImagePayload,
    ProviderBase,
    SingleResponse,
    provider_registry,
)

logger = logging.getLogger(__name__)

_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
}


class OpenAIImagesProvider(ProviderBase):
    """Single-response provider backed by OpenAI image models."""

    name = "openai-images"
    description = "OpenAI image model (single response, base64 payloads)"
    supported_modes = (GenerationMode.TEXT_TO_IMAGE, GenerationMode.IMAGE_TO_IMAGE)

    @property
    def is_configured(self) -> bool:
        return bool(self.config.openai_api_key)

    def _build_client(self) -> AsyncOpenAI:
        return AsyncOpenAI(api_key=self.config.openai_api_key)

    def _request_kwargs(self, prompt: str) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self.config.openai_image_model,
            "prompt": prompt,
            "n": 1,
            "size": self.config.openai_image_size,
        }
        # DALL-E models default to URLs; gpt-image models always return base64.
        if self.config.openai_image_model.startswith("dall-e"):
            kwargs["response_format"] = "b64_json"
        return kwargs

    async def generate(self, request: GenerationRequest, slot: int) -> SingleResponse:
        logger.info("Generating image %d with %s (%s)", slot, self.name, request.mode.value)
        kwargs = self._request_kwargs(request.prompt)

        if request.mode is GenerationMode.IMAGE_TO_IMAGE:
            mime_type = request.reference_mime_type or detect_mime_type(request.reference_image)
            filename = f"reference.{_EXTENSIONS.get(mime_type, 'jpg')}"
            response = await self.client.images.edit(
                image=(filename, request.reference_image, mime_type),
                **kwargs,
            )
        else:
            response = await self.client.images.generate(**kwargs)

        images: list[ImagePayload] = []
        revised: str | None = None
        for item in getattr(response, "data", None) or []:
            revised = revised or getattr(item, "revised_prompt", None)
            b64 = getattr(item, "b64_json", None)
            if b64:
                images.append(ImagePayload(data=b64, mime_type="image/png"))
            else:
                logger.warning("%s returned an entry without b64_json for image %d", self.name, slot)

        return SingleResponse(images=images, text=revised)


provider_registry.register(OpenAIImagesProvider)
