"""Pydantic request models for the Thumbcraft API.

These models define the JSON schema for the generation endpoints.  FastAPI
uses them for automatic request validation, serialisation, and OpenAPI
documentation generation.

Models
------
GenerateRequest
    Payload for ``POST /api/generate`` and the form fields of
    ``POST /api/generate-from-image``: the raw prompt, the structured
    prompt fields, the enhancement flag, and the requested image count.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from thumbcraft.core.models import StructuredFields, clamp_image_count

_TRUTHY = {"yes", "true", "1", "on", "y"}


def _coerce_flag(value: Any) -> bool:
    """Interpret checkbox-style values ("Yes", "true", True) as booleans."""
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY
    return bool(value)


class GenerateRequest(BaseModel):
    """Request body for the generation endpoints.

    Field names accept both snake_case and the camelCase spelling used by
    existing frontends (``customPrompt``, ``imageCount``, ...).

    Attributes:
        prompt: Free-text prompt.  Seeds the composed prompt when
            ``custom_prompt`` is empty.
        enhance_prompt: Run the LLM enhancement step after composition.
        category: Content category (e.g. "gaming").
        mood: Mood descriptor (e.g. "energetic").
        theme: Theme descriptor (e.g. "retro").
        primary_color: Dominant colour name.
        include_text: Whether the thumbnail should feature a text overlay.
            Accepts ``"Yes"``/``"No"`` as well as booleans.
        text_style: Style of the text overlay.
        thumbnail_style: Overall thumbnail style.
        custom_prompt: Free-text prompt that leads the composed prompt.
        image_count: Requested number of images, kept exactly as sent
            (number, string, boolean or null).  Parsed leniently and
            clamped to 1-4 by :meth:`resolved_count`.
    """

    model_config = ConfigDict(populate_by_name=True)

    prompt: str | None = Field(default=None, description="Free-text prompt.")
    enhance_prompt: bool = Field(
        default=False,
        alias="enhancePrompt",
        description="Rewrite the composed prompt with an LLM before generating.",
    )
    category: str | None = Field(default=None)
    mood: str | None = Field(default=None)
    theme: str | None = Field(default=None)
    primary_color: str | None = Field(default=None, alias="primaryColor")
    include_text: bool = Field(default=False, alias="includeText")
    text_style: str | None = Field(default=None, alias="textStyle")
    thumbnail_style: str | None = Field(default=None, alias="thumbnailStyle")
    custom_prompt: str | None = Field(default=None, alias="customPrompt")
    image_count: Any = Field(
        default="4",
        alias="imageCount",
        description="Number of images to generate (clamped to 1-4).",
    )

    @field_validator("include_text", "enhance_prompt", mode="before")
    @classmethod
    def _parse_flag(cls, value: Any) -> bool:
        return _coerce_flag(value)

    def to_fields(self) -> StructuredFields:
        """Return the structured prompt fields.

        The raw ``prompt`` seeds composition when no ``custom_prompt`` is set.
        """
        return StructuredFields(
            category=self.category,
            mood=self.mood,
            theme=self.theme,
            primary_color=self.primary_color,
            include_text=self.include_text,
            text_style=self.text_style,
            thumbnail_style=self.thumbnail_style,
            custom_prompt=self.custom_prompt or self.prompt,
        )

    def has_prompt(self) -> bool:
        """Check the raw, pre-composition input for any prompt content."""
        return self.to_fields().has_content()

    def resolved_count(self, default: int = 4, maximum: int = 4) -> int:
        """Return the clamped image count."""
        return clamp_image_count(self.image_count, default=default, maximum=maximum)
