"""Data models shared by the prompt composer and the generation orchestrator."""

import logging
import re
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_COUNT = 4
MAX_IMAGE_COUNT = 4

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


class GenerationMode(str, Enum):
    """Generation mode requested by the caller."""

    TEXT_TO_IMAGE = "text-to-image"
    IMAGE_TO_IMAGE = "image-to-image"


@dataclass
class StructuredFields:
    """User-supplied prompt-building inputs.

    Every field is optional.  A missing or empty field means the composer
    omits the matching clause; it is never an error.
    """

    category: str | None = None
    mood: str | None = None
    theme: str | None = None
    primary_color: str | None = None
    include_text: bool = False
    text_style: str | None = None
    thumbnail_style: str | None = None
    custom_prompt: str | None = None

    def has_content(self) -> bool:
        """Check if any field would contribute text to the composed prompt.

        Returns:
            True if at least one clause-producing field is set
        """
        text_fields = (
            self.category,
            self.mood,
            self.theme,
            self.primary_color,
            self.thumbnail_style,
            self.custom_prompt,
        )
        return self.include_text or any(value and value.strip() for value in text_fields)

    def to_record(self) -> dict[str, Any]:
        """Return the fields as a plain dictionary for history records."""
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass
class GenerationRequest:
    """One orchestrator invocation.

    Constructed per call and discarded once the call returns.  A reference
    image implies image-to-image mode.
    """

    prompt: str
    count: int
    reference_image: bytes | None = None
    reference_mime_type: str | None = None
    mode: GenerationMode = field(init=False)

    def __post_init__(self) -> None:
        if not 1 <= self.count <= MAX_IMAGE_COUNT:
            raise ValueError(f"Image count must be 1-{MAX_IMAGE_COUNT}, got {self.count}")
        self.mode = (
            GenerationMode.IMAGE_TO_IMAGE
            if self.reference_image is not None
            else GenerationMode.TEXT_TO_IMAGE
        )


def clamp_image_count(
    value: Any,
    default: int = DEFAULT_IMAGE_COUNT,
    maximum: int = MAX_IMAGE_COUNT,
) -> int:
    """Parse a requested image count and clamp it to ``[1, maximum]``.

    The value is parsed from its leading integer, so ``"3 images"`` reads as
    3.  Anything without a leading integer (``"abc"``, ``None``) falls back
    to ``default`` before clamping.

    Args:
        value: Raw count from the request (int, str, or None)
        default: Count used when the value cannot be parsed
        maximum: Upper clamp bound

    Returns:
        The clamped image count

    Examples:
        >>> [clamp_image_count(v) for v in (0, -1, "abc", 7, 4, 2)]
        [1, 1, 4, 4, 4, 2]
    """
    parsed: int | None = None
    if isinstance(value, bool):
        parsed = None
    elif isinstance(value, int):
        parsed = value
    elif isinstance(value, float):
        parsed = int(value)
    elif isinstance(value, str):
        match = _LEADING_INT.match(value)
        if match:
            parsed = int(match.group(1))

    if parsed is None:
        parsed = default

    return max(1, min(maximum, parsed))
