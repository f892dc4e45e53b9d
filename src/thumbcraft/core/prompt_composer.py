"""Structured-field prompt composition for thumbnail generation.

The composer turns the user's structured selections into a single
natural-language instruction.  Composition is deterministic and performs no
I/O, so the same fields and mode always produce the same prompt.

Prompt Structure
----------------
::

    [Custom Prompt], [category] style, [thumbnail style] thumbnail,
    with [theme] theme, [mood] mood, dominant [color] color palette,
    [text overlay clause], [image-to-image preservation clauses],
    high quality, professional, eye-catching, clean composition

Clauses for empty fields are omitted.  The custom prompt, when present,
always leads.  The quality suffix is always appended, so the output is never
empty.

Usage
-----
::

    prompt = compose(
        StructuredFields(category="gaming", mood="energetic"),
        GenerationMode.TEXT_TO_IMAGE,
    )
    # "gaming style, energetic mood, high quality, professional, ..."
"""

from __future__ import annotations

from thumbcraft.core.models import GenerationMode, StructuredFields

# ---------------------------------------------------------------------------
# Fixed clauses.
# ---------------------------------------------------------------------------

_PRESERVATION_CLAUSES = (
    "maintaining key visual elements from the reference image",
    "preserving the original composition and subject matter",
    "enhancing while keeping recognizable features",
)

_QUALITY_SUFFIX = "high quality, professional, eye-catching, clean composition"


def _clean(value: str | None) -> str:
    return value.strip() if value else ""


def build_clauses(fields: StructuredFields, mode: GenerationMode) -> list[str]:
    """Build the structured clauses in their fixed priority order.

    Args:
        fields: Structured prompt inputs.
        mode: Generation mode; image-to-image adds preservation clauses.

    Returns:
        List of clause strings, possibly empty.
    """
    clauses: list[str] = []

    category = _clean(fields.category)
    thumbnail_style = _clean(fields.thumbnail_style)
    theme = _clean(fields.theme)
    mood = _clean(fields.mood)
    primary_color = _clean(fields.primary_color)
    text_style = _clean(fields.text_style)

    if category:
        clauses.append(f"{category} style")
    if thumbnail_style:
        clauses.append(f"{thumbnail_style} thumbnail")
    if theme:
        clauses.append(f"with {theme} theme")
    if mood:
        clauses.append(f"{mood} mood")
    if primary_color:
        clauses.append(f"dominant {primary_color} color palette")

    # --- Text overlay --------------------------------------------------------
    if fields.include_text and text_style:
        clauses.append(f"featuring {text_style} text overlay")
    elif fields.include_text:
        clauses.append("with text overlay")

    # --- Reference preservation (image-to-image only) ------------------------
    if GenerationMode(mode) is GenerationMode.IMAGE_TO_IMAGE:
        clauses.extend(_PRESERVATION_CLAUSES)

    return clauses


def compose(fields: StructuredFields, mode: GenerationMode) -> str:
    """Compose the final generation prompt from structured fields.

    Args:
        fields: Structured prompt inputs.  The custom prompt seeds the
            result; every other non-empty field contributes one clause.
        mode: ``TEXT_TO_IMAGE`` or ``IMAGE_TO_IMAGE``.

    Returns:
        The composed prompt.  Never empty.
    """
    seed = _clean(fields.custom_prompt)
    structured = ", ".join(build_clauses(fields, mode))

    if structured:
        prompt = f"{seed}, {structured}" if seed else structured
    else:
        prompt = seed

    # With nothing before it the suffix stands alone, without a leading comma.
    return f"{prompt}, {_QUALITY_SUFFIX}" if prompt else _QUALITY_SUFFIX
