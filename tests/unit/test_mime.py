"""Tests for thumbcraft.core.mime — magic-byte detection."""

from __future__ import annotations

import pytest

from thumbcraft.core.mime import detect_mime_type


@pytest.mark.parametrize(
    ("buffer", "expected"),
    [
        (b"\xff\xd8\xff\xe0rest", "image/jpeg"),
        (b"\x89PNG\r\n\x1a\n", "image/png"),
        (b"GIF89a", "image/gif"),
        (b"RIFF\x00\x00\x00\x00WEBPVP8 ", "image/webp"),
    ],
)
def test_known_signatures(buffer, expected):
    assert detect_mime_type(buffer) == expected


@pytest.mark.parametrize("buffer", [b"", b"\x00\x01\x02\x03", b"\xff\xd8", b"hello world"])
def test_unknown_defaults_to_jpeg(buffer):
    """Empty, truncated, or unrecognised buffers default to JPEG."""
    assert detect_mime_type(buffer) == "image/jpeg"
