"""Magic-byte MIME detection for reference images."""

DEFAULT_MIME_TYPE = "image/jpeg"

# Checked in order; the first signature that matches wins.
_SIGNATURES: tuple[tuple[str, bytes], ...] = (
    ("image/jpeg", b"\xff\xd8\xff"),
    ("image/png", b"\x89PNG"),
    ("image/gif", b"GIF"),
    ("image/webp", b"RIFF"),
)


def detect_mime_type(buffer: bytes) -> str:
    """Detect an image MIME type from the leading bytes of a buffer.

    Args:
        buffer: Raw image bytes

    Returns:
        The detected MIME type, or ``image/jpeg`` when nothing matches
    """
    for mime_type, signature in _SIGNATURES:
        if buffer[: len(signature)] == signature:
            return mime_type
    return DEFAULT_MIME_TYPE
