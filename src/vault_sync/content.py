"""Content helpers: encoding-aware decoding and mergeability checks.

Merging works on text, but filesystems hand back raw bytes.  Decoding uses
charset-normalizer so notes saved in legacy encodings still merge; the
merged result is always written back as UTF-8.
"""

from __future__ import annotations

from charset_normalizer import from_bytes

DEFAULT_MERGEABLE_EXTENSIONS: tuple[str, ...] = (".md", ".txt", ".canvas")


def decode_content(raw: bytes) -> tuple[str, str]:
    """Decode bytes with automatic encoding detection.

    Defaults to UTF-8 for empty content or when detection fails.

    Args:
        raw: The bytes to decode.

    Returns:
        Tuple of (content_string, detected_encoding).
    """
    if not raw:
        return ("", "utf-8")

    result = from_bytes(raw).best()
    if result is None:
        # Detection failed, fall back to utf-8
        encoding = "utf-8"
        content = raw.decode(encoding, errors="replace")
    else:
        encoding = result.encoding
        # Normalize ascii to utf-8 (ascii is a strict subset of utf-8)
        if encoding == "ascii":
            encoding = "utf-8"
        content = str(result)
    return (content, encoding)


def encode_content(content: str) -> bytes:
    """Encode merged text for writing."""
    return content.encode("utf-8")


def is_mergeable(
    key: str, extensions: tuple[str, ...] = DEFAULT_MERGEABLE_EXTENSIONS
) -> bool:
    """Return ``True`` if *key* names a file whose content can be merged."""
    if key.endswith("/"):
        return False
    lowered = key.lower()
    return any(
        lowered.endswith(ext if ext.startswith(".") else f".{ext}")
        for ext in extensions
    )
