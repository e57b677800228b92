"""
Codec helpers for OTP tokens.

KeyCodec : base32 shared secrets <-> raw key bytes
UriCodec : form-style percent encoding for otpauth URI components
"""

import base64
import binascii
import re
import urllib.parse
from typing import Optional


# ── Constants ────────────────────────────────────────────────────────────────

MAX_KEY_SIZE = 4096         # decoded key buffer; a decode that fills it is an overflow
MAX_ENCODED_SIZE = 8192     # encoded secret buffer


# ── Base32 ────────────────────────────────────────────────────────────────────

def normalize_secret(secret: str) -> str:
    """
    Normalise a base32 secret: strip separators, uppercase, add padding.

    Args:
        secret: Raw user-supplied secret string.

    Returns:
        Uppercase base32 string with correct padding.

    Raises:
        ValueError: If the string contains invalid base32 characters.
    """
    secret = re.sub(r"[\s-]", "", secret).upper().rstrip("=")
    # Base32 alphabet: A-Z and 2-7
    if not re.fullmatch(r"[A-Z2-7]*", secret):
        raise ValueError("Secret contains invalid base32 characters.")
    # Pad to multiple of 8
    pad = (8 - len(secret) % 8) % 8
    return secret + "=" * pad


def decode_secret(secret: Optional[str]) -> bytes:
    """
    Decode a base32-encoded secret string to raw key bytes.

    Args:
        secret: Base32 secret (case-insensitive, padding optional).

    Returns:
        Raw, non-empty key bytes.

    Raises:
        ValueError: On missing or invalid base32 input, an empty key, or a key
            that does not fit in ``MAX_KEY_SIZE``.
    """
    if secret is None:
        raise ValueError("Missing base32 secret.")
    try:
        raw = base64.b32decode(normalize_secret(secret), casefold=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"Invalid base32 secret: {exc}") from exc
    if not raw:
        raise ValueError("Secret decodes to an empty key.")
    if len(raw) >= MAX_KEY_SIZE:
        raise ValueError(f"Secret exceeds {MAX_KEY_SIZE - 1} bytes.")
    return raw


def encode_secret(raw: bytes) -> str:
    """Encode raw bytes as an unpadded uppercase base32 string."""
    text = base64.b32encode(raw).decode("ascii").rstrip("=")
    if len(text) >= MAX_ENCODED_SIZE:
        raise ValueError(f"Encoded secret exceeds {MAX_ENCODED_SIZE - 1} characters.")
    return text


# ── URI components ────────────────────────────────────────────────────────────

def url_decode(text: Optional[str]) -> Optional[str]:
    """
    Decode a form-encoded URI component (``+`` is a space).

    Percent-escapes that are not valid UTF-8 decode to U+FFFD, so such input
    does not survive a decode/encode round trip.
    """
    if text is None:
        return None
    return urllib.parse.unquote_plus(text, encoding="utf-8", errors="replace")


def url_encode(text: Optional[str]) -> Optional[str]:
    """Inverse of :func:`url_decode`: spaces become ``+``, the rest is escaped."""
    if text is None:
        return None
    return urllib.parse.quote_plus(text, safe="", encoding="utf-8")


# ── Formatting ────────────────────────────────────────────────────────────────

def format_code(value: int, digits: int) -> str:
    """
    Render an OTP value as a zero-padded decimal string.

    Example::

        >>> format_code(42, 6)
        "000042"
    """
    return str(value).zfill(digits)
