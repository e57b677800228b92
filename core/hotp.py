"""
HOTP (HMAC-based One-Time Password) implementation following RFC 4226.
"""

import struct
from typing import Optional

from core.algorithms import Algorithm
from core.digest import DEFAULT_BACKEND, KeyedHash
from core.utils import format_code

# ── Constants ────────────────────────────────────────────────────────────────

MAX_COUNTER = 2**64 - 1
VALID_DIGITS = (6, 8)


def truncate(digest: bytes, digits: int) -> int:
    """
    Dynamic truncation (RFC 4226 §5.3) of an HMAC digest.

    The offset is clamped so the 4-byte window stays inside digests shorter
    than 19 bytes (MD5).

    Args:
        digest: HMAC output of any supported length.
        digits: Number of decimal digits to keep.

    Returns:
        Integer in ``[0, 10**digits)``.
    """
    offset = min(digest[-1] & 0x0F, len(digest) - 4)
    (binary,) = struct.unpack(">I", digest[offset : offset + 4])
    return (binary & 0x7FFFFFFF) % (10**digits)


def generate_hotp(
    secret_bytes: bytes,
    counter: int,
    digits: int = 6,
    algorithm: Algorithm = Algorithm.SHA1,
    backend: Optional[KeyedHash] = None,
) -> str:
    """
    Generate an HOTP code.

    Args:
        secret_bytes: Raw decoded secret bytes.
        counter:      Synchronisation counter value (unsigned 64-bit).
        digits:       Number of OTP digits (6 or 8).
        algorithm:    HMAC algorithm.
        backend:      Keyed-hash implementation; the stdlib one if None.

    Returns:
        Zero-padded OTP string.

    Raises:
        ValueError: If ``counter`` or ``digits`` is out of range.
    """
    if not 0 <= counter <= MAX_COUNTER:
        raise ValueError(f"Counter must be an unsigned 64-bit integer, got {counter}.")
    if digits not in VALID_DIGITS:
        raise ValueError("Digits must be 6 or 8.")

    msg = struct.pack(">Q", counter)
    digest = (backend or DEFAULT_BACKEND).digest(algorithm, secret_bytes, msg)
    return format_code(truncate(digest, digits), digits)
