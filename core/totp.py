"""
TOTP (Time-based One-Time Password) helpers following RFC 6238.

A TOTP code is an HOTP code keyed by ``floor(now / period)``.
"""

import logging
import math
import time
from typing import Callable, Optional, Tuple

from core.algorithms import Algorithm
from core.digest import KeyedHash
from core.hotp import generate_hotp

logger = logging.getLogger(__name__)

DEFAULT_PERIOD = 30


def current_time(clock: Optional[Callable[[], Optional[float]]] = None) -> int:
    """
    Read the wall clock as whole seconds since the epoch.

    An unavailable clock (an exception or ``None``) degrades to 0 rather than
    failing, so codes are still produced for an already-expired window.
    """
    try:
        now = (clock or time.time)()
    except (OSError, OverflowError, ValueError) as exc:
        logger.warning("Clock unavailable (%s); using epoch 0.", exc)
        return 0
    if now is None:
        logger.warning("Clock returned no time; using epoch 0.")
        return 0
    return int(math.floor(now))


def time_slot(timestamp: float, period: int = DEFAULT_PERIOD) -> int:
    """Return the TOTP counter for ``timestamp``."""
    return math.floor(timestamp) // period


def slot_bounds(slot: int, period: int = DEFAULT_PERIOD) -> Tuple[int, int]:
    """Return the ``[start, end)`` seconds covered by ``slot``."""
    start = slot * period
    return start, start + period


def generate_totp(
    secret_bytes: bytes,
    digits: int = 6,
    period: int = DEFAULT_PERIOD,
    algorithm: Algorithm = Algorithm.SHA1,
    timestamp: Optional[float] = None,
    backend: Optional[KeyedHash] = None,
) -> str:
    """
    Generate a TOTP code.

    Args:
        secret_bytes: Raw (already base32-decoded) secret bytes.
        digits:       Number of digits in the OTP (default 6).
        period:       Time step in seconds (default 30).
        algorithm:    HMAC algorithm (default SHA1 for GA compatibility).
        timestamp:    Override Unix timestamp (reads the clock if None).
        backend:      Keyed-hash implementation.

    Returns:
        OTP string, zero-padded to ``digits`` characters.
    """
    t = timestamp if timestamp is not None else current_time()
    return generate_hotp(
        secret_bytes, time_slot(t, period), digits, algorithm, backend
    )
