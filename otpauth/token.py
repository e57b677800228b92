"""
OTP token built from an otpauth:// URI.

A :class:`Token` produces :class:`TokenCode` values and serialises itself back
to a URI. HOTP tokens advance their counter on every generated code, so a
token that is persisted must be persisted *after* generating.
"""

import logging
import math
import threading
from dataclasses import dataclass
from typing import Callable, Optional

from core.algorithms import Algorithm
from core.digest import KeyedHash
from core.hotp import MAX_COUNTER, generate_hotp
from core.totp import current_time, slot_bounds, time_slot
from otpauth.parser import OTPAuthURI, TokenType, build_otpauth_uri, parse_otpauth_uri

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenCode:
    """A generated code and the window during which it should be shown."""

    code: str
    valid_from: int
    valid_until: int            # exclusive
    next: Optional["TokenCode"] = None

    def is_valid(self, now: float) -> bool:
        return self.valid_from <= now < self.valid_until

    def remaining(self, now: float) -> int:
        """Seconds left in this code's window (0 once expired)."""
        return max(0, math.ceil(self.valid_until - now))

    def current(self, now: float) -> Optional["TokenCode"]:
        """Return the code in this chain whose window contains ``now``."""
        code: Optional[TokenCode] = self
        while code is not None:
            if code.is_valid(now):
                return code
            code = code.next
        return None

    def progress(self, now: float) -> float:
        """Fraction of the window already elapsed, clamped to [0, 1]."""
        span = self.valid_until - self.valid_from
        if span <= 0:
            return 1.0
        return min(1.0, max(0.0, (now - self.valid_from) / span))


class Token:
    """
    An HOTP or TOTP token.

    Tokens are only ever created from a URI::

        token = Token("otpauth://totp/Example:alice?secret=JBSWY3DPEHPK3PXP")
        token.generate_code().code

    HOTP code generation is a read-modify-write of the counter. It is guarded
    by a per-token lock; callers sharing one token across threads still decide
    which caller receives which code.
    """

    def __init__(
        self,
        uri: str,
        internal: bool = False,
        backend: Optional[KeyedHash] = None,
        clock: Optional[Callable[[], Optional[float]]] = None,
    ) -> None:
        """
        Args:
            uri:      otpauth:// URI.
            internal: Also read the ``issueralt`` / ``labelalt`` overrides
                      (set when reloading a URI produced by :meth:`to_uri`).
            backend:  Keyed-hash implementation used for code generation.
            clock:    Wall-clock source for :meth:`generate_code`; defaults to
                      :func:`time.time`.

        Raises:
            InvalidTokenURI: If the URI does not describe a token.
        """
        self._fields: OTPAuthURI = parse_otpauth_uri(uri, internal=internal)
        self._backend = backend
        self._clock = clock
        self._lock = threading.Lock()
        logger.debug("Loaded %s token %s", self.token_type.value, self.uid)

    # ── Identity ─────────────────────────────────────────────────────────

    @property
    def token_type(self) -> TokenType:
        return self._fields.token_type

    @property
    def issuer_default(self) -> str:
        return self._fields.issuer_default

    @property
    def label_default(self) -> str:
        return self._fields.label_default

    @property
    def issuer_internal(self) -> str:
        return self._fields.issuer_internal

    @property
    def issuer_override(self) -> Optional[str]:
        return self._fields.issuer_override

    @issuer_override.setter
    def issuer_override(self, value: Optional[str]) -> None:
        self._fields.issuer_override = value

    @property
    def label_override(self) -> Optional[str]:
        return self._fields.label_override

    @label_override.setter
    def label_override(self, value: Optional[str]) -> None:
        self._fields.label_override = value

    @property
    def issuer(self) -> str:
        """Display issuer: the override when set, else the default."""
        if self._fields.issuer_override is None:
            return self._fields.issuer_default
        return self._fields.issuer_override

    @property
    def label(self) -> str:
        """Display label: the override when set, else the default."""
        if self._fields.label_override is None:
            return self._fields.label_default
        return self._fields.label_override

    @property
    def uid(self) -> str:
        """Stable identifier used by token stores for lookup and dedup."""
        return f"{self._fields.issuer_internal}:{self._fields.label_default}"

    # ── Parameters ───────────────────────────────────────────────────────

    @property
    def key(self) -> bytes:
        return self._fields.key

    @property
    def algorithm(self) -> Algorithm:
        return self._fields.algorithm

    @property
    def digits(self) -> int:
        return self._fields.digits

    @property
    def period(self) -> int:
        return self._fields.period

    @property
    def counter(self) -> int:
        """Next HOTP counter value (always 0 for TOTP)."""
        return self._fields.counter

    # ── Codes ────────────────────────────────────────────────────────────

    def generate_code(self, now: Optional[float] = None) -> TokenCode:
        """
        Generate the code for ``now`` (seconds since the epoch).

        HOTP: uses the current counter, then advances it by one. The window
        ``[now, now + period)`` is display metadata only.

        TOTP: the code for the time slot containing ``now``, with the code
        for the following slot attached as ``next``. No state changes.

        Args:
            now: Timestamp; the wall clock is read when None.

        Raises:
            ValueError: If the TOTP slot for ``now`` (or the one after it) is
                outside the unsigned 64-bit counter range, e.g. a negative
                timestamp.
        """
        t = current_time(self._clock) if now is None else math.floor(now)
        f = self._fields

        if f.token_type is TokenType.HOTP:
            with self._lock:
                code = self._hotp(f.counter)
                f.counter = (f.counter + 1) & MAX_COUNTER
            return TokenCode(code, t, t + f.period)

        if f.token_type is TokenType.TOTP:
            slot = time_slot(t, f.period)
            nxt = TokenCode(self._hotp(slot + 1), *slot_bounds(slot + 1, f.period))
            return TokenCode(self._hotp(slot), *slot_bounds(slot, f.period), next=nxt)

        raise AssertionError(f"Unhandled token type {f.token_type!r}")

    def _hotp(self, counter: int) -> str:
        f = self._fields
        return generate_hotp(f.key, counter, f.digits, f.algorithm, self._backend)

    # ── Serialisation ────────────────────────────────────────────────────

    def to_uri(self) -> str:
        """Return the canonical otpauth URI, including the current counter."""
        with self._lock:
            return build_otpauth_uri(self._fields)

    def __str__(self) -> str:
        return self.to_uri()

    def __repr__(self) -> str:
        return f"Token(type={self.token_type.value!r}, uid={self.uid!r})"
