"""
Parse and build otpauth:// URIs as defined by the Key URI Format.

Reference: https://github.com/google/google-authenticator/wiki/Key-Uri-Format

Only the scheme, the type, the label path and the secret are mandatory. Every
other field silently falls back to its default when absent or invalid.
"""

import logging
import re
import urllib.parse
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from core.algorithms import Algorithm
from core.hotp import MAX_COUNTER, VALID_DIGITS
from core.totp import DEFAULT_PERIOD
from core.utils import decode_secret, encode_secret, url_decode, url_encode

logger = logging.getLogger(__name__)

# ── Constants ────────────────────────────────────────────────────────────────

OTPAUTH_SCHEME = "otpauth"
DEFAULT_ALGORITHM = Algorithm.SHA1
DEFAULT_DIGITS = 6
DEFAULT_COUNTER = 0

_ENCODED_COLON = re.compile("%3A", re.IGNORECASE)


class TokenType(str, Enum):
    HOTP = "hotp"
    TOTP = "totp"


class InvalidTokenURI(ValueError):
    """Raised when a URI cannot describe a token."""

    def __init__(self, message: str, uri: Optional[str] = None):
        super().__init__(message)
        self.uri = uri


@dataclass
class OTPAuthURI:
    """Field values of an otpauth:// URI."""

    token_type: TokenType
    issuer_default: str         # issuer prefix of the label path ("" if none)
    label_default: str          # account label from the path
    key: bytes                  # decoded secret
    issuer_internal: str        # ``issuer`` query field, else issuer_default
    algorithm: Algorithm = DEFAULT_ALGORITHM
    digits: int = DEFAULT_DIGITS
    period: int = DEFAULT_PERIOD
    counter: int = DEFAULT_COUNTER  # HOTP only
    issuer_override: Optional[str] = None
    label_override: Optional[str] = None


# ── Field parsers ─────────────────────────────────────────────────────────────

def _parse_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


def _parse_algorithm(value: Optional[str]) -> Algorithm:
    algorithm = Algorithm.from_name(value)
    if algorithm is None:
        if value is not None:
            logger.debug("Unsupported algorithm %r, using %s.", value, DEFAULT_ALGORITHM.value)
        return DEFAULT_ALGORITHM
    return algorithm


def _parse_digits(value: Optional[str]) -> int:
    digits = _parse_int(value)
    if digits not in VALID_DIGITS:
        if value is not None:
            logger.debug("Invalid digits %r, using %d.", value, DEFAULT_DIGITS)
        return DEFAULT_DIGITS
    return digits


def _parse_period(value: Optional[str]) -> int:
    period = _parse_int(value)
    if period is None or period <= 0:
        if value is not None:
            logger.debug("Invalid period %r, using %d.", value, DEFAULT_PERIOD)
        return DEFAULT_PERIOD
    return period


def _parse_counter(value: Optional[str]) -> int:
    counter = _parse_int(value)
    if counter is None or not 0 <= counter <= MAX_COUNTER:
        if value is not None:
            logger.debug("Invalid counter %r, using %d.", value, DEFAULT_COUNTER)
        return DEFAULT_COUNTER
    return counter


def _parse_query(query: str) -> Dict[str, str]:
    """Split ``a=b&c=d``; pairs that are not exactly ``key=value`` are skipped."""
    params: Dict[str, str] = {}
    for pair in query.split("&"):
        parts = pair.split("=")
        if len(parts) != 2:
            if pair:
                logger.debug("Ignoring malformed query pair.")
            continue
        params[parts[0]] = url_decode(parts[1])
    return params


def _split_label(path: str) -> tuple[str, str]:
    """Split ``ISSUER:LABEL`` on the first separator and decode both halves."""
    issuer, sep, label = path.partition(":")
    if not sep:
        parts = _ENCODED_COLON.split(path, maxsplit=1)
        if len(parts) == 1:
            return "", url_decode(path)
        issuer, label = parts
    return url_decode(issuer), url_decode(label)


# ── Parse ─────────────────────────────────────────────────────────────────────

def parse_otpauth_uri(uri: str, internal: bool = False) -> OTPAuthURI:
    """
    Parse and validate an ``otpauth://`` URI.

    Args:
        uri:      Full otpauth URI string.
        internal: Also read the ``issueralt`` / ``labelalt`` display overrides.
                  These are written by :func:`build_otpauth_uri` and are not
                  part of URIs handed out by issuers.

    Returns:
        Populated :class:`OTPAuthURI` dataclass.

    Raises:
        InvalidTokenURI: If the scheme or type is unknown, the label is empty,
            or the secret is missing or not valid base32.
    """
    if not uri:
        raise InvalidTokenURI("Empty URI.", uri)

    scheme, sep, _ = uri.partition(":")
    if not sep or scheme != OTPAUTH_SCHEME:
        raise InvalidTokenURI(f"Expected '{OTPAUTH_SCHEME}' scheme, got '{scheme}'.", uri)

    try:
        parsed = urllib.parse.urlsplit(uri)
    except ValueError as exc:
        raise InvalidTokenURI(f"Malformed URI: {exc}", uri) from exc

    try:
        token_type = TokenType(parsed.netloc)
    except ValueError:
        raise InvalidTokenURI(
            f"Unknown OTP type '{parsed.netloc}'. Expected totp or hotp.", uri
        ) from None

    path = parsed.path.lstrip("/")
    if not path:
        raise InvalidTokenURI("Missing label in otpauth URI.", uri)
    issuer_default, label_default = _split_label(path)

    params = _parse_query(parsed.query)

    # Secret (required)
    try:
        key = decode_secret(params.get("secret"))
    except ValueError as exc:
        raise InvalidTokenURI(f"Bad 'secret' parameter: {exc}", uri) from exc

    issuer_internal = params.get("issuer")
    if issuer_internal is None:
        issuer_internal = issuer_default

    counter = DEFAULT_COUNTER
    if token_type is TokenType.HOTP:
        counter = _parse_counter(params.get("counter"))

    fields = OTPAuthURI(
        token_type=token_type,
        issuer_default=issuer_default,
        label_default=label_default,
        key=key,
        issuer_internal=issuer_internal,
        algorithm=_parse_algorithm(params.get("algorithm")),
        digits=_parse_digits(params.get("digits")),
        period=_parse_period(params.get("period")),
        counter=counter,
    )
    if internal:
        fields.issuer_override = params.get("issueralt")
        fields.label_override = params.get("labelalt")
    return fields


# ── Build ─────────────────────────────────────────────────────────────────────

def build_otpauth_uri(fields: OTPAuthURI) -> str:
    """
    Serialise token fields to the canonical otpauth URI.

    The label path always carries the defaults, never the overrides; the
    overrides travel as ``issueralt`` / ``labelalt``. HOTP URIs carry the
    current counter so a reloaded token resumes where it stopped.
    """
    uri = (
        f"{OTPAUTH_SCHEME}://{fields.token_type.value}/"
        f"{url_encode(fields.issuer_default)}:{url_encode(fields.label_default)}"
        f"?algorithm={fields.algorithm.uri_name}"
        f"&digits={fields.digits}"
        f"&secret={encode_secret(fields.key)}"
        f"&issuer={url_encode(fields.issuer_internal)}"
        f"&period={fields.period}"
    )
    if fields.issuer_override is not None:
        uri += f"&issueralt={url_encode(fields.issuer_override)}"
    if fields.label_override is not None:
        uri += f"&labelalt={url_encode(fields.label_override)}"

    if fields.token_type is TokenType.HOTP:
        uri += f"&counter={fields.counter}"
    return uri
