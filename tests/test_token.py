"""Tests for otpauth.token."""

import threading
import time

import pytest

from core.algorithms import Algorithm
from core.digest import CryptographyHMAC
from core.utils import encode_secret
from otpauth.parser import InvalidTokenURI, TokenType
from otpauth.token import Token, TokenCode

RFC_SECRET = encode_secret(b"12345678901234567890")
SHA256_SECRET = encode_secret(b"12345678901234567890123456789012")
RFC_HOTP_EXPECTED = [
    "755224", "287082", "359152", "969429", "338314",
    "254676", "287922", "162583", "399871", "520489",
]


# ── Fixtures ──────────────────────────────────────────────────────────────────

@pytest.fixture()
def hotp_token() -> Token:
    return Token(f"otpauth://hotp/ACME:alice?secret={RFC_SECRET}")


@pytest.fixture()
def totp_token() -> Token:
    return Token(f"otpauth://totp/ACME:alice?secret={RFC_SECRET}&digits=8")


# ── Construction ──────────────────────────────────────────────────────────────

def test_token_fields(totp_token: Token) -> None:
    assert totp_token.token_type is TokenType.TOTP
    assert totp_token.issuer_default == "ACME"
    assert totp_token.label_default == "alice"
    assert totp_token.key == b"12345678901234567890"
    assert totp_token.algorithm == Algorithm.SHA1
    assert totp_token.digits == 8
    assert totp_token.period == 30


def test_invalid_uri_raises() -> None:
    with pytest.raises(InvalidTokenURI):
        Token("otpauth://xotp/ACME:alice?secret=JBSWY3DPEHPK3PXP")
    with pytest.raises(InvalidTokenURI):
        Token("otpauth://totp//?secret=JBSWY3DPEHPK3PXP")


def test_uid_uses_internal_issuer_and_default_label() -> None:
    token = Token(
        f"otpauth://totp/Old:alice?secret={RFC_SECRET}&issuer=New&labelalt=Shown",
        internal=True,
    )
    assert token.uid == "New:alice"
    assert token.label == "Shown"


def test_display_names_fall_back_to_defaults(totp_token: Token) -> None:
    assert totp_token.issuer == "ACME"
    assert totp_token.label == "alice"
    totp_token.issuer_override = "Work"
    assert totp_token.issuer == "Work"
    assert totp_token.issuer_default == "ACME"
    assert totp_token.uid == "ACME:alice"


# ── HOTP ──────────────────────────────────────────────────────────────────────

def test_hotp_codes_follow_counter(hotp_token: Token) -> None:
    codes = [hotp_token.generate_code(now=1000).code for _ in range(10)]
    assert codes == RFC_HOTP_EXPECTED
    assert hotp_token.counter == 10


def test_hotp_resumes_from_uri_counter() -> None:
    token = Token(f"otpauth://hotp/alice?secret={RFC_SECRET}&counter=5")
    assert token.generate_code(now=0).code == "254676"
    assert token.counter == 6


def test_hotp_window_is_advisory(hotp_token: Token) -> None:
    code = hotp_token.generate_code(now=1000.7)
    assert code.valid_from == 1000
    assert code.valid_until == 1030
    assert code.next is None


def test_hotp_counter_wraps_at_u64() -> None:
    token = Token(f"otpauth://hotp/alice?secret={RFC_SECRET}&counter=18446744073709551615")
    token.generate_code(now=0)
    assert token.counter == 0


def test_hotp_concurrent_generation_does_not_lose_increments(hotp_token: Token) -> None:
    def worker() -> None:
        for _ in range(50):
            hotp_token.generate_code(now=0)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert hotp_token.counter == 200


def test_hotp_serialisation_carries_current_counter(hotp_token: Token) -> None:
    for _ in range(3):
        hotp_token.generate_code(now=0)
    reloaded = Token(hotp_token.to_uri(), internal=True)
    assert reloaded.counter == 3
    assert reloaded.generate_code(now=0).code == RFC_HOTP_EXPECTED[3]


# ── TOTP ──────────────────────────────────────────────────────────────────────

@pytest.mark.parametrize(
    "now,expected,start",
    [
        (59, "94287082", 30),
        (1111111109, "07081804", 1111111080),
        (1111111111, "14050471", 1111111110),
        (1234567890, "89005924", 1234567890),
        (2000000000, "69279037", 1999999980),
        (20000000000, "65353130", 19999999980),
    ],
)
def test_totp_rfc6238_vectors(totp_token: Token, now: int, expected: str, start: int) -> None:
    code = totp_token.generate_code(now=now)
    assert code.code == expected
    assert code.valid_from == start
    assert code.valid_until == start + 30


def test_totp_sha256_token() -> None:
    token = Token(
        f"otpauth://totp/a?secret={SHA256_SECRET}&digits=8&algorithm=SHA256",
        backend=CryptographyHMAC(),
    )
    assert token.generate_code(now=59).code == "46119246"


def test_totp_next_code_matches_following_window(totp_token: Token) -> None:
    now = 1111111109
    code = totp_token.generate_code(now=now)
    later = totp_token.generate_code(now=now + totp_token.period)
    assert code.next is not None
    assert code.next.code == later.code
    assert code.next.valid_from == code.valid_until
    assert code.next.valid_until == later.valid_until
    assert code.next.next is None


def test_totp_is_idempotent(totp_token: Token) -> None:
    before = totp_token.to_uri()
    assert totp_token.generate_code(now=59) == totp_token.generate_code(now=59)
    assert totp_token.counter == 0
    assert totp_token.to_uri() == before


def test_totp_custom_period() -> None:
    token = Token(f"otpauth://totp/a?secret={RFC_SECRET}&digits=8&period=60")
    code = token.generate_code(now=119)
    assert (code.valid_from, code.valid_until) == (60, 120)
    assert code.code == "94287082"  # slot 1, same as t=59 with a 30s period


def test_totp_reads_clock_when_now_missing(totp_token: Token) -> None:
    code = totp_token.generate_code()
    assert code.current(time.time()) is not None


def test_totp_unavailable_clock_uses_epoch() -> None:
    token = Token(f"otpauth://totp/a?secret={RFC_SECRET}", clock=lambda: None)
    code = token.generate_code()
    assert (code.valid_from, code.valid_until) == (0, 30)
    assert code.code == "755224"


# ── TokenCode helpers ─────────────────────────────────────────────────────────

def test_token_code_current_walks_chain() -> None:
    nxt = TokenCode("222222", 30, 60)
    code = TokenCode("111111", 0, 30, next=nxt)
    assert code.current(10) is code
    assert code.current(30) is nxt
    assert code.current(60) is None


def test_token_code_remaining_and_progress() -> None:
    code = TokenCode("111111", 0, 30)
    assert code.remaining(0) == 30
    assert code.remaining(29.5) == 1
    assert code.remaining(45) == 0
    assert code.progress(15) == 0.5
    assert code.progress(-5) == 0.0
    assert code.progress(99) == 1.0


# ── Serialisation ─────────────────────────────────────────────────────────────

def test_str_is_uri(totp_token: Token) -> None:
    assert str(totp_token) == totp_token.to_uri()
    assert totp_token.to_uri().startswith("otpauth://totp/ACME:alice?algorithm=sha1&digits=8")


def test_roundtrip_preserves_fields() -> None:
    token = Token(
        f"otpauth://hotp/My+Bank:j%C3%B6rg?secret={RFC_SECRET}&algorithm=sha512"
        "&digits=8&period=45&counter=7&issuer=Bank+Inc&issueralt=Mine&labelalt=Card",
        internal=True,
    )
    copy = Token(token.to_uri(), internal=True)
    for attr in (
        "token_type", "issuer_default", "label_default", "issuer_internal",
        "issuer_override", "label_override", "key", "algorithm", "digits",
        "period", "counter", "uid",
    ):
        assert getattr(copy, attr) == getattr(token, attr), attr


def test_public_parse_drops_overrides() -> None:
    token = Token(f"otpauth://totp/a?secret={RFC_SECRET}&issueralt=X&labelalt=Y")
    assert token.issuer_override is None
    assert "issueralt" not in token.to_uri()


# ── MD5 tokens ────────────────────────────────────────────────────────────────

def test_md5_tokens_generate_for_every_step() -> None:
    hotp = Token(f"otpauth://hotp/a?secret={RFC_SECRET}&algorithm=md5&digits=8")
    totp = Token(f"otpauth://totp/a?secret={RFC_SECRET}&algorithm=md5")
    for step in range(64):
        assert len(hotp.generate_code(now=0).code) == 8
        code = totp.generate_code(now=step * totp.period)
        assert len(code.code) == 6
        assert len(code.next.code) == 6
    assert hotp.counter == 64


# ── Out-of-range time ─────────────────────────────────────────────────────────

def test_totp_negative_time_raises(totp_token: Token) -> None:
    with pytest.raises(ValueError, match="64-bit"):
        totp_token.generate_code(now=-1)
