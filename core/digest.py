"""
Keyed-hash (HMAC) backends used by the HOTP generator.

The generator only needs ``digest(algorithm, key, message)``; any object with
that method can be injected. Two backends ship with the package:

* :class:`HashlibHMAC`      – standard library ``hmac`` (default)
* :class:`CryptographyHMAC` – ``cryptography.hazmat.primitives.hmac``
"""

import hmac
from typing import Protocol

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives import hmac as crypto_hmac

from core.algorithms import Algorithm


class KeyedHash(Protocol):
    """A keyed-hash capability supporting every :class:`Algorithm`."""

    def digest(self, algorithm: Algorithm, key: bytes, message: bytes) -> bytes:
        ...


class HashlibHMAC:
    """HMAC via the standard library."""

    _NAMES: dict[Algorithm, str] = {
        Algorithm.MD5: "md5",
        Algorithm.SHA1: "sha1",
        Algorithm.SHA256: "sha256",
        Algorithm.SHA512: "sha512",
    }

    def digest(self, algorithm: Algorithm, key: bytes, message: bytes) -> bytes:
        return hmac.new(key, message, self._NAMES[algorithm]).digest()


class CryptographyHMAC:
    """HMAC via pyca/cryptography."""

    _HASHES = {
        Algorithm.MD5: hashes.MD5,
        Algorithm.SHA1: hashes.SHA1,
        Algorithm.SHA256: hashes.SHA256,
        Algorithm.SHA512: hashes.SHA512,
    }

    def digest(self, algorithm: Algorithm, key: bytes, message: bytes) -> bytes:
        h = crypto_hmac.HMAC(key, self._HASHES[algorithm]())
        h.update(message)
        return h.finalize()


_BACKENDS = {
    "hashlib": HashlibHMAC,
    "cryptography": CryptographyHMAC,
}

DEFAULT_BACKEND: KeyedHash = HashlibHMAC()


def get_backend(name: str) -> KeyedHash:
    """
    Return a new backend instance by name.

    Raises:
        ValueError: If ``name`` is not a known backend.
    """
    try:
        return _BACKENDS[name]()
    except KeyError:
        raise ValueError(
            f"Unknown HMAC backend '{name}'. Expected one of: {', '.join(_BACKENDS)}."
        ) from None
