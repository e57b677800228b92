"""HMAC algorithms supported by otpauth tokens."""

from enum import Enum
from typing import Optional


class Algorithm(str, Enum):
    """Supported HMAC algorithms."""

    MD5 = "MD5"
    SHA1 = "SHA1"
    SHA256 = "SHA256"
    SHA512 = "SHA512"

    @property
    def digest_size(self) -> int:
        return DIGEST_SIZES[self]

    @property
    def uri_name(self) -> str:
        """Lowercase name written to the ``algorithm`` query field."""
        return self.value.lower()

    @classmethod
    def from_name(cls, name: Optional[str]) -> Optional["Algorithm"]:
        """Look up an algorithm case-insensitively; None if unknown."""
        if not name:
            return None
        try:
            return cls(name.upper())
        except ValueError:
            return None


DIGEST_SIZES: dict[Algorithm, int] = {
    Algorithm.MD5: 16,
    Algorithm.SHA1: 20,
    Algorithm.SHA256: 32,
    Algorithm.SHA512: 64,
}
