"""Deterministic signing identities derived from a path and a password.

The derivation parameters are protocol constants: the server verifies
signatures against public keys produced exactly this way, so changing any of
them makes every existing path unreachable.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Final

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from foundas.exceptions import DerivationError

logger = logging.getLogger(__name__)

SALT_PREFIX: Final[str] = "found.as/"
KDF_ITERATIONS: Final[int] = 100_000
SEED_LENGTH: Final[int] = 32
SIGNATURE_LENGTH: Final[int] = 64


def salt_for_path(path: str) -> bytes:
    """Return the PBKDF2 salt for *path*.

    The salt embeds the path, so one password yields unrelated keypairs on
    different paths.
    """
    return (SALT_PREFIX + path).encode("utf-8")


@dataclass(frozen=True)
class SigningIdentity:
    """Ed25519 keypair for one (path, password) combination."""

    seed: bytes = field(repr=False)
    public_key: bytes
    _private_key: Ed25519PrivateKey = field(repr=False, compare=False)

    @classmethod
    def from_seed(cls, seed: bytes) -> SigningIdentity:
        private_key = Ed25519PrivateKey.from_private_bytes(seed)
        public_key = private_key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)
        return cls(seed=seed, public_key=public_key, _private_key=private_key)

    @property
    def secret_key(self) -> bytes:
        """NaCl-style 64-byte secret key (seed followed by public key)."""
        return self.seed + self.public_key

    def sign(self, message: bytes) -> bytes:
        """Return the attached signed message: 64-byte signature, then *message*."""
        return self._private_key.sign(message) + message


def derive_identity(path: str, password: str) -> SigningIdentity:
    """Derive the signing identity for *path* protected by *password*.

    An empty password is valid and gives the well-known identity anyone can
    reproduce. The key stretching is deliberately slow; call this from a
    worker thread when an event loop must stay responsive.

    Raises:
        DerivationError: If the underlying crypto primitive fails.
    """
    try:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=SEED_LENGTH,
            salt=salt_for_path(path),
            iterations=KDF_ITERATIONS,
        )
        seed = kdf.derive(password.encode("utf-8"))
        identity = SigningIdentity.from_seed(seed)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise DerivationError(f"Key derivation failed for path {path!r}: {exc}") from exc
    logger.debug("Derived identity %s for path %r", identity.public_key.hex()[:16], path)
    return identity
