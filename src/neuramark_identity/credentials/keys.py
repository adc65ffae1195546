"""PlatformKeyProvider — the platform's Ed25519 signing key.

The key is loaded once at startup, wrapped in an immutable provider and
passed by reference to whatever signs (the credential issuer, the DID
document signer). Nothing looks the key up ambiently. Verifiers only
need the public half, exposed as a :class:`TrustedKey`.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives.serialization import (
    BestAvailableEncryption,
    Encoding,
    NoEncryption,
    PrivateFormat,
    PublicFormat,
    load_pem_private_key,
)

from neuramark_identity.canonical import multibase_encode

logger = logging.getLogger(__name__)

PLATFORM_DID: str = "did:neuramark:platform"
DEFAULT_KEY_ID: str = f"{PLATFORM_DID}#key-1"

# Multicodec prefix for Ed25519 public keys (varint-encoded 0xed01)
_ED25519_MULTICODEC_PREFIX: bytes = b"\xed\x01"


@dataclass(frozen=True)
class TrustedKey:
    """Public verification key for one issuer key reference.

    Parameters
    ----------
    key_id:
        The ``verificationMethod`` value credentials signed with this key carry.
    controller:
        DID of the issuer that controls the key.
    public_key:
        Raw 32-byte Ed25519 public key.
    """

    key_id: str
    controller: str
    public_key: bytes

    def __post_init__(self) -> None:
        if len(self.public_key) != 32:
            raise ValueError("Ed25519 public keys are 32 bytes.")

    def verify(self, signature: bytes, data: bytes) -> bool:
        """Return ``True`` if *signature* is valid for *data* under this key."""
        public_key = Ed25519PublicKey.from_public_bytes(self.public_key)
        try:
            public_key.verify(signature, data)
        except InvalidSignature:
            return False
        return True

    @property
    def public_key_multibase(self) -> str:
        return multibase_encode(_ED25519_MULTICODEC_PREFIX + self.public_key)


class PlatformKeyProvider:
    """Immutable holder of the platform Ed25519 private key.

    Any number of threads may call :meth:`sign` concurrently.

    Example
    -------
    ::

        provider = PlatformKeyProvider.generate()
        signature = provider.sign(b"payload")
        assert provider.trusted_key().verify(signature, b"payload")
    """

    __slots__ = ("_private_key", "_public_bytes", "_key_id", "_controller")

    def __init__(
        self,
        private_key: Ed25519PrivateKey,
        key_id: str = DEFAULT_KEY_ID,
        controller: str = PLATFORM_DID,
    ) -> None:
        if not key_id.startswith(controller):
            raise ValueError(f"key_id {key_id!r} must belong to controller {controller!r}.")
        object.__setattr__(self, "_private_key", private_key)
        object.__setattr__(
            self,
            "_public_bytes",
            private_key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw),
        )
        object.__setattr__(self, "_key_id", key_id)
        object.__setattr__(self, "_controller", controller)

    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError("PlatformKeyProvider is immutable.")

    def __delattr__(self, name: str) -> None:
        raise AttributeError("PlatformKeyProvider is immutable.")

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def generate(cls, key_id: str = DEFAULT_KEY_ID, controller: str = PLATFORM_DID) -> "PlatformKeyProvider":
        """Create a provider around a freshly generated key."""
        return cls(Ed25519PrivateKey.generate(), key_id=key_id, controller=controller)

    @classmethod
    def from_private_bytes(
        cls, raw: bytes, key_id: str = DEFAULT_KEY_ID, controller: str = PLATFORM_DID
    ) -> "PlatformKeyProvider":
        """Create a provider from a raw 32-byte Ed25519 private key."""
        return cls(Ed25519PrivateKey.from_private_bytes(raw), key_id=key_id, controller=controller)

    @classmethod
    def from_pem(
        cls,
        data: bytes,
        password: bytes | None = None,
        key_id: str = DEFAULT_KEY_ID,
        controller: str = PLATFORM_DID,
    ) -> "PlatformKeyProvider":
        """Create a provider from a PKCS#8 PEM-encoded Ed25519 private key.

        Raises
        ------
        ValueError
            If the PEM does not hold an Ed25519 private key.
        """
        key = load_pem_private_key(data, password=password)
        if not isinstance(key, Ed25519PrivateKey):
            raise ValueError("The platform signing key must be an Ed25519 private key.")
        return cls(key, key_id=key_id, controller=controller)

    @classmethod
    def from_file(
        cls, path: Path, password: bytes | None = None, key_id: str = DEFAULT_KEY_ID
    ) -> "PlatformKeyProvider":
        return cls.from_pem(path.read_bytes(), password=password, key_id=key_id)

    @classmethod
    def load_or_ephemeral(cls, path: Path | None, key_id: str = DEFAULT_KEY_ID) -> "PlatformKeyProvider":
        """Load the key at *path*, or generate an ephemeral one when no path is set.

        Credentials signed with an ephemeral key stop verifying once the
        process exits.
        """
        if path is not None:
            return cls.from_file(path, key_id=key_id)
        logger.warning(
            "No platform signing key configured; using an ephemeral key. "
            "Credentials issued now cannot be verified after restart."
        )
        return cls.generate(key_id=key_id)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def key_id(self) -> str:
        return self._key_id

    @property
    def controller(self) -> str:
        return self._controller

    @property
    def public_key_bytes(self) -> bytes:
        return self._public_bytes

    def trusted_key(self) -> TrustedKey:
        """Return the public half for verifiers."""
        return TrustedKey(
            key_id=self._key_id, controller=self._controller, public_key=self._public_bytes
        )

    def sign(self, data: bytes) -> bytes:
        """Return the 64-byte Ed25519 signature of *data*."""
        return self._private_key.sign(data)

    def private_pem(self, password: bytes | None = None) -> bytes:
        """Export the private key as PKCS#8 PEM, encrypted when *password* is given."""
        encryption = BestAvailableEncryption(password) if password else NoEncryption()
        return self._private_key.private_bytes(Encoding.PEM, PrivateFormat.PKCS8, encryption)

    def __repr__(self) -> str:
        return f"PlatformKeyProvider(key_id={self._key_id!r})"


__all__ = ["DEFAULT_KEY_ID", "PLATFORM_DID", "PlatformKeyProvider", "TrustedKey"]
