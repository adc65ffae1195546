"""Canonical codec — deterministic bytes for hashing and signing.

Canonical form
--------------
Objects are serialized as compact UTF-8 JSON with keys sorted at every
nesting level. Arrays keep their index order, which matters for
``verifiedProofs``. Two logically identical documents therefore produce
identical bytes regardless of the order in which their properties were
inserted.

The module also carries the two byte encodings the rest of the package
needs:

- multibase base58btc (``z`` prefix) for signature values and public keys
- CIDv0-style content identifiers (``Qm...``) for the blob store
"""
from __future__ import annotations

import hashlib
import json
from typing import Any

# ---------------------------------------------------------------------------
# Canonical JSON
# ---------------------------------------------------------------------------


def canonicalize(obj: Any) -> bytes:
    """Return the canonical byte serialization of a JSON-compatible value.

    Parameters
    ----------
    obj:
        A value made of dicts, lists, strings, numbers, booleans and ``None``.

    Returns
    -------
    bytes
        Compact UTF-8 JSON with recursively sorted object keys.

    Raises
    ------
    ValueError
        If *obj* contains NaN or infinite floats.
    TypeError
        If *obj* contains a value JSON cannot represent.
    """
    return json.dumps(
        obj,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    ).encode("utf-8")


def digest(obj: Any) -> bytes:
    """Return the SHA-256 digest of ``canonicalize(obj)``."""
    return hashlib.sha256(canonicalize(obj)).digest()


def digest_hex(obj: Any) -> str:
    """Hex form of :func:`digest`."""
    return digest(obj).hex()


# ---------------------------------------------------------------------------
# Base58btc / multibase
# ---------------------------------------------------------------------------

_BASE58_ALPHABET: str = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
_MULTIBASE_BASE58BTC: str = "z"


def base58btc_encode(data: bytes) -> str:
    """Encode *data* to a base58btc string (no multibase prefix)."""
    n = int.from_bytes(data, "big")
    chars: list[str] = []
    while n > 0:
        n, remainder = divmod(n, 58)
        chars.append(_BASE58_ALPHABET[remainder])
    # Leading zero bytes are written as '1'
    for byte in data:
        if byte != 0:
            break
        chars.append("1")
    return "".join(reversed(chars))


def base58btc_decode(encoded: str) -> bytes:
    """Decode a base58btc string produced by :func:`base58btc_encode`.

    Raises
    ------
    ValueError
        If the string contains a character outside the base58btc alphabet.
    """
    n = 0
    for char in encoded:
        index = _BASE58_ALPHABET.find(char)
        if index < 0:
            raise ValueError(f"Invalid base58btc character {char!r}.")
        n = n * 58 + index
    body = n.to_bytes((n.bit_length() + 7) // 8, "big") if n > 0 else b""
    pad = len(encoded) - len(encoded.lstrip("1"))
    return b"\x00" * pad + body


def multibase_encode(data: bytes) -> str:
    """Encode *data* as a multibase base58btc string (``z...``)."""
    return _MULTIBASE_BASE58BTC + base58btc_encode(data)


def multibase_decode(value: str) -> bytes:
    """Decode a multibase base58btc string.

    Raises
    ------
    ValueError
        If *value* is empty, lacks the ``z`` prefix, or is not valid base58btc.
    """
    if not value or not value.startswith(_MULTIBASE_BASE58BTC):
        raise ValueError(
            f"Unsupported multibase value {value!r}; expected base58btc ('z' prefix)."
        )
    return base58btc_decode(value[1:])


# ---------------------------------------------------------------------------
# Content identifiers
# ---------------------------------------------------------------------------

# multihash header: sha2-256 (0x12), 32-byte digest (0x20)
_SHA256_MULTIHASH_PREFIX: bytes = b"\x12\x20"


def content_id(data: bytes) -> str:
    """Return the content identifier for *data*.

    The identifier is the base58btc multihash of the SHA-256 digest, the
    CIDv0 layout (``Qm`` followed by 44 characters). Identical bytes
    always yield the identical identifier.
    """
    return base58btc_encode(_SHA256_MULTIHASH_PREFIX + hashlib.sha256(data).digest())


__all__ = [
    "base58btc_decode",
    "base58btc_encode",
    "canonicalize",
    "content_id",
    "digest",
    "digest_hex",
    "multibase_decode",
    "multibase_encode",
]
