"""Encoding helpers used by the WebSocket opening handshake."""

from __future__ import annotations

import base64
import hashlib
import random
import string

__all__ = [
    "base64_encode",
    "base64_decode",
    "websockets_handshake_encode_key",
    "random_bytes",
]

HANDSHAKE_GUID = "258EAFA5-E914-47DA-95CA-C5AB0DC85B11"

_BASE64_ALPHABET = frozenset(string.ascii_letters + string.digits + "+/")
_RANDOM_ALPHABET = "0123456789abcdefABCDEFGHIJKLMNOPQRSTUVEXYZ"
_rng = random.Random()


def _as_bytes(data: str | bytes | bytearray) -> bytes:
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


def base64_encode(data: str | bytes | bytearray) -> str:
    """Encode ``data`` as padded standard base64 text."""
    return base64.b64encode(_as_bytes(data)).decode("ascii")


def base64_decode(data: str | bytes) -> bytes:
    """Decode base64 text leniently.

    Decoding stops at the first ``=`` or at the first character outside the
    base64 alphabet; whatever came before it is decoded. A trailing single
    character that cannot form a byte is dropped.
    """
    text = data.decode("latin-1") if isinstance(data, (bytes, bytearray)) else data
    valid = []
    for char in text:
        if char == "=" or char not in _BASE64_ALPHABET:
            break
        valid.append(char)
    usable = "".join(valid)
    if len(usable) % 4 == 1:
        usable = usable[:-1]
    usable += "=" * (-len(usable) % 4)
    return base64.b64decode(usable)


def websockets_handshake_encode_key(key: str | bytes) -> str:
    """Compute the ``Sec-WebSocket-Accept`` value for a client key."""
    digest = hashlib.sha1(_as_bytes(key) + HANDSHAKE_GUID.encode("ascii")).digest()
    return base64.b64encode(digest).decode("ascii")


def random_bytes(length: int) -> bytes:
    """Return ``length`` random printable characters as bytes."""
    if length < 0:
        raise ValueError("length must not be negative")
    return "".join(_rng.choice(_RANDOM_ALPHABET) for _ in range(length)).encode("ascii")