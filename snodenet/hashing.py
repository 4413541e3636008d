"""Cryptographic hashing utilities for snodenet.

Centralizes the SHA-512 pattern used by proof-of-work stamping.
All callers should import from here instead of inlining
``hashlib.sha512(...)`` directly.
"""

from __future__ import annotations

import hashlib


def sha512_digest(*parts: bytes) -> bytes:
    """Compute the raw SHA-512 digest of the concatenation of *parts*.

    Args:
        parts: Byte strings hashed in order.

    Returns:
        64-byte digest.
    """
    h = hashlib.sha512()
    for part in parts:
        h.update(part)
    return h.digest()
