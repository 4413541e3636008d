"""Proof-of-work stamping for outgoing messages.

Storage nodes only accept a message whose stamp proves work proportional
to its size and lifetime.  The stamp is an 8-byte nonce such that the first
8 bytes of ``SHA-512(nonce || SHA-512(payload))``, read as a big-endian
unsigned integer, do not exceed a target derived from the payload length,
the TTL and a global difficulty.  Lower target means a harder puzzle.

Usage::

    nonce_b64, digest_hex = calc_pow(timestamp, ttl, pubkey, data, difficulty)
"""

from __future__ import annotations

import base64
import time

import structlog

from snodenet.errors import NonceOverflowError
from snodenet.hashing import sha512_digest

logger = structlog.get_logger()

NONCE_LEN = 8

_TWO_16_MINUS_1 = 2**16 - 1
_TWO_64_MINUS_1 = 2**64 - 1


def increment_nonce(nonce: bytes, step: int = 1) -> bytes:
    """Add *step* to *nonce*, treated as a big-endian unsigned integer.

    Args:
        nonce: Current nonce bytes.
        step: Non-negative amount to add.

    Returns:
        New nonce of the same width.

    Raises:
        NonceOverflowError: The carry runs past the most significant byte.
    """
    width = len(nonce)
    value = int.from_bytes(nonce, "big") + step
    if value >> (8 * width):
        raise NonceOverflowError(f"nonce overflow after adding {step}")
    return value.to_bytes(width, "big")


def greater_than(a: bytes, b: bytes) -> bool:
    """Return ``True`` if *a* > *b* under byte-wise (big-endian) comparison.

    Arrays of different lengths never compare greater.
    """
    if len(a) != len(b):
        return False
    return a > b


def calc_target(ttl: int, payload_len: int, difficulty: int) -> bytes:
    """Compute the 8-byte big-endian target for a payload.

    ``target = (2^64 - 1) // (difficulty * (total + ttl_s * total // (2^16 - 1)))``
    where ``total = payload_len + NONCE_LEN`` and ``ttl_s`` is the TTL in
    whole seconds.

    Args:
        ttl: Message time-to-live in milliseconds.
        payload_len: Payload length in bytes.
        difficulty: Network difficulty, at least 1.
    """
    if difficulty < 1:
        raise ValueError(f"difficulty must be >= 1, got {difficulty}")
    total_len = payload_len + NONCE_LEN
    ttl_seconds = ttl // 1000
    inner_frac = (ttl_seconds * total_len) // _TWO_16_MINUS_1
    denominator = difficulty * (total_len + inner_frac)
    target = _TWO_64_MINUS_1 // denominator
    return target.to_bytes(NONCE_LEN, "big")


def _binary_string(text: str) -> bytes:
    """One byte per character: the low 8 bits of its code point."""
    return bytes(ord(c) & 0xFF for c in text)


def build_payload(timestamp: int, ttl: int, pubkey: str, data: bytes | str) -> bytes:
    """Concatenate the stamped fields the way storage nodes verify them."""
    if isinstance(data, str):
        data = _binary_string(data)
    return _binary_string(f"{timestamp}{ttl}{pubkey}") + data


def calc_pow(
    timestamp: int,
    ttl: int,
    pubkey: str,
    data: bytes | str,
    difficulty: int,
    increment: int = 1,
    start_nonce: int = 0,
) -> tuple[str, str]:
    """Search for the first nonce whose trial value meets the target.

    Nonces are tried in order ``start_nonce``, ``start_nonce + increment``,
    and so on.  Several searchers can split the space by using the same
    ``increment`` with different ``start_nonce`` values.

    Args:
        timestamp: Message timestamp in ms since the epoch.
        ttl: Message time-to-live in ms.
        pubkey: Recipient public key.
        data: Message payload.
        difficulty: Network difficulty.
        increment: Step between consecutive nonces.
        start_nonce: First nonce to try.

    Returns:
        Tuple of (base64 nonce, hex SHA-512 digest of the winning trial).
    """
    payload = build_payload(timestamp, ttl, pubkey, data)
    target = calc_target(ttl, len(payload), difficulty)
    initial_hash = sha512_digest(payload)

    started = time.monotonic()
    nonce = increment_nonce(bytes(NONCE_LEN), start_nonce)
    attempts = 1
    digest = sha512_digest(nonce, initial_hash)
    while greater_than(digest[:NONCE_LEN], target):
        nonce = increment_nonce(nonce, increment)
        attempts += 1
        digest = sha512_digest(nonce, initial_hash)

    logger.debug(
        "pow_found",
        attempts=attempts,
        difficulty=difficulty,
        payload_len=len(payload),
        elapsed_ms=round((time.monotonic() - started) * 1000, 1),
    )
    return base64.b64encode(nonce).decode("ascii"), digest.hex()
