"""Tests for snodenet.pow — nonce arithmetic, target and stamp search."""

from __future__ import annotations

import base64
import hashlib

import pytest

from snodenet.errors import NonceOverflowError
from snodenet.pow import (
    NONCE_LEN,
    build_payload,
    calc_pow,
    calc_target,
    greater_than,
    increment_nonce,
)

PUBKEY = "05" + "ab" * 32
TIMESTAMP = 1_700_000_000_000
TTL = 86_400_000


def _as_int(b: bytes) -> int:
    return int.from_bytes(b, "big")


# ── Nonce arithmetic ────────────────────────────────────────────────


class TestIncrementNonce:
    def test_carry(self) -> None:
        nonce = bytes([0, 0, 0, 0, 0, 0, 0, 255])
        assert increment_nonce(nonce, 1) == bytes([0, 0, 0, 0, 0, 0, 1, 0])

    def test_multi_step(self) -> None:
        assert increment_nonce(bytes(8), 256) == bytes([0, 0, 0, 0, 0, 0, 1, 0])

    def test_default_step_is_one(self) -> None:
        assert increment_nonce(bytes(8)) == bytes([0, 0, 0, 0, 0, 0, 0, 1])

    def test_carry_through_several_bytes(self) -> None:
        nonce = bytes([0, 0, 0, 0, 0, 255, 255, 255])
        assert increment_nonce(nonce) == bytes([0, 0, 0, 0, 1, 0, 0, 0])

    def test_zero_step(self) -> None:
        nonce = bytes([1, 2, 3, 4, 5, 6, 7, 8])
        assert increment_nonce(nonce, 0) == nonce

    def test_input_not_mutated(self) -> None:
        nonce = bytearray(8)
        increment_nonce(bytes(nonce), 5)
        assert nonce == bytearray(8)

    def test_overflow_fails_fast(self) -> None:
        with pytest.raises(NonceOverflowError):
            increment_nonce(b"\xff" * 8, 1)

    def test_overflow_is_an_overflow_error(self) -> None:
        with pytest.raises(OverflowError):
            increment_nonce(b"\xff" * 8, 2**8)


class TestGreaterThan:
    def test_greater(self) -> None:
        assert greater_than(bytes([1, 0]), bytes([0, 255])) is True

    def test_equal(self) -> None:
        assert greater_than(bytes([0, 1]), bytes([0, 1])) is False

    def test_less(self) -> None:
        assert greater_than(bytes([0, 255]), bytes([1, 0])) is False

    def test_unequal_lengths_are_never_greater(self) -> None:
        assert greater_than(bytes([9, 9, 9]), bytes([0, 0])) is False
        assert greater_than(bytes([0, 0]), bytes([9, 9, 9])) is False

    def test_matches_numeric_order(self) -> None:
        a = (1000).to_bytes(8, "big")
        b = (999).to_bytes(8, "big")
        assert greater_than(a, b) is True
        assert greater_than(b, a) is False


# ── Target ──────────────────────────────────────────────────────────


class TestCalcTarget:
    def test_width(self) -> None:
        assert len(calc_target(TTL, 100, 10)) == NONCE_LEN

    def test_zero_ttl_empty_payload(self) -> None:
        # (2^64 - 1) // (1 * 8)
        assert calc_target(0, 0, 1) == bytes.fromhex("1fffffffffffffff")

    def test_ttl_term(self) -> None:
        # ttl 4 days: 345600 s * 108 bytes // 65535 = 569
        target = calc_target(345_600_000, 100, 10)
        assert _as_int(target) == (2**64 - 1) // (10 * (108 + 569))

    def test_sub_second_ttl_is_truncated(self) -> None:
        assert calc_target(999, 50, 3) == calc_target(0, 50, 3)

    def test_monotonic_in_difficulty(self) -> None:
        easy = calc_target(TTL, 200, 1)
        hard = calc_target(TTL, 200, 2)
        assert greater_than(easy, hard)

    def test_monotonic_in_ttl(self) -> None:
        short = calc_target(60_000, 200, 10)
        long = calc_target(4 * TTL, 200, 10)
        assert _as_int(short) >= _as_int(long)
        assert greater_than(calc_target(0, 200, 10), calc_target(4 * TTL, 200, 10))

    def test_monotonic_in_payload_length(self) -> None:
        assert greater_than(calc_target(TTL, 10, 10), calc_target(TTL, 10_000, 10))

    def test_large_values_do_not_overflow(self) -> None:
        target = calc_target(2**60, 2**40, 1000)
        assert len(target) == NONCE_LEN
        assert _as_int(target) == 0

    def test_zero_difficulty_rejected(self) -> None:
        with pytest.raises(ValueError):
            calc_target(TTL, 10, 0)


# ── Stamp search ────────────────────────────────────────────────────


def _trial(nonce: bytes, payload: bytes) -> tuple[bytes, str]:
    inner = hashlib.sha512(payload).digest()
    digest = hashlib.sha512(nonce + inner).digest()
    return digest[:NONCE_LEN], digest.hex()


class TestCalcPow:
    def test_payload_layout(self) -> None:
        payload = build_payload(12, 34, "pk", b"data")
        assert payload == b"1234pkdata"

    def test_str_and_bytes_data_agree(self) -> None:
        assert build_payload(1, 2, "k", "hello") == build_payload(1, 2, "k", b"hello")

    def test_wide_characters_keep_low_byte(self) -> None:
        # U+20AC -> 0xAC, U+0100 -> 0x00
        assert build_payload(1, 2, "k", "€") == b"12k\xac"
        assert build_payload(1, 2, "k", "Āé") == b"12k\x00\xe9"

    def test_wide_characters_in_pubkey(self) -> None:
        assert build_payload(1, 2, "k€", b"") == b"12k\xac"

    def test_deterministic(self) -> None:
        first = calc_pow(TIMESTAMP, TTL, PUBKEY, "hello", 10)
        second = calc_pow(TIMESTAMP, TTL, PUBKEY, "hello", 10)
        assert first == second

    def test_result_satisfies_target(self) -> None:
        nonce_b64, digest_hex = calc_pow(TIMESTAMP, TTL, PUBKEY, "hello", 10)
        nonce = base64.b64decode(nonce_b64)
        assert len(nonce) == NONCE_LEN

        payload = build_payload(TIMESTAMP, TTL, PUBKEY, "hello")
        trial, expected_hex = _trial(nonce, payload)
        target = calc_target(TTL, len(payload), 10)
        assert not greater_than(trial, target)
        assert digest_hex == expected_hex

    def test_first_satisfying_nonce_is_returned(self) -> None:
        nonce_b64, _ = calc_pow(TIMESTAMP, TTL, PUBKEY, "minimal", 4)
        found = _as_int(base64.b64decode(nonce_b64))

        payload = build_payload(TIMESTAMP, TTL, PUBKEY, "minimal")
        target = calc_target(TTL, len(payload), 4)
        for n in range(found):
            trial, _ = _trial(n.to_bytes(NONCE_LEN, "big"), payload)
            assert greater_than(trial, target)

    def test_start_nonce_and_increment(self) -> None:
        nonce_b64, _ = calc_pow(
            TIMESTAMP, TTL, PUBKEY, "strided", 4, increment=3, start_nonce=1000
        )
        found = _as_int(base64.b64decode(nonce_b64))
        assert found >= 1000
        assert (found - 1000) % 3 == 0

        payload = build_payload(TIMESTAMP, TTL, PUBKEY, "strided")
        target = calc_target(TTL, len(payload), 4)
        for n in range(1000, found, 3):
            trial, _ = _trial(n.to_bytes(NONCE_LEN, "big"), payload)
            assert greater_than(trial, target)

    def test_different_data_changes_stamp(self) -> None:
        a = calc_pow(TIMESTAMP, TTL, PUBKEY, "one", 10)
        b = calc_pow(TIMESTAMP, TTL, PUBKEY, "two", 10)
        assert a[1] != b[1]
