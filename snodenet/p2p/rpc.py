"""Wire helpers for the storage network's JSON-RPC dialect.

- JSON-RPC 2.0 request envelopes
- hex public key → canonical z-base-32 node address
- ``.snode`` address suffix handling
"""

from __future__ import annotations

import base64
from typing import Any

# JSON-RPC method names
METHOD_GET_NODES = "get_n_service_nodes"
METHOD_GET_SWARM = "get_snodes_for_pubkey"
METHOD_STORE = "store"
METHOD_RETRIEVE = "retrieve"

SNODE_SUFFIX = ".snode"

# A page shorter than this ends a retrieve sequence
RETRIEVE_PAGE_SIZE = 10

_RFC4648_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"
_ZBASE32_ALPHABET = "ybndrfg8ejkmcpqxot1uwisza345h769"
_TO_ZBASE32 = str.maketrans(_RFC4648_ALPHABET, _ZBASE32_ALPHABET)


def jsonrpc_body(method: str, params: dict[str, Any]) -> dict[str, Any]:
    """Build a JSON-RPC 2.0 request body."""
    return {
        "jsonrpc": "2.0",
        "id": "0",
        "method": method,
        "params": params,
    }


def hex_to_snode_address(hex_pubkey: str) -> str:
    """Transcode a hex public key into the network's z-base-32 address form.

    Raises:
        ValueError: *hex_pubkey* is not valid hex.
    """
    raw = bytes.fromhex(hex_pubkey)
    encoded = base64.b32encode(raw).decode("ascii").rstrip("=")
    return encoded.translate(_TO_ZBASE32)


def strip_snode_suffix(address: str) -> str:
    """Drop the trailing ``.snode`` from a node address, if present."""
    if address.endswith(SNODE_SUFFIX):
        return address[: -len(SNODE_SUFFIX)]
    return address
