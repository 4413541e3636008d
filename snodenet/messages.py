"""Outgoing messages and their proof-of-work stamps."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from snodenet.pow import calc_pow

if TYPE_CHECKING:
    from snodenet.p2p.registry import StorageNode


@dataclass
class Message:
    """A message addressed to ``pub_key``'s swarm.

    ``nonce`` and ``hash`` are empty until :meth:`stamp` runs.
    """

    pub_key: str
    data: str
    ttl: int  # ms
    timestamp: int  # ms since epoch
    nonce: str = ""
    hash: str = ""
    sent_to: set[str] = field(default_factory=set)

    @classmethod
    def create(cls, pub_key: str, data: str, ttl: int) -> Message:
        return cls(pub_key=pub_key, data=data, ttl=ttl, timestamp=_now_ms())

    @property
    def is_stamped(self) -> bool:
        return bool(self.nonce)

    def stamp(self, difficulty: int, increment: int = 1, start_nonce: int = 0) -> None:
        """Compute and attach the proof-of-work nonce and digest."""
        self.nonce, self.hash = calc_pow(
            self.timestamp,
            self.ttl,
            self.pub_key,
            self.data,
            difficulty,
            increment,
            start_nonce,
        )

    def store_params(self) -> dict[str, str]:
        """Params for the ``store`` RPC."""
        return {
            "pubKey": self.pub_key,
            "ttl": str(self.ttl),
            "nonce": self.nonce,
            "timestamp": str(self.timestamp),
            "data": self.data,
        }

    def mark_sent(self, node: StorageNode) -> None:
        self.sent_to.add(node.pubkey)


def _now_ms() -> int:
    return int(time.time() * 1000)
