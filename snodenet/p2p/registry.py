"""Storage node identities and the registry that deduplicates them.

A :class:`NodeRegistry` holds exactly one :class:`StorageNode` per
canonical public key.  Discovery and swarm resolution both write through
:meth:`NodeRegistry.upsert`, so a node seen twice keeps its identity (and
its per-account pagination state) while its routing fields are refreshed.

Usage::

    registry = NodeRegistry()
    node = registry.upsert("8x1y...", "1.2.3.4", 22021, swarm_id="42")
    assert registry.upsert("8x1y...", "5.6.7.8", 22021) is node
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field

import structlog

logger = structlog.get_logger()

# Placeholder IP reported for nodes without an assigned address
NO_ADDRESS = "0.0.0.0"


@dataclass(eq=False)
class StorageNode:
    """A single storage node, identified by its canonical public key.

    Equality and hashing are by identity: the registry guarantees one
    instance per public key.
    """

    pubkey: str
    ip: str
    port: int
    swarm_id: str = ""
    messages_holding: dict[str, int] = field(default_factory=dict)
    last_hash: dict[str, str] = field(default_factory=dict)

    @property
    def base_url(self) -> str:
        return f"https://{self.ip}:{self.port}"

    @property
    def storage_url(self) -> str:
        """JSON-RPC endpoint for store / retrieve / swarm lookup."""
        return f"{self.base_url}/storage_rpc/v1"

    @property
    def stats_url(self) -> str:
        return f"{self.base_url}/get_stats/v1"

    def __repr__(self) -> str:
        return f"StorageNode({self.pubkey[:16]}, {self.ip}:{self.port})"


class NodeRegistry:
    """Mapping from public key to the single :class:`StorageNode` for it."""

    def __init__(self) -> None:
        self._nodes: dict[str, StorageNode] = {}

    def upsert(
        self,
        pubkey: str,
        ip: str,
        port: int,
        swarm_id: str | None = None,
    ) -> StorageNode:
        """Register a node or refresh the routing fields of a known one.

        Args:
            pubkey: Canonical (z-base-32) public key.
            ip: Public IP address.
            port: Storage server port.
            swarm_id: Swarm identifier; ``None`` keeps the known value.

        Returns:
            The one :class:`StorageNode` instance for *pubkey*.
        """
        port = int(port)
        node = self._nodes.get(pubkey)
        if node is None:
            node = StorageNode(
                pubkey=pubkey, ip=ip, port=port, swarm_id=swarm_id or ""
            )
            self._nodes[pubkey] = node
            return node
        if (node.ip, node.port) != (ip, port):
            logger.debug(
                "registry_node_moved",
                pubkey=pubkey[:16],
                old=f"{node.ip}:{node.port}",
                new=f"{ip}:{port}",
            )
        node.ip = ip
        node.port = port
        if swarm_id is not None:
            node.swarm_id = swarm_id
        return node

    def get(self, pubkey: str) -> StorageNode | None:
        return self._nodes.get(pubkey)

    def __contains__(self, pubkey: object) -> bool:
        return pubkey in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[StorageNode]:
        return iter(list(self._nodes.values()))
