"""Network client — JSON-RPC over HTTPS to the storage network.

All transport calls go through one :class:`DispatchQueue`, so discovery,
swarm lookups, stores, retrieves and stats fetches share a single
concurrency ceiling.

Failure policy differs per operation:

- ``discover_nodes`` / ``resolve_swarm`` raise after exhausting their
  options (:class:`DiscoveryError`, :class:`SwarmResolutionError`).
- ``store`` and ``get_stats`` never raise for transport problems; they
  return ``False`` or a zeroed :class:`NodeStats` so that fan-out over many
  nodes is not aborted by one bad node.
- ``retrieve`` raises :class:`TransportError`; a missing read result
  cannot be substituted.

Usage::

    async with NetworkClient(config.network) as net:
        swarm = await net.resolve_swarm(pubkey)
        ok = await net.send_message(swarm[0], message)
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from snodenet.config import NetworkConfig
from snodenet.errors import DiscoveryError, SwarmResolutionError, TransportError
from snodenet.messages import Message
from snodenet.p2p.dispatch import DispatchQueue
from snodenet.p2p.registry import NO_ADDRESS, NodeRegistry, StorageNode
from snodenet.p2p.rpc import (
    METHOD_GET_NODES,
    METHOD_GET_SWARM,
    METHOD_RETRIEVE,
    METHOD_STORE,
    RETRIEVE_PAGE_SIZE,
    hex_to_snode_address,
    jsonrpc_body,
    strip_snode_suffix,
)
from snodenet.stats import NodeStats

logger = structlog.get_logger()

# Failures that make a node or seed response unusable
_BAD_RESPONSE = (TransportError, AttributeError, KeyError, TypeError, ValueError)

_DISCOVERY_FIELDS = {
    "public_ip": True,
    "storage_port": True,
    "service_node_pubkey": True,
    "swarm_id": True,
}


@dataclass
class ClientStats:
    """Counters for discovery and swarm-resolution behaviour."""

    discoveries: int = 0
    swarm_lookups: int = 0
    swarm_attempts: int = 0
    evictions: int = 0


class NetworkClient:
    """Async client for storage-node discovery, swarm lookup and messaging.

    Args:
        config: Network settings (seed URL, ceiling, timeouts, TLS).
        registry: Node registry to write through; a fresh one by default.
        queue: Dispatch queue; sized from ``config.max_concurrent`` by default.
        transport: Optional httpx transport (used by tests).
        rng: Random source for choosing which node to query.
    """

    def __init__(
        self,
        config: NetworkConfig | None = None,
        *,
        registry: NodeRegistry | None = None,
        queue: DispatchQueue | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._config = config or NetworkConfig()
        self._registry = registry if registry is not None else NodeRegistry()
        self._queue = queue or DispatchQueue(self._config.max_concurrent)
        self._transport = transport
        self._rng = rng or random.Random()
        self._client: httpx.AsyncClient | None = None
        self._active: list[StorageNode] = []
        self._stats = ClientStats()

    # ── Properties ─────────────────────────────────────────────

    @property
    def registry(self) -> NodeRegistry:
        return self._registry

    @property
    def queue(self) -> DispatchQueue:
        return self._queue

    @property
    def stats(self) -> ClientStats:
        return self._stats

    @property
    def active_nodes(self) -> list[StorageNode]:
        """Snapshot of the nodes currently used for swarm lookups."""
        return list(self._active)

    # ── Transport ──────────────────────────────────────────────

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            limit = self._config.max_concurrent
            self._client = httpx.AsyncClient(
                verify=self._config.verify_tls,
                timeout=self._config.request_timeout,
                transport=self._transport,
                limits=httpx.Limits(
                    max_connections=limit,
                    max_keepalive_connections=min(limit, 100),
                ),
            )
        return self._client

    async def _send(
        self,
        method: str,
        url: str,
        *,
        timeout: float,
        body: dict[str, Any] | None = None,
        decode: bool = True,
    ) -> Any:
        """Dispatch one HTTP request and decode its JSON body.

        With ``decode=False`` the body is ignored and ``None`` is returned
        for any 2xx response.

        Raises:
            TransportError: Connection failure, timeout, non-2xx status,
                or (when decoding) a body that is not JSON.
        """
        client = self._get_client()
        outcome = await self._queue.submit(
            lambda: client.request(method, url, json=body, timeout=timeout)
        )
        try:
            response: httpx.Response = outcome.unwrap()
        except httpx.HTTPError as exc:
            raise TransportError(f"{method} {url}: {exc!r}") from exc
        if not response.is_success:
            raise TransportError(
                f"{response.status_code} response from {url}",
                status_code=response.status_code,
            )
        if not decode:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise TransportError(f"Malformed JSON from {url}") from exc

    async def _rpc(
        self,
        url: str,
        method: str,
        params: dict[str, Any],
        *,
        decode: bool = True,
    ) -> Any:
        return await self._send(
            "POST",
            url,
            timeout=self._config.request_timeout,
            body=jsonrpc_body(method, params),
            decode=decode,
        )

    # ── Discovery ──────────────────────────────────────────────

    async def discover_nodes(self) -> list[StorageNode]:
        """Fetch all service nodes from the seed and replace the active list.

        Returns:
            The new active node list.

        Raises:
            DiscoveryError: The seed call failed or returned no usable node.
        """
        try:
            body = await self._rpc(
                self._config.seed_url,
                METHOD_GET_NODES,
                {"fields": _DISCOVERY_FIELDS},
            )
            states = body["result"]["service_node_states"]
            nodes = [
                self._registry.upsert(
                    hex_to_snode_address(s["service_node_pubkey"]),
                    s["public_ip"],
                    s["storage_port"],
                    swarm_id=str(s["swarm_id"]) if "swarm_id" in s else None,
                )
                for s in states
                if s.get("public_ip") != NO_ADDRESS
            ]
        except _BAD_RESPONSE as exc:
            logger.error("discovery_failed", seed=self._config.seed_url, error=str(exc))
            raise DiscoveryError(f"Error updating all nodes: {exc}") from exc

        self._stats.discoveries += 1
        self._active = nodes
        if not nodes:
            logger.error("discovery_empty", seed=self._config.seed_url)
            raise DiscoveryError("Error updating all nodes, couldn't get any valid ips")
        logger.info("discovery_complete", nodes=len(nodes), known=len(self._registry))
        return list(nodes)

    async def get_all_nodes(self) -> list[StorageNode]:
        """Active node list, discovering first if it is empty."""
        if not self._active:
            await self.discover_nodes()
        return list(self._active)

    # ── Swarm resolution ───────────────────────────────────────

    def _evict(self, node: StorageNode, reason: str) -> None:
        """Drop *node* from the active list (not from the registry)."""
        if node in self._active:
            self._active.remove(node)
        self._stats.evictions += 1
        logger.warning(
            "swarm_node_evicted",
            node=f"{node.ip}:{node.port}",
            reason=reason,
            remaining=len(self._active),
        )

    async def resolve_swarm(self, pubkey: str) -> list[StorageNode]:
        """Return the storage nodes that replicate *pubkey*.

        Queries a uniformly random active node.  A node that fails is
        evicted from the active list and another one is tried; each node
        is tried at most once per call.

        Raises:
            DiscoveryError: The active list was empty and discovery failed.
            SwarmResolutionError: Every candidate failed; the active list is
                left empty.
        """
        if not self._active:
            await self.discover_nodes()

        self._stats.swarm_lookups += 1
        tried: set[str] = set()
        attempts = 0
        while True:
            candidates = [n for n in self._active if n.pubkey not in tried]
            if not candidates:
                break
            node = self._rng.choice(candidates)
            tried.add(node.pubkey)
            attempts += 1
            self._stats.swarm_attempts += 1
            try:
                body = await self._rpc(
                    node.storage_url, METHOD_GET_SWARM, {"pubKey": pubkey}
                )
                swarm = [
                    self._registry.upsert(
                        strip_snode_suffix(s["address"]), s["ip"], s["port"]
                    )
                    for s in body["snodes"]
                    if s.get("ip") != NO_ADDRESS
                ]
            except _BAD_RESPONSE as exc:
                self._evict(node, str(exc))
                continue
            logger.debug(
                "swarm_resolved",
                pubkey=pubkey[:16],
                members=len(swarm),
                attempts=attempts,
            )
            return swarm

        logger.error(
            "swarm_resolution_exhausted", pubkey=pubkey[:16], attempts=attempts
        )
        raise SwarmResolutionError(pubkey, attempts)

    # ── Stats ──────────────────────────────────────────────────

    async def get_stats(self, node: StorageNode) -> NodeStats:
        """Fetch request counters from *node*; zeroed stats if unreachable."""
        try:
            body = await self._send(
                "GET", node.stats_url, timeout=self._config.stats_timeout
            )
            return NodeStats(
                pubkey=node.pubkey,
                ip=node.ip,
                port=node.port,
                client_store_requests=int(body.get("client_store_requests", 0)),
                client_retrieve_requests=int(body.get("client_retrieve_requests", 0)),
                reset_time=int(body.get("reset_time", 0)),
            )
        except (TransportError, AttributeError, TypeError, ValueError) as exc:
            logger.debug(
                "stats_unavailable", node=f"{node.ip}:{node.port}", error=str(exc)
            )
            return NodeStats.offline(node)

    async def get_all_stats(self) -> list[NodeStats]:
        """Stats for every active node, fetched concurrently."""
        nodes = await self.get_all_nodes()
        return list(await asyncio.gather(*(self.get_stats(n) for n in nodes)))

    # ── Store / retrieve ───────────────────────────────────────

    async def store(self, url: str, message: Message) -> bool:
        """Store *message* on the node at *url*; ``False`` on any failure.

        Any 2xx status counts as stored, whatever the body holds.
        """
        try:
            await self._rpc(url, METHOD_STORE, message.store_params(), decode=False)
        except TransportError as exc:
            logger.debug("store_failed", url=url, error=str(exc))
            return False
        return True

    async def retrieve(self, url: str, pubkey: str, last_hash: str = "") -> list[str]:
        """Fetch one page of message hashes for *pubkey* after *last_hash*.

        Raises:
            TransportError: The request failed or the response was malformed.
        """
        try:
            body = await self._rpc(
                url, METHOD_RETRIEVE, {"pubKey": pubkey, "lastHash": last_hash}
            )
            return [msg["hash"] for msg in body["messages"]]
        except TransportError as exc:
            raise TransportError(
                f"Error retrieving messages from {url}: {exc}",
                status_code=exc.status_code,
            ) from exc
        except (KeyError, TypeError) as exc:
            raise TransportError(
                f"Error retrieving messages from {url}: malformed response"
            ) from exc

    async def send_message(self, node: StorageNode, message: Message) -> bool:
        """Store *message* on *node* and record the delivery on success."""
        success = await self.store(node.storage_url, message)
        if success:
            message.mark_sent(node)
        return success

    async def retrieve_all_messages(self, node: StorageNode, pubkey: str) -> list[str]:
        """Page through every message *node* holds for *pubkey*.

        Resets the node's cursor for *pubkey*, follows it until a page
        shorter than :data:`RETRIEVE_PAGE_SIZE` arrives, and records the
        total in ``node.messages_holding``.
        """
        node.last_hash[pubkey] = ""
        hashes: list[str] = []
        while True:
            page = await self.retrieve(node.storage_url, pubkey, node.last_hash[pubkey])
            hashes.extend(page)
            if page:
                node.last_hash[pubkey] = page[-1]
            if len(page) < RETRIEVE_PAGE_SIZE:
                break
        node.messages_holding[pubkey] = len(hashes)
        return hashes

    # ── Lifecycle ──────────────────────────────────────────────

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> NetworkClient:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
