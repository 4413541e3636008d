"""Shared test fixtures: an in-memory seed node and storage nodes."""

from __future__ import annotations

import asyncio
import json
import random
from typing import Any

import httpx
import pytest

from snodenet.config import NetworkConfig
from snodenet.p2p.client import NetworkClient
from snodenet.p2p.dispatch import DispatchQueue
from snodenet.p2p.registry import NodeRegistry
from snodenet.p2p.rpc import hex_to_snode_address

SEED_HOST = "seed.test"
SEED_URL = f"http://{SEED_HOST}/json_rpc"


def hex_key(i: int) -> str:
    """Deterministic 32-byte hex public key."""
    return f"{i:064x}"


def node_ip(i: int) -> str:
    return f"10.0.0.{i}"


class FakeNetwork:
    """Seed node plus storage nodes behind an ``httpx.MockTransport``.

    Knobs:
        states: seed ``service_node_states`` entries.
        seed_status: HTTP status the seed answers with.
        swarms: pubkey -> ``snodes`` list returned by swarm lookups.
        swarm_failures: fail this many swarm lookups (503) before answering.
        down: hosts that refuse connections.
        error_hosts: storage hosts that answer 500.
        pages: sizes of successive retrieve pages.
        node_stats: host -> get_stats body.
        latency: seconds every request takes.
        store_body: raw body of a successful store reply.
    """

    def __init__(self) -> None:
        self.states: list[dict[str, Any]] = []
        self.seed_status = 200
        self.swarms: dict[str, list[dict[str, Any]]] = {}
        self.swarm_failures = 0
        self.down: set[str] = set()
        self.error_hosts: set[str] = set()
        self.pages: list[int] = []
        self.node_stats: dict[str, dict[str, Any]] = {}
        self.latency = 0.0
        self.store_body = b"{}"
        self.requests: list[tuple[str, str, dict[str, Any]]] = []
        self.in_flight = 0
        self.peak_in_flight = 0
        self._hash_counter = 0

    def add_node(
        self, i: int, *, ip: str | None = None, port: int = 22021, swarm_id: int = 1
    ) -> dict[str, Any]:
        state = {
            "public_ip": ip or node_ip(i),
            "storage_port": port,
            "service_node_pubkey": hex_key(i),
            "swarm_id": swarm_id,
        }
        self.states.append(state)
        return state

    def set_swarm(self, pubkey: str, members: list[int]) -> None:
        self.swarms[pubkey] = [
            {
                "address": hex_to_snode_address(hex_key(i)) + ".snode",
                "ip": node_ip(i),
                "port": "22021",
            }
            for i in members
        ]

    def methods(self) -> list[str]:
        return [m for _, m, _ in self.requests]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            if self.latency:
                await asyncio.sleep(self.latency)
            return self._respond(request)
        finally:
            self.in_flight -= 1

    def _respond(self, request: httpx.Request) -> httpx.Response:
        host = request.url.host
        if host in self.down:
            raise httpx.ConnectError("connection refused", request=request)

        if request.url.path == "/get_stats/v1":
            self.requests.append((host, "get_stats", {}))
            if host in self.error_hosts:
                return httpx.Response(500)
            return httpx.Response(200, json=self.node_stats.get(host, {}))

        body = json.loads(request.content)
        method, params = body["method"], body["params"]
        self.requests.append((host, method, params))

        if host == SEED_HOST:
            if self.seed_status != 200:
                return httpx.Response(self.seed_status)
            return httpx.Response(
                200, json={"result": {"service_node_states": self.states}}
            )

        if host in self.error_hosts:
            return httpx.Response(500)

        if method == "get_snodes_for_pubkey":
            if self.swarm_failures > 0:
                self.swarm_failures -= 1
                return httpx.Response(503)
            return httpx.Response(
                200, json={"snodes": self.swarms.get(params["pubKey"], [])}
            )
        if method == "store":
            return httpx.Response(200, content=self.store_body)
        if method == "retrieve":
            size = self.pages.pop(0) if self.pages else 0
            messages = []
            for _ in range(size):
                messages.append({"hash": f"h{self._hash_counter}", "data": "x"})
                self._hash_counter += 1
            return httpx.Response(200, json={"messages": messages})
        return httpx.Response(400)

    def client(
        self,
        max_concurrent: int = 1000,
        seed: int = 0,
        registry: NodeRegistry | None = None,
    ) -> NetworkClient:
        config = NetworkConfig(seed_url=SEED_URL, max_concurrent=max_concurrent)
        return NetworkClient(
            config,
            registry=registry,
            queue=DispatchQueue(max_concurrent),
            transport=httpx.MockTransport(self.handler),
            rng=random.Random(seed),
        )


@pytest.fixture
def fake_network() -> FakeNetwork:
    """Network with five storage nodes (ids 1-5) across two swarms."""
    net = FakeNetwork()
    for i in range(1, 6):
        net.add_node(i, swarm_id=1 if i <= 3 else 2)
    return net
