"""Load-test accounts: a public key plus the messages sent to it.

An :class:`Account` resolves its swarm, sends stamped messages to every
member, and later reads them back to check each member holds all of them.
"""

from __future__ import annotations

import asyncio
import secrets
from dataclasses import dataclass, field

import structlog

from snodenet.messages import Message
from snodenet.p2p.client import NetworkClient
from snodenet.p2p.registry import StorageNode

logger = structlog.get_logger()

# Session-style public keys are a 0x05 prefix followed by 32 key bytes
_PUBKEY_PREFIX = "05"
_PUBKEY_BYTES = 32


def generate_pubkey() -> str:
    """Random session-style public key (hex)."""
    return _PUBKEY_PREFIX + secrets.token_hex(_PUBKEY_BYTES)


@dataclass
class SendReport:
    """Outcome of one :meth:`Account.send_messages` round."""

    messages: int = 0
    stores_ok: int = 0
    stores_failed: int = 0


@dataclass
class Account:
    """A recipient key and everything sent to it in this process."""

    pub_key: str = field(default_factory=generate_pubkey)
    messages: dict[str, Message] = field(default_factory=dict)

    async def get_swarm(self, client: NetworkClient) -> list[StorageNode]:
        return await client.resolve_swarm(self.pub_key)

    async def send_messages(
        self,
        client: NetworkClient,
        swarm: list[StorageNode],
        count: int = 1,
        *,
        difficulty: int,
        ttl: int,
    ) -> SendReport:
        """Stamp *count* messages and store each on every swarm member.

        Stamping runs in a worker thread so the event loop keeps serving
        other accounts' requests.
        """
        report = SendReport()
        for _ in range(count):
            message = Message.create(self.pub_key, secrets.token_hex(16), ttl)
            await asyncio.to_thread(message.stamp, difficulty)
            self.messages[message.hash] = message
            results = await asyncio.gather(
                *(client.send_message(node, message) for node in swarm)
            )
            report.messages += 1
            report.stores_ok += sum(results)
            report.stores_failed += len(results) - sum(results)

        logger.info(
            "account_messages_sent",
            pubkey=self.pub_key[:16],
            messages=report.messages,
            ok=report.stores_ok,
            failed=report.stores_failed,
        )
        return report

    async def update_stats(
        self, client: NetworkClient, swarm: list[StorageNode]
    ) -> None:
        """Retrieve every message from every swarm member.

        Updates each member's ``messages_holding`` entry for this account.
        """
        await asyncio.gather(
            *(client.retrieve_all_messages(node, self.pub_key) for node in swarm)
        )

    def consistency_report(self, swarm: list[StorageNode]) -> list[str]:
        """One line per member saying whether it holds every sent message."""
        should_have = len(self.messages)
        lines = []
        for node in swarm:
            has = node.messages_holding.get(self.pub_key, 0)
            if has != should_have:
                lines.append(
                    f"Snode {node.ip}:{node.port} should have {should_have} "
                    f"but has {has}"
                )
            else:
                lines.append(
                    f"Snode {node.ip}:{node.port} has all {should_have} messages"
                )
        return lines
