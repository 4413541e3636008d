"""Per-node request statistics and their console summaries.

Storage nodes self-report lifetime request counters on ``/get_stats/v1``.
A zeroed record with ``reset_time == 0`` stands for a node that did not
answer; every aggregate here treats such a record as offline.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from snodenet.p2p.registry import StorageNode


@dataclass(frozen=True)
class NodeStats:
    """Request counters reported by one storage node."""

    pubkey: str
    ip: str
    port: int
    client_store_requests: int = 0
    client_retrieve_requests: int = 0
    reset_time: int = 0

    @property
    def is_online(self) -> bool:
        return self.reset_time != 0

    @classmethod
    def offline(cls, node: StorageNode) -> NodeStats:
        """Zero-valued record for a node that could not be queried."""
        return cls(pubkey=node.pubkey, ip=node.ip, port=node.port)


@dataclass(frozen=True)
class StatsSummary:
    """Aggregate over a set of :class:`NodeStats`."""

    total: int
    online: int
    store_requests: int
    retrieve_requests: int


@dataclass(frozen=True)
class StatsDelta:
    """Counter change for one node between two samples."""

    pubkey: str
    store_requests: int
    retrieve_requests: int
    restarted: bool


def summarize_stats(results: Iterable[NodeStats]) -> StatsSummary:
    """Count online nodes and total their request counters."""
    items = list(results)
    online = [r for r in items if r.is_online]
    return StatsSummary(
        total=len(items),
        online=len(online),
        store_requests=sum(r.client_store_requests for r in online),
        retrieve_requests=sum(r.client_retrieve_requests for r in online),
    )


def swarm_distribution(nodes: Iterable[StorageNode]) -> dict[str, int]:
    """Number of nodes per swarm id, largest swarms first."""
    counts = Counter(n.swarm_id or "?" for n in nodes)
    return dict(counts.most_common())


def diff_stats(
    prev: dict[str, NodeStats], cur: dict[str, NodeStats]
) -> list[StatsDelta]:
    """Per-node counter changes between two samples keyed by pubkey.

    Nodes missing from either sample, or offline in the current one, are
    skipped.  A changed ``reset_time`` means the node restarted and its
    counters started again from zero.
    """
    deltas: list[StatsDelta] = []
    for pubkey, after in cur.items():
        before = prev.get(pubkey)
        if before is None or not after.is_online:
            continue
        restarted = before.reset_time != after.reset_time
        base_store = 0 if restarted else before.client_store_requests
        base_retrieve = 0 if restarted else before.client_retrieve_requests
        deltas.append(
            StatsDelta(
                pubkey=pubkey,
                store_requests=after.client_store_requests - base_store,
                retrieve_requests=after.client_retrieve_requests - base_retrieve,
                restarted=restarted,
            )
        )
    return deltas


def format_lifetime_stats(results: Iterable[NodeStats]) -> str:
    """Render a per-node table of lifetime counters plus totals."""
    items = sorted(results, key=lambda r: r.client_store_requests, reverse=True)
    summary = summarize_stats(items)
    lines = [
        f"Nodes online: {summary.online}/{summary.total}",
        "Pubkey".ljust(16) + "  " + "Store".rjust(12) + "  " + "Retrieve".rjust(12),
    ]
    for r in items:
        if not r.is_online:
            continue
        lines.append(
            r.pubkey[:16].ljust(16)
            + "  "
            + f"{r.client_store_requests:,}".rjust(12)
            + "  "
            + f"{r.client_retrieve_requests:,}".rjust(12)
        )
    lines.append(
        "Total".ljust(16)
        + "  "
        + f"{summary.store_requests:,}".rjust(12)
        + "  "
        + f"{summary.retrieve_requests:,}".rjust(12)
    )
    return "\n".join(lines)


def format_stats_diff(deltas: Iterable[StatsDelta], interval: float) -> str:
    """Render counter changes with per-second rates."""
    lines = [f"Difference over {interval:g}s:"]
    for d in sorted(deltas, key=lambda d: d.store_requests, reverse=True):
        rate = d.store_requests / interval if interval > 0 else 0.0
        note = "  (restarted)" if d.restarted else ""
        lines.append(
            f"{d.pubkey[:16]}  store +{d.store_requests:,} ({rate:.1f}/s)"
            f"  retrieve +{d.retrieve_requests:,}{note}"
        )
    return "\n".join(lines)
