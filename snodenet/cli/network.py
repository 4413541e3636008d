"""CLI commands: nodes, stats, swarm — inspect the storage network."""

from __future__ import annotations

import asyncio

import click

from snodenet.cli.common import load_cli_config, make_client, run
from snodenet.stats import (
    diff_stats,
    format_lifetime_stats,
    format_stats_diff,
    swarm_distribution,
)


@click.command()
@click.pass_context
def nodes(ctx: click.Context) -> None:
    """Discover storage nodes and show how they spread over swarms."""
    config = load_cli_config(ctx)

    async def _run() -> None:
        async with make_client(config) as net:
            found = await net.discover_nodes()
        click.echo(f"Storage nodes: {len(found)}")
        dist = swarm_distribution(found)
        click.echo(f"Swarms: {len(dist)}")
        for swarm_id, count in dist.items():
            click.echo(f"  {swarm_id}: {count}")

    run(_run())


@click.command()
@click.option(
    "--diff",
    "interval",
    type=float,
    default=0.0,
    help="Sample again after this many seconds and print the difference",
)
@click.pass_context
def stats(ctx: click.Context, interval: float) -> None:
    """Fetch request counters from every storage node."""
    config = load_cli_config(ctx)

    async def _run() -> None:
        async with make_client(config) as net:
            first = await net.get_all_stats()
            click.echo(format_lifetime_stats(first))
            if interval <= 0:
                return
            await asyncio.sleep(interval)
            second = await net.get_all_stats()
        prev = {s.pubkey: s for s in first}
        cur = {s.pubkey: s for s in second}
        click.echo()
        click.echo(format_stats_diff(diff_stats(prev, cur), interval))

    run(_run())


@click.command()
@click.argument("pubkey")
@click.pass_context
def swarm(ctx: click.Context, pubkey: str) -> None:
    """Show the storage nodes that replicate PUBKEY."""
    config = load_cli_config(ctx)

    async def _run() -> None:
        async with make_client(config) as net:
            members = await net.resolve_swarm(pubkey)
            evictions = net.stats.evictions
        if evictions:
            click.echo(
                click.style(f"{evictions} unreachable node(s) skipped", fg="yellow")
            )
        click.echo(f"Swarm for {pubkey[:16]}: {len(members)} node(s)")
        for node in members:
            click.echo(f"  {node.pubkey}  {node.ip}:{node.port}")

    run(_run())
