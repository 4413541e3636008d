"""CLI commands: bench (load test) and pow (stamp a message by hand)."""

from __future__ import annotations

import asyncio
import time

import click
import structlog

from snodenet.account import Account
from snodenet.cli.common import fail, load_cli_config, make_client, run
from snodenet.config import Config
from snodenet.errors import SnodeNetError
from snodenet.p2p.client import NetworkClient
from snodenet.pow import calc_pow

logger = structlog.get_logger()


async def _bench_account(
    net: NetworkClient, account: Account, config: Config, messages: int
) -> list[str]:
    """Send, wait, read back; return the consistency report lines."""
    try:
        swarm = await account.get_swarm(net)
        await account.send_messages(
            net,
            swarm,
            messages,
            difficulty=config.pow.difficulty,
            ttl=config.bench.message_ttl_ms,
        )
        await asyncio.sleep(config.bench.settle_delay)
        await account.update_stats(net, swarm)
    except SnodeNetError as exc:
        logger.warning(
            "bench_account_failed", pubkey=account.pub_key[:16], error=str(exc)
        )
        return [f"Account {account.pub_key[:16]}: {exc}"]
    return account.consistency_report(swarm)


@click.command()
@click.option(
    "--accounts",
    "-a",
    type=click.IntRange(min=1),
    default=None,
    help="Accounts to create",
)
@click.option(
    "--messages",
    "-m",
    type=click.IntRange(min=1),
    default=None,
    help="Messages per account",
)
@click.pass_context
def bench(ctx: click.Context, accounts: int | None, messages: int | None) -> None:
    """Send stamped messages from fresh accounts and verify every swarm member."""
    config = load_cli_config(ctx)
    n_accounts = accounts if accounts is not None else config.bench.num_accounts
    n_messages = (
        messages if messages is not None else config.bench.messages_per_account
    )
    click.echo(
        f"Creating {n_accounts} account(s), "
        f"{n_messages} message(s) each, difficulty {config.pow.difficulty}"
    )

    async def _run() -> None:
        async with make_client(config) as net:
            # Fail fast on discovery so every account doesn't report it
            await net.get_all_nodes()
            accs = [Account() for _ in range(n_accounts)]
            reports = await asyncio.gather(
                *(_bench_account(net, a, config, n_messages) for a in accs)
            )
            peak = net.queue.stats.peak_in_flight
        for acc, lines in zip(accs, reports, strict=True):
            click.echo(f"Account {acc.pub_key[:16]}:")
            for line in lines:
                colour = "green" if "has all" in line else "red"
                click.echo("  " + click.style(line, fg=colour))
        click.echo(f"Peak concurrent requests: {peak}")

    run(_run())


@click.command(name="pow")
@click.argument("pubkey")
@click.argument("data")
@click.option("--ttl", type=int, default=None, help="Time-to-live in ms")
@click.option("--timestamp", type=int, default=None, help="Timestamp in ms")
@click.option("--difficulty", type=int, default=None, help="Override difficulty")
@click.pass_context
def pow_cmd(
    ctx: click.Context,
    pubkey: str,
    data: str,
    ttl: int | None,
    timestamp: int | None,
    difficulty: int | None,
) -> None:
    """Compute the proof-of-work stamp for a message."""
    config = load_cli_config(ctx)
    ttl = ttl if ttl is not None else config.bench.message_ttl_ms
    timestamp = timestamp if timestamp is not None else int(time.time() * 1000)
    difficulty = difficulty if difficulty is not None else config.pow.difficulty

    started = time.monotonic()
    try:
        nonce, digest = calc_pow(
            timestamp, ttl, pubkey, data, difficulty, config.pow.increment
        )
    except ValueError as exc:
        raise click.BadParameter(str(exc)) from exc
    except SnodeNetError as exc:
        fail(exc)
    elapsed = time.monotonic() - started

    click.echo(f"timestamp: {timestamp}")
    click.echo(f"ttl:       {ttl}")
    click.echo(f"nonce:     {nonce}")
    click.echo(f"hash:      {digest}")
    click.echo(f"elapsed:   {elapsed:.3f}s")
