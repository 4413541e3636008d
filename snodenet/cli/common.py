"""Helpers shared by CLI sub-commands."""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from dataclasses import replace as dc_replace
from typing import Any, NoReturn

import click

from snodenet.config import Config, load_config
from snodenet.errors import SnodeNetError
from snodenet.p2p.client import NetworkClient


def load_cli_config(ctx: click.Context) -> Config:
    """Load config honouring the group-level ``--config`` and ``--insecure``."""
    from snodenet.cli import configure_logging

    obj = ctx.find_root().obj or {}
    try:
        config = load_config(obj.get("config_path"))
    except SnodeNetError as exc:
        fail(exc)
    if obj.get("insecure"):
        config = dc_replace(
            config, network=dc_replace(config.network, verify_tls=False)
        )
    configure_logging(config.client.log_level)
    return config


def fail(exc: SnodeNetError) -> NoReturn:
    """Print a structured error and exit with status 1."""
    click.echo(click.style(exc.info.format(), fg="red"), err=True)
    click.echo(f"Detail: {exc}", err=True)
    raise SystemExit(1)


def run(coro: Coroutine[Any, Any, Any]) -> Any:
    """Run *coro*, turning snodenet errors into a clean CLI failure."""
    try:
        return asyncio.run(coro)
    except SnodeNetError as exc:
        fail(exc)


def make_client(config: Config) -> NetworkClient:
    """Network client for one CLI invocation."""
    return NetworkClient(config.network)
