"""CLI command: config — show the effective configuration."""

from __future__ import annotations

from dataclasses import asdict

import click

from snodenet.cli.common import load_cli_config


@click.command("config")
@click.pass_context
def show_config(ctx: click.Context) -> None:
    """Show current configuration (file, env overrides and flags applied)."""
    config = load_cli_config(ctx)
    for section_name, section in asdict(config).items():
        click.echo(f"[{section_name}]")
        for key, value in section.items():
            click.echo(f"  {key} = {value}")
        click.echo()
