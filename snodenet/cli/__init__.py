"""snodenet CLI — Click command group and sub-commands.

Sub-command modules, each with a single concern:

- ``network`` — ``nodes``, ``stats``, ``swarm``
- ``bench`` — ``bench`` (load test), ``pow``
- ``config`` — ``config`` (show effective settings)
"""

from __future__ import annotations

import logging
from pathlib import Path

import click
import structlog

from snodenet import __version__

_PROCESSORS = [
    structlog.stdlib.add_log_level,
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.dev.ConsoleRenderer(),
]

# Configure structlog once at CLI entry
structlog.configure(
    processors=_PROCESSORS,
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
)


def configure_logging(level: str) -> None:
    """Drop log events below *level* (e.g. ``"info"``)."""
    numeric = logging.getLevelNamesMapping().get(level.upper(), logging.INFO)
    structlog.configure(
        processors=_PROCESSORS,
        wrapper_class=structlog.make_filtering_bound_logger(numeric),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
    )


@click.group()
@click.version_option(version=__version__, prog_name="snodenet")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Config file (default: ~/.snodenet/config.toml)",
)
@click.option(
    "--insecure",
    is_flag=True,
    default=False,
    help="Skip TLS certificate verification for storage nodes",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, insecure: bool) -> None:
    """snodenet — client and load tester for swarm storage networks."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["insecure"] = insecure


# Register sub-command modules
from snodenet.cli.bench import bench, pow_cmd  # noqa: E402
from snodenet.cli.config import show_config  # noqa: E402
from snodenet.cli.network import nodes, stats, swarm  # noqa: E402

cli.add_command(nodes)
cli.add_command(stats)
cli.add_command(swarm)
cli.add_command(bench)
cli.add_command(pow_cmd)
cli.add_command(show_config)
