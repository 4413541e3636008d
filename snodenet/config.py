"""Configuration management for snodenet.

Loads settings from ~/.snodenet/config.toml with environment variable overrides.
Nothing is ever written back; the client keeps no state between runs.

Each setting declares its own limits in the field metadata: numeric fields
carry ``bounds`` (out-of-range values are clamped), enum-like strings carry
``choices`` (unknown values fall back to the default).
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import Field, dataclass, field
from dataclasses import fields as dataclass_fields
from pathlib import Path
from typing import Any, TypeVar

import structlog

from snodenet.errors import ConfigError

logger = structlog.get_logger()

T = TypeVar("T")

# Default paths
DEFAULT_CONFIG_DIR = Path.home() / ".snodenet"
DEFAULT_CONFIG_PATH = DEFAULT_CONFIG_DIR / "config.toml"

DEFAULT_SEED_URL = "http://13.238.53.205:38157/json_rpc"

ENV_PREFIX = "SNODENET"
_TRUE_WORDS = frozenset({"true", "1", "yes", "on"})


def _bounded(default: float, lo: float, hi: float) -> Any:
    return field(default=default, metadata={"bounds": (lo, hi)})


def _choice(default: str, *choices: str) -> Any:
    return field(default=default, metadata={"choices": frozenset(choices)})


@dataclass(frozen=True)
class ClientConfig:
    """Process-level settings."""

    log_level: str = _choice("info", "debug", "info", "warning", "error", "critical")


@dataclass(frozen=True)
class NetworkConfig:
    """Seed node, dispatch ceiling and per-request timeouts."""

    seed_url: str = DEFAULT_SEED_URL
    max_concurrent: int = _bounded(1000, 1, 10_000)
    request_timeout: float = _bounded(5.0, 0.1, 300.0)  # seconds, JSON-RPC calls
    stats_timeout: float = _bounded(2.0, 0.1, 300.0)  # seconds, get_stats
    verify_tls: bool = True


@dataclass(frozen=True)
class PowConfig:
    """Proof-of-work stamping settings."""

    difficulty: int = _bounded(10, 1, 1_000_000)
    increment: int = _bounded(1, 1, 1_000_000)


@dataclass(frozen=True)
class BenchConfig:
    """Load-test defaults for ``snodenet bench``."""

    num_accounts: int = _bounded(10, 1, 10_000)
    messages_per_account: int = _bounded(1, 1, 10_000)
    message_ttl_ms: int = _bounded(24 * 60 * 60 * 1000, 1000, 14 * 24 * 60 * 60 * 1000)
    # seconds between sending and retrieving
    settle_delay: float = _bounded(5.0, 0.0, 600.0)


@dataclass(frozen=True)
class Config:
    """Root configuration container."""

    client: ClientConfig = field(default_factory=ClientConfig)
    network: NetworkConfig = field(default_factory=NetworkConfig)
    pow: PowConfig = field(default_factory=PowConfig)
    bench: BenchConfig = field(default_factory=BenchConfig)


def env_var_name(section: str, key: str) -> str:
    """``SNODENET_{SECTION}_{KEY}``, e.g. ``SNODENET_POW_DIFFICULTY``."""
    return f"{ENV_PREFIX}_{section}_{key}".upper()


def _from_env(section: str, f: Field[Any]) -> object | None:
    """Typed value of the field's environment override, if set and parsable."""
    name = env_var_name(section, f.name)
    text = os.environ.get(name)
    if text is None:
        return None
    kind = type(f.default)
    if kind is bool:
        return text.strip().lower() in _TRUE_WORDS
    try:
        return kind(text.strip())
    except ValueError:
        logger.warning("config_env_unparsable", variable=name, value=text)
        return None


def _apply_limits(section: str, f: Field[Any], value: object) -> object | None:
    """Clamp to ``bounds`` or check ``choices``; ``None`` keeps the default."""
    key = f"{section}.{f.name}"
    bounds = f.metadata.get("bounds")
    if bounds and isinstance(value, int | float) and not isinstance(value, bool):
        lo, hi = bounds
        clamped = min(max(value, lo), hi)
        if clamped != value:
            logger.warning(
                "config_value_out_of_range", key=key, value=value, min=lo, max=hi
            )
            return type(value)(clamped)
        return value
    choices = f.metadata.get("choices")
    if choices:
        normalized = str(value).lower()
        if normalized not in choices:
            logger.warning(
                "config_invalid_value", key=key, value=value, allowed=sorted(choices)
            )
            return None
        return normalized
    return value


def _load_section(cls: type[T], section: str, table: object) -> T:
    """One config section from its TOML table, env overrides taking priority."""
    if not isinstance(table, dict):
        logger.warning("config_section_ignored", section=section, reason="not a table")
        table = {}
    values: dict[str, object] = {}
    for f in dataclass_fields(cls):  # type: ignore[arg-type]
        value = _from_env(section, f)
        if value is None:
            value = table.get(f.name)
        if value is None:
            continue
        value = _apply_limits(section, f, value)
        if value is not None:
            values[f.name] = value
    return cls(**values)


def load_config(config_path: Path | None = None) -> Config:
    """Load configuration from TOML file with environment variable overrides.

    Priority: env vars > config.toml > defaults.

    Args:
        config_path: Path to config file. Defaults to ~/.snodenet/config.toml.

    Returns:
        Populated Config instance.

    Raises:
        ConfigError: The file exists but is not valid TOML.
    """
    path = config_path or DEFAULT_CONFIG_PATH
    raw: dict[str, object] = {}

    if path.exists():
        try:
            with open(path, "rb") as f:
                raw = tomllib.load(f)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"{path}: {exc}") from exc
        logger.info("config_loaded", path=str(path))
    else:
        logger.debug("config_default", path=str(path), reason="file not found")

    sections = {
        s.name: _load_section(s.default_factory, s.name, raw.get(s.name, {}))  # type: ignore[misc]
        for s in dataclass_fields(Config)
    }
    return Config(**sections)  # type: ignore[arg-type]
