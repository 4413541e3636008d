"""Structured error codes and the exceptions that carry them.

Every exception raised across the public API derives from
:class:`SnodeNetError` and points at an entry of the :data:`ERRORS`
catalog, so the CLI can print a code and a resolution hint.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class ErrorCategory(StrEnum):
    """Error category classification."""

    DISCOVERY = "DISCOVERY"
    SWARM = "SWARM"
    NETWORK = "NETWORK"
    POW = "POW"
    CONFIG = "CONFIG"


@dataclass(frozen=True)
class ErrorInfo:
    """Structured error with code, message, and resolution."""

    code: str
    category: ErrorCategory
    message: str
    resolution: str

    def to_dict(self) -> dict[str, object]:
        return {
            "error": {
                "code": self.code,
                "category": self.category.value,
                "message": self.message,
                "resolution": self.resolution,
            },
        }

    def format(self) -> str:
        return f"Error [{self.code}]: {self.message}\nResolution: {self.resolution}"


# ── Pre-defined error catalog ─────────────────────────────────────

ERRORS: dict[str, ErrorInfo] = {
    "E001": ErrorInfo(
        code="SNODENET_E001",
        category=ErrorCategory.DISCOVERY,
        message="Could not obtain any valid storage nodes from the seed node",
        resolution=(
            "Check network.seed_url in config.toml and that the seed node is up"
        ),
    ),
    "E002": ErrorInfo(
        code="SNODENET_E002",
        category=ErrorCategory.SWARM,
        message="Every known storage node failed to resolve the swarm",
        resolution=("Retry later; the node list is refreshed on the next call"),
    ),
    "E003": ErrorInfo(
        code="SNODENET_E003",
        category=ErrorCategory.NETWORK,
        message="Storage node request failed",
        resolution=(
            "Check connectivity to the node. Use --insecure for self-signed certs."
        ),
    ),
    "E004": ErrorInfo(
        code="SNODENET_E004",
        category=ErrorCategory.POW,
        message="Proof-of-work nonce space exhausted",
        resolution="Lower the difficulty or use a different start nonce",
    ),
    "E005": ErrorInfo(
        code="SNODENET_E005",
        category=ErrorCategory.CONFIG,
        message="Configuration file is not valid TOML",
        resolution=(
            "Fix the syntax in config.toml. Run 'snodenet config' to review."
        ),
    ),
}


def get_error(code: str) -> ErrorInfo | None:
    """Look up an error by short code (e.g. 'E001')."""
    return ERRORS.get(code)


def format_error(code: str) -> str:
    """Format an error message by code."""
    err = ERRORS.get(code)
    if err is None:
        return f"Unknown error: {code}"
    return err.format()


# ── Exceptions ────────────────────────────────────────────────────


class SnodeNetError(Exception):
    """Base class for all snodenet failures."""

    error_code = "E003"

    @property
    def info(self) -> ErrorInfo:
        return ERRORS[self.error_code]


class DiscoveryError(SnodeNetError):
    """Raised when discovery yields no usable storage nodes."""

    error_code = "E001"


class SwarmResolutionError(SnodeNetError):
    """Raised when the active node list is exhausted during swarm lookup."""

    error_code = "E002"

    def __init__(self, pubkey: str, attempts: int) -> None:
        super().__init__(
            f"Could not resolve swarm for {pubkey[:16]} after {attempts} attempts"
        )
        self.pubkey = pubkey
        self.attempts = attempts


class TransportError(SnodeNetError):
    """Raised on connection errors, timeouts, bad status or malformed bodies."""

    error_code = "E003"

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NonceOverflowError(SnodeNetError, OverflowError):
    """Raised when a nonce increment carries past the most significant byte."""

    error_code = "E004"


class ConfigError(SnodeNetError):
    """Raised when the configuration file cannot be parsed."""

    error_code = "E005"
