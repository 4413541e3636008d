"""Bounded dispatch queue — caps concurrent outbound network operations.

Every transport call made by :class:`~snodenet.p2p.client.NetworkClient`
is submitted here, so all operation kinds share one ceiling.  Callers
beyond the ceiling wait and are admitted first-come, first-served;
completion order is unconstrained.

Usage::

    queue = DispatchQueue(max_concurrent=1000)
    outcome = await queue.submit(lambda: client.post(url, json=body))
    response = outcome.unwrap()
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

import structlog

logger = structlog.get_logger()

DEFAULT_MAX_CONCURRENT = 1000

T = TypeVar("T")


@dataclass
class DispatchStats:
    """Observable dispatch queue statistics."""

    submitted: int = 0
    completed: int = 0
    failed: int = 0
    in_flight: int = 0
    waiting: int = 0
    peak_in_flight: int = 0


@dataclass(frozen=True)
class DispatchOutcome(Generic[T]):
    """Result of one dispatched task: a value or the exception it raised."""

    value: T | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the value, re-raising the task's exception if it failed."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]


class DispatchQueue:
    """FIFO-admitting concurrency limiter for async tasks.

    A task's failure is captured into its own :class:`DispatchOutcome`;
    other queued or running tasks are unaffected.  The queue neither
    cancels nor times out tasks.

    Args:
        max_concurrent: Maximum tasks executing at once.
    """

    def __init__(self, max_concurrent: int = DEFAULT_MAX_CONCURRENT) -> None:
        if max_concurrent < 1:
            raise ValueError(f"max_concurrent must be >= 1, got {max_concurrent}")
        self._max_concurrent = max_concurrent
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._stats = DispatchStats()

    @property
    def max_concurrent(self) -> int:
        return self._max_concurrent

    @property
    def stats(self) -> DispatchStats:
        return self._stats

    async def submit(self, task: Callable[[], Awaitable[T]]) -> DispatchOutcome[T]:
        """Run *task* once a slot is free and report how it ended.

        Args:
            task: Zero-argument callable returning an awaitable.

        Returns:
            :class:`DispatchOutcome` holding the value or the exception.
        """
        stats = self._stats
        stats.submitted += 1
        stats.waiting += 1
        async with self._semaphore:
            stats.waiting -= 1
            stats.in_flight += 1
            stats.peak_in_flight = max(stats.peak_in_flight, stats.in_flight)
            try:
                value = await task()
            except Exception as exc:  # noqa: BLE001
                stats.failed += 1
                logger.debug("dispatch_task_failed", error=str(exc))
                return DispatchOutcome(error=exc)
            finally:
                stats.in_flight -= 1
        stats.completed += 1
        return DispatchOutcome(value=value)

    def snapshot(self) -> dict[str, Any]:
        """Stats as a plain dict, for logging."""
        s = self._stats
        return {
            "submitted": s.submitted,
            "completed": s.completed,
            "failed": s.failed,
            "in_flight": s.in_flight,
            "waiting": s.waiting,
            "peak_in_flight": s.peak_in_flight,
        }
