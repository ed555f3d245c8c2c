"""Polling primitives: retry policy, injectable clock, cancellation token.

Every wait in the gate goes through a Clock so tests can replace real
sleeps, and every awaited collaborator call can be raced against a
CancellationToken.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from collections.abc import Awaitable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol, TypeVar

from mergegate.constants import DEFAULT_POLL_INTERVAL_S
from mergegate.infra.errors import EvaluationCancelled

T = TypeVar("T")


class Clock(Protocol):
    def now(self) -> datetime: ...

    def monotonic(self) -> float: ...

    async def sleep(self, seconds: float) -> None: ...


class SystemClock:
    """Wall-clock time and real asyncio sleeps."""

    def now(self) -> datetime:
        return datetime.now(UTC)

    def monotonic(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


@dataclass(frozen=True)
class RetryPolicy:
    """Fixed-interval polling with optional attempt and deadline limits.

    The default policy retries forever: an unstable build fleet needs a
    human, not a coordinator failure.
    """

    interval_s: float = DEFAULT_POLL_INTERVAL_S
    max_attempts: int | None = None
    deadline_s: float | None = None

    def __post_init__(self) -> None:
        if self.interval_s <= 0:
            raise ValueError(f"interval_s must be > 0, got {self.interval_s}")
        if self.max_attempts is not None and self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.deadline_s is not None and self.deadline_s <= 0:
            raise ValueError(f"deadline_s must be > 0, got {self.deadline_s}")

    @property
    def unbounded(self) -> bool:
        return self.max_attempts is None and self.deadline_s is None

    def should_retry(self, attempts: int, elapsed_s: float) -> bool:
        """Whether another attempt is allowed after `attempts` failed ones."""
        if self.max_attempts is not None and attempts >= self.max_attempts:
            return False
        if self.deadline_s is not None and elapsed_s + self.interval_s > self.deadline_s:
            return False
        return True


class CancellationToken:
    """One-shot cancellation signal threaded through an evaluation."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason = ""

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "") -> None:
        self.reason = reason
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise EvaluationCancelled(self._message())

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await `awaitable`, abandoning it if the token fires first.

        Raises EvaluationCancelled when cancelled; the abandoned call is
        cancelled and awaited before returning.
        """
        task = asyncio.ensure_future(awaitable)
        if self.cancelled:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
            raise EvaluationCancelled(self._message())

        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for pending in (task, waiter):
                if not pending.done():
                    pending.cancel()
                    with contextlib.suppress(asyncio.CancelledError):
                        await pending

        if task.cancelled():
            raise EvaluationCancelled(self._message())
        return task.result()

    def _message(self) -> str:
        return f"Evaluation cancelled: {self.reason}" if self.reason else "Evaluation cancelled"
