"""Shared fakes for mergegate tests.

FakeClock advances virtual time instead of sleeping, so retry loops run
instantly. ScriptedChecker replays per-job stability results sweep by sweep.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from mergegate.ci.jenkins import BuildStabilityChecker
from mergegate.gate.coordinator import GateCoordinator
from mergegate.gate.retry import RetryPolicy
from mergegate.vcs.github import VCSClient

JOBS = ("kubernetes-build", "kubernetes-e2e-gce")


class FakeClock:
    def __init__(self, start: datetime | None = None) -> None:
        self._start = start or datetime(2026, 1, 1, tzinfo=UTC)
        self.elapsed = 0.0
        self.sleeps: list[float] = []

    def now(self) -> datetime:
        return self._start + timedelta(seconds=self.elapsed)

    def monotonic(self) -> float:
        return self.elapsed

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.elapsed += seconds
        await asyncio.sleep(0)


class ScriptedChecker(BuildStabilityChecker):
    """Returns scripted results per job; an Exception instance is raised instead.

    Once a job's script runs out its last result repeats.
    """

    def __init__(self, script: dict[str, Iterable[bool | Exception]]) -> None:
        self._script = {job: list(results) for job, results in script.items()}
        self.calls: list[str] = []

    async def is_stable(self, job_name: str) -> bool:
        self.calls.append(job_name)
        results = self._script[job_name]
        result = results.pop(0) if len(results) > 1 else results[0]
        if isinstance(result, Exception):
            raise result
        return result


class BlockingChecker(BuildStabilityChecker):
    """Blocks every check until release() is called."""

    def __init__(self) -> None:
        self.entered = asyncio.Event()
        self._release = asyncio.Event()

    def release(self) -> None:
        self._release.set()

    async def is_stable(self, job_name: str) -> bool:
        self.entered.set()
        await self._release.wait()
        return True


def make_vcs(*, validation_ok: bool = True) -> MagicMock:
    """VCSClient double with the real has_label and async mock operations."""
    vcs = MagicMock(spec=VCSClient)
    vcs.has_label.side_effect = lambda labels, name: name in labels
    vcs.get_candidate = AsyncMock()
    vcs.write_comment = AsyncMock(return_value=None)
    vcs.wait_for_validation_start = AsyncMock(return_value=None)
    vcs.wait_for_validation_result = AsyncMock(return_value=validation_ok)
    vcs.merge = AsyncMock(return_value=None)
    return vcs


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def vcs() -> MagicMock:
    return make_vcs()


@pytest.fixture
def stable_checker() -> ScriptedChecker:
    return ScriptedChecker({job: [True] for job in JOBS})


@pytest.fixture
def make_coordinator(clock: FakeClock):
    def _make(
        checker: BuildStabilityChecker,
        vcs: MagicMock,
        *,
        jobs: Iterable[str] = JOBS,
        bypass_label: str = "",
        retry_policy: RetryPolicy | None = None,
    ) -> GateCoordinator:
        return GateCoordinator(
            checker=checker,
            vcs=vcs,
            job_names=jobs,
            bypass_label=bypass_label,
            retry_policy=retry_policy or RetryPolicy(interval_s=30.0),
            clock=clock,
        )

    return _make
