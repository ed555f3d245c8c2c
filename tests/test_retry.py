"""Tests for RetryPolicy and CancellationToken."""

from __future__ import annotations

import asyncio

import pytest

from mergegate.gate.retry import CancellationToken, RetryPolicy
from mergegate.infra.errors import EvaluationCancelled


class TestRetryPolicy:
    def test_default_is_unbounded_30s(self) -> None:
        policy = RetryPolicy()
        assert policy.interval_s == 30.0
        assert policy.unbounded
        assert policy.should_retry(10_000, 10_000_000.0)

    def test_max_attempts(self) -> None:
        policy = RetryPolicy(interval_s=1.0, max_attempts=2)
        assert policy.should_retry(1, 0.0)
        assert not policy.should_retry(2, 1.0)

    def test_deadline_counts_next_interval(self) -> None:
        policy = RetryPolicy(interval_s=30.0, deadline_s=60.0)
        assert policy.should_retry(1, 30.0)
        assert not policy.should_retry(2, 31.0)

    @pytest.mark.parametrize(
        "kwargs",
        [{"interval_s": 0}, {"max_attempts": 0}, {"deadline_s": -1.0}],
    )
    def test_invalid_values_rejected(self, kwargs) -> None:
        with pytest.raises(ValueError):
            RetryPolicy(**kwargs)


class TestCancellationToken:
    @pytest.mark.asyncio
    async def test_guard_returns_result(self) -> None:
        async def _value() -> int:
            return 42

        assert await CancellationToken().guard(_value()) == 42

    @pytest.mark.asyncio
    async def test_guard_propagates_errors(self) -> None:
        async def _fail() -> None:
            raise RuntimeError("nope")

        with pytest.raises(RuntimeError, match="nope"):
            await CancellationToken().guard(_fail())

    @pytest.mark.asyncio
    async def test_already_cancelled_never_runs_call(self) -> None:
        ran = False

        async def _call() -> None:
            nonlocal ran
            ran = True

        token = CancellationToken()
        token.cancel()

        with pytest.raises(EvaluationCancelled):
            await token.guard(_call())
        assert ran is False

    @pytest.mark.asyncio
    async def test_cancel_abandons_pending_call(self) -> None:
        token = CancellationToken()
        started = asyncio.Event()
        interrupted = False

        async def _slow() -> None:
            nonlocal interrupted
            started.set()
            try:
                await asyncio.sleep(3600)
            except asyncio.CancelledError:
                interrupted = True
                raise

        task = asyncio.create_task(token.guard(_slow()))
        await started.wait()
        token.cancel("shutdown")

        with pytest.raises(EvaluationCancelled, match="shutdown"):
            await task
        assert interrupted is True
        assert token.cancelled

    def test_raise_if_cancelled(self) -> None:
        token = CancellationToken()
        token.raise_if_cancelled()
        token.cancel()
        with pytest.raises(EvaluationCancelled):
            token.raise_if_cancelled()
