"""GateCoordinator: decides whether one candidate at a time is safe to merge.

Flow per candidate: stable builds → (bypass label → merge) → request
validation comment → wait for start → wait for result → merge.

All GateState mutation goes through one asyncio.Lock. The lock is only held
for the state update itself, never across a collaborator call, so status
snapshots stay responsive while an evaluation is blocked on the network.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Iterable
from typing import TYPE_CHECKING, TypeVar

import structlog

from mergegate.constants import (
    MERGE_ACTOR,
    STATUS_ERROR_PREFIX,
    STATUS_NOT_STABLE,
    STATUS_STABLE,
    VALIDATION_REQUEST_BODY,
)
from mergegate.gate.retry import CancellationToken, Clock, RetryPolicy, SystemClock
from mergegate.gate.state import (
    Candidate,
    ErrorRecord,
    EvaluationOutcome,
    GatePhase,
    GateState,
    GateView,
)
from mergegate.infra.errors import BuildsUnstableError, GateBusyError

if TYPE_CHECKING:
    from mergegate.ci.jenkins import BuildStabilityChecker
    from mergegate.vcs.github import VCSClient

logger = structlog.get_logger()

T = TypeVar("T")


class GateCoordinator:
    """Owns the gate's decision state and drives one evaluation at a time."""

    def __init__(
        self,
        *,
        checker: BuildStabilityChecker,
        vcs: VCSClient,
        job_names: Iterable[str],
        bypass_label: str = "",
        retry_policy: RetryPolicy | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._checker = checker
        self._vcs = vcs
        self._job_names = tuple(job_names)
        self._bypass_label = bypass_label
        self._retry_policy = retry_policy or RetryPolicy()
        self._clock = clock or SystemClock()
        self._lock = asyncio.Lock()
        self._state = GateState(job_names=self._job_names)

    @property
    def job_names(self) -> tuple[str, ...]:
        return self._job_names

    # ------------------------------------------------------------------
    # Lock-guarded state mutators
    # ------------------------------------------------------------------

    async def record_message(self, text: str) -> None:
        """Append a timestamped operator message; the oldest falls off past the limit."""
        async with self._lock:
            self._state.messages.append(f"{self._clock.now().isoformat()}: {text}")
        logger.debug("gate_message", text=text)

    async def record_error(self, exc: BaseException) -> None:
        async with self._lock:
            self._state.last_error = ErrorRecord.from_exception(exc, at=self._clock.now())

    async def set_build_status(self, job_name: str, status: str) -> None:
        async with self._lock:
            self._state.build_status[job_name] = status

    async def set_whitelist(self, users: Iterable[str]) -> None:
        async with self._lock:
            self._state.whitelist = list(users)

    async def _set_phase(self, phase: GatePhase) -> None:
        async with self._lock:
            self._state.phase = phase

    async def snapshot(self) -> GateView:
        async with self._lock:
            return self._state.view()

    # ------------------------------------------------------------------
    # Build stability
    # ------------------------------------------------------------------

    async def check_builds(self, cancel: CancellationToken | None = None) -> bool:
        """Run one sweep over every configured job; True only if all are stable.

        A failing query marks its job and the sweep unstable but never stops
        the sweep: every job is checked every time.
        """
        all_stable = True
        for job_name in self._job_names:
            await self.record_message(f"Checking build stability for {job_name}")
            try:
                stable = await self._call(self._checker.is_stable(job_name), cancel)
            except Exception as e:
                if cancel is not None and cancel.cancelled:
                    raise
                await self.record_message(f"Error checking build {job_name}: {e}")
                await self.set_build_status(job_name, f"{STATUS_ERROR_PREFIX}{e}")
                logger.warning("build_check_failed", job=job_name, error=str(e))
                all_stable = False
                continue
            await self.set_build_status(job_name, STATUS_STABLE if stable else STATUS_NOT_STABLE)
            all_stable = all_stable and stable
        return all_stable

    async def wait_for_stable_builds(self, cancel: CancellationToken | None = None) -> None:
        """Sweep until one sweep finds every job stable.

        Sleeps the policy interval between sweeps. With the default policy
        this never gives up; a bounded policy raises BuildsUnstableError.
        """
        policy = self._retry_policy
        started = self._clock.monotonic()
        attempts = 0
        while not await self.check_builds(cancel):
            attempts += 1
            elapsed = self._clock.monotonic() - started
            if not policy.should_retry(attempts, elapsed):
                raise BuildsUnstableError(
                    f"Builds not stable after {attempts} sweeps ({elapsed:.0f}s)"
                )
            await self.record_message(
                f"Not all builds stable. Checking again in {policy.interval_s:g}s"
            )
            logger.info("builds_not_stable", attempts=attempts, retry_in_s=policy.interval_s)
            await self._call(self._clock.sleep(policy.interval_s), cancel)

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    async def evaluate(
        self,
        candidate: Candidate,
        *,
        cancel: CancellationToken | None = None,
    ) -> EvaluationOutcome:
        """Decide on and, when safe, merge one candidate.

        Returns MERGED or REJECTED. Comment, validation and merge failures are
        recorded and re-raised unchanged. The current candidate is cleared on
        every exit path.
        """
        async with self._lock:
            if self._state.current_candidate is not None:
                raise GateBusyError(
                    f"Cannot evaluate #{candidate.number}: "
                    f"#{self._state.current_candidate.number} is in flight"
                )
            self._state.current_candidate = candidate
            self._state.phase = GatePhase.waiting_stable

        try:
            await self.record_message(f"Considering PR {candidate.number}")
            try:
                return await self._run(candidate, cancel)
            except Exception as e:
                await self.record_error(e)
                logger.warning(
                    "candidate_errored",
                    number=candidate.number,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise
        finally:
            async with self._lock:
                self._state.current_candidate = None
                self._state.phase = GatePhase.idle

    async def _run(
        self,
        candidate: Candidate,
        cancel: CancellationToken | None,
    ) -> EvaluationOutcome:
        number = candidate.number

        await self.wait_for_stable_builds(cancel)

        if self._bypass_label and self._vcs.has_label(candidate.labels, self._bypass_label):
            await self.record_message(f"Merging {number} since {self._bypass_label} is set")
            await self._merge(candidate, cancel)
            return EvaluationOutcome.merged

        await self._call(self._vcs.write_comment(number, VALIDATION_REQUEST_BODY), cancel)

        await self._set_phase(GatePhase.waiting_validation_start)
        await self._call(self._vcs.wait_for_validation_start(number), cancel)

        await self._set_phase(GatePhase.waiting_validation_result)
        ok = await self._call(
            self._vcs.wait_for_validation_result(
                number, exclude_contexts=[], require_success=True,
            ),
            cancel,
        )
        if not ok:
            await self.record_message(
                f"Status after build is not 'success', skipping PR {number}"
            )
            logger.info("candidate_rejected", number=number)
            return EvaluationOutcome.rejected

        await self._merge(candidate, cancel)
        return EvaluationOutcome.merged

    async def _merge(
        self,
        candidate: Candidate,
        cancel: CancellationToken | None,
    ) -> None:
        await self._set_phase(GatePhase.merging)
        await self._call(self._vcs.merge(candidate.number, MERGE_ACTOR), cancel)
        await self.record_message(f"Merged PR {candidate.number}")
        logger.info("candidate_merged", number=candidate.number, actor=MERGE_ACTOR)

    async def _call(self, awaitable: Awaitable[T], cancel: CancellationToken | None) -> T:
        if cancel is None:
            return await awaitable
        return await cancel.guard(awaitable)
