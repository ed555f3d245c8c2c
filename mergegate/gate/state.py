from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

from mergegate.constants import MESSAGE_LOG_LIMIT, STATUS_UNKNOWN
from mergegate.infra.errors import MergeGateError


class GatePhase(StrEnum):
    idle = "idle"
    waiting_stable = "waiting_stable"
    waiting_validation_start = "waiting_validation_start"
    waiting_validation_result = "waiting_validation_result"
    merging = "merging"


class EvaluationOutcome(StrEnum):
    merged = "merged"
    rejected = "rejected"


@dataclass(frozen=True)
class Candidate:
    """A pending change awaiting a merge decision."""

    number: int
    labels: frozenset[str] = frozenset()
    title: str = ""


@dataclass(frozen=True)
class ErrorRecord:
    """Tagged error kept in state instead of the exception object."""

    kind: str
    message: str
    recorded_at: datetime

    @classmethod
    def from_exception(cls, exc: BaseException, *, at: datetime) -> ErrorRecord:
        kind = exc.code if isinstance(exc, MergeGateError) else type(exc).__name__
        return cls(kind=kind, message=str(exc), recorded_at=at)


@dataclass
class GateState:
    """Mutable decision state. Only GateCoordinator touches it, under its lock."""

    job_names: tuple[str, ...]
    current_candidate: Candidate | None = None
    phase: GatePhase = GatePhase.idle
    messages: deque[str] = field(default_factory=lambda: deque(maxlen=MESSAGE_LOG_LIMIT))
    last_error: ErrorRecord | None = None
    build_status: dict[str, str] = field(default_factory=dict)
    whitelist: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        # Keys are fixed to the configured job set for the life of the state.
        self.build_status = {name: STATUS_UNKNOWN for name in self.job_names}

    def view(self) -> GateView:
        return GateView(
            current_candidate=self.current_candidate,
            phase=self.phase,
            messages=tuple(self.messages),
            last_error=self.last_error,
            build_status=dict(self.build_status),
            whitelist=tuple(self.whitelist),
        )


@dataclass(frozen=True)
class GateView:
    """Point-in-time copy of GateState, safe to read without the lock."""

    current_candidate: Candidate | None
    phase: GatePhase
    messages: tuple[str, ...]
    last_error: ErrorRecord | None
    build_status: dict[str, str]
    whitelist: tuple[str, ...]
