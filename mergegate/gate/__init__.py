"""Gate module: decision state, polling primitives, and the coordinator."""

from mergegate.gate.coordinator import GateCoordinator
from mergegate.gate.retry import CancellationToken, Clock, RetryPolicy, SystemClock
from mergegate.gate.state import (
    Candidate,
    ErrorRecord,
    EvaluationOutcome,
    GatePhase,
    GateState,
    GateView,
)

__all__ = [
    "CancellationToken",
    "Candidate",
    "Clock",
    "ErrorRecord",
    "EvaluationOutcome",
    "GateCoordinator",
    "GatePhase",
    "GateState",
    "GateView",
    "RetryPolicy",
    "SystemClock",
]
