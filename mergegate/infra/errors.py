"""Custom exception hierarchy for mergegate.

All application-specific exceptions inherit from MergeGateError,
which carries an error code recorded in the gate's last-error slot.
"""

from __future__ import annotations


class MergeGateError(Exception):
    """Base exception for all mergegate errors."""

    def __init__(self, message: str, *, code: str = "INTERNAL_ERROR") -> None:
        super().__init__(message)
        self.code = code


class CIError(MergeGateError):
    """Errors querying the build-status source (Jenkins)."""

    def __init__(self, message: str, *, code: str = "CI_ERROR") -> None:
        super().__init__(message, code=code)


class VCSError(MergeGateError):
    """Errors talking to the version-control host (comment, status, merge)."""

    def __init__(self, message: str, *, code: str = "VCS_ERROR") -> None:
        super().__init__(message, code=code)


class ValidationTimeoutError(VCSError):
    """Poll budget exhausted while waiting on a validation run."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="VALIDATION_TIMEOUT")


class GateError(MergeGateError):
    """Errors in the gate coordinator itself."""

    def __init__(self, message: str, *, code: str = "GATE_ERROR") -> None:
        super().__init__(message, code=code)


class BuildsUnstableError(GateError):
    """Retry policy gave up before the build fleet became stable."""

    def __init__(self, message: str = "Builds did not become stable") -> None:
        super().__init__(message, code="BUILDS_UNSTABLE")


class GateBusyError(GateError):
    """Raised when evaluate() is entered while another candidate is in flight."""

    def __init__(self, message: str = "Another candidate is being evaluated") -> None:
        super().__init__(message, code="GATE_BUSY")


class EvaluationCancelled(GateError):
    """The caller's cancellation token fired during an evaluation."""

    def __init__(self, message: str = "Evaluation cancelled") -> None:
        super().__init__(message, code="EVALUATION_CANCELLED")
