"""Status document served by the gateway.

Keys are declared here and do not follow internal attribute names; the
mapping from GateView happens in from_view().
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from mergegate.gate.state import Candidate, ErrorRecord, GateView


class CandidateDoc(BaseModel):
    model_config = ConfigDict(frozen=True)

    number: int
    title: str
    labels: list[str]

    @classmethod
    def from_candidate(cls, candidate: Candidate) -> CandidateDoc:
        return cls(
            number=candidate.number,
            title=candidate.title,
            labels=sorted(candidate.labels),
        )


class ErrorDoc(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: str
    message: str
    recorded_at: datetime

    @classmethod
    def from_record(cls, record: ErrorRecord) -> ErrorDoc:
        return cls(kind=record.kind, message=record.message, recorded_at=record.recorded_at)


class GateStatusDoc(BaseModel):
    """Read-only rendering of the gate state."""

    model_config = ConfigDict(frozen=True)

    current_candidate: CandidateDoc | None = None
    phase: str
    messages: list[str] = Field(default_factory=list)  # oldest first
    last_error: ErrorDoc | None = None
    build_status: dict[str, str] = Field(default_factory=dict)
    whitelist: list[str] = Field(default_factory=list)

    @classmethod
    def from_view(cls, view: GateView) -> GateStatusDoc:
        candidate = view.current_candidate
        return cls(
            current_candidate=CandidateDoc.from_candidate(candidate) if candidate else None,
            phase=view.phase.value,
            messages=list(view.messages),
            last_error=ErrorDoc.from_record(view.last_error) if view.last_error else None,
            build_status=dict(view.build_status),
            whitelist=list(view.whitelist),
        )
