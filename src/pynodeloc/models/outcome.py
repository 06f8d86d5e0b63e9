"""Per-device outcomes and pass summaries."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class OutcomeKind(StrEnum):
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    UNREACHABLE = "unreachable"
    MALFORMED = "malformed"
    INVALID = "invalid"
    READ_FAILED = "read_failed"
    WRITE_FAILED = "write_failed"
    TIMEOUT = "timeout"


_SUCCESS_KINDS = frozenset({OutcomeKind.UPDATED, OutcomeKind.UNCHANGED})
_FETCH_FAILURE_KINDS = frozenset(
    {OutcomeKind.UNREACHABLE, OutcomeKind.MALFORMED, OutcomeKind.INVALID, OutcomeKind.TIMEOUT}
)


class DeviceOutcome(BaseModel):
    """Result of reconciling one device in one pass."""

    model_config = ConfigDict(frozen=True)

    device: str
    kind: OutcomeKind
    detail: str = ""
    wrote: bool = Field(default=False, description="Whether a registry write was made.")

    @property
    def ok(self) -> bool:
        return self.kind in _SUCCESS_KINDS

    @property
    def fetch_failed(self) -> bool:
        return self.kind in _FETCH_FAILURE_KINDS


class PassResult(BaseModel):
    """Aggregate result of one fleet-wide pass."""

    model_config = ConfigDict(frozen=True)

    pass_number: int
    started_at: datetime
    finished_at: datetime
    outcomes: tuple[DeviceOutcome, ...] = ()

    @property
    def processed(self) -> int:
        return len(self.outcomes)

    @property
    def updated(self) -> int:
        return sum(1 for o in self.outcomes if o.kind == OutcomeKind.UPDATED)

    @property
    def unchanged(self) -> int:
        return sum(1 for o in self.outcomes if o.kind == OutcomeKind.UNCHANGED)

    @property
    def succeeded(self) -> int:
        return self.updated + self.unchanged

    @property
    def failed(self) -> int:
        return self.processed - self.succeeded

    @property
    def writes(self) -> int:
        return sum(1 for o in self.outcomes if o.wrote)

    @property
    def soft_failure(self) -> bool:
        """No candidates, or none of them could be reconciled."""
        return self.succeeded == 0

    def outcome_for(self, device: str) -> DeviceOutcome | None:
        for outcome in self.outcomes:
            if outcome.device == device:
                return outcome
        return None
