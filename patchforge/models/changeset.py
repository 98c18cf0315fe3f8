"""Changeset state machine and result models.

A changeset walks a fixed sequence of states for one ready bundle.  The
result records every step so callers can see a partial failure instead
of inferring it from the logs.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ChangesetState(str, Enum):
    """Progress of a single bundle through the patch-and-publish sequence."""

    IDLE = "idle"
    BRANCH_CREATED = "branch_created"
    PATCHED = "patched"
    STAGED = "staged"
    COMMITTED = "committed"
    PUBLISHED = "published"
    BRANCH_DELETED = "branch_deleted"


# Forward-only; BRANCH_DELETED is terminal.
VALID_TRANSITIONS: dict[ChangesetState, set[ChangesetState]] = {
    ChangesetState.IDLE: {ChangesetState.BRANCH_CREATED},
    ChangesetState.BRANCH_CREATED: {ChangesetState.PATCHED},
    ChangesetState.PATCHED: {ChangesetState.STAGED},
    ChangesetState.STAGED: {ChangesetState.COMMITTED},
    ChangesetState.COMMITTED: {ChangesetState.PUBLISHED},
    ChangesetState.PUBLISHED: {ChangesetState.BRANCH_DELETED},
    ChangesetState.BRANCH_DELETED: set(),
}


class StepStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    SKIPPED = "skipped"


class StepOutcome(BaseModel):
    """Outcome of one collaborator step (branch, stage, commit, ...)."""

    model_config = ConfigDict(frozen=True)

    step: str
    status: StepStatus
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.status == StepStatus.SUCCEEDED


class SlotOutcome(BaseModel):
    """Outcome of a single slot update inside a descriptor."""

    model_config = ConfigDict(frozen=True)

    slot_name: str
    kind: str
    file_name: str
    value: str = ""
    previous_value: str = ""
    applied: bool = False
    error: str = ""


class TargetOutcome(BaseModel):
    """Outcome of patching one descriptor file."""

    model_config = ConfigDict(frozen=True)

    file_path: str
    slots: list[SlotOutcome] = []
    written: bool = False
    annotations_added: int = 0
    error: str = ""

    @property
    def ok(self) -> bool:
        return not self.error and all(s.applied for s in self.slots)


class ChangesetResult(BaseModel):
    """Everything that happened while processing one ready bundle."""

    model_config = ConfigDict(frozen=True)

    bundle: str
    build_date: str
    branch: str
    final_state: ChangesetState
    steps: list[StepOutcome] = []
    targets: list[TargetOutcome] = []
    purged: int = 0
    finished_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @property
    def published(self) -> bool:
        return self.final_state in (
            ChangesetState.PUBLISHED,
            ChangesetState.BRANCH_DELETED,
        )

    @property
    def failed_steps(self) -> list[StepOutcome]:
        return [
            s for s in self.steps
            if s.status in (StepStatus.FAILED, StepStatus.TIMED_OUT)
        ]

    @property
    def failed_targets(self) -> list[TargetOutcome]:
        return [t for t in self.targets if not t.ok]

    @property
    def fully_succeeded(self) -> bool:
        return (
            self.final_state == ChangesetState.BRANCH_DELETED
            and not self.failed_steps
            and not self.failed_targets
        )

    def step(self, name: str) -> StepOutcome | None:
        """Return the outcome recorded for *name*, if the step ran."""
        for outcome in self.steps:
            if outcome.step == name:
                return outcome
        return None
