"""patchforge data models — Pydantic v2, frozen wherever the data is configuration."""

from patchforge.models.artifacts import ArtifactRecord, StoredArtifact
from patchforge.models.catalog import (
    Annotation,
    BundleDefinition,
    DescriptorTarget,
    SlotKind,
    SlotUpdate,
    ValueSource,
)
from patchforge.models.changeset import (
    VALID_TRANSITIONS,
    ChangesetResult,
    ChangesetState,
    SlotOutcome,
    StepOutcome,
    StepStatus,
    TargetOutcome,
)
from patchforge.models.descriptor import Descriptor

__all__ = [
    # artifacts
    "ArtifactRecord",
    "StoredArtifact",
    # catalog
    "Annotation",
    "BundleDefinition",
    "DescriptorTarget",
    "SlotKind",
    "SlotUpdate",
    "ValueSource",
    # changeset
    "ChangesetState",
    "ChangesetResult",
    "SlotOutcome",
    "StepOutcome",
    "StepStatus",
    "TargetOutcome",
    "VALID_TRANSITIONS",
    # descriptor
    "Descriptor",
]
