"""Bundle catalog models — which artifacts make a bundle and which slots they patch.

A bundle is fully described by data: the artifact file names it waits
for, and for every descriptor file the slots to rewrite plus the comment
lines to restore afterwards.  Every string below is a ``str.format``
template; the available fields are ``{version}``, ``{build_date}`` and
``{bundle}``, and annotation templates additionally see ``{file_name}``.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator


class SlotKind(str, Enum):
    """Which list of a descriptor a slot lives in."""

    ARTIFACT = "artifact"
    ENV = "env"


class ValueSource(str, Enum):
    """Where the new slot value comes from."""

    CHECKSUM = "checksum"  # checksum of the tracked artifact named by the template
    FILE_NAME = "file_name"  # the rendered file name itself


# Field rewritten when a SlotUpdate does not name one explicitly.
DEFAULT_SLOT_FIELDS: dict[SlotKind, str] = {
    SlotKind.ARTIFACT: "md5",
    SlotKind.ENV: "value",
}


def render_template(template: str, context: dict[str, Any]) -> str:
    """Render a catalog template against *context*."""
    return template.format_map(context)


class Annotation(BaseModel):
    """A comment line re-inserted after every line containing ``anchor``."""

    model_config = ConfigDict(frozen=True)

    anchor: str
    text: str


class SlotUpdate(BaseModel):
    """One field-level mutation inside a descriptor file."""

    model_config = ConfigDict(frozen=True)

    kind: SlotKind = SlotKind.ARTIFACT
    slot_name: str
    file_template: str
    source: ValueSource = ValueSource.CHECKSUM
    field: str | None = None
    annotation: Annotation | None = None

    @property
    def target_field(self) -> str:
        return self.field or DEFAULT_SLOT_FIELDS[self.kind]


class DescriptorTarget(BaseModel):
    """A descriptor file and the slot updates applied to it."""

    model_config = ConfigDict(frozen=True)

    file_path: str  # relative to the repository root
    slot_updates: list[SlotUpdate]
    annotations: list[Annotation] = []


class BundleDefinition(BaseModel):
    """Immutable definition of one release bundle (one product line)."""

    model_config = ConfigDict(frozen=True)

    name: str
    prefix: str
    repository: str
    required_artifacts: list[str]
    required_count: int = 0
    targets: list[DescriptorTarget] = []
    commit_message: str = "Applying {bundle} nightly build for build date {build_date}"
    review_title: str = "Updating {bundle} artifacts based on the latest nightly build {build_date}"
    review_description: str = (
        "This PR was created automatically, please review carefully before merge, "
        "the build date is {build_date}"
    )

    @model_validator(mode="before")
    @classmethod
    def _default_required_count(cls, data: Any) -> Any:
        # required_count defaults to the number of required artifacts
        if isinstance(data, dict) and not data.get("required_count"):
            data = {**data, "required_count": len(data.get("required_artifacts") or [])}
        return data

    def context(self, version: str, build_date: str) -> dict[str, str]:
        """Template fields shared by every string of this bundle."""
        return {
            "bundle": self.name.upper(),
            "version": version,
            "build_date": build_date,
        }

    def artifact_names(self, version: str, build_date: str) -> list[str]:
        """Render the file names this bundle waits for."""
        ctx = self.context(version, build_date)
        return [render_template(t, ctx) for t in self.required_artifacts]
