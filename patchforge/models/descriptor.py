"""In-memory model of a descriptor (``module.yaml``) file.

The descriptor is kept as the loaded mapping so that key order and every
field this package does not understand survive a load/write cycle.  Only
the ``artifacts`` and ``envs`` lists are interpreted; each entry is a
mapping with at least a ``name`` key.
"""

from __future__ import annotations

from typing import Any

from patchforge.models.catalog import SlotKind

_SLOT_LISTS: dict[SlotKind, str] = {
    SlotKind.ARTIFACT: "artifacts",
    SlotKind.ENV: "envs",
}


class Descriptor:
    """A structured descriptor document with named artifact and env slots."""

    def __init__(self, document: dict[str, Any] | None = None) -> None:
        self.document: dict[str, Any] = document if document is not None else {}

    @property
    def name(self) -> str:
        return str(self.document.get("name", ""))

    @property
    def artifacts(self) -> list[dict[str, Any]]:
        return self.slots(SlotKind.ARTIFACT)

    @property
    def envs(self) -> list[dict[str, Any]]:
        return self.slots(SlotKind.ENV)

    def slots(self, kind: SlotKind) -> list[dict[str, Any]]:
        """Return the ordered slot list for *kind* (empty if absent)."""
        entries = self.document.get(_SLOT_LISTS[kind]) or []
        return [e for e in entries if isinstance(e, dict)]

    def find_slot(self, kind: SlotKind, name: str) -> dict[str, Any] | None:
        """Return the first slot of *kind* whose ``name`` equals *name*."""
        for slot in self.slots(kind):
            if slot.get("name") == name:
                return slot
        return None

    def __repr__(self) -> str:
        return (
            f"<Descriptor name={self.name!r} artifacts={len(self.artifacts)} "
            f"envs={len(self.envs)}>"
        )
