"""DescriptorPatcher — rewrite artifact and env slots of descriptor files.

For one ``DescriptorTarget`` the patcher loads the descriptor, applies
each ``SlotUpdate`` (skipping the ones whose value cannot be resolved),
writes the descriptor back once, and then restores the comment lines the
YAML writer dropped.

Comment restoration is a plain textual pass and is **not** idempotent:
running it twice on the same file inserts the annotation twice.  Callers
run it exactly once per write.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any

from patchforge.core.tracker import ArtifactNotTrackedError
from patchforge.gateway.descriptor_io import DescriptorIO, YamlDescriptorIO, replace_text
from patchforge.models.catalog import (
    Annotation,
    DescriptorTarget,
    SlotUpdate,
    ValueSource,
    render_template,
)
from patchforge.models.changeset import SlotOutcome, TargetOutcome
from patchforge.models.descriptor import Descriptor

logger = logging.getLogger(__name__)


class SlotNotFoundError(LookupError):
    """Raised when a descriptor has no slot with the requested logical name."""


# Errors str.format_map raises for a template it cannot render.
TEMPLATE_ERRORS = (KeyError, IndexError, AttributeError, ValueError)


def _render_annotation(
    annotation: Annotation | None, context: dict[str, str]
) -> Annotation | None:
    if annotation is None:
        return None
    return Annotation(
        anchor=render_template(annotation.anchor, context),
        text=render_template(annotation.text, context),
    )


class DescriptorPatcher:
    """Applies slot updates to descriptor files.

    Parameters
    ----------
    descriptor_io:
        Loader/writer for descriptor documents.  Defaults to YAML.
    """

    def __init__(self, descriptor_io: DescriptorIO | None = None) -> None:
        self._io = descriptor_io or YamlDescriptorIO()
        self._path_locks: dict[Path, threading.Lock] = {}
        self._path_locks_guard = threading.Lock()

    def _lock_for(self, file_path: Path) -> threading.Lock:
        key = Path(file_path).resolve()
        with self._path_locks_guard:
            return self._path_locks.setdefault(key, threading.Lock())

    # ------------------------------------------------------------------
    # Single operations
    # ------------------------------------------------------------------

    def resolve_value(
        self,
        slot_update: SlotUpdate,
        file_name: str,
        checksum_for: Callable[[str], str],
    ) -> str:
        """Return the new value for *slot_update*.

        Raises
        ------
        ArtifactNotTrackedError
            If the value is a checksum and *file_name* is not tracked.
        """
        if slot_update.source == ValueSource.FILE_NAME:
            return file_name
        return checksum_for(file_name)

    def apply_slot_update(
        self, descriptor: Descriptor, slot_update: SlotUpdate, value: str
    ) -> str:
        """Set the slot's field to *value* and return the previous value.

        Raises
        ------
        SlotNotFoundError
            If *descriptor* has no slot of that kind and name.
        """
        slot = descriptor.find_slot(slot_update.kind, slot_update.slot_name)
        if slot is None:
            raise SlotNotFoundError(
                f"No {slot_update.kind.value} slot named {slot_update.slot_name} "
                f"in descriptor {descriptor.name or '<unnamed>'}"
            )
        field = slot_update.target_field
        previous: Any = slot.get(field, "")
        slot[field] = value
        return "" if previous is None else str(previous)

    def load(self, file_path: Path) -> Descriptor:
        return self._io.load(file_path)

    def write(self, descriptor: Descriptor, file_path: Path) -> None:
        self._io.write(descriptor, file_path)

    def reinsert_annotation(self, file_path: Path, anchor: str, text: str) -> int:
        """Insert *text* as a new line after every line containing *anchor*.

        Returns the number of lines inserted.
        """
        path = Path(file_path)
        with self._lock_for(path):
            lines = path.read_text(encoding="utf-8").splitlines()
            patched: list[str] = []
            inserted = 0
            for line in lines:
                patched.append(line)
                if anchor in line:
                    patched.append(text)
                    inserted += 1
            if inserted:
                replace_text(path, "\n".join(patched) + "\n")
        if not inserted:
            logger.debug("Anchor %r not found in %s", anchor, path)
        return inserted

    # ------------------------------------------------------------------
    # Whole target
    # ------------------------------------------------------------------

    def patch_target(
        self,
        target: DescriptorTarget,
        repo_root: Path,
        context: dict[str, str],
        checksum_for: Callable[[str], str],
    ) -> TargetOutcome:
        """Patch one descriptor file; never raises.

        Parameters
        ----------
        target:
            The descriptor file and its slot updates.
        repo_root:
            Root of the working tree the target path is relative to.
        context:
            Template fields (``version``, ``build_date``, ``bundle``).
        checksum_for:
            Resolves a derived file name to its tracked checksum.
        """
        file_path = Path(repo_root) / target.file_path
        try:
            descriptor = self.load(file_path)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Cannot load descriptor %s: %s", file_path, exc)
            return TargetOutcome(file_path=target.file_path, error=f"load failed: {exc}")

        slots: list[SlotOutcome] = []
        pending: list[Annotation] = []
        for update in target.slot_updates:
            # Templates are rendered before the slot is touched
            file_name = ""
            try:
                file_name = render_template(update.file_template, context)
                annotation = _render_annotation(
                    update.annotation, {**context, "file_name": file_name}
                )
            except TEMPLATE_ERRORS as exc:
                logger.warning(
                    "Skipping %s %s in %s: bad template (%s: %s)",
                    update.kind.value, update.slot_name, target.file_path,
                    type(exc).__name__, exc,
                )
                slots.append(SlotOutcome(
                    slot_name=update.slot_name,
                    kind=update.kind.value,
                    file_name=file_name,
                    error=f"template error: {type(exc).__name__}: {exc}",
                ))
                continue

            try:
                value = self.resolve_value(update, file_name, checksum_for)
                previous = self.apply_slot_update(descriptor, update, value)
            except (ArtifactNotTrackedError, SlotNotFoundError) as exc:
                logger.warning(
                    "Skipping %s %s in %s: %s",
                    update.kind.value, update.slot_name, target.file_path, exc,
                )
                slots.append(SlotOutcome(
                    slot_name=update.slot_name,
                    kind=update.kind.value,
                    file_name=file_name,
                    error=str(exc),
                ))
                continue

            logger.debug(
                "Updating %s %s in %s from [%s] to [%s]",
                update.kind.value, update.slot_name, target.file_path, previous, value,
            )
            slots.append(SlotOutcome(
                slot_name=update.slot_name,
                kind=update.kind.value,
                file_name=file_name,
                value=value,
                previous_value=previous,
                applied=True,
            ))
            if annotation is not None:
                pending.append(annotation)

        if not any(s.applied for s in slots):
            logger.warning("No slot updated in %s, leaving file untouched", target.file_path)
            return TargetOutcome(file_path=target.file_path, slots=slots)

        problems: list[str] = []
        for raw in target.annotations:
            try:
                pending.append(_render_annotation(raw, context))
            except TEMPLATE_ERRORS as exc:
                logger.warning(
                    "Not restoring comment %r in %s: bad template (%s: %s)",
                    raw.text, target.file_path, type(exc).__name__, exc,
                )
                problems.append(f"template error: {type(exc).__name__}: {exc}")

        try:
            self.write(descriptor, file_path)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Cannot write descriptor %s: %s", file_path, exc)
            return TargetOutcome(
                file_path=target.file_path, slots=slots, error=f"write failed: {exc}"
            )

        added = 0
        try:
            for annotation in pending:
                added += self.reinsert_annotation(file_path, annotation.anchor, annotation.text)
        except OSError as exc:
            logger.warning("Cannot restore comments in %s: %s", file_path, exc)
            return TargetOutcome(
                file_path=target.file_path,
                slots=slots,
                written=True,
                annotations_added=added,
                error=f"annotation failed: {exc}",
            )

        logger.info(
            "Patched %s (%d slot(s), %d annotation line(s))",
            target.file_path, sum(s.applied for s in slots), added,
        )
        return TargetOutcome(
            file_path=target.file_path,
            slots=slots,
            written=True,
            annotations_added=added,
            error="; ".join(problems),
        )
