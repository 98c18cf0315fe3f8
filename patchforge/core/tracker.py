"""ReadinessTracker — artifacts received but not yet committed.

Artifacts arrive one at a time, out of order, from concurrent workers.
The tracker keeps them keyed by file name until every member of a bundle
has a checksum.  All access goes through a single re-entrant lock; the
Acceptor holds the same lock across readiness check, changeset and purge
so a bundle is never processed twice.

None of the mutating operations raise: bad input is logged and dropped.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import date

from patchforge.models.artifacts import ArtifactRecord
from patchforge.models.catalog import BundleDefinition

logger = logging.getLogger(__name__)


class ArtifactNotTrackedError(LookupError):
    """Raised when a derived file name has no tracked, checksummed artifact."""


class ReadinessTracker:
    """Thread-safe map of in-flight artifacts.

    Parameters
    ----------
    upstream_build_date:
        Returns the build date currently referenced upstream.  Only
        artifacts strictly newer than this are accepted.
    """

    def __init__(self, upstream_build_date: Callable[[], date]) -> None:
        self._upstream_build_date = upstream_build_date
        self._elements: dict[str, ArtifactRecord] = {}
        self._lock = threading.RLock()

    @property
    def lock(self) -> threading.RLock:
        """The lock guarding every read-modify-write on this tracker."""
        return self._lock

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def record_discovered(self, artifact: ArtifactRecord) -> bool:
        """Track *artifact* if it is newer than the upstream build.

        Returns True when the artifact was stored (or overwrote an
        existing record with the same file name).
        """
        try:
            upstream = self._upstream_build_date()
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "Could not read upstream build date, dropping %s: %s",
                artifact.file_name,
                exc,
            )
            return False

        if artifact.build_date <= upstream:
            logger.debug(
                "Build date received [%s] is before or equal to the upstream build date [%s]; "
                "ignoring %s",
                artifact.build_date,
                upstream,
                artifact.file_name,
            )
            return False

        with self._lock:
            self._elements[artifact.file_name] = artifact
        logger.debug("File %s received for pull request.", artifact.file_name)
        return True

    def record_checksum_ready(self, file_name: str, checksum: str) -> bool:
        """Attach *checksum* to a tracked artifact.

        Unknown file names are ignored; they never create an entry.
        """
        if not checksum:
            logger.info("Empty checksum received for %s, ignoring.", file_name)
            return False

        with self._lock:
            record = self._elements.get(file_name)
            if record is None:
                logger.info("File %s not found on the elements map, ignoring.", file_name)
                return False
            record.checksum = checksum

        logger.debug("Checksum %s recorded for %s", checksum, file_name)
        return True

    def purge(self, prefix: str) -> int:
        """Remove every entry whose name contains *prefix*.

        Returns the number of removed entries; a second call is a no-op.
        """
        with self._lock:
            doomed = [name for name in self._elements if prefix in name]
            for name in doomed:
                del self._elements[name]
        if doomed:
            logger.debug("Purged %d element(s) matching %r: %s", len(doomed), prefix, doomed)
        return len(doomed)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def members(self, prefix: str) -> list[ArtifactRecord]:
        """Entries whose file name starts with *prefix*, sorted by name."""
        with self._lock:
            return [
                self._elements[name]
                for name in sorted(self._elements)
                if name.startswith(prefix)
            ]

    def is_bundle_ready(self, bundle: BundleDefinition) -> bool:
        """True iff exactly ``required_count`` prefixed entries exist, all checksummed."""
        members = self.members(bundle.prefix)
        return len(members) == bundle.required_count and all(
            m.has_checksum for m in members
        )

    def checksum_for(self, file_name: str) -> str:
        """Return the checksum of a tracked artifact.

        Raises
        ------
        ArtifactNotTrackedError
            If *file_name* is not tracked or has no checksum yet.
        """
        with self._lock:
            record = self._elements.get(file_name)
        if record is None or not record.has_checksum:
            raise ArtifactNotTrackedError(f"Artifact {file_name} not found in tracker")
        return record.checksum

    def get(self, file_name: str) -> ArtifactRecord | None:
        with self._lock:
            return self._elements.get(file_name)

    def snapshot(self) -> dict[str, ArtifactRecord]:
        """Copies of every tracked record, keyed by file name."""
        with self._lock:
            return {name: r.model_copy() for name, r in self._elements.items()}

    def __len__(self) -> int:
        with self._lock:
            return len(self._elements)

    def __contains__(self, file_name: object) -> bool:
        with self._lock:
            return file_name in self._elements
