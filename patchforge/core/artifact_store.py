"""Checksum-keyed artifact store with event push.

Storage layout: ``{base_path}/{md5}/{file_name}``.

Ingesting a file announces it to every registered ``BuildEventListener``
(``on_artifact_discovered``), copies it into the store while computing
its md5, then reports the checksum (``on_checksum_ready``).  Listener
failures are logged and never abort ingestion.
"""

from __future__ import annotations

import hashlib
import logging
import shutil
import tempfile
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from patchforge.models.artifacts import ArtifactRecord, StoredArtifact

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 1024 * 1024


@runtime_checkable
class BuildEventListener(Protocol):
    """Receives artifact events pushed by the store."""

    def on_artifact_discovered(self, artifact: ArtifactRecord) -> Any:
        ...

    def on_checksum_ready(self, file_name: str, checksum: str) -> Any:
        ...


def md5_file(path: Path) -> str:
    """Return the md5 hex digest of a file, read in chunks."""
    digest = hashlib.md5(usedforsecurity=False)
    with Path(path).open("rb") as fh:
        for chunk in iter(lambda: fh.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


class ArtifactStore:
    """md5-keyed artifact store.

    Parameters
    ----------
    base_path:
        Root directory for stored artifacts.
    """

    def __init__(self, base_path: Path) -> None:
        self._base = Path(base_path)
        self._base.mkdir(parents=True, exist_ok=True)
        self._listeners: list[BuildEventListener] = []

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def register_listener(self, listener: BuildEventListener) -> None:
        """Register *listener*; duplicate registration is ignored."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def _notify(self, event: str, *args: Any) -> None:
        for listener in list(self._listeners):
            try:
                getattr(listener, event)(*args)
            except Exception as exc:  # noqa: BLE001
                logger.error("Listener %r failed on %s: %s", listener, event, exc)

    # ------------------------------------------------------------------
    # Store
    # ------------------------------------------------------------------

    def ingest(self, source: Path, file_name: str | None = None) -> StoredArtifact:
        """Store *source* and push discovery and checksum events.

        The build date is parsed from the file name; files without a
        ``YYYYMMDD`` tag are stored but not announced.
        """
        source = Path(source)
        name = file_name or source.name

        try:
            record: ArtifactRecord | None = ArtifactRecord.from_file_name(name)
        except ValueError as exc:
            logger.info("Not announcing %s: %s", name, exc)
            record = None
        if record is not None:
            self._notify("on_artifact_discovered", record)

        stored = self.persist(source, name)
        if record is not None:
            self._notify("on_checksum_ready", name, stored.checksum)
        return stored

    def persist(self, source: Path, file_name: str | None = None) -> StoredArtifact:
        """Copy *source* into the store under its md5.  Idempotent."""
        source = Path(source)
        name = file_name or source.name
        checksum = md5_file(source)
        dest = self._base / checksum / name

        if not dest.exists():
            dest.parent.mkdir(parents=True, exist_ok=True)
            # Copy to a temp file first so a half-written file is never visible
            with tempfile.NamedTemporaryFile(dir=dest.parent, prefix=".partial-", delete=False) as tmp:
                with source.open("rb") as src:
                    shutil.copyfileobj(src, tmp)
            Path(tmp.name).replace(dest)
            logger.info("Persisted %s as %s", name, checksum)

        return StoredArtifact(
            file_name=name, checksum=checksum, size_bytes=dest.stat().st_size
        )

    # ------------------------------------------------------------------
    # Retrieve
    # ------------------------------------------------------------------

    def _entries(self, checksum: str) -> list[Path]:
        folder = self._base / checksum
        if not folder.is_dir():
            return []
        return sorted(
            p for p in folder.iterdir() if p.is_file() and not p.name.startswith(".")
        )

    def exists(self, checksum: str) -> bool:
        return bool(self._entries(checksum))

    def retrieve(self, checksum: str) -> Path:
        """Return the stored file for *checksum*.

        Raises ``FileNotFoundError`` if nothing is stored under it.
        """
        entries = self._entries(checksum)
        if not entries:
            raise FileNotFoundError(f"Artifact not found: {checksum}")
        return entries[0]

    def delete(self, checksum: str) -> bool:
        """Remove every file stored under *checksum*.  Returns False if absent."""
        folder = self._base / checksum
        if not folder.is_dir():
            return False
        shutil.rmtree(folder)
        logger.info("Deleted artifact %s", checksum)
        return True

    def list_artifacts(self) -> list[StoredArtifact]:
        artifacts: list[StoredArtifact] = []
        for folder in sorted(p for p in self._base.iterdir() if p.is_dir()):
            for path in self._entries(folder.name):
                artifacts.append(StoredArtifact(
                    file_name=path.name,
                    checksum=folder.name,
                    size_bytes=path.stat().st_size,
                ))
        return artifacts
