"""Shared test fixtures for patchforge."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from datetime import date
from pathlib import Path
from typing import Any

import pytest

from patchforge.core.orchestrator import ChangesetOrchestrator
from patchforge.core.patcher import DescriptorPatcher
from patchforge.core.tracker import ReadinessTracker
from patchforge.models.artifacts import ArtifactRecord
from patchforge.models.catalog import (
    Annotation,
    BundleDefinition,
    DescriptorTarget,
    SlotKind,
    SlotUpdate,
    ValueSource,
)

VERSION = "1.0.0"
BUILD_DATE = "20190813"
UPSTREAM_DATE = date(2019, 8, 1)

ALPHA_A = "alpha-{version}.redhat-{build_date}-a.zip"
ALPHA_B = "alpha-{version}.redhat-{build_date}-b.zip"
ALPHA_JAR = "alpha-backend-{version}.redhat-{build_date}.jar"
ALPHA_MODULE = "modules/alpha/module.yaml"

ALPHA_MODULE_YAML = """\
schema_version: 1
name: "alpha"
version: "1.0"
envs:
  - name: "ALPHA_BACKEND_JAR"
    value: "alpha-backend-1.0.0.redhat-20190801.jar"
artifacts:
  - name: "A_ZIP"
    # alpha-1.0.0.redhat-20190801-a.zip
    target: "a_distribution.zip"
    md5: "old-a"
  - name: "B_ZIP"
    target: "b_distribution.zip"
    md5: "old-b"
"""


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeVcsGateway:
    """In-memory ``VcsGateway`` that records calls and fails on request.

    ``fail`` names operations that report failure (False for stage/commit,
    an exception for the others); ``hang`` maps operation names to a
    number of seconds to sleep before returning.
    """

    def __init__(self, upstream: date = UPSTREAM_DATE) -> None:
        self.upstream = upstream
        self.fail: set[str] = set()
        self.hang: dict[str, float] = {}
        self.calls: list[tuple[Any, ...]] = []
        self.branches: set[str] = set()
        self._lock = threading.Lock()

    def _enter(self, op: str, *args: Any) -> None:
        with self._lock:
            self.calls.append((op, *args))
        if op in self.hang:
            time.sleep(self.hang[op])

    def ops(self) -> list[str]:
        return [c[0] for c in self.calls]

    def get_current_upstream_build_date(self) -> date:
        if "upstream" in self.fail:
            raise RuntimeError("upstream unavailable")
        return self.upstream

    def create_branch(self, name: str, repo: str) -> None:
        self._enter("create_branch", name, repo)
        if "create_branch" in self.fail:
            raise RuntimeError(f"branch {name} already exists")
        self.branches.add(name)

    def delete_branch(self, name: str, repo: str) -> None:
        self._enter("delete_branch", name, repo)
        if "delete_branch" in self.fail:
            raise RuntimeError(f"cannot delete {name}")
        self.branches.discard(name)

    def stage_all(self, repo: str) -> bool:
        self._enter("stage_all", repo)
        return "stage_all" not in self.fail

    def commit(self, repo: str, branch: str, message: str) -> bool:
        self._enter("commit", repo, branch, message)
        return "commit" not in self.fail


class FakeReviewClient:
    """Records submitted review requests; raises when ``fail`` is set."""

    def __init__(self) -> None:
        self.fail = False
        self.submitted: list[dict[str, str]] = []

    def submit(self, repo: str, branch: str, title: str, description: str) -> None:
        if self.fail:
            raise RuntimeError("review request rejected")
        self.submitted.append(
            {"repo": repo, "branch": branch, "title": title, "description": description}
        )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def alpha_bundle() -> BundleDefinition:
    """A two-artifact bundle patching a single descriptor."""
    return BundleDefinition(
        name="alpha",
        prefix="alpha-",
        repository="alpha-image",
        required_artifacts=[ALPHA_A, ALPHA_B],
        targets=[
            DescriptorTarget(
                file_path=ALPHA_MODULE,
                slot_updates=[
                    SlotUpdate(
                        kind=SlotKind.ENV,
                        slot_name="ALPHA_BACKEND_JAR",
                        file_template=ALPHA_JAR,
                        source=ValueSource.FILE_NAME,
                    ),
                    SlotUpdate(
                        slot_name="A_ZIP",
                        file_template=ALPHA_A,
                        annotation=Annotation(
                            anchor='target: "a_distribution.zip"',
                            text="    # {file_name}",
                        ),
                    ),
                    SlotUpdate(slot_name="B_ZIP", file_template=ALPHA_B),
                ],
            ),
        ],
    )


@pytest.fixture
def git_dir(tmp_path: Path) -> Path:
    """A git_dir holding an ``alpha-image`` working tree with one descriptor."""
    root = tmp_path / "git"
    module = root / "alpha-image" / ALPHA_MODULE
    module.parent.mkdir(parents=True)
    module.write_text(ALPHA_MODULE_YAML, encoding="utf-8")
    return root


@pytest.fixture
def alpha_module(git_dir: Path) -> Path:
    return git_dir / "alpha-image" / ALPHA_MODULE


@pytest.fixture
def vcs() -> FakeVcsGateway:
    return FakeVcsGateway()


@pytest.fixture
def review() -> FakeReviewClient:
    return FakeReviewClient()


@pytest.fixture
def tracker(vcs: FakeVcsGateway) -> ReadinessTracker:
    return ReadinessTracker(vcs.get_current_upstream_build_date)


@pytest.fixture
def orchestrator(
    vcs: FakeVcsGateway, review: FakeReviewClient, git_dir: Path
) -> ChangesetOrchestrator:
    return ChangesetOrchestrator(
        vcs,
        review,
        DescriptorPatcher(),
        git_dir=git_dir,
        version=VERSION,
        step_timeout=5.0,
    )


@pytest.fixture
def alpha_names(alpha_bundle: BundleDefinition) -> list[str]:
    """Concrete file names of the alpha bundle for ``BUILD_DATE``."""
    return alpha_bundle.artifact_names(VERSION, BUILD_DATE)


@pytest.fixture
def fill_tracker(tracker: ReadinessTracker) -> Callable[..., None]:
    """Factory fixture: discover names and (optionally) record checksums."""

    def _fill(names: list[str], with_checksums: bool = True) -> None:
        for name in names:
            tracker.record_discovered(ArtifactRecord.from_file_name(name))
            if with_checksums:
                tracker.record_checksum_ready(name, f"md5-{name}")

    return _fill
