"""Version-control gateway — scratch branches, staging and commits.

``VcsGateway`` is the contract the orchestrator consumes.  ``GitVcsGateway``
implements it with the ``git`` executable; each target repository is a
clone living under ``git_dir/<repository>``.
"""

from __future__ import annotations

import logging
import re
from datetime import date
from pathlib import Path
from typing import Protocol, runtime_checkable

from patchforge.gateway.subprocess_utils import GatewayError, run_command
from patchforge.models.artifacts import parse_build_date

logger = logging.getLogger(__name__)

_BUILD_TAG = re.compile(r"redhat-(\d{8})")


class VcsError(GatewayError):
    """Raised when a git operation fails."""


@runtime_checkable
class VcsGateway(Protocol):
    """Protocol for the version-control collaborator."""

    def get_current_upstream_build_date(self) -> date:
        """Return the build date the upstream repository currently references."""
        ...

    def create_branch(self, name: str, repo: str) -> None:
        """Create and check out branch *name* in *repo*."""
        ...

    def delete_branch(self, name: str, repo: str) -> None:
        """Return *repo* to its default branch and delete *name*."""
        ...

    def stage_all(self, repo: str) -> bool:
        """Stage every change in *repo*.  Returns False on failure."""
        ...

    def commit(self, repo: str, branch: str, message: str) -> bool:
        """Commit staged changes on *branch* and publish it.  Returns False on failure."""
        ...


class GitVcsGateway:
    """``git``-backed implementation of ``VcsGateway``.

    Parameters
    ----------
    git_dir:
        Directory holding one clone per target repository.
    default_branch:
        Branch new scratch branches start from.
    reference_file:
        Descriptor (relative to *git_dir*) whose newest ``redhat-YYYYMMDD``
        tag is taken as the current upstream build date.
    author_name, author_email:
        Identity used for commits.
    remote:
        Remote that receives the scratch branch on commit.
    timeout:
        Per-command timeout in seconds.
    """

    def __init__(
        self,
        git_dir: Path,
        *,
        default_branch: str = "main",
        reference_file: str = "",
        author_name: str = "",
        author_email: str = "",
        remote: str = "origin",
        timeout: float | None = None,
    ) -> None:
        self._git_dir = Path(git_dir)
        self._default_branch = default_branch
        self._reference_file = reference_file
        self._author_name = author_name
        self._author_email = author_email
        self._remote = remote
        self._timeout = timeout

    def repo_path(self, repo: str) -> Path:
        return self._git_dir / repo

    def _git(self, repo: str, *args: str, operation: str) -> str:
        result = run_command(
            ["git", *args],
            operation=operation,
            cwd=self.repo_path(repo),
            timeout=self._timeout,
            error_class=VcsError,
        )
        return result.stdout

    # ------------------------------------------------------------------
    # Upstream state
    # ------------------------------------------------------------------

    def get_current_upstream_build_date(self) -> date:
        """Newest build tag found in the reference descriptor.

        Returns ``date.min`` when the file has no tag, so every artifact
        is considered newer.
        """
        path = self._git_dir / self._reference_file
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise VcsError(f"Cannot read upstream reference file {path}: {exc}") from exc

        dates: list[date] = []
        for match in _BUILD_TAG.finditer(text):
            try:
                dates.append(parse_build_date(match.group(1)))
            except ValueError:
                continue
        if not dates:
            logger.warning("No build tag found in %s", path)
            return date.min
        return max(dates)

    # ------------------------------------------------------------------
    # Branches
    # ------------------------------------------------------------------

    def create_branch(self, name: str, repo: str) -> None:
        self._git(repo, "checkout", self._default_branch,
                  operation=f"checkout '{self._default_branch}' in {repo}")
        self._git(repo, "pull", "--ff-only", self._remote, self._default_branch,
                  operation=f"update '{self._default_branch}' in {repo}")
        self._git(repo, "checkout", "-b", name,
                  operation=f"create branch '{name}' in {repo}")
        logger.info("Created branch %s in %s", name, repo)

    def delete_branch(self, name: str, repo: str) -> None:
        self._git(repo, "checkout", self._default_branch,
                  operation=f"checkout '{self._default_branch}' in {repo}")
        self._git(repo, "branch", "-D", name,
                  operation=f"delete branch '{name}' in {repo}")
        logger.info("Deleted branch %s in %s", name, repo)

    # ------------------------------------------------------------------
    # Changes
    # ------------------------------------------------------------------

    def stage_all(self, repo: str) -> bool:
        try:
            self._git(repo, "add", "-A", operation=f"stage all changes in {repo}")
        except VcsError as exc:
            logger.warning("%s", exc)
            return False
        return True

    def commit(self, repo: str, branch: str, message: str) -> bool:
        identity: list[str] = []
        if self._author_name:
            identity += ["-c", f"user.name={self._author_name}"]
        if self._author_email:
            identity += ["-c", f"user.email={self._author_email}"]
        try:
            self._git(repo, *identity, "commit", "-m", message,
                      operation=f"commit on '{branch}' in {repo}")
            self._git(repo, "push", "--set-upstream", self._remote, branch,
                      operation=f"push '{branch}' of {repo} to {self._remote}")
        except VcsError as exc:
            logger.warning("%s", exc)
            return False
        return True
