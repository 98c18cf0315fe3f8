"""Review-request gateway — open a pull request for a pushed scratch branch."""

from __future__ import annotations

import json
import logging
from typing import Protocol, runtime_checkable

from patchforge.gateway.subprocess_utils import GatewayError, run_command

logger = logging.getLogger(__name__)


class ReviewRequestError(GatewayError):
    """Raised when a review request cannot be created."""


@runtime_checkable
class ReviewRequestClient(Protocol):
    """Protocol for the review-request collaborator."""

    def submit(self, repo: str, branch: str, title: str, description: str) -> None:
        """Ask for *branch* of *repo* to be merged upstream."""
        ...


class GitHubReviewClient:
    """Opens GitHub pull requests through ``gh api``.

    The scratch branch lives on the bot's fork (``<username>/<repo>``);
    the pull request targets ``upstream_projects[repo]`` at ``base_branch``.

    Parameters
    ----------
    username:
        Owner of the fork that holds the pushed branch.
    token:
        GitHub token exported to ``gh`` as ``GH_TOKEN``.
    upstream_projects:
        Repository name -> upstream ``owner/project``.
    reviewers:
        Logins requested as reviewers; failures here are logged only.
    """

    def __init__(
        self,
        *,
        username: str,
        token: str,
        upstream_projects: dict[str, str],
        base_branch: str = "main",
        reviewers: list[str] | None = None,
        timeout: float | None = None,
    ) -> None:
        self._username = username
        self._token = token
        self._upstream_projects = dict(upstream_projects)
        self._base_branch = base_branch
        self._reviewers = list(reviewers or [])
        self._timeout = timeout

    def _gh_api(self, endpoint: str, fields: list[tuple[str, str]], *, operation: str) -> str:
        cmd = ["gh", "api", endpoint, "-X", "POST"]
        for key, value in fields:
            cmd.extend(["-f", f"{key}={value}"])
        result = run_command(
            cmd,
            operation=operation,
            timeout=self._timeout,
            env={"GH_TOKEN": self._token} if self._token else None,
            error_class=ReviewRequestError,
        )
        return result.stdout

    def submit(self, repo: str, branch: str, title: str, description: str) -> None:
        upstream = self._upstream_projects.get(repo)
        if not upstream:
            raise ReviewRequestError(f"No upstream project configured for {repo}")

        output = self._gh_api(
            f"repos/{upstream}/pulls",
            [
                ("title", title),
                ("head", f"{self._username}:{branch}"),
                ("base", self._base_branch),
                ("body", description),
            ],
            operation=f"open pull request for {repo}:{branch} against {upstream}",
        )
        try:
            pr_number = json.loads(output).get("number")
        except (json.JSONDecodeError, AttributeError):
            pr_number = None
        logger.info("Pull request #%s opened on %s for branch %s", pr_number, upstream, branch)

        if pr_number and self._reviewers:
            try:
                self._gh_api(
                    f"repos/{upstream}/pulls/{pr_number}/requested_reviewers",
                    [("reviewers[]", r) for r in self._reviewers],
                    operation=f"request reviewers on {upstream}#{pr_number}",
                )
            except ReviewRequestError as exc:
                logger.warning("%s", exc)


class DryRunReviewClient:
    """Logs review requests instead of sending them (GitHub bot disabled)."""

    def __init__(self) -> None:
        self.submitted: list[tuple[str, str, str, str]] = []

    def submit(self, repo: str, branch: str, title: str, description: str) -> None:
        self.submitted.append((repo, branch, title, description))
        logger.info("[dry-run] Would open pull request for %s:%s: %s", repo, branch, title)
