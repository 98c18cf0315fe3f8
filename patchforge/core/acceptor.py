"""Acceptor — entry point for artifact events.

Receives the two events emitted by the artifact store (artifact
discovered, checksum ready), keeps the ReadinessTracker current and, once
a bundle is complete, hands it to the ChangesetOrchestrator.

Both entry points may be called concurrently from download workers.
The readiness check, the whole changeset and the purge run inside the
tracker's lock, so a bundle whose last two artifacts land at the same
time is processed once.
"""

from __future__ import annotations

import logging
from collections import deque

from patchforge.catalog import BundleCatalog, default_catalog
from patchforge.config import ProdConfig
from patchforge.core.config_guard import enforce_bot_constraints
from patchforge.core.orchestrator import ChangesetOrchestrator
from patchforge.core.patcher import DescriptorPatcher
from patchforge.core.tracker import ReadinessTracker
from patchforge.gateway.descriptor_io import YamlDescriptorIO
from patchforge.gateway.review import (
    DryRunReviewClient,
    GitHubReviewClient,
    ReviewRequestClient,
)
from patchforge.gateway.vcs import GitVcsGateway
from patchforge.models.artifacts import ArtifactRecord
from patchforge.models.changeset import ChangesetResult

logger = logging.getLogger(__name__)


class Acceptor:
    """Drives bundle readiness from artifact events.

    Parameters
    ----------
    catalog:
        Bundles to evaluate on every checksum event.
    tracker:
        In-flight artifact state.
    orchestrator:
        Runs the changeset for a ready bundle.
    history_limit:
        Number of most recent changeset results kept in ``history``.
    """

    def __init__(
        self,
        catalog: BundleCatalog,
        tracker: ReadinessTracker,
        orchestrator: ChangesetOrchestrator,
        history_limit: int = 100,
    ) -> None:
        self.catalog = catalog
        self.tracker = tracker
        self.orchestrator = orchestrator
        self._history: deque[ChangesetResult] = deque(maxlen=history_limit)

    @classmethod
    def from_config(cls, config: ProdConfig | None = None) -> Acceptor:
        """Wire the acceptor to git, GitHub and YAML descriptors.

        Raises ``RequiredParameterMissingError`` if the configuration is
        incomplete.  With the GitHub bot disabled, review requests are
        only logged.
        """
        config = config or ProdConfig()
        enforce_bot_constraints(config)

        timeout = config.step_timeout_seconds or None
        vcs = GitVcsGateway(
            config.git_dir,
            default_branch=config.default_branch,
            reference_file=config.upstream_reference_file,
            author_name=config.github_username,
            author_email=config.github_email,
            timeout=timeout,
        )
        review: ReviewRequestClient
        if config.enable_github_bot:
            review = GitHubReviewClient(
                username=config.github_username,
                token=config.github_token,
                upstream_projects=config.upstream_projects,
                base_branch=config.default_branch,
                reviewers=config.reviewers,
                timeout=timeout,
            )
        else:
            review = DryRunReviewClient()

        catalog = (
            BundleCatalog.load(config.catalog_path)
            if config.catalog_path
            else default_catalog()
        )
        orchestrator = ChangesetOrchestrator(
            vcs,
            review,
            DescriptorPatcher(YamlDescriptorIO()),
            git_dir=config.git_dir,
            version=config.product_version,
            step_timeout=timeout,
        )
        return cls(catalog, ReadinessTracker(vcs.get_current_upstream_build_date), orchestrator)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def on_artifact_discovered(self, artifact: ArtifactRecord) -> bool:
        """A new build artifact was announced.  Returns True if it is tracked."""
        try:
            with self.tracker.lock:
                return self.tracker.record_discovered(artifact)
        except Exception:  # noqa: BLE001
            logger.exception("Failed to record discovered artifact %s", artifact)
            return False

    def on_checksum_ready(self, file_name: str, checksum: str) -> list[ChangesetResult]:
        """An artifact's checksum is available.

        Returns the changeset results for every bundle this event completed
        (usually none, at most one per bundle).
        """
        results: list[ChangesetResult] = []
        try:
            with self.tracker.lock:
                if not self.tracker.record_checksum_ready(file_name, checksum):
                    return results
                for bundle in self.catalog:
                    if self.tracker.is_bundle_ready(bundle):
                        results.append(self.orchestrator.execute(bundle, self.tracker))
        except Exception:  # noqa: BLE001
            logger.exception("Failed to process checksum event for %s", file_name)

        self._history.extend(results)
        return results

    @property
    def history(self) -> list[ChangesetResult]:
        """The most recent changeset results, oldest first."""
        return list(self._history)

    def drain_history(self) -> list[ChangesetResult]:
        """Return and forget the retained changeset results."""
        with self.tracker.lock:
            drained = list(self._history)
            self._history.clear()
        return drained
