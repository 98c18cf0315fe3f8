"""ChangesetOrchestrator — turn a ready bundle into a pull request.

Sequence for one bundle::

    IDLE -> BRANCH_CREATED -> PATCHED -> STAGED -> COMMITTED
         -> PUBLISHED -> BRANCH_DELETED

followed by an unconditional purge of the bundle's tracker entries.

Every collaborator call runs under a deadline.  A failing or timed-out
step is recorded in the ``ChangesetResult`` and logged; later steps that
depend on it are skipped.  Nothing is retried and nothing is rolled
back: a failed run can leave a branch and patched files behind in the
working tree for an operator to finish by hand.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

from patchforge.core.deadline import StepTimeoutError, call_with_deadline
from patchforge.core.patcher import DescriptorPatcher
from patchforge.core.tracker import ReadinessTracker
from patchforge.gateway.review import ReviewRequestClient
from patchforge.gateway.vcs import VcsGateway
from patchforge.models.artifacts import format_build_date
from patchforge.models.catalog import BundleDefinition, render_template
from patchforge.models.changeset import (
    VALID_TRANSITIONS,
    ChangesetResult,
    ChangesetState,
    StepOutcome,
    StepStatus,
    TargetOutcome,
)

logger = logging.getLogger(__name__)

STEP_CREATE_BRANCH = "create_branch"
STEP_PATCH = "patch"
STEP_STAGE = "stage"
STEP_COMMIT = "commit"
STEP_PUBLISH = "publish"
STEP_DELETE_BRANCH = "delete_branch"

_SEQUENCE_AFTER_BRANCH = [STEP_PATCH, STEP_STAGE, STEP_COMMIT, STEP_PUBLISH, STEP_DELETE_BRANCH]


class InvalidTransitionError(RuntimeError):
    """Raised when the orchestrator attempts an out-of-order state change."""


class _Run:
    """Mutable bookkeeping for one execution; frozen into a ChangesetResult."""

    def __init__(self, bundle: BundleDefinition, build_date: str) -> None:
        self.bundle = bundle
        self.build_date = build_date
        self.state = ChangesetState.IDLE
        self.steps: list[StepOutcome] = []
        self.targets: list[TargetOutcome] = []

    def advance(self, target: ChangesetState) -> None:
        if target not in VALID_TRANSITIONS[self.state]:
            raise InvalidTransitionError(
                f"Cannot move {self.bundle.name} changeset from "
                f"{self.state.value} to {target.value}"
            )
        logger.debug("%s changeset: %s -> %s", self.bundle.name, self.state.value, target.value)
        self.state = target

    def record(self, step: str, status: StepStatus, detail: str = "") -> StepOutcome:
        outcome = StepOutcome(step=step, status=status, detail=detail)
        self.steps.append(outcome)
        return outcome

    def skip_remaining(self, after: str, reason: str) -> None:
        names = _SEQUENCE_AFTER_BRANCH
        start = names.index(after) + 1 if after in names else 0
        for name in names[start:]:
            self.record(name, StepStatus.SKIPPED, reason)

    def skip_unrecorded(self, reason: str) -> None:
        """Mark every step that has no outcome yet as skipped."""
        done = {s.step for s in self.steps}
        for name in [STEP_CREATE_BRANCH, *_SEQUENCE_AFTER_BRANCH]:
            if name not in done:
                self.record(name, StepStatus.SKIPPED, reason)


class ChangesetOrchestrator:
    """Runs the branch → patch → commit → publish sequence for ready bundles.

    Parameters
    ----------
    vcs:
        Version-control collaborator.
    review_client:
        Review-request collaborator.
    patcher:
        Descriptor patcher.
    git_dir:
        Directory holding the target repositories' working trees.
    version:
        Product version substituted into the catalog templates.
    step_timeout:
        Deadline in seconds for each collaborator call; ``None`` disables it.
    """

    def __init__(
        self,
        vcs: VcsGateway,
        review_client: ReviewRequestClient,
        patcher: DescriptorPatcher,
        *,
        git_dir: Path,
        version: str,
        step_timeout: float | None = None,
    ) -> None:
        self._vcs = vcs
        self._review = review_client
        self._patcher = patcher
        self._git_dir = Path(git_dir)
        self._version = version
        self._step_timeout = step_timeout

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def execute(self, bundle: BundleDefinition, tracker: ReadinessTracker) -> ChangesetResult:
        """Process a ready bundle and purge its tracker entries.

        The caller is expected to hold ``tracker.lock``.  Never raises for
        collaborator or patching failures; they are reported in the result.
        """
        members = tracker.members(bundle.prefix)
        # All members of a ready bundle are assumed to share one build date.
        build_date = format_build_date(members[0].build_date) if members else ""
        run = _Run(bundle, build_date)
        logger.info("%s is ready to perform a pull request (build %s).",
                    bundle.name.upper(), build_date)

        try:
            self._run_sequence(run, tracker)
        except InvalidTransitionError:
            raise
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unexpected failure while processing %s", bundle.name)
            run.record("unexpected", StepStatus.FAILED, f"{type(exc).__name__}: {exc}")
            run.skip_unrecorded("unexpected failure")
        finally:
            purged = tracker.purge(bundle.prefix)

        result = ChangesetResult(
            bundle=bundle.name,
            build_date=build_date,
            branch=build_date,
            final_state=run.state,
            steps=run.steps,
            targets=run.targets,
            purged=purged,
        )
        self._log_summary(result)
        return result

    # ------------------------------------------------------------------
    # Sequence
    # ------------------------------------------------------------------

    def _run_sequence(self, run: _Run, tracker: ReadinessTracker) -> None:
        bundle = run.bundle
        branch = run.build_date
        repo = bundle.repository
        context = bundle.context(self._version, run.build_date)

        # 1. Branch
        if not self._call(run, STEP_CREATE_BRANCH, self._vcs.create_branch, branch, repo):
            run.skip_remaining(STEP_CREATE_BRANCH, "branch creation failed")
            return
        run.advance(ChangesetState.BRANCH_CREATED)

        # 2. Patch every target; a failing target does not stop the others
        repo_root = self._git_dir / repo
        for target in bundle.targets:
            try:
                outcome = self._patcher.patch_target(
                    target, repo_root, context, tracker.checksum_for
                )
            except Exception as exc:  # noqa: BLE001
                logger.exception("Patching %s failed", target.file_path)
                outcome = TargetOutcome(
                    file_path=target.file_path, error=f"{type(exc).__name__}: {exc}"
                )
            run.targets.append(outcome)
        failed = [t.file_path for t in run.targets if not t.ok]
        run.record(
            STEP_PATCH,
            StepStatus.FAILED if failed else StepStatus.SUCCEEDED,
            f"incomplete: {', '.join(failed)}" if failed else f"{len(run.targets)} file(s)",
        )
        run.advance(ChangesetState.PATCHED)

        # 3. Stage and commit
        staged = self._call(run, STEP_STAGE, self._vcs.stage_all, repo, expect_true=True)
        if staged:
            run.advance(ChangesetState.STAGED)
            message = render_template(bundle.commit_message, context)
            committed = self._call(
                run, STEP_COMMIT, self._vcs.commit, repo, branch, message, expect_true=True
            )
        else:
            committed = False
        if not committed:
            logger.warning(
                "Something went wrong while preparing %s for the pull request; "
                "branch %s left in place.", repo, branch,
            )
            run.skip_remaining(STEP_COMMIT if staged else STEP_STAGE, "stage/commit failed")
            return
        run.advance(ChangesetState.COMMITTED)

        # 4. Publish
        logger.debug("About to send pull request on %s on branch %s", repo, branch)
        title = render_template(bundle.review_title, context)
        description = render_template(bundle.review_description, context)
        if not self._call(run, STEP_PUBLISH, self._review.submit, repo, branch, title, description):
            run.skip_remaining(STEP_PUBLISH, "publish failed")
            return
        run.advance(ChangesetState.PUBLISHED)

        # 5. Clean up the scratch branch
        if self._call(run, STEP_DELETE_BRANCH, self._vcs.delete_branch, branch, repo):
            run.advance(ChangesetState.BRANCH_DELETED)

    def _call(
        self,
        run: _Run,
        step: str,
        fn: Callable[..., Any],
        *args: Any,
        expect_true: bool = False,
    ) -> bool:
        """Run a collaborator call under the deadline and record its outcome."""
        try:
            value = call_with_deadline(fn, *args, timeout=self._step_timeout, operation=step)
        except StepTimeoutError as exc:
            logger.warning("%s: %s", run.bundle.name, exc)
            run.record(step, StepStatus.TIMED_OUT, str(exc))
            return False
        except Exception as exc:  # noqa: BLE001
            logger.warning("%s: step %s failed: %s", run.bundle.name, step, exc)
            run.record(step, StepStatus.FAILED, str(exc))
            return False

        if expect_true and not value:
            run.record(step, StepStatus.FAILED, "collaborator reported failure")
            return False
        run.record(step, StepStatus.SUCCEEDED)
        return True

    @staticmethod
    def _log_summary(result: ChangesetResult) -> None:
        if result.fully_succeeded:
            logger.info(
                "%s changeset for %s published; %d tracker entries cleared.",
                result.bundle, result.build_date, result.purged,
            )
            return
        logger.warning(
            "%s changeset for %s stopped at %s (failed steps: %s, incomplete files: %s); "
            "%d tracker entries cleared.",
            result.bundle,
            result.build_date,
            result.final_state.value,
            [s.step for s in result.failed_steps] or "none",
            [t.file_path for t in result.failed_targets] or "none",
            result.purged,
        )
