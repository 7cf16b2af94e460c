"""Category-aware merge of a worktree branch back into its parent branch.

One invocation moves through these states::

    START -> PARENT_VALIDATED -> [UPDATED] -> DIFFED -> CLASSIFIED -> STAGED
          -> CONFLICTS_RESOLVED -> COMMITTED -> [PUSHED] -> DONE

ABORTED is entered from any state after START when the run stops with an
error. Precondition failures (parent mismatch, uncommitted changes, a branch
that is behind) are raised before anything is mutated. A rebase conflict is
aborted and the auto-stash restored before it is reported. A merge conflict
outside the preserve/skip categories is left in place for a human.
"""

from pathlib import Path
from typing import Dict, List, Optional, Union

from worktree_kit.config import Config
from worktree_kit.exceptions import (
    BranchBehindError,
    ExternalToolFailure,
    ParentMismatch,
    UncommittedChanges,
    UnresolvedConflict,
    WorktreeKitError,
    WorktreeNotFoundError,
)
from worktree_kit.logging_config import get_logger
from worktree_kit.models.merge import MergeOutcome, MergePlan, MergeResult, MergeState
from worktree_kit.services.classifier import ClassificationRules, build_merge_plan
from worktree_kit.services.git.operations import GitOperations
from worktree_kit.services.metadata_service import MetadataService

logger = get_logger(__name__)


def merge_commit_message(source_branch: str, target_branch: str, plan: MergePlan) -> str:
    message = f"Merge branch '{source_branch}' into {target_branch}"
    if plan.to_skip or plan.to_preserve:
        message += "\n\nExcluded worktree-specific files from merge"
    return message


class MergeOrchestrator:
    """Merges ``source`` into the currently checked-out branch."""

    def __init__(
        self,
        repo_path: Union[str, Path],
        config: Config,
        vcs: Optional[GitOperations] = None,
        metadata: Optional[MetadataService] = None,
        rules: Optional[ClassificationRules] = None,
    ):
        self.repo_path = Path(repo_path)
        self.config = config
        self.vcs = vcs or GitOperations(str(self.repo_path), config)
        self.metadata = metadata or MetadataService(self.repo_path, config.trees_dir)
        self.rules = rules or ClassificationRules.for_merge()
        self.history: List[MergeState] = []

    @property
    def state(self) -> Optional[MergeState]:
        return self.history[-1] if self.history else None

    def _advance(self, state: MergeState) -> None:
        logger.debug(f"Merge state: {state.value}")
        self.history.append(state)

    def merge(self, source_branch: str) -> MergeResult:
        """Run the full merge state machine for ``source_branch``."""
        self.history = []
        self._advance(MergeState.START)
        try:
            return self._run(source_branch)
        except WorktreeKitError:
            self._advance(MergeState.ABORTED)
            raise

    def _run(self, source_branch: str) -> MergeResult:
        vcs = self.vcs
        vcs.require_branch(source_branch)
        target_branch = vcs.current_branch()
        if source_branch == target_branch:
            raise WorktreeKitError(f"Cannot merge '{source_branch}' into itself",
                                   remediation=["git checkout <parent branch>"])

        self.validate_parent(source_branch, target_branch)
        self._advance(MergeState.PARENT_VALIDATED)

        dirty = vcs.uncommitted_changes()
        if dirty:
            raise UncommittedChanges(target_branch, dirty)

        result = MergeResult(source_branch=source_branch, target_branch=target_branch,
                             outcome=MergeOutcome.MERGED, states=self.history)
        result.commits_behind = vcs.count_commits(source_branch, target_branch)
        result.commits_ahead = vcs.count_commits(target_branch, source_branch)
        logger.info(f"'{source_branch}' is {result.commits_ahead} ahead, "
                    f"{result.commits_behind} behind '{target_branch}'")

        if result.commits_behind:
            if self.config.update_branch:
                result.warnings.extend(self.update_source(source_branch, target_branch))
                result.rebased = True
                self._advance(MergeState.UPDATED)
                result.commits_behind = 0
                result.commits_ahead = vcs.count_commits(target_branch, source_branch)
            elif not self.config.allow_outdated:
                raise BranchBehindError(source_branch, target_branch, result.commits_behind)
            else:
                logger.warning(f"Merging '{source_branch}' although it is "
                               f"{result.commits_behind} commits behind '{target_branch}'")

        changed = vcs.changed_files(target_branch, source_branch)
        self._advance(MergeState.DIFFED)

        plan = build_merge_plan(source_branch, target_branch, changed, self.rules)
        result.plan = plan
        self._advance(MergeState.CLASSIFIED)
        logger.info(f"Merge plan: {len(plan.to_merge)} to merge, {len(plan.to_skip)} skipped, "
                    f"{len(plan.to_preserve)} preserved")

        if plan.is_empty:
            result.outcome = MergeOutcome.NOTHING_TO_MERGE
            self._advance(MergeState.DONE)
            return result

        # Target versions of preserved paths, captured before the merge touches them
        preserved: Dict[str, Optional[bytes]] = {path: vcs.read_file("HEAD", path) for path in plan.to_preserve}

        try:
            self._stage(source_branch, plan, preserved, result)
        except ExternalToolFailure:
            self._abort_merge()
            raise

        if result.outcome is MergeOutcome.NOTHING_TO_MERGE:
            self._advance(MergeState.DONE)
            return result

        if self.config.push:
            self._push(target_branch, result)

        self._advance(MergeState.DONE)
        return result

    def validate_parent(self, source_branch: str, target_branch: str) -> None:
        """Fail unless ``target_branch`` is the branch the worktree was created from."""
        expected = self.metadata.expected_parent(source_branch)
        if expected is None:
            logger.warning(f"No parent branch recorded for '{source_branch}', skipping parent check")
            return
        if expected != target_branch:
            raise ParentMismatch(source_branch, expected, target_branch)

    def update_source(self, source_branch: str, target_branch: str) -> List[str]:
        """Rebase the source worktree onto the target, stashing around it.

        Returns:
            Warnings to surface (a stash that could not be re-applied)
        """
        worktree_path = self.metadata.worktree_path(source_branch)
        if not worktree_path.exists():
            raise WorktreeNotFoundError(source_branch, str(worktree_path))
        path = str(worktree_path)

        stashed = self.vcs.stash_push(path, f"worktree-kit: auto-stash before rebasing {source_branch}")

        try:
            conflicts = self.vcs.rebase(path, target_branch)
        except ExternalToolFailure:
            self._abort_rebase(path, stashed)
            raise

        if conflicts:
            self._abort_rebase(path, stashed)
            raise UnresolvedConflict(
                "rebase",
                conflicts,
                remediation=[
                    f"cd {path}",
                    f"git rebase {target_branch}",
                    "git add <resolved files>",
                    "git rebase --continue",
                    f"cd {self.repo_path}",
                    f"worktree-kit merge {source_branch}",
                ],
            )

        logger.info(f"Rebased '{source_branch}' onto '{target_branch}'")
        if stashed and not self.vcs.stash_pop(path):
            return [f"Stashed changes in {path} could not be re-applied; run 'git stash pop' there"]
        return []

    def _abort_rebase(self, path: str, stashed: bool) -> None:
        try:
            self.vcs.rebase_abort(path)
        except ExternalToolFailure as e:
            logger.debug(f"No rebase to abort in {path}: {e.message}")
        if stashed:
            self.vcs.stash_pop(path)

    def _stage(self, source_branch: str, plan: MergePlan,
               preserved: Dict[str, Optional[bytes]], result: MergeResult) -> None:
        vcs = self.vcs
        conflicts = set(vcs.merge_no_commit(source_branch))
        self._advance(MergeState.STAGED)
        if conflicts:
            logger.info(f"Merge reported {len(conflicts)} conflict(s)")

        # Restored for every changed path in these categories, conflicted or not
        for path in plan.to_preserve:
            vcs.restore_content(path, preserved.get(path))
            if path in conflicts:
                result.auto_resolved.append(path)
        for path in plan.to_skip:
            vcs.reset_to_head(path)
            if path in conflicts:
                result.auto_resolved.append(path)

        handled = set(plan.to_preserve) | set(plan.to_skip)
        remaining = sorted(conflicts - handled)
        if remaining:
            raise UnresolvedConflict(
                "merge",
                remaining,
                remediation=[
                    "git status",
                    "git add <resolved files>",
                    "git commit",
                ],
            )
        self._advance(MergeState.CONFLICTS_RESOLVED)

        staged = vcs.staged_files()
        if not staged:
            logger.info("Nothing left to commit after excluding worktree-specific files")
            vcs.merge_abort()
            result.outcome = MergeOutcome.NOTHING_TO_MERGE
            return

        result.merged_files = staged
        result.commit_sha = vcs.commit(merge_commit_message(source_branch, result.target_branch, plan))
        self._advance(MergeState.COMMITTED)
        logger.info(f"Committed merge {result.short_sha}")

    def _abort_merge(self) -> None:
        try:
            self.vcs.merge_abort()
        except ExternalToolFailure as e:
            logger.debug(f"No merge to abort: {e.message}")

    def _push(self, target_branch: str, result: MergeResult) -> None:
        remote = self.config.remote_name
        try:
            set_upstream = not self.vcs.remote_branch_exists(target_branch, remote)
            self.vcs.push(target_branch, set_upstream=set_upstream, remote=remote)
        except ExternalToolFailure as e:
            logger.warning(f"Push failed: {e.message}")
            result.warnings.append(f"Push failed, push manually: git push {remote} {target_branch}")
            return
        result.pushed = True
        self._advance(MergeState.PUSHED)
