"""End-to-end merge tests against real repositories and worktrees"""
from pathlib import Path

import pytest
import git

from worktree_kit.core.merge_orchestrator import MergeOrchestrator
from worktree_kit.core.worktree_manager import WorktreeManager
from worktree_kit.exceptions import BranchBehindError, ParentMismatch, UnresolvedConflict
from worktree_kit.models.merge import MergeOutcome, MergeState


@pytest.fixture
def root(git_repo):
    return Path(git_repo.working_dir)


@pytest.fixture
def feature(root, config):
    """A 'feature' worktree created from main; returns its Repo."""
    WorktreeManager(root, config).create("feature")
    wt = git.Repo(root / ".trees" / "feature")
    yield wt
    wt.close()


def feature_work(wt, commit_all):
    """Edit the target-owned test config and add a script on the feature branch."""
    wt_root = Path(wt.working_dir)
    (wt_root / "test" / "package.json").write_text('{"name": "feature-tests"}\n')
    (wt_root / "scripts").mkdir()
    (wt_root / "scripts" / "b.mjs").write_text("export default 1;\n")
    return commit_all(wt, "Feature work")


class TestCleanMerge:
    """Merges that need no human input."""

    def test_preserved_file_keeps_target_content(self, git_repo, root, feature, config, commit_all):
        """The target's test config survives; new scripts land in one merge commit."""
        feature_work(feature, commit_all)

        result = MergeOrchestrator(root, config).merge("feature")

        assert result.outcome is MergeOutcome.MERGED
        assert (root / "test" / "package.json").read_text() == '{"name": "main-tests"}\n'
        assert (root / "scripts" / "b.mjs").exists()
        assert (root / ".gitignore").read_text() == ".trees/\n"

        head = git_repo.head.commit
        assert head.hexsha == result.commit_sha
        assert len(head.parents) == 2
        assert head.message.startswith("Merge branch 'feature' into main")
        assert "Excluded worktree-specific files from merge" in head.message
        assert (head.tree / "test/package.json").data_stream.read() == b'{"name": "main-tests"}\n'
        assert result.merged_files == ["scripts/b.mjs"]
        assert result.states[-1] is MergeState.DONE
        assert not (Path(git_repo.git_dir) / "MERGE_HEAD").exists()

    def test_conflict_on_preserved_path_is_auto_resolved(self, git_repo, root, feature, config, commit_all):
        """Both sides edit the test config; the target's version wins without a prompt."""
        feature_work(feature, commit_all)
        (root / "test" / "package.json").write_text('{"name": "main-v2"}\n')
        commit_all(git_repo, "Main edits test config")

        config.allow_outdated = True
        result = MergeOrchestrator(root, config).merge("feature")

        assert result.auto_resolved == ["test/package.json"]
        assert (root / "test" / "package.json").read_text() == '{"name": "main-v2"}\n'
        assert (root / "scripts" / "b.mjs").exists()
        assert len(git_repo.head.commit.parents) == 2

    def test_renamed_preserved_file_is_kept(self, git_repo, root, feature, config, commit_all):
        """Moving the test config away on the branch does not delete the target's copy."""
        feature.git.mv("test/package.json", "test/package.renamed.json")
        commit_all(feature, "Move test config")

        result = MergeOrchestrator(root, config).merge("feature")

        assert "test/package.json" in result.plan.to_preserve
        assert result.plan.to_merge == ["test/package.renamed.json"]
        assert (root / "test" / "package.json").read_text() == '{"name": "main-tests"}\n'
        head = git_repo.head.commit
        assert (head.tree / "test/package.json").data_stream.read() == b'{"name": "main-tests"}\n'
        assert result.merged_files == ["test/package.renamed.json"]

    def test_non_ascii_skip_path_is_excluded(self, git_repo, root, feature, config, commit_all):
        """Skip patterns match paths git would otherwise print quoted."""
        data_dir = Path(feature.working_dir) / "localstack-data-café"
        data_dir.mkdir()
        (data_dir / "db").write_text("state\n")
        feature_work(feature, commit_all)

        result = MergeOrchestrator(root, config).merge("feature")

        assert result.plan.to_skip == ["localstack-data-café/db"]
        assert result.merged_files == ["scripts/b.mjs"]
        with pytest.raises(KeyError):
            git_repo.head.commit.tree / "localstack-data-café/db"
        assert not (root / "localstack-data-café" / "db").exists()

    def test_only_worktree_files_changed(self, git_repo, root, feature, config, commit_all):
        """A branch whose only change is preserved reports nothing to merge."""
        before = git_repo.head.commit.hexsha
        commit_all(feature, "Worktree ignore rules")

        result = MergeOrchestrator(root, config).merge("feature")

        assert result.outcome is MergeOutcome.NOTHING_TO_MERGE
        assert git_repo.head.commit.hexsha == before
        assert not (Path(git_repo.git_dir) / "MERGE_HEAD").exists()
        assert not git_repo.is_dirty()


class TestManualConflicts:
    """Conflicts outside the preserve/skip categories."""

    def test_unresolved_conflict_left_in_place(self, git_repo, root, feature, config, commit_all):
        """Both sides edit README; the merge stops mid-way for a human."""
        (Path(feature.working_dir) / "README.md").write_text("# Feature readme\n")
        commit_all(feature, "Feature readme")
        (root / "README.md").write_text("# Main readme\n")
        commit_all(git_repo, "Main readme")

        config.allow_outdated = True
        orchestrator = MergeOrchestrator(root, config)
        with pytest.raises(UnresolvedConflict) as exc_info:
            orchestrator.merge("feature")

        assert exc_info.value.stage == "merge"
        assert exc_info.value.paths == ["README.md"]
        assert "git status" in exc_info.value.remediation
        assert orchestrator.state is MergeState.ABORTED
        assert (Path(git_repo.git_dir) / "MERGE_HEAD").exists()


class TestPreconditions:
    """Checks that run before anything is mutated."""

    def test_behind_branch_is_refused(self, git_repo, root, feature, config, commit_all):
        """Without --update or --force an outdated branch is rejected."""
        feature_work(feature, commit_all)
        (root / "docs").mkdir()
        (root / "docs" / "new.md").write_text("# New\n")
        commit_all(git_repo, "Main docs")
        before = git_repo.head.commit.hexsha

        with pytest.raises(BranchBehindError) as exc_info:
            MergeOrchestrator(root, config).merge("feature")

        assert exc_info.value.commits_behind == 1
        assert git_repo.head.commit.hexsha == before

    def test_parent_mismatch(self, git_repo, root, feature, config, commit_all):
        """Merging into a branch other than the recorded parent fails."""
        feature_work(feature, commit_all)
        git_repo.git.checkout("-b", "other")

        with pytest.raises(ParentMismatch) as exc_info:
            MergeOrchestrator(root, config).merge("feature")

        assert exc_info.value.expected_parent == "main"
        assert exc_info.value.current_branch == "other"
        assert exc_info.value.remediation[0] == "git checkout main"


class TestUpdateBranch:
    """Rebasing the source worktree before merging."""

    def test_rebase_then_merge(self, git_repo, root, feature, config, commit_all):
        """The source is rebased, local edits survive, and the merge completes."""
        feature_work(feature, commit_all)
        (root / "docs").mkdir()
        (root / "docs" / "new.md").write_text("# New\n")
        main_sha = commit_all(git_repo, "Main docs")
        notes = Path(feature.working_dir) / "notes.txt"
        notes.write_text("scratch\n")

        config.update_branch = True
        result = MergeOrchestrator(root, config).merge("feature")

        assert result.rebased is True
        assert result.commits_behind == 0
        assert MergeState.UPDATED in result.states
        assert notes.read_text() == "scratch\n"
        assert git_repo.is_ancestor(main_sha, git_repo.heads.feature.commit)
        assert (root / "scripts" / "b.mjs").exists()
        assert (root / "docs" / "new.md").exists()

    def test_rebase_conflict_is_aborted(self, git_repo, root, feature, config, commit_all):
        """A conflicting rebase is rolled back and the stash restored."""
        (Path(feature.working_dir) / "README.md").write_text("# Feature readme\n")
        feature_sha = commit_all(feature, "Feature readme")
        (root / "README.md").write_text("# Main readme\n")
        commit_all(git_repo, "Main readme")
        notes = Path(feature.working_dir) / "notes.txt"
        notes.write_text("scratch\n")

        config.update_branch = True
        with pytest.raises(UnresolvedConflict) as exc_info:
            MergeOrchestrator(root, config).merge("feature")

        assert exc_info.value.stage == "rebase"
        assert exc_info.value.paths == ["README.md"]
        assert "git rebase --continue" in exc_info.value.remediation
        assert git_repo.heads.feature.commit.hexsha == feature_sha
        assert notes.read_text() == "scratch\n"
