"""Tests for GitOperations and WorktreeService against real repositories"""
import pytest
import git

from worktree_kit.exceptions import BranchNotFoundError, ExternalToolFailure
from worktree_kit.services.git.operations import GitOperations, describe_git_error
from worktree_kit.services.git.worktrees import WorktreeService, parse_worktree_list


class TestGitOperationsInit:
    """Test GitOperations initialization."""

    def test_init_with_config(self, git_repo, config):
        """Remote name comes from the config."""
        ops = GitOperations(git_repo.working_dir, config)
        assert ops.repo_path == git_repo.working_dir
        assert ops.remote_name == "origin"

    def test_invalid_path(self, temp_dir):
        """Opening a non-repository fails when first used."""
        ops = GitOperations(str(temp_dir / "nonexistent"))
        with pytest.raises(ExternalToolFailure):
            ops._get_repo()


class TestBranchQueries:
    """Test read-only branch queries."""

    def test_current_branch(self, git_repo):
        """The checked-out branch is reported."""
        assert GitOperations(git_repo.working_dir).current_branch() == "main"

    def test_branch_exists(self, git_repo):
        """Local branches are found; remote refs are not assumed."""
        git_repo.create_head("feature")
        ops = GitOperations(git_repo.working_dir)
        assert ops.branch_exists("feature") is True
        assert ops.branch_exists("ghost") is False
        assert ops.remote_branch_exists("feature") is False

    def test_require_branch(self, git_repo):
        """Missing branches raise BranchNotFoundError."""
        with pytest.raises(BranchNotFoundError):
            GitOperations(git_repo.working_dir).require_branch("ghost")

    def test_uncommitted_changes_ignores_untracked(self, git_repo, temp_dir):
        """Only tracked modifications count."""
        root = temp_dir / "test_repo"
        (root / "untracked.txt").write_text("x")
        ops = GitOperations(git_repo.working_dir)
        assert ops.uncommitted_changes() == []

        (root / "README.md").write_text("changed\n")
        assert ops.uncommitted_changes() == ["README.md"]

    def test_count_commits_and_changed_files(self, git_repo, temp_dir, commit_all):
        """Ahead counts and three-dot diffs."""
        root = temp_dir / "test_repo"
        git_repo.git.checkout("-b", "feature")
        (root / "a.txt").write_text("a\n")
        commit_all(git_repo, "add a")
        git_repo.git.checkout("main")

        ops = GitOperations(git_repo.working_dir)
        assert ops.count_commits("main", "feature") == 1
        assert ops.count_commits("feature", "main") == 0
        assert ops.changed_files("main", "feature") == ["a.txt"]

    def test_changed_files_lists_both_sides_of_a_rename(self, git_repo, temp_dir, commit_all):
        """A moved file shows up as a deletion plus an addition."""
        git_repo.git.checkout("-b", "feature")
        git_repo.git.mv("test/package.json", "test/package.renamed.json")
        commit_all(git_repo, "Move test config")
        git_repo.git.checkout("main")

        changed = GitOperations(git_repo.working_dir).changed_files("main", "feature")
        assert sorted(changed) == ["test/package.json", "test/package.renamed.json"]

    def test_non_ascii_paths_are_not_quoted(self, git_repo, temp_dir, commit_all):
        """Paths come back as written, without git's C-style quoting."""
        root = temp_dir / "test_repo"
        git_repo.git.checkout("-b", "feature")
        (root / "localstack-data-café").mkdir()
        (root / "localstack-data-café" / "db").write_text("state\n")
        commit_all(git_repo, "Add data dir")
        git_repo.git.checkout("main")

        ops = GitOperations(git_repo.working_dir)
        assert ops.changed_files("main", "feature") == ["localstack-data-café/db"]

        (root / "README.md").write_text("changed\n")
        git_repo.git.add("README.md")
        assert ops.staged_files() == ["README.md"]

    def test_read_file(self, git_repo):
        """Blob content at a ref, or None when absent."""
        ops = GitOperations(git_repo.working_dir)
        assert ops.read_file("HEAD", "test/package.json") == b'{"name": "main-tests"}\n'
        assert ops.read_file("HEAD", "missing.txt") is None

    def test_command_failure_is_wrapped(self, git_repo):
        """GitCommandError surfaces as ExternalToolFailure."""
        ops = GitOperations(git_repo.working_dir)
        with pytest.raises(ExternalToolFailure) as exc_info:
            ops.count_commits("main", "no-such-branch")
        assert exc_info.value.operation == "count_commits"

    def test_describe_git_error(self):
        """Error text includes the exit status and stderr."""
        error = git.exc.GitCommandError(["git", "push"], 128, stderr="fatal: no remote")
        assert "exit 128" in describe_git_error(error, "push")
        assert "no remote" in describe_git_error(error, "push")


class TestWorktreeParsing:
    """Test porcelain parsing."""

    def test_parse_porcelain(self, temp_dir):
        """Main, branch and detached entries."""
        main = temp_dir / "main"
        main.mkdir()
        output = (
            f"worktree {main}\nHEAD aaa\nbranch refs/heads/main\n\n"
            f"worktree {temp_dir}/gone\nHEAD bbb\nbranch refs/heads/feature\n\n"
            f"worktree {main}/detached\nHEAD ccc\ndetached"
        )
        worktrees = parse_worktree_list(output)

        assert [w.branch_name for w in worktrees] == ["main", "feature", ""]
        assert worktrees[0].is_main and not worktrees[1].is_main
        assert worktrees[1].is_orphaned is True
        assert worktrees[0].is_orphaned is False

    def test_list_real_worktrees(self, git_repo, temp_dir):
        """Added worktrees show up in the listing."""
        service = WorktreeService(git_repo.working_dir)
        path = temp_dir / "wt"
        service.add_worktree(str(path), "feature", create_branch=True, start_point="main")

        branches = [w.branch_name for w in service.list_worktrees()]
        assert branches == ["main", "feature"]

        assert service.remove_worktree(str(path)) == (True, None)
        assert [w.branch_name for w in service.list_worktrees()] == ["main"]

    def test_add_existing_path_fails(self, git_repo, temp_dir):
        """git refuses to reuse a branch checked out elsewhere."""
        service = WorktreeService(git_repo.working_dir)
        with pytest.raises(ExternalToolFailure):
            service.add_worktree(str(temp_dir / "wt"), "main")
