"""Git operations service.

The narrow set of version-control calls the merge orchestrator and the
worktree manager need. Every call either returns a defined value or raises
``ExternalToolFailure``; nothing here retries.
"""

import os
from pathlib import Path
from typing import List, Optional, Sequence, Union, TYPE_CHECKING

import git

from worktree_kit.exceptions import BranchNotFoundError, ExternalToolFailure
from worktree_kit.logging_config import get_logger

if TYPE_CHECKING:
    from worktree_kit.config import Config

logger = get_logger(__name__)


def describe_git_error(e: git.exc.GitCommandError, command: str) -> str:
    """Short ``command failed (exit N): stderr`` text for a GitCommandError."""
    stderr = (e.stderr if hasattr(e, "stderr") and e.stderr else str(e)).strip()
    status = e.status if hasattr(e, "status") else "unknown"
    if stderr:
        return f"git {command} failed (exit {status}): {stderr}"
    return f"git {command} failed with exit code {status}"


def _split_paths(output: str) -> List[str]:
    """Paths from ``-z`` output: NUL-separated and never C-quoted."""
    return [path for path in output.split("\0") if path]


# Deletions are listed as their own paths instead of being folded into renames
PATH_DIFF_ARGS = ("diff", "--name-only", "-z", "--no-renames")


class GitOperations:
    """Service for Git operations."""

    def __init__(self, repo_path: Union[str, Path], config: Union["Config", dict, None] = None):
        """Initialize the service.

        Args:
            repo_path: Path to the git repository (string path, not repo object)
            config: Configuration dictionary or Config object
        """
        self.repo_path = str(repo_path)
        self.config = config if config is not None else {}
        self.remote_name = self.config.get("remote_name", "origin") or "origin"
        logger.debug(f"Git operations initialized for {self.repo_path}")

    def _get_repo(self):
        """Get a fresh git.Repo instance.

        GitPython repos are lightweight - they don't clone, just open the existing repo.

        Returns:
            git.Repo: A fresh repository instance
        """
        try:
            return git.Repo(self.repo_path)
        except (git.exc.InvalidGitRepositoryError, git.exc.NoSuchPathError) as e:
            raise ExternalToolFailure("open_repository", message=f"Not a git repository: {e}",
                                      paths=[self.repo_path])

    def _git(self, operation: str, *args: str, cwd: Optional[str] = None,
             branch: Optional[str] = None) -> str:
        """Run ``git -C <cwd> <args>`` and wrap failures.

        ``cwd`` defaults to the repository root; worktree-scoped commands pass
        the worktree directory instead.
        """
        repo = self._get_repo()
        command = ["git", "-C", cwd or self.repo_path, *args]
        logger.debug(f"Running: {' '.join(command)}")
        try:
            return repo.git.execute(command)
        except git.exc.GitCommandError as e:
            raise ExternalToolFailure(operation, branch, describe_git_error(e, args[0]))

    # Branches and status

    def current_branch(self, path: Optional[str] = None) -> str:
        """Name of the branch checked out at ``path`` (repository root by default)."""
        name = self._git("current_branch", "rev-parse", "--abbrev-ref", "HEAD", cwd=path)
        if name == "HEAD":
            raise ExternalToolFailure("current_branch", message="HEAD is detached")
        return name

    def branch_exists(self, branch_name: str) -> bool:
        """Check whether a local branch exists."""
        repo = self._get_repo()
        return branch_name in [head.name for head in repo.heads]

    def remote_branch_exists(self, branch_name: str, remote: Optional[str] = None) -> bool:
        """Check for ``refs/remotes/<remote>/<branch>`` without contacting the remote."""
        remote = remote or self.remote_name
        try:
            self._get_repo().git.rev_parse("--verify", "--quiet", f"refs/remotes/{remote}/{branch_name}")
            return True
        except git.exc.GitCommandError:
            return False

    def is_repository(self) -> bool:
        """True if ``repo_path`` is the top of a git repository or worktree."""
        try:
            self._get_repo().close()
        except ExternalToolFailure:
            return False
        return True

    def remote_url(self, remote: Optional[str] = None) -> Optional[str]:
        """Configured URL of ``remote``, or None when there is no such remote."""
        remote = remote or self.remote_name
        try:
            return self._get_repo().git.remote("get-url", remote).strip() or None
        except git.exc.GitCommandError:
            return None

    def require_branch(self, branch_name: str) -> None:
        if not self.branch_exists(branch_name):
            raise BranchNotFoundError(branch_name)

    def uncommitted_changes(self, path: Optional[str] = None) -> List[str]:
        """Tracked files with staged or unstaged modifications. Untracked files are ignored."""
        return _split_paths(self._git("status", *PATH_DIFF_ARGS, "HEAD", cwd=path))

    def count_commits(self, from_ref: str, to_ref: str) -> int:
        """Number of commits reachable from ``to_ref`` but not from ``from_ref``."""
        output = self._git("count_commits", "rev-list", "--count", f"{from_ref}..{to_ref}")
        return int(output or 0)

    # Worktree-side operations (rebase support)

    def stash_push(self, path: str, message: str) -> bool:
        """Stash uncommitted changes in ``path``.

        Returns:
            bool: True if changes were stashed, False if nothing to stash
        """
        status = self._git("stash", "status", "--porcelain", cwd=path)
        if not status.strip():
            logger.debug(f"No uncommitted changes to stash in {path}")
            return False
        self._git("stash", "stash", "push", "-u", "-m", message, cwd=path)
        logger.info(f"Stashed uncommitted changes in {path}")
        return True

    def stash_pop(self, path: str) -> bool:
        """Restore the most recent stash in ``path``.

        Returns:
            bool: False if the pop hit conflicts (the stash is kept by git)
        """
        try:
            self._git("stash_pop", "stash", "pop", cwd=path)
        except ExternalToolFailure as e:
            logger.warning(f"Could not restore stashed changes in {path}: {e.message}")
            logger.warning("Your changes are still in the stash. Run 'git stash pop' manually.")
            return False
        logger.info(f"Restored stashed changes in {path}")
        return True

    def rebase(self, path: str, onto: str) -> List[str]:
        """Rebase the branch checked out at ``path`` onto ``onto``.

        Returns:
            Conflicted paths; empty on success. The rebase is left in progress
            when conflicts are returned.
        """
        try:
            self._git("rebase", "rebase", onto, cwd=path, branch=onto)
        except ExternalToolFailure:
            conflicts = self.conflicted_files(path)
            if conflicts:
                return conflicts
            raise
        return []

    def rebase_abort(self, path: str) -> None:
        self._git("rebase_abort", "rebase", "--abort", cwd=path)

    # Merge operations (run in the repository root)

    def changed_files(self, target: str, source: str) -> List[str]:
        """Paths changed on ``source`` since it diverged from ``target``."""
        return _split_paths(self._git("diff", *PATH_DIFF_ARGS, f"{target}...{source}", branch=source))

    def merge_no_commit(self, source: str) -> List[str]:
        """Start a no-commit, no-fast-forward merge of ``source``.

        Returns:
            Conflicted paths; empty when git staged the merge cleanly
        """
        try:
            self._git("merge", "merge", "--no-commit", "--no-ff", source, branch=source)
        except ExternalToolFailure:
            conflicts = self.conflicted_files()
            if conflicts:
                return conflicts
            raise
        return []

    def conflicted_files(self, path: Optional[str] = None) -> List[str]:
        return _split_paths(self._git("diff", *PATH_DIFF_ARGS, "--diff-filter=U", cwd=path))

    def read_file(self, ref: str, path: str) -> Optional[bytes]:
        """Content of ``path`` at ``ref``, or None if it does not exist there."""
        repo = self._get_repo()
        try:
            blob = repo.commit(ref).tree / path
        except KeyError:
            return None
        except (git.exc.BadName, ValueError) as e:
            raise ExternalToolFailure("read_file", ref, str(e), paths=[path])
        return blob.data_stream.read()

    def restore_content(self, path: str, content: Optional[bytes]) -> None:
        """Write ``content`` to ``path`` and stage it; None removes the path."""
        full_path = Path(self.repo_path) / path
        if content is None:
            self._git("restore", "rm", "--cached", "--quiet", "--ignore-unmatch", "--", path)
            if full_path.exists():
                full_path.unlink()
            return
        full_path.parent.mkdir(parents=True, exist_ok=True)
        full_path.write_bytes(content)
        self._git("restore", "add", "--", path)

    def reset_to_head(self, path: str) -> None:
        """Drop any staged change to ``path`` and restore the HEAD version."""
        self._git("reset", "reset", "-q", "HEAD", "--", path)
        if self.read_file("HEAD", path) is not None:
            self._git("checkout", "checkout", "HEAD", "--", path)
        else:
            full_path = Path(self.repo_path) / path
            if full_path.exists():
                os.remove(full_path)

    def staged_files(self) -> List[str]:
        return _split_paths(self._git("diff", *PATH_DIFF_ARGS, "--cached"))

    def commit(self, message: str) -> str:
        """Commit the index and return the new commit sha."""
        self._git("commit", "commit", "-m", message)
        return self._get_repo().head.commit.hexsha

    def merge_abort(self) -> None:
        self._git("merge_abort", "merge", "--abort")

    # Remote

    def push(self, branch_name: str, set_upstream: bool = False, remote: Optional[str] = None) -> None:
        remote = remote or self.remote_name
        args: Sequence[str] = ["push", "-u", remote, branch_name] if set_upstream else ["push", remote, branch_name]
        self._git("push", *args, branch=branch_name)
        logger.info(f"Pushed {branch_name} to {remote}")
