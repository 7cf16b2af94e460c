"""Worktree operations service for git-worktree-kit."""

import os
from typing import Any, Dict, List, Optional, Tuple

import git

from worktree_kit.exceptions import ExternalToolFailure
from worktree_kit.logging_config import get_logger
from worktree_kit.models.worktree import WorktreeInfo
from worktree_kit.services.git.operations import describe_git_error

logger = get_logger(__name__)


def parse_worktree_list(output: str) -> List[WorktreeInfo]:
    """Parse ``git worktree list --porcelain`` output.

    Format:
        worktree /path/to/worktree
        HEAD commit_sha
        branch refs/heads/branch-name
        (blank line between worktrees)

    The first entry is always the main working tree.
    """
    entries: List[Dict[str, Any]] = []
    current: Dict[str, Any] = {}

    for line in output.split("\n"):
        line = line.strip()
        if not line:
            # Empty line marks end of worktree entry
            if current.get("path"):
                entries.append(current)
            current = {}
            continue

        if line.startswith("worktree "):
            current["path"] = line.split(" ", 1)[1]
        elif line.startswith("HEAD "):
            current["HEAD"] = line.split(" ", 1)[1]
        elif line.startswith("branch "):
            branch_ref = line.split(" ", 1)[1]
            current["branch"] = branch_ref[len("refs/heads/"):] if branch_ref.startswith("refs/heads/") else ""
        elif line.startswith("detached"):
            current["branch"] = ""  # Detached HEAD

    # Handle last entry if no trailing blank line
    if current.get("path"):
        entries.append(current)

    return [
        WorktreeInfo(
            path=entry["path"],
            branch_name=entry.get("branch", ""),
            commit_sha=entry.get("HEAD", ""),
            is_main=index == 0,
            is_orphaned=not os.path.exists(entry["path"]),
        )
        for index, entry in enumerate(entries)
    ]


class WorktreeService:
    """Service for managing git worktrees."""

    def __init__(self, repo_path: str):
        """Initialize the worktree service.

        Args:
            repo_path: Path to the git repository
        """
        self.repo_path = str(repo_path)

    def _get_repo(self):
        """Get a fresh git.Repo instance."""
        return git.Repo(self.repo_path)

    def list_worktrees(self) -> List[WorktreeInfo]:
        """Get detailed information about all worktrees."""
        try:
            output = self._get_repo().git.worktree("list", "--porcelain")
        except git.exc.GitCommandError as e:
            raise ExternalToolFailure("worktree_list", message=describe_git_error(e, "worktree list"))

        worktrees = parse_worktree_list(output)
        logger.debug(f"Found {len(worktrees)} worktrees")
        for wt in worktrees:
            logger.debug(f"  {wt}")
        return worktrees

    def add_worktree(self, path: str, branch_name: str, create_branch: bool = False,
                     start_point: Optional[str] = None) -> None:
        """Create a worktree at ``path``.

        Args:
            path: Directory for the new worktree
            branch_name: Branch to check out
            create_branch: Create ``branch_name`` with ``-b`` instead of reusing it
            start_point: Commit-ish the new branch starts from (with create_branch)
        """
        args = ["add"]
        if create_branch:
            args += ["-b", branch_name, path]
            if start_point:
                args.append(start_point)
        else:
            args += [path, branch_name]

        try:
            self._get_repo().git.worktree(*args)
        except git.exc.GitCommandError as e:
            raise ExternalToolFailure("worktree_add", branch_name, describe_git_error(e, "worktree add"),
                                      paths=[path])
        logger.info(f"Created worktree at {path} for branch {branch_name}")

    def remove_worktree(self, path: str, force: bool = False) -> Tuple[bool, Optional[str]]:
        """Remove a worktree at the specified path.

        Args:
            path: Path to the worktree directory
            force: Force removal even if working tree is dirty or locked

        Returns:
            Tuple of (success, error_message). error_message is None on success.
        """
        args = ["remove", path]
        if force:
            args.append("--force")

        try:
            self._get_repo().git.worktree(*args)
        except git.exc.GitCommandError as e:
            error_msg = describe_git_error(e, "worktree remove")
            logger.warning(f"Failed to remove worktree at {path}: {error_msg}")
            return False, error_msg

        logger.info(f"Removed worktree at {path}")
        return True, None

    def prune_worktrees(self) -> Tuple[bool, Optional[str]]:
        """Prune orphaned worktree metadata.

        Returns:
            Tuple of (success, error_message). error_message is None on success.
        """
        try:
            self._get_repo().git.worktree("prune")
        except git.exc.GitCommandError as e:
            error_msg = describe_git_error(e, "worktree prune")
            logger.error(f"Failed to prune worktrees: {error_msg}")
            return False, error_msg

        logger.info("Pruned orphaned worktree metadata")
        return True, None
