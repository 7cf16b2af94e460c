"""Git-related services for git-worktree-kit."""

from .operations import GitOperations
from .worktrees import WorktreeService

__all__ = [
    "GitOperations",
    "WorktreeService",
]
