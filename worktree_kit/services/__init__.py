"""Services for git-worktree-kit."""
