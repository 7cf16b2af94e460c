"""Custom exceptions for git-worktree-kit"""

from typing import List, Optional, Sequence, TYPE_CHECKING

if TYPE_CHECKING:
    from worktree_kit.models.sync import ConflictFinding


class WorktreeKitError(Exception):
    """Base exception for all git-worktree-kit errors.

    Every error carries the failure category, the offending paths (if any)
    and the literal commands a user can run to recover.
    """

    category = "WorktreeKitError"

    def __init__(
        self,
        message: str,
        paths: Optional[Sequence[str]] = None,
        remediation: Optional[Sequence[str]] = None,
    ):
        self.message = message
        self.paths: List[str] = list(paths or [])
        self.remediation: List[str] = list(remediation or [])
        super().__init__(message)


class ExternalToolFailure(WorktreeKitError):
    """Exception raised when a git or filesystem call fails unexpectedly."""

    category = "ExternalToolFailure"

    def __init__(
        self,
        operation: str,
        branch: Optional[str] = None,
        message: Optional[str] = None,
        paths: Optional[Sequence[str]] = None,
    ):
        self.operation = operation
        self.branch = branch

        error_msg = f"Git operation '{operation}' failed"
        if branch:
            error_msg += f" for branch '{branch}'"
        if message:
            error_msg += f": {message}"

        super().__init__(error_msg, paths=paths)


class NotARepositoryError(ExternalToolFailure):
    """Exception raised when the target directory is not a git repository."""

    def __init__(self, path: str):
        super().__init__("validate_repository", message=f"{path} is not a git repository", paths=[path])
        self.remediation = [f"git -C {path} init"]


class BranchNotFoundError(ExternalToolFailure):
    """Exception raised when a branch is not found."""

    def __init__(self, branch: str):
        super().__init__("find_branch", branch, "Branch not found")


class WorktreeNotFoundError(ExternalToolFailure):
    """Exception raised when a worktree directory is missing."""

    def __init__(self, branch: str, path: str):
        super().__init__("find_worktree", branch, f"Worktree directory not found: {path}", paths=[path])
        self.remediation = [
            "git worktree prune",
        ]


class WorktreeExistsError(WorktreeKitError):
    """Exception raised when creating a worktree whose directory already exists."""

    def __init__(self, branch: str, path: str):
        super().__init__(
            f"Worktree already exists at {path}",
            paths=[path],
            remediation=[f"worktree-kit remove {branch}"],
        )
        self.branch = branch


class InvalidBranchName(WorktreeKitError, ValueError):
    """Exception raised when a branch name is not usable as a worktree identity."""

    def __init__(self, branch: str):
        super().__init__(
            f"Branch name '{branch}' must contain only alphanumeric characters, "
            "hyphens, and underscores"
        )
        self.branch = branch


class ValidationBlocked(WorktreeKitError):
    """Exception raised when pre-flight validation finds blocking conflicts."""

    category = "ValidationBlocked"

    def __init__(self, findings: List["ConflictFinding"]):
        self.findings = findings
        errors = [f for f in findings if f.is_error]
        super().__init__(
            f"Installation blocked by {len(errors)} conflict(s)",
            paths=[f.path for f in errors],
        )


class ParentMismatch(WorktreeKitError):
    """Exception raised when merging a worktree into a branch it was not created from."""

    category = "ParentMismatch"

    def __init__(self, branch: str, expected_parent: str, current_branch: str):
        self.branch = branch
        self.expected_parent = expected_parent
        self.current_branch = current_branch
        super().__init__(
            f"Worktree '{branch}' was created from '{expected_parent}' "
            f"but you're currently on '{current_branch}'",
            remediation=[
                f"git checkout {expected_parent}",
                f"worktree-kit merge {branch}",
            ],
        )


class UncommittedChanges(WorktreeKitError):
    """Exception raised when the target working tree has uncommitted changes."""

    category = "UncommittedChanges"

    def __init__(self, location: str, paths: Optional[Sequence[str]] = None):
        self.location = location
        super().__init__(
            f"You have uncommitted changes in {location}",
            paths=paths,
            remediation=["git stash", "git commit -am '<message>'"],
        )


class BranchBehindError(WorktreeKitError):
    """Exception raised when the source branch is behind the target branch."""

    category = "BranchBehind"

    def __init__(self, branch: str, target: str, commits_behind: int):
        self.branch = branch
        self.target = target
        self.commits_behind = commits_behind
        super().__init__(
            f"Branch '{branch}' is {commits_behind} commits behind '{target}'",
            remediation=[
                f"worktree-kit merge {branch} --update",
                f"worktree-kit merge {branch} --force",
            ],
        )


class UnresolvedConflict(WorktreeKitError):
    """Exception raised when a rebase or merge leaves conflicts that need a human."""

    category = "UnresolvedConflict"

    def __init__(self, stage: str, paths: Sequence[str], remediation: Sequence[str]):
        self.stage = stage
        super().__init__(
            f"Manual conflict resolution required during {stage}",
            paths=paths,
            remediation=remediation,
        )


class PortUnavailable(WorktreeKitError):
    """Advisory record for a port that could not be bound.

    Port probes return these instead of raising them; allocation never fails.
    """

    category = "PortUnavailable"

    def __init__(self, name: str, port: int, reason: Optional[str] = None):
        self.name = name
        self.port = port
        message = f"Port {port} ({name}) is already in use"
        if reason:
            message += f": {reason}"
        super().__init__(message)
