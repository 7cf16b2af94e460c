"""Merge plan and result models"""
from enum import Enum
from dataclasses import dataclass, field
from typing import List, Optional


class MergeState(Enum):
    """States a single merge invocation moves through."""
    START = "start"
    PARENT_VALIDATED = "parent-validated"
    UPDATED = "updated"
    DIFFED = "diffed"
    CLASSIFIED = "classified"
    STAGED = "staged"
    CONFLICTS_RESOLVED = "conflicts-resolved"
    COMMITTED = "committed"
    PUSHED = "pushed"
    DONE = "done"
    ABORTED = "aborted"


class MergeOutcome(Enum):
    """How a merge invocation finished."""
    MERGED = "merged"
    NOTHING_TO_MERGE = "nothing-to-merge"


@dataclass
class MergePlan:
    """Changed paths partitioned by how the merge treats them.

    Every changed path lands in exactly one of the three lists.
    """
    source_branch: str
    target_branch: str
    to_merge: List[str] = field(default_factory=list)
    to_skip: List[str] = field(default_factory=list)
    to_preserve: List[str] = field(default_factory=list)

    @property
    def changed_paths(self) -> List[str]:
        return self.to_merge + self.to_skip + self.to_preserve

    @property
    def is_empty(self) -> bool:
        return not self.changed_paths


@dataclass
class MergeResult:
    """Summary of a completed merge invocation."""
    source_branch: str
    target_branch: str
    outcome: MergeOutcome
    plan: Optional[MergePlan] = None
    merged_files: List[str] = field(default_factory=list)
    auto_resolved: List[str] = field(default_factory=list)
    commit_sha: Optional[str] = None
    commits_behind: int = 0
    commits_ahead: int = 0
    rebased: bool = False
    pushed: bool = False
    warnings: List[str] = field(default_factory=list)
    states: List[MergeState] = field(default_factory=list)

    @property
    def short_sha(self) -> Optional[str]:
        return self.commit_sha[:7] if self.commit_sha else None
