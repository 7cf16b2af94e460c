"""Data models for git-worktree-kit."""

from .allocation import NamedRange, ResourceAllocation
from .merge import MergeOutcome, MergePlan, MergeResult, MergeState
from .sync import (
    ConflictCheck,
    ConflictFinding,
    GroupStats,
    KeyMergeResult,
    Severity,
    SyncAction,
    SyncDecision,
    SyncGroup,
    SyncRecord,
    SyncStats,
    TemplateEntry,
    UpdateMode,
    ValidationResult,
)
from .worktree import InstallRecord, WorktreeInfo, WorktreeMetadata

__all__ = [
    "NamedRange",
    "ResourceAllocation",
    "MergeOutcome",
    "MergePlan",
    "MergeResult",
    "MergeState",
    "ConflictCheck",
    "ConflictFinding",
    "GroupStats",
    "KeyMergeResult",
    "Severity",
    "SyncAction",
    "SyncDecision",
    "SyncGroup",
    "SyncRecord",
    "SyncStats",
    "TemplateEntry",
    "UpdateMode",
    "ValidationResult",
    "InstallRecord",
    "WorktreeInfo",
    "WorktreeMetadata",
]
