"""Worktree data models."""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

METADATA_VERSION = 1


@dataclass
class WorktreeMetadata:
    """Per-worktree record persisted as ``.worktree-info.json``.

    The cached ``configuration`` is for display only; the allocator can
    always regenerate it from ``branch_name``.
    """

    branch_name: str
    parent_branch: str
    created_at: str
    updated_at: str
    configuration: Dict[str, Any] = field(default_factory=dict)
    config: Dict[str, Any] = field(default_factory=dict)
    version: int = METADATA_VERSION

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "branchName": self.branch_name,
            "parentBranch": self.parent_branch,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "configuration": self.configuration,
            "config": self.config,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "WorktreeMetadata":
        # Records written before updatedAt existed fall back to createdAt
        created_at = data.get("createdAt", "")
        return cls(
            branch_name=data["branchName"],
            parent_branch=data.get("parentBranch", ""),
            created_at=created_at,
            updated_at=data.get("updatedAt") or created_at,
            configuration=dict(data.get("configuration") or {}),
            config=dict(data.get("config") or {}),
            version=data.get("version", METADATA_VERSION),
        )


@dataclass
class InstallRecord:
    """Project-level record (``.worktrees``) marking a completed install."""

    version: str
    installed_at: str
    updated_at: str
    config: Dict[str, Any] = field(default_factory=dict)
    installed: bool = True

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "installed": self.installed,
            "installedAt": self.installed_at,
            "updatedAt": self.updated_at,
            "config": self.config,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "InstallRecord":
        return cls(
            version=str(data.get("version", "")),
            installed=bool(data.get("installed", True)),
            installed_at=data.get("installedAt", ""),
            updated_at=data.get("updatedAt", ""),
            config=dict(data.get("config") or {}),
        )


@dataclass
class WorktreeInfo:
    """Information about a git worktree."""

    path: str
    branch_name: str
    commit_sha: str
    is_main: bool  # Is this the main working tree?
    is_orphaned: bool  # Directory missing?
    metadata: Optional[WorktreeMetadata] = None

    def __str__(self) -> str:
        """String representation of worktree."""
        status = "orphaned" if self.is_orphaned else "active"
        main_marker = " (main)" if self.is_main else ""
        return f"{self.branch_name} @ {self.path}{main_marker} [{status}]"
