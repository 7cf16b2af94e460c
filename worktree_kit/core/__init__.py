"""Orchestrators for git-worktree-kit."""

from .installer import Installer, InstallReport
from .merge_orchestrator import MergeOrchestrator
from .worktree_manager import WorktreeManager

__all__ = ["Installer", "InstallReport", "MergeOrchestrator", "WorktreeManager"]
