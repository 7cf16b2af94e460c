"""
git-worktree-kit - Worktree provisioning, template sync and category-aware merges
"""

from .__version__ import __version__
from .core import Installer, MergeOrchestrator, WorktreeManager
from .cli.main import main

__all__ = ["Installer", "MergeOrchestrator", "WorktreeManager", "main", "__version__"]
