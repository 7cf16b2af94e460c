"""Worktree lifecycle: create, remove and list branch-scoped working copies."""

import re
import shutil
from pathlib import Path
from typing import List, Optional, Union

from worktree_kit.config import Config
from worktree_kit.constants import BRANCH_NAME_PATTERN, ENV_FILENAME, WORKTREE_IGNORE_BLOCK
from worktree_kit.exceptions import (
    InvalidBranchName,
    WorktreeExistsError,
    WorktreeKitError,
    WorktreeNotFoundError,
)
from worktree_kit.logging_config import get_logger
from worktree_kit.models.allocation import ResourceAllocation
from worktree_kit.models.worktree import WorktreeInfo, WorktreeMetadata
from worktree_kit.services.allocator import allocate, render_env_file
from worktree_kit.services.git.operations import GitOperations
from worktree_kit.services.git.worktrees import WorktreeService
from worktree_kit.services.metadata_service import MetadataService, utc_now
from worktree_kit.services.mutators import update_gitignore

logger = get_logger(__name__)


def validate_branch_name(branch_name: str) -> str:
    if not branch_name or not re.match(BRANCH_NAME_PATTERN, branch_name):
        raise InvalidBranchName(branch_name)
    return branch_name


class WorktreeManager:
    """Creates and removes worktrees under ``<project>/<trees_dir>/<branch>``."""

    def __init__(
        self,
        repo_path: Union[str, Path],
        config: Config,
        vcs: Optional[GitOperations] = None,
        worktrees: Optional[WorktreeService] = None,
        metadata: Optional[MetadataService] = None,
    ):
        self.repo_path = Path(repo_path)
        self.config = config
        self.vcs = vcs or GitOperations(str(self.repo_path), config)
        self.worktrees = worktrees or WorktreeService(str(self.repo_path))
        self.metadata = metadata or MetadataService(self.repo_path, config.trees_dir)

    def allocation_for(self, branch_name: str) -> ResourceAllocation:
        return allocate(branch_name, project_prefix=self.config.project_prefix,
                        max_length=self.config.max_safe_name_length)

    def create(self, branch_name: str, parent_branch: Optional[str] = None) -> WorktreeMetadata:
        """Create a worktree for ``branch_name`` and write its generated files.

        The current branch is recorded as the parent unless ``parent_branch``
        is given. A half-created worktree is force-removed before the error
        is re-raised.
        """
        validate_branch_name(branch_name)
        path = self.metadata.worktree_path(branch_name)
        if path.exists():
            raise WorktreeExistsError(branch_name, str(path))

        parent_branch = parent_branch or self.vcs.current_branch()
        reuse = self.vcs.branch_exists(branch_name) or self.vcs.remote_branch_exists(branch_name)
        logger.info(f"Creating worktree '{branch_name}' from '{parent_branch}'"
                    f"{' (existing branch)' if reuse else ''}")

        self.worktrees.add_worktree(str(path), branch_name, create_branch=not reuse,
                                    start_point=None if reuse else parent_branch)
        try:
            return self._provision(branch_name, parent_branch, path)
        except (WorktreeKitError, OSError):
            logger.error(f"Provisioning '{branch_name}' failed, removing the worktree")
            self.worktrees.remove_worktree(str(path), force=True)
            raise

    def _provision(self, branch_name: str, parent_branch: str, path: Path) -> WorktreeMetadata:
        allocation = self.allocation_for(branch_name)
        now = utc_now()

        (path / ENV_FILENAME).write_text(render_env_file(allocation, generated_at=now), encoding="utf-8")

        metadata = WorktreeMetadata(
            branch_name=branch_name,
            parent_branch=parent_branch,
            created_at=now,
            updated_at=now,
            configuration=allocation.to_dict(),
            config=self.config.to_record_config(),
        )
        self.metadata.save_metadata(metadata)
        self.metadata.write_parent_hint(branch_name, parent_branch)
        update_gitignore(path, block=WORKTREE_IGNORE_BLOCK)
        return metadata

    def remove(self, branch_name: str) -> Optional[WorktreeMetadata]:
        """Remove a worktree: normal removal, then forced, then delete and prune.

        Returns:
            The metadata record the worktree had, if any
        """
        validate_branch_name(branch_name)
        path = self.metadata.worktree_path(branch_name)
        if not path.exists():
            raise WorktreeNotFoundError(branch_name, str(path))

        metadata = self.metadata.load_metadata(branch_name)

        removed, error = self.worktrees.remove_worktree(str(path))
        if not removed:
            logger.info(f"Retrying removal of {path} with --force")
            removed, error = self.worktrees.remove_worktree(str(path), force=True)
        if not removed:
            logger.warning(f"git could not remove {path} ({error}), deleting the directory")
            shutil.rmtree(path)
            self.worktrees.prune_worktrees()

        logger.info(f"Removed worktree '{branch_name}'")
        return metadata

    def list(self) -> List[WorktreeInfo]:
        """Every git worktree, joined with its metadata record when it lives under ``trees_dir``."""
        trees_root = (self.repo_path / self.config.trees_dir).resolve()
        worktrees = self.worktrees.list_worktrees()
        for wt in worktrees:
            wt_path = Path(wt.path).resolve()
            if wt_path.parent == trees_root:
                wt.metadata = self.metadata.load_metadata(wt_path.name)
        return worktrees
