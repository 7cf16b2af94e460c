"""Template installation into a host project and its existing worktrees."""

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Union

from worktree_kit.__version__ import __version__
from worktree_kit.config import Config
from worktree_kit.constants import (
    ROOT_BRANCHES,
    SCRIPT_TABLE_FILENAME,
    SYNC_GROUPS,
    WORKTREE_IGNORE_BLOCK,
    WORKTREE_LOCAL_PATHS,
)
from worktree_kit.exceptions import ExternalToolFailure, NotARepositoryError, ValidationBlocked
from worktree_kit.logging_config import get_logger
from worktree_kit.models.sync import KeyMergeResult, SyncStats, UpdateMode, ValidationResult
from worktree_kit.models.worktree import InstallRecord
from worktree_kit.services.allocator import allocate
from worktree_kit.services.classifier import ClassificationRules
from worktree_kit.services.conflict_validator import ConflictValidator, ValidationToggles
from worktree_kit.services.git.operations import GitOperations
from worktree_kit.services.metadata_service import MetadataService
from worktree_kit.services.mutators import update_gitignore, update_script_table
from worktree_kit.services.template_sync import TemplateSyncService, build_replacements

logger = get_logger(__name__)

PathLike = Union[str, Path]

# owner/repo at the end of an https or scp-style remote URL
REMOTE_REPO_PATTERN = re.compile(r"[:/]([^/]+)/([^/]+?)(?:\.git)?/?$")


@dataclass
class InstallReport:
    """Everything an install run did (or, in dry-run, would do)."""

    validation: ValidationResult
    stats: SyncStats
    is_update: bool
    root_branch: str
    gitignore_updated: bool = False
    scripts: Optional[KeyMergeResult] = None
    record: Optional[InstallRecord] = None


@dataclass
class WorktreeUpdate:
    """Result of re-syncing one existing worktree."""

    branch_name: str
    path: Path
    stats: SyncStats
    gitignore_updated: bool = False


def find_worktree_dirs(project_root: PathLike, trees_dir: str) -> List[Path]:
    """Directories under ``trees_dir`` that are git worktrees (they hold a ``.git`` file)."""
    trees = Path(project_root) / trees_dir
    if not trees.is_dir():
        return []
    return [p for p in sorted(trees.iterdir()) if p.is_dir() and (p / ".git").exists()]


def detect_project_name(project_root: PathLike) -> Optional[str]:
    """The ``name`` field of the project's ``package.json``, if it has one."""
    try:
        document = json.loads((Path(project_root) / SCRIPT_TABLE_FILENAME).read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return None
    if not isinstance(document, dict):
        return None
    name = document.get("name")
    if not isinstance(name, str) or not name.strip():
        return None
    return name.strip()


def parse_repository_name(remote_url: str) -> Optional[str]:
    """Repository name from a remote URL.

    ``https://github.com/octo/widgets.git`` and ``git@github.com:octo/widgets``
    both give ``widgets``.
    """
    match = REMOTE_REPO_PATTERN.search(remote_url.strip())
    return match.group(2) if match else None


def detect_repository_name(vcs: GitOperations) -> Optional[str]:
    """Repository name from the configured remote; None without a usable remote."""
    try:
        url = vcs.remote_url()
    except ExternalToolFailure as e:
        logger.debug(f"Could not read the remote URL: {e.message}")
        return None
    if not url:
        return None
    name = parse_repository_name(url)
    if name is None:
        logger.debug(f"Could not parse a repository name from {url}")
    return name


class Installer:
    """Installs and refreshes template files in a project."""

    def __init__(
        self,
        project_root: PathLike,
        config: Config,
        vcs: Optional[GitOperations] = None,
        metadata: Optional[MetadataService] = None,
    ):
        self.project_root = Path(project_root)
        self.config = config
        self.vcs = vcs
        self.metadata = metadata or MetadataService(self.project_root, config.trees_dir)
        self.validator = ConflictValidator()
        self.synchronizer = TemplateSyncService(ClassificationRules.installer_defaults(), SYNC_GROUPS)

    def require_repository(self) -> None:
        if self.vcs is not None and not self.vcs.is_repository():
            raise NotARepositoryError(str(self.project_root))

    def detect_root_branch(self) -> str:
        """Branch the template variables point at: configured, else current, else ``main``."""
        if self.config.root_branch:
            return self.config.root_branch
        if self.vcs is None:
            return "main"
        try:
            branch = self.vcs.current_branch()
        except ExternalToolFailure as e:
            logger.warning(f"Could not detect the current branch, assuming 'main': {e.message}")
            return "main"
        if branch not in ROOT_BRANCHES:
            logger.info(f"Installing from non-root branch '{branch}'")
        return branch

    def install(self, template_root: PathLike, previous: Optional[InstallRecord] = None) -> InstallReport:
        """Validate, synchronize templates, and update the ignore file and script table.

        Args:
            template_root: Directory mirroring the target layout
            previous: Install record from an earlier run; loaded from disk if omitted

        Raises:
            NotARepositoryError: The project root is not a git repository.
            ValidationBlocked: An error-severity conflict was found. Nothing was written.
        """
        self.require_repository()
        if previous is None:
            previous = self.metadata.load_install_record()
        is_update = previous is not None
        dry_run = self.config.update_mode is UpdateMode.DRY_RUN

        toggles = ValidationToggles(install_infrastructure=self.config.install_optional_groups,
                                    is_update=is_update)
        validation = self.validator.validate(self.project_root, toggles)
        if not validation.valid:
            raise ValidationBlocked(validation.findings)
        for warning in validation.warnings:
            logger.info(f"{warning.path}: {warning.message}")

        root_branch = self.detect_root_branch()
        variables = build_replacements(self.config, root_branch)
        logger.info(f"{'Updating' if is_update else 'Installing'} templates in {self.project_root}")

        stats = self.synchronizer.sync(
            template_root,
            self.project_root,
            variables,
            mode=self.config.update_mode,
            include_optional=self.config.install_optional_groups,
        )

        report = InstallReport(validation=validation, stats=stats, is_update=is_update, root_branch=root_branch)
        report.gitignore_updated = update_gitignore(self.project_root, dry_run=dry_run)

        if (self.project_root / SCRIPT_TABLE_FILENAME).exists():
            report.scripts = update_script_table(self.project_root, dry_run=dry_run)
        else:
            logger.info(f"No {SCRIPT_TABLE_FILENAME} found, skipping script table")

        if not dry_run:
            report.record = self.metadata.save_install_record(
                __version__, self.config.to_record_config(), previous=previous
            )
        return report

    def update_worktree(self, template_root: PathLike, worktree_path: Path, root_branch: str) -> WorktreeUpdate:
        """Re-sync one worktree, leaving its generated files alone."""
        branch_name = worktree_path.name
        metadata = self.metadata.load_metadata(branch_name)
        parent_branch = metadata.parent_branch if metadata and metadata.parent_branch else root_branch

        variables = build_replacements(self.config, root_branch)
        variables["PARENT_BRANCH"] = parent_branch

        rules = ClassificationRules.installer_defaults().with_preserved(WORKTREE_LOCAL_PATHS)
        synchronizer = TemplateSyncService(rules, SYNC_GROUPS)
        stats = synchronizer.sync(
            template_root,
            worktree_path,
            variables,
            mode=self.config.update_mode,
            include_optional=self.config.install_optional_groups,
        )

        dry_run = self.config.update_mode is UpdateMode.DRY_RUN
        gitignore_updated = update_gitignore(worktree_path, block=WORKTREE_IGNORE_BLOCK, dry_run=dry_run)

        if metadata is not None and not dry_run:
            allocation = allocate(branch_name, project_prefix=self.config.project_prefix,
                                  max_length=self.config.max_safe_name_length)
            self.metadata.touch_metadata(metadata, configuration=allocation.to_dict())

        return WorktreeUpdate(branch_name=branch_name, path=worktree_path, stats=stats,
                              gitignore_updated=gitignore_updated)

    def update_worktrees(self, template_root: PathLike) -> Dict[str, WorktreeUpdate]:
        """Re-sync every worktree under ``trees_dir``."""
        worktrees = find_worktree_dirs(self.project_root, self.config.trees_dir)
        if not worktrees:
            logger.info(f"No worktrees found under {self.config.trees_dir}")
            return {}

        root_branch = self.detect_root_branch()
        results = {}
        for worktree_path in worktrees:
            logger.info(f"Updating worktree: {worktree_path.name}")
            results[worktree_path.name] = self.update_worktree(template_root, worktree_path, root_branch)
        return results
