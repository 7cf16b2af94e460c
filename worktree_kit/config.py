"""Configuration handling for git-worktree-kit"""

import re
from dataclasses import dataclass, fields
from typing import Optional, TYPE_CHECKING

from worktree_kit.constants import (
    DEFAULT_PROJECT_PREFIX,
    DEFAULT_SAFE_NAME_LENGTH,
    DEFAULT_TREES_DIR,
)
from worktree_kit.models.sync import UpdateMode

if TYPE_CHECKING:
    from worktree_kit.models.worktree import InstallRecord


@dataclass
class Config:
    """Configuration for git-worktree-kit with validation."""

    # Project identity (used for template variables)
    project_name: str = "my-project"
    github_username: str = ""
    repository_name: Optional[str] = None
    root_branch: Optional[str] = None  # None = detect from the current branch

    # Optional template groups (deployment + test infrastructure)
    use_infrastructure: bool = False
    skip_optional_groups: bool = False

    # Execution modes
    dry_run: bool = False
    force: bool = False
    verbose: bool = False
    debug: bool = False

    # Worktree layout and naming
    trees_dir: str = DEFAULT_TREES_DIR
    project_prefix: str = DEFAULT_PROJECT_PREFIX
    max_safe_name_length: int = DEFAULT_SAFE_NAME_LENGTH

    # Merge behaviour
    remote_name: str = "origin"
    push: bool = True
    update_branch: bool = False  # Rebase the source onto the target first
    allow_outdated: bool = False  # Merge even if the source is behind

    def __post_init__(self):
        """Validate configuration after initialization."""
        self._validate_project_name()
        self._validate_trees_dir()
        self._validate_remote_name()
        self._validate_project_prefix()
        self._validate_safe_name_length()

    def _validate_project_name(self):
        """Validate project_name is not empty."""
        if not self.project_name or not self.project_name.strip():
            raise ValueError("project_name cannot be empty")
        self.project_name = self.project_name.strip()

    def _validate_trees_dir(self):
        """Validate trees_dir is a relative, non-empty directory name."""
        if not self.trees_dir or not self.trees_dir.strip():
            raise ValueError("trees_dir cannot be empty")
        if self.trees_dir.startswith("/"):
            raise ValueError(f"trees_dir must be relative to the project root, got '{self.trees_dir}'")

    def _validate_remote_name(self):
        """Validate remote_name is not empty."""
        if not self.remote_name or not self.remote_name.strip():
            raise ValueError("remote_name cannot be empty")
        self.remote_name = self.remote_name.strip()

    def _validate_project_prefix(self):
        """Validate project_prefix is usable inside container and bucket names."""
        if not re.fullmatch(r"[a-z0-9-]+", self.project_prefix or ""):
            raise ValueError(
                f"project_prefix must contain only lowercase letters, digits and hyphens, got '{self.project_prefix}'"
            )

    def _validate_safe_name_length(self):
        """Validate max_safe_name_length leaves room for the hash suffix."""
        if self.max_safe_name_length < 8:
            raise ValueError(f"max_safe_name_length must be at least 8, got {self.max_safe_name_length}")

    @property
    def update_mode(self) -> UpdateMode:
        """Write policy for template synchronization; dry-run wins over force."""
        if self.dry_run:
            return UpdateMode.DRY_RUN
        if self.force:
            return UpdateMode.FORCE
        return UpdateMode.NORMAL

    @property
    def install_optional_groups(self) -> bool:
        return self.use_infrastructure and not self.skip_optional_groups

    def to_dict(self) -> dict:
        """Convert config to dictionary."""
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def get(self, key: str, default=None):
        """Get config value by key."""
        return getattr(self, key, default)

    @classmethod
    def from_dict(cls, config_dict: dict) -> "Config":
        """Create Config from dictionary, ignoring unknown keys."""
        known_fields = {f.name for f in fields(cls)}
        filtered = {k: v for k, v in config_dict.items() if k in known_fields}
        return cls(**filtered)

    @classmethod
    def from_install_record(cls, record: "InstallRecord", **overrides) -> "Config":
        """Seed a Config from the values saved by a previous install.

        Explicit overrides win over recorded values; ``None`` overrides are ignored.
        """
        saved = record.config
        values = {
            "project_name": saved.get("projectName") or "my-project",
            "github_username": saved.get("githubUsername") or "",
            "repository_name": saved.get("repositoryName"),
            "use_infrastructure": bool(saved.get("useInfrastructure", False)),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls.from_dict(values)

    def to_record_config(self) -> dict:
        """The subset of settings persisted in the install record."""
        return {
            "projectName": self.project_name,
            "githubUsername": self.github_username,
            "repositoryName": self.repository_name or self.project_name,
            "useInfrastructure": self.use_infrastructure,
        }
