"""Persistence for worktree metadata records and the project install record."""

import json
import os
import re
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

from worktree_kit.constants import (
    INSTALL_RECORD_FILENAME,
    METADATA_FILENAME,
    PARENT_HINT_FILENAME,
)
from worktree_kit.logging_config import get_logger
from worktree_kit.models.worktree import InstallRecord, WorktreeMetadata

logger = get_logger(__name__)

PathLike = Union[str, Path]

PARENT_HINT_PATTERN = re.compile(r"\*\*Parent Branch\*\*:\s*`?(\S+?)`?(?:\s|$)")


def utc_now() -> str:
    """ISO-8601 timestamp used in every record."""
    return datetime.now(timezone.utc).isoformat()


def write_json_atomic(path: PathLike, data: dict) -> None:
    """Write ``data`` as JSON in one step: temp file in the same directory, then rename."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
            f.write("\n")
            f.flush()
            os.fsync(f.fileno())
        # Atomic rename (POSIX systems guarantee atomicity)
        os.replace(temp_name, path)
    finally:
        if os.path.exists(temp_name):
            os.unlink(temp_name)


def read_json(path: PathLike) -> Optional[dict]:
    """Load a JSON object, or None if the file is missing or unreadable."""
    path = Path(path)
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Could not read {path}: {e}")
        return None
    if not isinstance(data, dict):
        logger.warning(f"Ignoring {path}: expected a JSON object")
        return None
    return data


class MetadataService:
    """Reads and writes the records that describe worktrees and installs."""

    def __init__(self, project_root: PathLike, trees_dir: str = ".trees"):
        self.project_root = Path(project_root)
        self.trees_dir = trees_dir

    def worktree_path(self, branch_name: str) -> Path:
        return self.project_root / self.trees_dir / branch_name

    def metadata_path(self, branch_name: str) -> Path:
        return self.worktree_path(branch_name) / METADATA_FILENAME

    @property
    def install_record_path(self) -> Path:
        return self.project_root / INSTALL_RECORD_FILENAME

    def load_metadata(self, branch_name: str) -> Optional[WorktreeMetadata]:
        data = read_json(self.metadata_path(branch_name))
        if data is None:
            return None
        try:
            return WorktreeMetadata.from_dict(data)
        except KeyError as e:
            logger.warning(f"Metadata for '{branch_name}' is missing field {e}")
            return None

    def save_metadata(self, metadata: WorktreeMetadata) -> Path:
        path = self.metadata_path(metadata.branch_name)
        write_json_atomic(path, metadata.to_dict())
        logger.debug(f"Saved metadata for '{metadata.branch_name}' to {path}")
        return path

    def touch_metadata(self, metadata: WorktreeMetadata, configuration: Optional[dict] = None) -> WorktreeMetadata:
        """Refresh ``updatedAt`` (and the cached allocation) after a successful sync."""
        refreshed = WorktreeMetadata(
            branch_name=metadata.branch_name,
            parent_branch=metadata.parent_branch,
            created_at=metadata.created_at,
            updated_at=utc_now(),
            configuration=configuration if configuration is not None else metadata.configuration,
            config=metadata.config,
            version=metadata.version,
        )
        self.save_metadata(refreshed)
        return refreshed

    def write_parent_hint(self, branch_name: str, parent_branch: str) -> Path:
        path = self.worktree_path(branch_name) / PARENT_HINT_FILENAME
        path.write_text(
            f"# Worktree: {branch_name}\n\n"
            f"**Branch**: {branch_name}\n"
            f"**Parent Branch**: {parent_branch}\n",
            encoding="utf-8",
        )
        return path

    def read_parent_hint(self, branch_name: str) -> Optional[str]:
        path = self.worktree_path(branch_name) / PARENT_HINT_FILENAME
        if not path.exists():
            return None
        try:
            match = PARENT_HINT_PATTERN.search(path.read_text(encoding="utf-8"))
        except OSError as e:
            logger.debug(f"Could not read parent hint {path}: {e}")
            return None
        return match.group(1) if match else None

    def expected_parent(self, branch_name: str) -> Optional[str]:
        """Recorded parent branch: metadata first, then the hint file."""
        metadata = self.load_metadata(branch_name)
        if metadata and metadata.parent_branch:
            return metadata.parent_branch
        return self.read_parent_hint(branch_name)

    def load_install_record(self) -> Optional[InstallRecord]:
        data = read_json(self.install_record_path)
        return InstallRecord.from_dict(data) if data is not None else None

    def save_install_record(self, version: str, config: dict,
                            previous: Optional[InstallRecord] = None) -> InstallRecord:
        now = utc_now()
        record = InstallRecord(
            version=version,
            installed_at=previous.installed_at if previous and previous.installed_at else now,
            updated_at=now,
            config=config,
        )
        write_json_atomic(self.install_record_path, record.to_dict())
        logger.info(f"Saved install record to {self.install_record_path}")
        return record
