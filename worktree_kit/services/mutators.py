"""Idempotent mutators for the ignore file and the script table."""

import json
from pathlib import Path
from typing import Dict, Mapping, MutableMapping, Union

from worktree_kit.constants import (
    IGNORE_BLOCK,
    IGNORE_FILENAME,
    IGNORE_MARKER,
    SCRIPT_TABLE_FILENAME,
    SCRIPT_TABLE_SECTION,
    WORKTREE_SCRIPTS,
)
from worktree_kit.exceptions import ExternalToolFailure
from worktree_kit.logging_config import get_logger
from worktree_kit.models.sync import KeyMergeResult

logger = get_logger(__name__)

PathLike = Union[str, Path]


def append_once(path: PathLike, block: str, marker: str, dry_run: bool = False) -> bool:
    """Append ``block`` to a text file unless ``marker`` is already present.

    The file may not exist yet. Existing content is given a trailing newline
    before the block is appended.

    Returns:
        True if the block was (or, in dry-run, would be) appended
    """
    path = Path(path)
    content = path.read_text(encoding="utf-8") if path.exists() else ""

    if marker in content:
        logger.debug(f"{path.name} already contains '{marker}'")
        return False

    if content and not content.endswith("\n"):
        content += "\n"
    content += block

    if not dry_run:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    logger.info(f"Appended block '{marker}' to {path}")
    return True


def merge_keys(existing: MutableMapping[str, str], proposed: Mapping[str, str]) -> KeyMergeResult:
    """Merge ``proposed`` into ``existing`` in place.

    Missing keys are added, differing values are overwritten, equal values
    are left alone. Keys only present in ``existing`` are never removed.
    """
    result = KeyMergeResult()
    for key, value in proposed.items():
        if key not in existing:
            existing[key] = value
            result.added.append(key)
        elif existing[key] != value:
            existing[key] = value
            result.updated.append(key)
        else:
            result.unchanged.append(key)
    return result


def update_gitignore(project_root: PathLike, block: str = IGNORE_BLOCK,
                     marker: str = IGNORE_MARKER, dry_run: bool = False) -> bool:
    """Append the worktree ignore patterns to the project's ignore file."""
    return append_once(Path(project_root) / IGNORE_FILENAME, block, marker, dry_run=dry_run)


def update_script_table(
    project_root: PathLike,
    scripts: Mapping[str, str] = WORKTREE_SCRIPTS,
    section: str = SCRIPT_TABLE_SECTION,
    dry_run: bool = False,
) -> KeyMergeResult:
    """Merge command entries into the ``scripts`` table of ``package.json``.

    The document is only rewritten when a key was added or updated, so a
    repeated run leaves the file byte-for-byte unchanged.
    """
    table_path = Path(project_root) / SCRIPT_TABLE_FILENAME
    try:
        document = json.loads(table_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ExternalToolFailure("read_script_table", message=f"{table_path} is not valid JSON: {e}",
                                  paths=[str(table_path)])
    if not isinstance(document, dict):
        raise ExternalToolFailure("read_script_table", message=f"{table_path} is not a JSON object",
                                  paths=[str(table_path)])

    table: Dict[str, str] = document.setdefault(section, {})
    if not isinstance(table, dict):
        raise ExternalToolFailure("read_script_table",
                                  message=f"'{section}' in {table_path} is not a JSON object",
                                  paths=[str(table_path)])
    result = merge_keys(table, scripts)

    if result.added:
        logger.info(f"Added scripts: {', '.join(result.added)}")
    if result.updated:
        logger.info(f"Updated scripts: {', '.join(result.updated)}")
    if result.unchanged:
        logger.debug(f"Unchanged scripts: {', '.join(result.unchanged)}")

    if result.changed and not dry_run:
        table_path.write_text(json.dumps(document, indent=2) + "\n", encoding="utf-8")
    return result
