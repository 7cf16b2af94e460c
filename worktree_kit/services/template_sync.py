"""Template synchronization service.

Walks a template tree and copies each file into a target tree. What happens
to a file is decided by the path classifier together with the update mode:

- ALWAYS_UPDATE and MERGE files are written on every run.
- PROTECTED and PRESERVE_TARGET files are written only when absent, or
  when the mode is FORCE.
- DRY_RUN computes exactly the same counters without touching the disk.
"""

import os
import re
from pathlib import Path
from typing import Dict, Iterator, Mapping, Optional, Sequence, Union

from worktree_kit.constants import SYNC_GROUPS, TEXT_EXTENSIONS
from worktree_kit.logging_config import get_logger
from worktree_kit.models.sync import (
    SyncAction,
    SyncDecision,
    SyncGroup,
    SyncStats,
    TemplateEntry,
    UpdateMode,
)
from worktree_kit.services.classifier import ClassificationRules, classify, group_for

logger = get_logger(__name__)

PathLike = Union[str, Path]


def is_text_file(filename: str, text_extensions: Sequence[str] = TEXT_EXTENSIONS) -> bool:
    """Extension-based check for substitution eligibility."""
    return any(filename.endswith(ext) for ext in text_extensions)


def substitute_variables(content: str, variables: Mapping[str, str]) -> str:
    """Replace ``{{KEY}}`` markers with their values.

    Keys are escaped before matching so regex metacharacters in a key are
    taken literally. Placeholders with no matching key are left as they are.
    """
    result = content
    for key, value in variables.items():
        pattern = re.compile(re.escape("{{" + key + "}}"))
        replacement = "" if value is None else str(value)
        result = pattern.sub(lambda _match: replacement, result)
    return result


def iter_template_entries(
    template_root: PathLike, text_extensions: Sequence[str] = TEXT_EXTENSIONS
) -> Iterator[TemplateEntry]:
    """Yield every file under ``template_root`` in a stable order."""
    root = Path(template_root)
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        for filename in sorted(filenames):
            source = Path(dirpath) / filename
            relative = source.relative_to(root).as_posix()
            yield TemplateEntry(
                relative_path=relative,
                source=source,
                substitute=is_text_file(filename, text_extensions),
            )


def build_replacements(config, root_branch: str = "main") -> Dict[str, str]:
    """Template variables derived from the project configuration."""
    repository_name = config.get("repository_name") or config.get("project_name")
    return {
        "PROJECT_NAME": config.get("project_name"),
        "REPOSITORY_NAME": repository_name,
        "GITHUB_USERNAME": config.get("github_username"),
        "REPOSITORY_OWNER": config.get("github_username"),
        "ROOT_BRANCH": root_branch,
        "PARENT_BRANCH": root_branch,
    }


class TemplateSyncService:
    """Copies a template tree into a target tree according to path rules."""

    def __init__(
        self,
        rules: Optional[ClassificationRules] = None,
        groups: Sequence[SyncGroup] = SYNC_GROUPS,
        text_extensions: Sequence[str] = TEXT_EXTENSIONS,
    ):
        """Initialize the service.

        Args:
            rules: Classification rules (installer defaults if omitted)
            groups: Logical groups used for the per-group counters
            text_extensions: Extensions that receive variable substitution
        """
        self.rules = rules or ClassificationRules.installer_defaults()
        self.groups = list(groups)
        self.text_extensions = tuple(text_extensions)

    def sync(
        self,
        template_root: PathLike,
        target_root: PathLike,
        variables: Mapping[str, str],
        mode: UpdateMode = UpdateMode.NORMAL,
        include_optional: bool = True,
    ) -> SyncStats:
        """Synchronize ``template_root`` into ``target_root``.

        Args:
            template_root: Directory holding the template files
            target_root: Directory receiving them
            variables: Values for ``{{KEY}}`` placeholders
            mode: NORMAL, FORCE or DRY_RUN
            include_optional: When False, files in optional groups are not visited

        Returns:
            SyncStats with a counter block for every configured group
        """
        template_root = Path(template_root)
        target_root = Path(target_root)
        dry_run = mode is UpdateMode.DRY_RUN

        stats = SyncStats(dry_run=dry_run)
        for group in self.groups:
            stats.ensure_group(group.name)

        if not template_root.is_dir():
            logger.warning(f"Template directory not found: {template_root}")
            return stats

        for entry in iter_template_entries(template_root, self.text_extensions):
            group_name, group = group_for(entry.relative_path, self.groups)
            if group is not None and group.optional and not include_optional:
                logger.debug(f"Optional group '{group_name}' disabled, ignoring {entry.relative_path}")
                continue

            decision = classify(entry.relative_path, self.rules)
            destination = target_root / entry.relative_path
            exists = destination.exists()
            action = self._decide(decision, exists, mode)

            if action is not SyncAction.SKIPPED and not dry_run:
                self._write(entry, destination, variables)

            logger.debug(f"{entry.relative_path}: {decision.value} -> {action.value}")
            stats.record(entry.relative_path, group_name, decision, action)

        totals = stats.totals()
        logger.info(
            f"Synced {template_root} -> {target_root}"
            f"{' (dry run)' if dry_run else ''}: "
            f"{totals.copied} copied, {totals.updated} updated, {totals.skipped} skipped"
        )
        return stats

    @staticmethod
    def _decide(decision: SyncDecision, exists: bool, mode: UpdateMode) -> SyncAction:
        if decision in (SyncDecision.PROTECTED, SyncDecision.PRESERVE_TARGET):
            if exists and mode is not UpdateMode.FORCE:
                return SyncAction.SKIPPED
        # ALWAYS_UPDATE and MERGE are written unconditionally during installs
        return SyncAction.UPDATED if exists else SyncAction.COPIED

    def _write(self, entry: TemplateEntry, destination: Path, variables: Mapping[str, str]) -> None:
        destination.parent.mkdir(parents=True, exist_ok=True)
        if entry.substitute:
            content = entry.read().decode("utf-8")
            destination.write_text(substitute_variables(content, variables), encoding="utf-8")
        else:
            destination.write_bytes(entry.read())
