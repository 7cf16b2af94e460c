"""Path classification rules shared by the installer and the merge orchestrator."""

import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Iterable, List, Optional, Sequence, Tuple

from worktree_kit.constants import (
    ALWAYS_UPDATE_PATHS,
    MERGE_PRESERVE_PATTERNS,
    MERGE_SKIP_PATTERNS,
    OTHER_GROUP,
    PRESERVE_TARGET_PATHS,
    PROTECTED_PATHS,
)
from worktree_kit.models.merge import MergePlan
from worktree_kit.models.sync import SyncDecision, SyncGroup


@dataclass
class ClassificationRules:
    """Named path-pattern lists.

    Precedence when a path matches several lists:
    preserve_target > always_update > protected_paths > MERGE.
    """

    always_update: List[str] = field(default_factory=list)
    protected_paths: List[str] = field(default_factory=list)
    preserve_target: List[str] = field(default_factory=list)

    @classmethod
    def installer_defaults(cls) -> "ClassificationRules":
        return cls(
            always_update=list(ALWAYS_UPDATE_PATHS),
            protected_paths=list(PROTECTED_PATHS),
            preserve_target=list(PRESERVE_TARGET_PATHS),
        )

    @classmethod
    def for_merge(
        cls,
        skip_patterns: Sequence[str] = MERGE_SKIP_PATTERNS,
        preserve_patterns: Sequence[str] = MERGE_PRESERVE_PATTERNS,
    ) -> "ClassificationRules":
        """Merge rule set: skip patterns are never taken from the source."""
        return cls(protected_paths=list(skip_patterns), preserve_target=list(preserve_patterns))

    def with_preserved(self, extra: Iterable[str]) -> "ClassificationRules":
        """Copy of these rules with more preserve-target patterns."""
        return ClassificationRules(
            always_update=list(self.always_update),
            protected_paths=list(self.protected_paths),
            preserve_target=list(self.preserve_target) + list(extra),
        )


@lru_cache(maxsize=256)
def _glob_regex(pattern: str) -> "re.Pattern[str]":
    parts = [re.escape(part) for part in pattern.split("*")]
    return re.compile("^" + ".*".join(parts) + "$")


def normalize_path(path: str) -> str:
    path = path.replace("\\", "/")
    while path.startswith("./"):
        path = path[2:]
    return path


def matches_pattern(path: str, pattern: str) -> bool:
    """Glob-lite match.

    ``dir/`` matches everything below ``dir``; ``*`` matches any run of
    characters (slashes included); anything else is an exact match.
    """
    path = normalize_path(path)
    if "*" in pattern:
        return bool(_glob_regex(pattern).match(path))
    if pattern.endswith("/"):
        return path.startswith(pattern) or path == pattern.rstrip("/")
    return path == pattern


def matches_any(path: str, patterns: Iterable[str]) -> bool:
    return any(matches_pattern(path, p) for p in patterns)


def classify(path: str, rules: ClassificationRules) -> SyncDecision:
    """Assign exactly one decision to ``path``."""
    if matches_any(path, rules.preserve_target):
        return SyncDecision.PRESERVE_TARGET
    if matches_any(path, rules.always_update):
        return SyncDecision.ALWAYS_UPDATE
    if matches_any(path, rules.protected_paths):
        return SyncDecision.PROTECTED
    return SyncDecision.MERGE


def group_for(path: str, groups: Sequence[SyncGroup]) -> Tuple[str, Optional[SyncGroup]]:
    """Name of the first group whose patterns match ``path``."""
    for group in groups:
        if matches_any(path, group.patterns):
            return group.name, group
    return OTHER_GROUP, None


def build_merge_plan(
    source_branch: str,
    target_branch: str,
    changed_paths: Iterable[str],
    rules: ClassificationRules,
) -> MergePlan:
    """Partition changed paths into merge / skip / preserve.

    PRESERVE_TARGET goes to ``to_preserve``, PROTECTED (the merge skip list)
    goes to ``to_skip``, everything else is merged. Duplicate input paths are
    collapsed so each path appears exactly once.
    """
    plan = MergePlan(source_branch=source_branch, target_branch=target_branch)
    seen = set()
    for path in changed_paths:
        if not path or path in seen:
            continue
        seen.add(path)
        decision = classify(path, rules)
        if decision is SyncDecision.PRESERVE_TARGET:
            plan.to_preserve.append(path)
        elif decision is SyncDecision.PROTECTED:
            plan.to_skip.append(path)
        else:
            plan.to_merge.append(path)
    return plan
