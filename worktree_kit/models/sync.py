"""Template synchronization models and enums"""
from enum import Enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple


class SyncDecision(Enum):
    """How a path is treated when template or merge content arrives."""
    ALWAYS_UPDATE = "always-update"
    PROTECTED = "protected"
    PRESERVE_TARGET = "preserve-target"
    MERGE = "merge"


class UpdateMode(Enum):
    """Caller-selected write policy for a synchronization run."""
    NORMAL = "normal"
    FORCE = "force"
    DRY_RUN = "dry-run"


class SyncAction(Enum):
    """What happened (or would happen) to a single template entry."""
    COPIED = "copied"
    UPDATED = "updated"
    SKIPPED = "skipped"


class Severity(Enum):
    """Severity of a pre-flight conflict finding."""
    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class TemplateEntry:
    """A single file in the template tree."""
    relative_path: str  # POSIX-style, relative to the template root
    source: Path
    substitute: bool  # Derived from the file extension, never from content

    def read(self) -> bytes:
        return self.source.read_bytes()


@dataclass(frozen=True)
class SyncGroup:
    """A logical group of template paths reported with its own counters."""
    name: str
    patterns: Tuple[str, ...]
    optional: bool = False


@dataclass
class GroupStats:
    """Copied/skipped/updated counters for one group."""
    copied: int = 0
    skipped: int = 0
    updated: int = 0

    def record(self, action: SyncAction) -> None:
        if action is SyncAction.COPIED:
            self.copied += 1
        elif action is SyncAction.UPDATED:
            self.updated += 1
        else:
            self.skipped += 1

    def to_dict(self) -> Dict[str, int]:
        return {"copied": self.copied, "skipped": self.skipped, "updated": self.updated}


@dataclass
class SyncRecord:
    """Per-file outcome of a synchronization run."""
    path: str
    group: str
    decision: SyncDecision
    action: SyncAction


@dataclass
class SyncStats:
    """Counters for one synchronization run, keyed by group name."""
    groups: Dict[str, GroupStats] = field(default_factory=dict)
    records: List[SyncRecord] = field(default_factory=list)
    dry_run: bool = False

    def __getitem__(self, group: str) -> GroupStats:
        return self.groups[group]

    def __contains__(self, group: str) -> bool:
        return group in self.groups

    def ensure_group(self, group: str) -> GroupStats:
        if group not in self.groups:
            self.groups[group] = GroupStats()
        return self.groups[group]

    def record(self, path: str, group: str, decision: SyncDecision, action: SyncAction) -> None:
        self.ensure_group(group).record(action)
        self.records.append(SyncRecord(path, group, decision, action))

    def totals(self) -> GroupStats:
        total = GroupStats()
        for stats in self.groups.values():
            total.copied += stats.copied
            total.skipped += stats.skipped
            total.updated += stats.updated
        return total

    def to_dict(self) -> Dict[str, Dict[str, int]]:
        return {name: stats.to_dict() for name, stats in self.groups.items()}


@dataclass(frozen=True)
class ConflictFinding:
    """A pre-existing path in the target tree that collides with an install."""
    path: str
    message: str
    severity: Severity

    @property
    def is_error(self) -> bool:
        return self.severity is Severity.ERROR


@dataclass
class ValidationResult:
    """Outcome of the pre-flight conflict scan."""
    findings: List[ConflictFinding] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not any(f.is_error for f in self.findings)

    @property
    def errors(self) -> List[ConflictFinding]:
        return [f for f in self.findings if f.is_error]

    @property
    def warnings(self) -> List[ConflictFinding]:
        return [f for f in self.findings if not f.is_error]


@dataclass(frozen=True)
class ConflictCheck:
    """A "would collide" rule evaluated by the conflict validator.

    The first existing path among ``paths`` produces a finding. ``requires``
    names a toggle that must be enabled for the check to run.
    """
    paths: Tuple[str, ...]
    message: str
    severity: Severity
    requires: Optional[str] = None
    severity_on_update: Optional[Severity] = None


@dataclass
class KeyMergeResult:
    """Which keys a key-merge added, overwrote or left alone."""
    added: List[str] = field(default_factory=list)
    updated: List[str] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.added or self.updated)
