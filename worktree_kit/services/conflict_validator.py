"""Pre-flight conflict checks for template installs."""

from dataclasses import dataclass
from pathlib import Path
from typing import Sequence, Union

from worktree_kit.constants import CONFLICT_CHECKS
from worktree_kit.logging_config import get_logger
from worktree_kit.models.sync import ConflictCheck, ConflictFinding, ValidationResult

logger = get_logger(__name__)


@dataclass(frozen=True)
class ValidationToggles:
    """Which optional parts of the install were requested."""

    install_infrastructure: bool = False
    is_update: bool = False


class ConflictValidator:
    """Scans a target tree for paths an install would collide with."""

    def __init__(self, checks: Sequence[ConflictCheck] = CONFLICT_CHECKS):
        self.checks = list(checks)

    def validate(self, target_root: Union[str, Path], toggles: ValidationToggles) -> ValidationResult:
        """Run every enabled check against ``target_root``.

        ``valid`` on the result is False iff an error-severity finding exists.
        On update runs, checks with ``severity_on_update`` report that
        severity instead, since the paths came from the previous install.
        """
        root = Path(target_root)
        result = ValidationResult()

        for check in self.checks:
            if check.requires and not getattr(toggles, check.requires, False):
                continue

            existing = next((p for p in check.paths if (root / p).exists()), None)
            if existing is None:
                continue

            severity = check.severity
            if toggles.is_update and check.severity_on_update is not None:
                severity = check.severity_on_update

            finding = ConflictFinding(path=f"{existing}/" if (root / existing).is_dir() else existing,
                                      message=check.message, severity=severity)
            logger.debug(f"Conflict finding: {finding.path} ({severity.value})")
            result.findings.append(finding)

        if not result.valid:
            logger.info(f"Validation blocked by {len(result.errors)} error(s)")
        return result
