"""Display and formatting service for install, merge and worktree results"""
from rich.console import Console
from rich.table import Table
from typing import Iterable, List, Optional

from worktree_kit.exceptions import PortUnavailable, WorktreeKitError
from worktree_kit.logging_config import get_logger
from worktree_kit.models.allocation import ResourceAllocation
from worktree_kit.models.merge import MergeOutcome, MergePlan, MergeResult
from worktree_kit.models.sync import KeyMergeResult, Severity, SyncStats, ValidationResult
from worktree_kit.models.worktree import WorktreeInfo

console = Console()
logger = get_logger(__name__)

SEVERITY_STYLES = {
    Severity.ERROR: "red",
    Severity.WARNING: "yellow",
}


class DisplayService:
    def __init__(self, verbose: bool = False, debug: bool = False, output: Optional[Console] = None):
        self.verbose = verbose
        self.debug_mode = debug
        self.console = output or console

    def display_sync_stats(self, stats: SyncStats, title: str = "Template files") -> None:
        """Per-group copied/updated/skipped counters."""
        table = Table(title=f"{title} (dry run)" if stats.dry_run else title)
        table.add_column("Group")
        table.add_column("Copied", justify="right")
        table.add_column("Updated", justify="right")
        table.add_column("Skipped", justify="right")

        for name, group in stats.groups.items():
            table.add_row(name, str(group.copied), str(group.updated), str(group.skipped))

        totals = stats.totals()
        table.add_row("total", str(totals.copied), str(totals.updated), str(totals.skipped), style="bold")
        self.console.print(table)

        if self.verbose:
            for record in stats.records:
                self.console.print(f"  [dim]{record.action.value:<8}[/dim] {record.path} ({record.decision.value})")

    def display_findings(self, result: ValidationResult) -> None:
        if not result.findings:
            return
        table = Table(title="Pre-flight checks")
        table.add_column("Severity")
        table.add_column("Path")
        table.add_column("Message")
        for finding in result.findings:
            style = SEVERITY_STYLES.get(finding.severity)
            table.add_row(finding.severity.value, finding.path, finding.message, style=style)
        self.console.print(table)

    def display_script_changes(self, result: KeyMergeResult) -> None:
        for key in result.added:
            self.console.print(f"[green]+ script {key}[/green]")
        for key in result.updated:
            self.console.print(f"[yellow]~ script {key}[/yellow]")
        if self.verbose:
            for key in result.unchanged:
                self.console.print(f"[dim]= script {key}[/dim]")

    def display_allocation(self, allocation: ResourceAllocation,
                           unavailable: Iterable[PortUnavailable] = ()) -> None:
        table = Table(title=f"Resources for {allocation.branch_name}")
        table.add_column("Resource")
        table.add_column("Value")
        table.add_row("safe name", allocation.safe_name)
        table.add_row("hash", allocation.hash)
        table.add_row("offset", str(allocation.offset))
        for name, port in allocation.ports.items():
            table.add_row(f"{name} port", str(port))
        for key, value in {**allocation.docker, **allocation.aws}.items():
            table.add_row(key, value)
        self.console.print(table)

        for warning in unavailable:
            self.console.print(f"[yellow]Warning: {warning.message}[/yellow]")

    def display_merge_plan(self, plan: MergePlan) -> None:
        table = Table(title=f"Changes in {plan.source_branch}")
        table.add_column("Action")
        table.add_column("Path")
        for path in plan.to_merge:
            table.add_row("merge", path, style="green")
        for path in plan.to_preserve:
            table.add_row("keep target", path, style="cyan")
        for path in plan.to_skip:
            table.add_row("skip", path, style="dim")
        self.console.print(table)

    def display_merge_result(self, result: MergeResult) -> None:
        if result.plan is not None and (self.verbose or result.outcome is MergeOutcome.NOTHING_TO_MERGE):
            self.display_merge_plan(result.plan)

        if result.outcome is MergeOutcome.NOTHING_TO_MERGE:
            self.console.print(
                f"[yellow]Nothing to merge from {result.source_branch}: "
                "every change was worktree-specific[/yellow]"
            )
            return

        self.console.print(
            f"[green]Merged {result.source_branch} into {result.target_branch} "
            f"({len(result.merged_files)} files, commit {result.short_sha})[/green]"
        )
        if result.rebased:
            self.console.print(f"  Rebased {result.source_branch} onto {result.target_branch} first")
        if result.auto_resolved:
            self.console.print(f"  Auto-resolved: {', '.join(result.auto_resolved)}")
        if result.plan is not None and result.plan.to_skip:
            self.console.print(f"  Excluded {len(result.plan.to_skip)} worktree-specific file(s)")
        if result.pushed:
            self.console.print(f"  Pushed {result.target_branch}")
        for warning in result.warnings:
            self.console.print(f"[yellow]Warning: {warning}[/yellow]")

    def display_worktrees(self, worktrees: List[WorktreeInfo]) -> None:
        table = Table()
        table.add_column("Branch")
        table.add_column("Parent")
        table.add_column("Path")
        table.add_column("Ports")
        table.add_column("Status")

        for wt in worktrees:
            parent = wt.metadata.parent_branch if wt.metadata else ""
            ports = ""
            if wt.metadata and wt.metadata.configuration:
                ports = ", ".join(str(p) for p in wt.metadata.configuration.get("ports", {}).values())
            if wt.is_orphaned:
                status, style = "orphaned", "red"
            elif wt.is_main:
                status, style = "main", "cyan"
            else:
                status, style = "active", None
            table.add_row(wt.branch_name or "(detached)", parent, wt.path, ports, status, style=style)

        self.console.print(table)

    def display_error(self, error: WorktreeKitError) -> None:
        """Category, offending paths and remediation commands for a failure."""
        self.console.print(f"[red]{error.category}: {error.message}[/red]")
        for path in error.paths:
            self.console.print(f"  [red]- {path}[/red]")
        if error.remediation:
            self.console.print("\nTo resolve:")
            for command in error.remediation:
                self.console.print(f"  {command}")
