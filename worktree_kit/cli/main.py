"""Command-line interface for git-worktree-kit"""

import sys
from pathlib import Path
from typing import Optional, Tuple

from rich.console import Console

from worktree_kit.cli.args import parse_args
from worktree_kit.config import Config
from worktree_kit.core.installer import Installer, detect_project_name, detect_repository_name
from worktree_kit.core.merge_orchestrator import MergeOrchestrator
from worktree_kit.core.worktree_manager import WorktreeManager
from worktree_kit.exceptions import WorktreeKitError
from worktree_kit.logging_config import setup_logging
from worktree_kit.models.worktree import InstallRecord
from worktree_kit.services.allocator import allocate, probe_ports
from worktree_kit.services.display_service import DisplayService
from worktree_kit.services.git.operations import GitOperations
from worktree_kit.services.metadata_service import MetadataService

console = Console()


def _install_config(args, root: Path, vcs: GitOperations) -> Tuple[Config, Optional[InstallRecord]]:
    """Config for install runs and the previous install record, if there is one.

    A previous record seeds the config. Otherwise the project name comes from
    ``package.json`` (falling back to the directory name) and the repository
    name from the remote URL.
    """
    overrides = dict(
        project_name=args.project_name,
        github_username=args.github_username,
        repository_name=args.repository_name,
        root_branch=getattr(args, "root_branch", None),
        use_infrastructure=getattr(args, "infrastructure", None),
        skip_optional_groups=args.skip_optional,
        dry_run=args.dry_run,
        force=args.force,
        verbose=args.verbose,
        debug=args.debug,
    )
    record = MetadataService(root).load_install_record()
    if record is not None:
        return Config.from_install_record(record, **overrides), record
    if not overrides["project_name"]:
        overrides["project_name"] = detect_project_name(root) or root.name
    if not overrides["repository_name"]:
        overrides["repository_name"] = detect_repository_name(vcs)
    return Config.from_dict({k: v for k, v in overrides.items() if v is not None}), None


def cmd_install(args, root: Path, display: DisplayService) -> int:
    vcs = GitOperations(str(root))
    config, previous = _install_config(args, root, vcs)
    installer = Installer(root, config, vcs=vcs)
    report = installer.install(args.template_dir, previous=previous)

    display.display_findings(report.validation)
    display.display_sync_stats(report.stats)
    if report.scripts is not None:
        display.display_script_changes(report.scripts)
    if report.gitignore_updated:
        console.print("[green]Added worktree patterns to .gitignore[/green]")
    if config.dry_run:
        console.print("[yellow]Dry run: no files were written[/yellow]")
    else:
        action = "Updated" if report.is_update else "Installed"
        console.print(f"[green]{action} worktree support in {root}[/green]")
    return 0


def cmd_update_worktrees(args, root: Path, display: DisplayService) -> int:
    args.project_name = args.github_username = args.repository_name = None
    vcs = GitOperations(str(root))
    config, _ = _install_config(args, root, vcs)
    installer = Installer(root, config, vcs=vcs)
    updates = installer.update_worktrees(args.template_dir)
    if not updates:
        console.print("No worktrees to update")
        return 0
    for name, update in updates.items():
        display.display_sync_stats(update.stats, title=f"Worktree {name}")
    return 0


def cmd_create(args, root: Path, display: DisplayService, config: Config) -> int:
    metadata = WorktreeManager(root, config).create(args.branch, parent_branch=args.parent)
    console.print(f"[green]Created worktree {metadata.branch_name} "
                  f"(parent: {metadata.parent_branch})[/green]")
    display.display_allocation(allocate(args.branch, project_prefix=config.project_prefix,
                                        max_length=config.max_safe_name_length))
    return 0


def cmd_remove(args, root: Path, display: DisplayService, config: Config) -> int:
    WorktreeManager(root, config).remove(args.branch)
    console.print(f"[green]Removed worktree {args.branch}[/green]")
    return 0


def cmd_list(args, root: Path, display: DisplayService, config: Config) -> int:
    display.display_worktrees(WorktreeManager(root, config).list())
    return 0


def cmd_allocate(args, root: Path, display: DisplayService, config: Config) -> int:
    allocation = allocate(args.branch, project_prefix=config.project_prefix,
                          max_length=config.max_safe_name_length)
    unavailable = probe_ports(allocation.ports) if args.check_ports else []
    display.display_allocation(allocation, unavailable)
    return 0


def cmd_merge(args, root: Path, display: DisplayService, config: Config) -> int:
    result = MergeOrchestrator(root, config).merge(args.branch)
    display.display_merge_result(result)
    return 0


SYNC_COMMANDS = {
    "install": cmd_install,
    "update-worktrees": cmd_update_worktrees,
}

COMMANDS = {
    "create": cmd_create,
    "remove": cmd_remove,
    "list": cmd_list,
    "allocate": cmd_allocate,
    "merge": cmd_merge,
}


def main(argv=None):
    """Main entry point for the application."""
    parsed_args = None
    try:
        parsed_args = parse_args(argv)

        log_file = setup_logging(verbose=parsed_args.verbose, debug=parsed_args.debug)
        if log_file is not None:
            console.print(f"[yellow]Debug log: {log_file}[/yellow]")
        display = DisplayService(verbose=parsed_args.verbose, debug=parsed_args.debug)
        root = Path(parsed_args.path).resolve()

        if parsed_args.command in SYNC_COMMANDS:
            return SYNC_COMMANDS[parsed_args.command](parsed_args, root, display)

        config = Config(
            project_name=root.name,
            verbose=parsed_args.verbose,
            debug=parsed_args.debug,
            push=not getattr(parsed_args, "no_push", False),
            update_branch=getattr(parsed_args, "update", False),
            allow_outdated=getattr(parsed_args, "force", False),
            remote_name=getattr(parsed_args, "remote", "origin"),
        )

        if parsed_args.debug:
            console.print("[yellow]Debug mode enabled[/yellow]")
            console.print("[yellow]Configuration:[/yellow]")
            for key, value in config.to_dict().items():
                console.print(f"  {key}: {value}")

        return COMMANDS[parsed_args.command](parsed_args, root, display, config)
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        return 1
    except WorktreeKitError as e:
        DisplayService().display_error(e)
        if parsed_args is not None and parsed_args.debug:
            console.print_exception()
        return 1
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        if parsed_args is not None and parsed_args.debug:
            console.print_exception()
        return 1


if __name__ == "__main__":
    sys.exit(main())
