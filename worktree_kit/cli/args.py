"""Command-line argument parsing for git-worktree-kit."""

import argparse
from pathlib import Path

from worktree_kit.__version__ import __version__

DEFAULT_TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"


def _common_options() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-v", "--verbose", action="store_true", help="Show verbose output")
    common.add_argument(
        "--debug", action="store_true", help="Show debug information for troubleshooting"
    )
    common.add_argument(
        "-C", "--path", default=".", help="Project root (default: current directory)"
    )
    return common


def _sync_options() -> argparse.ArgumentParser:
    sync = argparse.ArgumentParser(add_help=False)
    sync.add_argument(
        "--template-dir",
        type=Path,
        default=DEFAULT_TEMPLATE_DIR,
        help="Template tree to install (default: the bundled templates)",
    )
    sync.add_argument(
        "--dry-run",
        action="store_true",
        help="Preview mode - show what would be copied without writing anything",
    )
    sync.add_argument(
        "--force", action="store_true", help="Overwrite protected files that already exist"
    )
    sync.add_argument(
        "--skip-optional",
        action="store_true",
        help="Skip the optional deployment and test infrastructure groups",
    )
    return sync


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="worktree-kit",
        description="Provision git worktrees with isolated ports and merge them back safely",
    )
    parser.add_argument("--version", action="version", version=f"git-worktree-kit {__version__}")
    subparsers = parser.add_subparsers(dest="command", metavar="command")
    subparsers.required = True

    common = _common_options()
    sync = _sync_options()

    install = subparsers.add_parser(
        "install", parents=[common, sync], help="Install or update template files in the project"
    )
    install.add_argument("--project-name", help="Project name for templates")
    install.add_argument("--github-username", help="GitHub username or organisation")
    install.add_argument("--repository-name", help="Repository name (default: project name)")
    install.add_argument("--root-branch", help="Root branch (default: the current branch)")
    install.add_argument(
        "--infrastructure",
        action="store_true",
        default=None,
        help="Also install the deployment and test infrastructure groups",
    )

    subparsers.add_parser(
        "update-worktrees", parents=[common, sync], help="Refresh template files in every worktree"
    )

    create = subparsers.add_parser("create", parents=[common], help="Create a worktree for a branch")
    create.add_argument("branch", help="Branch name (letters, digits, hyphens, underscores)")
    create.add_argument("--parent", help="Parent branch to record (default: the current branch)")

    remove = subparsers.add_parser("remove", parents=[common], help="Remove a worktree")
    remove.add_argument("branch", help="Branch whose worktree is removed")

    subparsers.add_parser("list", parents=[common], help="List worktrees with their ports")

    allocate = subparsers.add_parser(
        "allocate", parents=[common], help="Show the ports and resource names for a branch"
    )
    allocate.add_argument("branch", help="Branch name")
    allocate.add_argument(
        "--check-ports", action="store_true", help="Warn about allocated ports that are in use"
    )

    merge = subparsers.add_parser(
        "merge", parents=[common], help="Merge a worktree branch into the current branch"
    )
    merge.add_argument("branch", help="Worktree branch to merge")
    merge.add_argument(
        "--update",
        action="store_true",
        help="Rebase the worktree branch onto the current branch first",
    )
    merge.add_argument(
        "--force", action="store_true", help="Merge even if the worktree branch is behind"
    )
    merge.add_argument("--no-push", action="store_true", help="Do not push after merging")
    merge.add_argument("--remote", default="origin", help="Remote to push to (default: origin)")

    return parser


def parse_args(argv=None):
    """Parse command-line arguments."""
    return build_parser().parse_args(argv)
