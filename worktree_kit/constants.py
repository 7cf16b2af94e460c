"""Shared constants for git-worktree-kit."""

from typing import Dict, List, Tuple

from worktree_kit.models.allocation import NamedRange
from worktree_kit.models.sync import ConflictCheck, Severity, SyncGroup


# Identity and file names
BRANCH_NAME_PATTERN = r"^[A-Za-z0-9_-]+$"
DEFAULT_TREES_DIR = ".trees"
METADATA_FILENAME = ".worktree-info.json"
PARENT_HINT_FILENAME = "WORKTREE_CONTEXT.md"
ENV_FILENAME = ".env.worktree"
INSTALL_RECORD_FILENAME = ".worktrees"
IGNORE_FILENAME = ".gitignore"
SCRIPT_TABLE_FILENAME = "package.json"
SCRIPT_TABLE_SECTION = "scripts"

# Branches that are normally merged into directly
ROOT_BRANCHES = ("main", "master", "staging", "prod")


# Port ranges: every worktree gets base + offset in each range
DEFAULT_PORT_RANGES: List[NamedRange] = [
    NamedRange("localstack", 4567, 30),  # 4567-4596
    NamedRange("playwright", 8080, 30),  # 8080-8109
    NamedRange("debug", 9229, 30),  # 9229-9258
]

DEFAULT_SAFE_NAME_LENGTH = 20
DEFAULT_PROJECT_PREFIX = "app"


# Extensions that get {{VARIABLE}} substitution; everything else is copied as bytes
TEXT_EXTENSIONS: Tuple[str, ...] = (
    ".js", ".mjs", ".cjs", ".ts", ".tsx",
    ".json", ".yml", ".yaml",
    ".md", ".txt",
    ".sh", ".bash",
    ".html", ".css", ".scss",
    ".gitignore", ".env", ".example",
)


# Installer classification rules (glob-lite: trailing "/" is a directory prefix,
# "*" matches any run of characters)
ALWAYS_UPDATE_PATHS: List[str] = [
    "scripts/worktree/",
    "docs/",
    ".claude/skills/",
    ".claude/commands/",
    ".claude/README.md",
]

PROTECTED_PATHS: List[str] = [
    ".deploy/",
    "test/",
    "devops.yml",
]

PRESERVE_TARGET_PATHS: List[str] = [
    "test/.env",
    "test/package.json",
]

# Paths inside an existing worktree that template updates must never touch
WORKTREE_LOCAL_PATHS: List[str] = [
    ".env.worktree",
    "docker-compose.worktree.yml",
    "WORKTREE_CONTEXT.md",
    ".worktree-info.json",
    "test/.env.worktree",
    "test/docker-compose.worktree.yml",
    "test/.worktree-info.json",
]

# Merge rules: worktree-local artifacts are never merged back
MERGE_SKIP_PATTERNS: List[str] = [
    ".env.worktree",
    ".worktree-info.json",
    "docker-compose.worktree.yml",
    "WORKTREE_CONTEXT.md",
    "test/.env.worktree",
    "test/docker-compose.worktree.yml",
    "test/.worktree-info.json",
    ".trees/",
    "localstack-data-*",
    "*/localstack-data-*",
]

# Merge rules: the target branch's version always wins
MERGE_PRESERVE_PATTERNS: List[str] = [
    "test/.env",
    "test/package.json",
    ".gitignore",
]


SYNC_GROUPS: List[SyncGroup] = [
    SyncGroup("scripts", ("scripts/",)),
    SyncGroup("docs", ("docs/",)),
    SyncGroup("claude", (".claude/",)),
    SyncGroup("deploy", (".deploy/", "devops.yml"), optional=True),
    SyncGroup("test", ("test/",), optional=True),
]
OTHER_GROUP = "other"


CONFLICT_CHECKS: List[ConflictCheck] = [
    ConflictCheck(
        paths=(".deploy",),
        message="Deployment folder already exists. Remove it or use --skip-optional.",
        severity=Severity.ERROR,
        requires="install_infrastructure",
        severity_on_update=Severity.WARNING,
    ),
    ConflictCheck(
        paths=("test", "tests"),
        message="Test folder already exists. Remove it or use --skip-optional.",
        severity=Severity.ERROR,
        requires="install_infrastructure",
        severity_on_update=Severity.WARNING,
    ),
    ConflictCheck(
        paths=("scripts/worktree",),
        message="Worktree scripts already exist. They will be overwritten.",
        severity=Severity.WARNING,
    ),
    ConflictCheck(
        paths=("docs",),
        message="Documentation folder already exists. Files will be added/merged.",
        severity=Severity.WARNING,
    ),
]


# Ignore-file block; the first non-empty line is the marker
IGNORE_MARKER = "# Worktree-specific files"
IGNORE_BLOCK = """
# Worktree-specific files (added by git-worktree-kit)
.env.worktree
.worktree-info.json
docker-compose.worktree.yml
WORKTREE_CONTEXT.md
.worktrees
test/.env.worktree
test/.worktree-info.json
test/docker-compose.worktree.yml

# Ignore the entire .trees/ directory (contains all worktrees)
.trees/
"""

WORKTREE_IGNORE_BLOCK = """
# Worktree-specific files (should not be committed)
.env.worktree
.worktree-info.json
docker-compose.worktree.yml
WORKTREE_CONTEXT.md
test/.env.worktree
test/.worktree-info.json
test/docker-compose.worktree.yml

# Ignore nested .trees/ directory (prevents tracking nested worktrees)
.trees/
"""


WORKTREE_SCRIPTS: Dict[str, str] = {
    "worktree:create": "worktree-kit create",
    "worktree:list": "worktree-kit list",
    "worktree:merge": "worktree-kit merge",
    "worktree:remove": "worktree-kit remove",
}
