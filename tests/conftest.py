"""Pytest fixtures for git-worktree-kit tests"""
import json
import tempfile
from pathlib import Path
from unittest.mock import Mock
import pytest
import git

from worktree_kit.config import Config
from worktree_kit.models.worktree import WorktreeMetadata
from worktree_kit.services.git.operations import GitOperations
from worktree_kit.services.metadata_service import MetadataService


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def config():
    """A configuration that never pushes."""
    return Config(project_name="demo", github_username="octo", push=False)


@pytest.fixture
def git_repo(temp_dir):
    """Create a real Git repository for testing."""
    repo_path = temp_dir / "test_repo"
    repo_path.mkdir()

    # Initialize repository
    repo = git.Repo.init(repo_path)

    # Configure git user for commits
    repo.config_writer().set_value("user", "name", "Test User").release()
    repo.config_writer().set_value("user", "email", "test@example.com").release()

    # Initial commit with a target-owned test config and an ignore file
    (repo_path / "README.md").write_text("# Test Repository\n")
    (repo_path / ".gitignore").write_text(".trees/\n")
    (repo_path / "test").mkdir()
    (repo_path / "test" / "package.json").write_text('{"name": "main-tests"}\n')
    repo.index.add(["README.md", ".gitignore", "test/package.json"])
    repo.index.commit("Initial commit")

    # Rename master to main if needed
    try:
        repo.git.branch('-M', 'main')
    except git.exc.GitCommandError:
        pass

    yield repo

    # Cleanup
    repo.close()


@pytest.fixture
def mock_git():
    """Fake VCS collaborator with a clean, up-to-date repository by default."""
    vcs = Mock(spec=GitOperations)
    vcs.current_branch.return_value = "main"
    vcs.branch_exists.return_value = True
    vcs.remote_branch_exists.return_value = True
    vcs.uncommitted_changes.return_value = []
    vcs.count_commits.return_value = 0
    vcs.changed_files.return_value = []
    vcs.merge_no_commit.return_value = []
    vcs.conflicted_files.return_value = []
    vcs.staged_files.return_value = []
    vcs.read_file.return_value = None
    vcs.commit.return_value = "abc1234def5678"
    vcs.stash_push.return_value = False
    vcs.stash_pop.return_value = True
    vcs.rebase.return_value = []
    vcs.is_repository.return_value = True
    vcs.remote_url.return_value = None
    return vcs


@pytest.fixture
def metadata_service(temp_dir):
    """Metadata store rooted at a temporary project with a recorded 'feature' worktree."""
    service = MetadataService(temp_dir)
    service.worktree_path("feature").mkdir(parents=True)
    service.save_metadata(WorktreeMetadata(
        branch_name="feature",
        parent_branch="main",
        created_at="2024-01-01T00:00:00+00:00",
        updated_at="2024-01-01T00:00:00+00:00",
    ))
    return service


@pytest.fixture
def template_tree(temp_dir):
    """A small template tree mirroring a project layout."""
    root = temp_dir / "templates"
    files = {
        "scripts/worktree/create.mjs": "// create worktree for {{PROJECT_NAME}}\n",
        "docs/WORKTREES.md": "# {{PROJECT_NAME}} on {{ROOT_BRANCH}}\n",
        ".claude/commands/merge.md": "Merge into {{PARENT_BRANCH}}\n",
        ".deploy/stack.yml": "name: {{PROJECT_NAME}}\n",
        "test/package.json": json.dumps({"name": "{{PROJECT_NAME}}-tests"}) + "\n",
        "test/helpers/setup.mjs": "export const project = '{{PROJECT_NAME}}';\n",
    }
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    (root / "docs" / "logo.png").write_bytes(b"\x89PNG{{PROJECT_NAME}}\x00")
    return root


@pytest.fixture
def project_dir(temp_dir):
    """An empty target project directory."""
    path = temp_dir / "project"
    path.mkdir()
    return path


@pytest.fixture
def commit_all():
    """Stage everything (respecting .gitignore) and commit; returns the new sha."""
    def _commit(repo: git.Repo, message: str) -> str:
        repo.git.add("-A")
        repo.git.commit("-m", message)
        return repo.head.commit.hexsha
    return _commit
