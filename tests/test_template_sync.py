"""Tests for template synchronization"""
import hashlib
from pathlib import Path

from worktree_kit.config import Config
from worktree_kit.models.sync import SyncAction, SyncDecision, SyncGroup, UpdateMode
from worktree_kit.services.classifier import ClassificationRules
from worktree_kit.services.template_sync import (
    TemplateSyncService,
    build_replacements,
    is_text_file,
    iter_template_entries,
    substitute_variables,
)

VARIABLES = {"PROJECT_NAME": "demo", "ROOT_BRANCH": "main", "PARENT_BRANCH": "main"}


def snapshot(root: Path) -> dict:
    """Relative path -> content hash for every file under root."""
    return {
        p.relative_to(root).as_posix(): hashlib.sha1(p.read_bytes()).hexdigest()
        for p in sorted(root.rglob("*")) if p.is_file()
    }


class TestSubstitution:
    """Test placeholder replacement."""

    def test_replaces_known_keys(self):
        """Known keys are replaced everywhere."""
        assert substitute_variables("{{A}}-{{A}}/{{B}}", {"A": "x", "B": "y"}) == "x-x/y"

    def test_unmatched_placeholders_left_verbatim(self):
        """Missing keys are tolerated."""
        assert substitute_variables("{{A}} {{MISSING}}", {"A": "x"}) == "x {{MISSING}}"

    def test_regex_metacharacters_in_keys(self):
        """Keys are matched literally."""
        content = "{{A.B}} {{AxB}} {{C+}}"
        assert substitute_variables(content, {"A.B": "1", "C+": "2"}) == "1 {{AxB}} 2"

    def test_backslashes_in_values(self):
        """Values are inserted literally."""
        assert substitute_variables("{{P}}", {"P": r"C:\new\1"}) == r"C:\new\1"

    def test_text_detection_is_extension_based(self):
        """Only known extensions receive substitution."""
        assert is_text_file("a.mjs")
        assert is_text_file(".gitignore")
        assert not is_text_file("logo.png")

    def test_build_replacements(self):
        """Repository name falls back to the project name."""
        variables = build_replacements(Config(project_name="shop", github_username="octo"), "staging")
        assert variables == {
            "PROJECT_NAME": "shop",
            "REPOSITORY_NAME": "shop",
            "GITHUB_USERNAME": "octo",
            "REPOSITORY_OWNER": "octo",
            "ROOT_BRANCH": "staging",
            "PARENT_BRANCH": "staging",
        }


class TestIterTemplateEntries:
    """Test template walking."""

    def test_stable_order_and_flags(self, template_tree):
        """Entries are sorted and flagged by extension."""
        entries = list(iter_template_entries(template_tree))
        assert [e.relative_path for e in entries] == [
            ".claude/commands/merge.md",
            ".deploy/stack.yml",
            "docs/WORKTREES.md",
            "docs/logo.png",
            "scripts/worktree/create.mjs",
            "test/package.json",
            "test/helpers/setup.mjs",
        ]
        by_path = {e.relative_path: e for e in entries}
        assert by_path["docs/WORKTREES.md"].substitute is True
        assert by_path["docs/logo.png"].substitute is False


class TestSyncScenarios:
    """Install and update scenarios."""

    def _service(self):
        rules = ClassificationRules(always_update=["scripts/"], protected_paths=["deploy/"])
        groups = [SyncGroup("scripts", ("scripts/",)), SyncGroup("deploy", ("deploy/",), optional=True)]
        return TemplateSyncService(rules, groups)

    def _templates(self, root: Path) -> Path:
        (root / "scripts").mkdir(parents=True)
        (root / "deploy").mkdir()
        (root / "scripts" / "a.mjs").write_text("new {{PROJECT_NAME}}\n")
        (root / "deploy" / "db.yml").write_text("db: template\n")
        return root

    def test_fresh_install_with_optional_group_disabled(self, temp_dir, project_dir):
        """Optional groups that are disabled are neither copied nor counted."""
        templates = self._templates(temp_dir / "tpl")
        stats = self._service().sync(templates, project_dir, VARIABLES, include_optional=False)

        assert stats["scripts"].to_dict() == {"copied": 1, "skipped": 0, "updated": 0}
        assert stats["deploy"].to_dict() == {"copied": 0, "skipped": 0, "updated": 0}
        assert not (project_dir / "deploy" / "db.yml").exists()
        assert (project_dir / "scripts" / "a.mjs").read_text() == "new demo\n"

    def test_update_run(self, temp_dir, project_dir):
        """Always-update files are refreshed; existing protected files are kept."""
        templates = self._templates(temp_dir / "tpl")
        (project_dir / "scripts").mkdir()
        (project_dir / "deploy").mkdir()
        (project_dir / "scripts" / "a.mjs").write_text("old\n")
        (project_dir / "deploy" / "db.yml").write_text("db: mine\n")

        stats = self._service().sync(templates, project_dir, VARIABLES)

        assert stats["scripts"].updated == 1
        assert stats["deploy"].skipped == 1
        assert (project_dir / "deploy" / "db.yml").read_text() == "db: mine\n"
        assert (project_dir / "scripts" / "a.mjs").read_text() == "new demo\n"

    def test_force_overwrites_protected(self, temp_dir, project_dir):
        """Force mode overwrites existing protected files."""
        templates = self._templates(temp_dir / "tpl")
        (project_dir / "deploy").mkdir()
        (project_dir / "deploy" / "db.yml").write_text("db: mine\n")

        stats = self._service().sync(templates, project_dir, VARIABLES, mode=UpdateMode.FORCE)

        assert stats["deploy"].updated == 1
        assert (project_dir / "deploy" / "db.yml").read_text() == "db: template\n"

    def test_preserve_target_never_overwritten(self, template_tree, project_dir):
        """Preserve-target paths behave like protected ones."""
        (project_dir / "test").mkdir()
        (project_dir / "test" / "package.json").write_text('{"name": "mine"}\n')

        stats = TemplateSyncService().sync(template_tree, project_dir, VARIABLES)

        record = next(r for r in stats.records if r.path == "test/package.json")
        assert record.decision is SyncDecision.PRESERVE_TARGET
        assert record.action is SyncAction.SKIPPED
        assert (project_dir / "test" / "package.json").read_text() == '{"name": "mine"}\n'

    def test_binary_files_copied_verbatim(self, template_tree, project_dir):
        """No substitution in files outside the text extensions."""
        TemplateSyncService().sync(template_tree, project_dir, VARIABLES)
        assert (project_dir / "docs" / "logo.png").read_bytes() == b"\x89PNG{{PROJECT_NAME}}\x00"
        assert (project_dir / "docs" / "WORKTREES.md").read_text() == "# demo on main\n"

    def test_missing_template_root(self, temp_dir, project_dir):
        """A missing template directory syncs nothing."""
        stats = TemplateSyncService().sync(temp_dir / "nope", project_dir, VARIABLES)
        assert stats.totals().to_dict() == {"copied": 0, "skipped": 0, "updated": 0}


class TestDryRun:
    """Dry-run must not touch the target."""

    def test_dry_run_leaves_target_unchanged(self, template_tree, project_dir):
        """Target bytes are identical after a dry run."""
        (project_dir / "docs").mkdir()
        (project_dir / "docs" / "WORKTREES.md").write_text("old\n")
        (project_dir / ".deploy").mkdir()
        (project_dir / ".deploy" / "stack.yml").write_text("mine\n")
        before = snapshot(project_dir)

        stats = TemplateSyncService().sync(template_tree, project_dir, VARIABLES, mode=UpdateMode.DRY_RUN)

        assert snapshot(project_dir) == before
        assert stats.dry_run is True

    def test_dry_run_stats_match_real_run(self, template_tree, project_dir):
        """The preview reports exactly what a normal run then does."""
        (project_dir / "docs").mkdir()
        (project_dir / "docs" / "WORKTREES.md").write_text("old\n")
        (project_dir / ".deploy").mkdir()
        (project_dir / ".deploy" / "stack.yml").write_text("mine\n")
        service = TemplateSyncService()

        preview = service.sync(template_tree, project_dir, VARIABLES, mode=UpdateMode.DRY_RUN)
        real = service.sync(template_tree, project_dir, VARIABLES, mode=UpdateMode.NORMAL)

        assert preview.to_dict() == real.to_dict()
        assert [(r.path, r.action) for r in preview.records] == [(r.path, r.action) for r in real.records]
