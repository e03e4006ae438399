#!/usr/bin/env python3
"""
Tests for repository mutations.

Remote operations run against bare repositories in the temporary directory,
so no network access is needed.
"""

import shutil
import sys
import tempfile
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

from git_fixtures import commit, create_test_config, git, init_bare_repo, init_repo, rev_parse
from vcsync.git_sync.clone import clone_into
from vcsync.git_sync.error_types import VcsErrorKind
from vcsync.git_sync.operations import BranchMutator
from vcsync.git_sync.runner import VcsCommandRunner
from vcsync.git_sync.state import probe_repository


class TestBranchMutator(unittest.TestCase):
    """Test cases for local branch and commit operations."""

    def setUp(self):
        print(f"\nSetting up test: {self._testMethodName}")
        self.temp_dir = Path(tempfile.mkdtemp()).resolve()
        self.repo_dir = init_repo(self.temp_dir / "repo")
        commit(self.repo_dir, "initial", {"README.md": "hello\n"})
        self.config = create_test_config()
        self.runner = VcsCommandRunner(self.config)
        self.mutator = BranchMutator(self.runner, self.config, self.repo_dir)

    def tearDown(self):
        self.runner.close()
        if self.temp_dir.exists():
            shutil.rmtree(self.temp_dir)

    def _current_branch(self):
        return git(self.repo_dir, "symbolic-ref", "--short", "HEAD").strip()

    def test_create_checkout_and_delete_branch(self):
        result = self.mutator.create_local_branch("feature")
        self.assertTrue(result.success, result.message)
        self.assertEqual(result.operation, "create_local_branch")
        self.assertEqual(self._current_branch(), "feature")

        self.assertTrue(self.mutator.checkout("main").success)
        self.assertEqual(self._current_branch(), "main")

        self.assertTrue(self.mutator.delete_local_branch("feature").success)
        state = probe_repository(self.runner, self.repo_dir)
        self.assertEqual(state.branches, ["main"])

    def test_create_existing_branch_fails_with_git_message(self):
        result = self.mutator.create_local_branch("main")
        self.assertFalse(result.success)
        self.assertEqual(result.error_kind, VcsErrorKind.COMMAND_FAILED)
        self.assertIn("main", result.message)

    def test_delete_unmerged_branch_fails(self):
        self.mutator.create_local_branch("feature")
        commit(self.repo_dir, "feature work", {"feature.txt": "x\n"})
        self.mutator.checkout("main")

        result = self.mutator.delete_local_branch("feature")
        self.assertFalse(result.success)
        self.assertIn("feature", git(self.repo_dir, "branch", "--list", "feature"))

    def test_checkout_unknown_branch(self):
        result = self.mutator.checkout("does-not-exist")
        self.assertFalse(result.success)
        self.assertEqual(result.operation, "checkout")

    def test_stage_and_commit(self):
        (self.repo_dir / "notes.txt").write_text("notes\n")
        self.assertTrue(self.mutator.stage(["notes.txt"]).success)

        result = self.mutator.commit("Add notes")
        self.assertTrue(result.success, result.message)
        log = git(self.repo_dir, "log", "-1", "--format=%s").strip()
        self.assertEqual(log, "Add notes")
        self.assertEqual(git(self.repo_dir, "status", "--porcelain"), "")

    def test_commit_with_nothing_staged_fails(self):
        result = self.mutator.commit("Nothing")
        self.assertFalse(result.success)

    def test_init_repository_sets_identity_and_commits(self):
        target = self.temp_dir / "fresh"
        target.mkdir()
        mutator = BranchMutator(self.runner, self.config, target)

        result = mutator.init_repository()
        self.assertTrue(result.success, result.message)
        self.assertEqual(result.operation, "init_repository")
        self.assertEqual(git(target, "log", "-1", "--format=%s").strip(), "Initial commit")
        self.assertTrue(git(target, "config", "user.name").strip())
        self.assertTrue(git(target, "config", "user.email").strip())

    def test_init_repository_keeps_configured_identity(self):
        target = self.temp_dir / "fresh"
        target.mkdir()
        git(target, "init", "-q")
        git(target, "config", "user.name", "Existing Name")
        git(target, "config", "user.email", "existing@example.com")

        result = BranchMutator(self.runner, self.config, target).init_repository()
        self.assertTrue(result.success, result.message)
        self.assertEqual(git(target, "config", "--local", "user.name").strip(), "Existing Name")
        self.assertEqual(git(target, "log", "-1", "--format=%ae").strip(), "existing@example.com")


class TestRemoteOperations(unittest.TestCase):
    """Test cases for operations against a bare repository standing in for origin."""

    def setUp(self):
        print(f"\nSetting up test: {self._testMethodName}")
        self.temp_dir = Path(tempfile.mkdtemp()).resolve()
        self.remote_dir = init_bare_repo(self.temp_dir / "remote.git")
        git(self.remote_dir, "symbolic-ref", "HEAD", "refs/heads/main")
        self.repo_dir = init_repo(self.temp_dir / "repo")
        commit(self.repo_dir, "initial", {"README.md": "hello\n"})
        self.config = create_test_config()
        self.runner = VcsCommandRunner(self.config)
        self.mutator = BranchMutator(self.runner, self.config, self.repo_dir)

    def tearDown(self):
        self.runner.close()
        if self.temp_dir.exists():
            shutil.rmtree(self.temp_dir)

    def test_set_remote_adds_then_retargets(self):
        result = self.mutator.set_remote(str(self.remote_dir))
        self.assertTrue(result.success, result.message)
        self.assertEqual(result.operation, "set_remote")
        self.assertEqual(git(self.repo_dir, "remote", "get-url", "origin").strip(), str(self.remote_dir))

        other_remote = init_bare_repo(self.temp_dir / "other.git")
        result = self.mutator.set_remote(str(other_remote))
        self.assertTrue(result.success, result.message)
        self.assertEqual(git(self.repo_dir, "remote", "get-url", "origin").strip(), str(other_remote))

    def test_set_remote_to_missing_repository_fails_on_fetch(self):
        result = self.mutator.set_remote(str(self.temp_dir / "missing.git"))
        self.assertFalse(result.success)
        self.assertEqual(result.operation, "set_remote")
        # The remote itself was still configured
        self.assertEqual(
            git(self.repo_dir, "remote", "get-url", "origin").strip(),
            str(self.temp_dir / "missing.git")
        )

    def test_publish_push_fetch_and_pull(self):
        self.mutator.set_remote(str(self.remote_dir))

        result = self.mutator.publish("main")
        self.assertTrue(result.success, result.message)
        self.assertEqual(rev_parse(self.remote_dir, "main"), rev_parse(self.repo_dir, "main"))
        upstream = git(self.repo_dir, "rev-parse", "--abbrev-ref", "main@{upstream}").strip()
        self.assertEqual(upstream, "origin/main")

        commit(self.repo_dir, "second", {"second.txt": "2\n"})
        state = probe_repository(self.runner, self.repo_dir)
        self.assertEqual((state.ahead_behind.ahead, state.ahead_behind.behind), (1, 0))
        self.assertTrue(state.remote.exists)

        self.assertTrue(self.mutator.push("main").success)
        state = probe_repository(self.runner, self.repo_dir)
        self.assertEqual((state.ahead_behind.ahead, state.ahead_behind.behind), (0, 0))

        # Another clone pushes; fetch then pull brings the change in
        other = self.temp_dir / "other"
        self.assertTrue(clone_into(self.runner, other, str(self.remote_dir)).success)
        git(other, "config", "user.name", "Other")
        git(other, "config", "user.email", "other@example.com")
        commit(other, "from other", {"other.txt": "o\n"})
        git(other, "push", "-q", "origin", "main")

        self.assertTrue(self.mutator.fetch().success)
        state = probe_repository(self.runner, self.repo_dir)
        self.assertEqual((state.ahead_behind.ahead, state.ahead_behind.behind), (0, 1))

        result = self.mutator.pull()
        self.assertTrue(result.success, result.message)
        self.assertTrue((self.repo_dir / "other.txt").exists())

    def test_push_without_remote_fails(self):
        result = self.mutator.push("main")
        self.assertFalse(result.success)
        self.assertEqual(result.operation, "push")


class TestCloneInto(unittest.TestCase):
    """Test cases for cloning into a local folder."""

    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp()).resolve()
        source = init_repo(self.temp_dir / "source")
        commit(source, "initial", {"app.yaml": "kind: Deployment\n"})
        self.remote_dir = init_bare_repo(self.temp_dir / "remote.git")
        git(source, "push", "-q", str(self.remote_dir), "main")
        git(self.remote_dir, "symbolic-ref", "HEAD", "refs/heads/main")
        self.runner = VcsCommandRunner(create_test_config())

    def tearDown(self):
        self.runner.close()
        shutil.rmtree(self.temp_dir)

    def test_clone_creates_missing_directory(self):
        target = self.temp_dir / "nested" / "clone"
        result = clone_into(self.runner, target, str(self.remote_dir))
        self.assertTrue(result.success, result.message)
        self.assertEqual(result.operation, "clone_repository")
        self.assertEqual((target / "app.yaml").read_text(), "kind: Deployment\n")

        state = probe_repository(self.runner, target)
        self.assertEqual(state.current_branch, "main")
        self.assertEqual(state.remote_url, str(self.temp_dir / "remote"))
        self.assertIn("origin/main", state.branch_map)

    def test_clone_into_empty_directory(self):
        target = self.temp_dir / "empty"
        target.mkdir()
        self.assertTrue(clone_into(self.runner, target, str(self.remote_dir)).success)

    def test_clone_into_non_empty_directory_fails(self):
        target = self.temp_dir / "busy"
        target.mkdir()
        (target / "keep.txt").write_text("keep\n")

        result = clone_into(self.runner, target, str(self.remote_dir))
        self.assertFalse(result.success)
        self.assertEqual(result.error_kind, VcsErrorKind.COMMAND_FAILED)
        self.assertEqual(sorted(p.name for p in target.iterdir()), ["keep.txt"])

    def test_clone_onto_file_is_path_not_found(self):
        target = self.temp_dir / "file.txt"
        target.write_text("not a directory\n")

        result = clone_into(self.runner, target, str(self.remote_dir))
        self.assertFalse(result.success)
        self.assertEqual(result.error_kind, VcsErrorKind.PATH_NOT_FOUND)

    def test_mutator_delegates_clone(self):
        target = self.temp_dir / "via-mutator"
        mutator = BranchMutator(self.runner, create_test_config(), self.temp_dir)
        self.assertTrue(mutator.clone_into(target, str(self.remote_dir)).success)
        self.assertTrue((target / ".git").is_dir())


if __name__ == "__main__":
    unittest.main(verbosity=2)
