#!/usr/bin/env python3
"""
Tests for repository state probing.

Real repositories are built in temporary directories for branch, commit
and ahead/behind scenarios; remote reachability failures are simulated by
patching the command runner.
"""

import shutil
import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

sys.path.insert(0, str(Path(__file__).parent))

from git_fixtures import (
    build_diverged_repo, commit, create_test_config, git, init_bare_repo, init_repo
)
from vcsync.git_sync.error_patterns import ErrorClassifier
from vcsync.git_sync.error_types import VcsError, VcsErrorKind
from vcsync.git_sync.operations import BranchMutator
from vcsync.git_sync.repository_info import AheadBehind, BranchKind, RemoteStatus
from vcsync.git_sync.runner import VcsCommandRunner
from vcsync.git_sync.state import RepositoryStateProber, probe_repository
from vcsync.git_sync.utils import create_git_result, failed_result


class TestRepositoryStateProbe(unittest.TestCase):
    """Test cases for probing real repositories."""

    def setUp(self):
        print(f"\nSetting up test: {self._testMethodName}")
        self.temp_dir = Path(tempfile.mkdtemp()).resolve()
        self.repo_dir = self.temp_dir / "repo"
        self.config = create_test_config()
        self.runner = VcsCommandRunner(self.config)
        self.prober = RepositoryStateProber(self.runner)

    def tearDown(self):
        self.runner.close()
        if self.temp_dir.exists():
            shutil.rmtree(self.temp_dir)

    def test_fresh_initialized_repository(self):
        self.repo_dir.mkdir()
        init_result = BranchMutator(self.runner, self.config, self.repo_dir).init_repository()
        self.assertTrue(init_result.success, init_result.message)

        result = self.prober.probe(self.repo_dir)
        self.assertTrue(result.success, result.message)
        state = result.value

        self.assertTrue(state.current_branch)
        self.assertEqual(state.branches, [state.current_branch])
        self.assertEqual(state.ahead_behind, AheadBehind(0, 0))
        self.assertEqual(state.remote, RemoteStatus.not_probed())
        self.assertIsNone(state.remote_url)

        info = state.branch_map[state.current_branch]
        self.assertEqual(info.kind, BranchKind.LOCAL)
        self.assertEqual([c.message for c in info.commits], ["Initial commit"])
        self.assertEqual(info.commits[0].hash, info.commit_sha)

    def test_probe_is_idempotent(self):
        build_diverged_repo(self.repo_dir)
        first = self.prober.probe(self.repo_dir).value
        second = self.prober.probe(self.repo_dir).value
        self.assertEqual(first.to_dict(), second.to_dict())

    def test_ahead_two_behind_one(self):
        shas = build_diverged_repo(self.repo_dir)
        state = probe_repository(self.runner, self.repo_dir)

        self.assertEqual(state.current_branch, "main")
        self.assertEqual(state.ahead_behind, AheadBehind(ahead=2, behind=1))
        self.assertEqual(state.branches, ["main", "origin/main"])
        self.assertEqual(state.local_branches(), ["main"])
        self.assertEqual(state.remote_branches(), ["origin/main"])

        main_commits = [c.hash for c in state.branch_map["main"].commits]
        self.assertEqual(main_commits, [shas["local2"], shas["local1"], shas["base"]])
        remote = state.branch_map["origin/main"]
        self.assertEqual(remote.kind, BranchKind.REMOTE)
        self.assertEqual(remote.commit_sha, shas["remote"])
        self.assertEqual([c.hash for c in remote.commits], [shas["remote"], shas["base"]])

    def test_commits_sorted_newest_first(self):
        build_diverged_repo(self.repo_dir)
        state = probe_repository(self.runner, self.repo_dir)
        for info in state.branch_map.values():
            dates = [c.date for c in info.commits]
            self.assertEqual(dates, sorted(dates, reverse=True))
            hashes = [c.hash for c in info.commits]
            self.assertEqual(len(hashes), len(set(hashes)))

    def test_parallel_log_fetch_matches_sequential(self):
        build_diverged_repo(self.repo_dir)
        git(self.repo_dir, "branch", "feature")
        sequential = probe_repository(self.runner, self.repo_dir)

        runner = VcsCommandRunner(create_test_config(concurrent_reads=True))
        try:
            parallel = probe_repository(runner, self.repo_dir)
        finally:
            runner.close()
        self.assertEqual(sequential.to_dict(), parallel.to_dict())

    def test_remote_url_strips_git_suffix(self):
        init_repo(self.repo_dir)
        commit(self.repo_dir, "initial")
        remote_dir = init_bare_repo(self.temp_dir / "remote.git")
        git(self.repo_dir, "remote", "add", "origin", str(remote_dir))

        state = probe_repository(self.runner, self.repo_dir)
        self.assertEqual(state.remote_url, str(self.temp_dir / "remote"))
        self.assertEqual(state.remote, RemoteStatus.reachable())

    def test_unreachable_remote_is_not_probed(self):
        init_repo(self.repo_dir)
        commit(self.repo_dir, "initial")
        git(self.repo_dir, "remote", "add", "origin", str(self.temp_dir / "missing.git"))

        state = probe_repository(self.runner, self.repo_dir)
        self.assertEqual(state.remote, RemoteStatus.not_probed())
        self.assertFalse(state.remote.auth_required)

    def test_branch_name_collision_keeps_both(self):
        build_diverged_repo(self.repo_dir)
        git(self.repo_dir, "branch", "origin/main")

        state = probe_repository(self.runner, self.repo_dir)
        self.assertEqual(state.branch_map["origin/main"].kind, BranchKind.LOCAL)
        self.assertEqual(state.branch_map["remotes/origin/main"].kind, BranchKind.REMOTE)
        self.assertEqual(state.branch_map["remotes/origin/main"].name, "origin/main")

    def test_detached_head_falls_back_to_remote_head(self):
        build_diverged_repo(self.repo_dir)
        git(self.repo_dir, "symbolic-ref", "refs/remotes/origin/HEAD", "refs/remotes/origin/main")
        git(self.repo_dir, "checkout", "-q", "--detach", "HEAD")

        state = probe_repository(self.runner, self.repo_dir)
        self.assertEqual(state.current_branch, "origin/main")
        # The symbolic remote HEAD is not a branch of its own
        self.assertNotIn("origin/HEAD", state.branch_map)

    def test_not_a_repository(self):
        self.repo_dir.mkdir()
        result = self.prober.probe(self.repo_dir)
        self.assertFalse(result.success)
        self.assertIsNone(result.value)
        self.assertEqual(result.error_kind, VcsErrorKind.NOT_A_REPOSITORY)
        self.assertIsNone(probe_repository(self.runner, self.repo_dir))

    def test_missing_path(self):
        result = self.prober.probe(self.temp_dir / "gone")
        self.assertFalse(result.success)
        self.assertEqual(result.error_kind, VcsErrorKind.PATH_NOT_FOUND)


class TestRemoteStatusClassification(unittest.TestCase):
    """Test cases for remote reachability with a patched runner."""

    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp()).resolve()
        self.runner = VcsCommandRunner(create_test_config())
        self.prober = RepositoryStateProber(self.runner)

    def tearDown(self):
        self.runner.close()
        shutil.rmtree(self.temp_dir)

    def _remote_show_fails_with(self, stderr):
        error = ErrorClassifier().classify(128, stderr)
        return patch.object(self.runner, "execute", return_value=failed_result("git remote", error))

    def test_authentication_failure(self):
        stderr = "remote: Invalid credentials\nfatal: Authentication failed for 'https://example.com/repo.git/'\n"
        with self._remote_show_fails_with(stderr):
            status = self.prober.remote_status(self.temp_dir)

        self.assertTrue(status.exists)
        self.assertTrue(status.auth_required)
        self.assertEqual(status.error_message, "Authentication failed for https://example.com/repo.git/")

    def test_username_prompt_failure(self):
        stderr = "fatal: could not read Username for 'https://example.com': terminal prompts disabled\n"
        with self._remote_show_fails_with(stderr):
            status = self.prober.remote_status(self.temp_dir)
        self.assertTrue(status.auth_required)

    def test_other_failure_is_not_probed(self):
        with self._remote_show_fails_with("fatal: unable to access 'https://example.com/': Could not resolve host\n"):
            status = self.prober.remote_status(self.temp_dir)
        self.assertEqual(status, RemoteStatus.not_probed())

    def test_success_is_reachable(self):
        ok = create_git_result(True, "ok", "git remote")
        with patch.object(self.runner, "execute", return_value=ok):
            self.assertEqual(self.prober.remote_status(self.temp_dir), RemoteStatus.reachable())

    def test_auth_required_implies_exists(self):
        with self.assertRaises(ValueError):
            RemoteStatus(exists=False, auth_required=True)

    def test_ahead_behind_failure_is_zero(self):
        error = VcsError.command_failed(128, "fatal: ambiguous argument 'main...origin/main'")
        with patch.object(self.runner, "execute", return_value=failed_result("git rev-list", error)):
            self.assertEqual(self.prober.ahead_behind(self.temp_dir, "main"), AheadBehind(0, 0))

    def test_ahead_behind_unparseable_is_zero(self):
        output = create_git_result(True, "ok", "git rev-list")
        with patch.object(self.runner, "execute", return_value=output):
            self.assertEqual(self.prober.ahead_behind(self.temp_dir, "main"), AheadBehind(0, 0))

    def test_ahead_behind_without_branch(self):
        with patch.object(self.runner, "execute") as execute:
            self.assertEqual(self.prober.ahead_behind(self.temp_dir, ""), AheadBehind(0, 0))
        execute.assert_not_called()


def run_tests():
    """Run all repository state tests."""
    print("Running Repository State Tests")
    print("=" * 60)

    suite = unittest.TestSuite()
    for case in (TestRepositoryStateProbe, TestRemoteStatusClassification):
        suite.addTests(unittest.TestLoader().loadTestsFromTestCase(case))

    result = unittest.TextTestRunner(verbosity=2, stream=sys.stdout).run(suite)

    print("\n" + "=" * 60)
    print("Test Summary:")
    print(f"  Tests run: {result.testsRun}")
    print(f"  Failures: {len(result.failures)}")
    print(f"  Errors: {len(result.errors)}")

    success = len(result.failures) == 0 and len(result.errors) == 0
    print(f"\nOverall result: {'PASS' if success else 'FAIL'}")
    return success


if __name__ == "__main__":
    success = run_tests()
    sys.exit(0 if success else 1)
