"""Repository mutations issued through the command runner."""

import logging
from pathlib import Path
from typing import Sequence, Union

from ..config import Config
from .clone import clone_into
from .runner import VcsCommandRunner
from .utils import GitResult, chain_failure


class BranchMutator:
    """
    Mutating git operations for one working copy.

    Every method issues its commands through the runner queue and returns a
    GitResult; git failures are never raised. Refreshing the repository state
    afterwards is left to the caller.
    """

    def __init__(self, runner: VcsCommandRunner, config: Config, repo_root: Union[str, Path]):
        self.runner = runner
        self.config = config
        self.repo_root = Path(repo_root)
        self.logger = logging.getLogger('vcsync.git_sync.operations')

    def _git(self, operation: str, command: str, *args: str) -> GitResult:
        self.logger.debug(f"{operation}: git {command} {' '.join(args)}")
        result = self.runner.execute(self.repo_root, command, args)
        result.operation = operation
        if result.success:
            self.logger.info(f"{operation} completed in {self.repo_root}")
        else:
            self.logger.warning(f"{operation} failed in {self.repo_root}: {result.message}")
        return result

    def checkout(self, branch: str) -> GitResult:
        return self._git("checkout", "checkout", branch)

    def create_local_branch(self, name: str) -> GitResult:
        """Create ``name`` from HEAD and switch to it."""
        return self._git("create_local_branch", "checkout", "-b", name)

    def delete_local_branch(self, name: str) -> GitResult:
        """Delete a fully merged local branch."""
        return self._git("delete_local_branch", "branch", "-d", name)

    def publish(self, name: str) -> GitResult:
        """Push ``name`` to origin and set it as the upstream."""
        return self._git("publish", "push", "-u", "origin", name)

    def push(self, branch: str) -> GitResult:
        return self._git("push", "push", "origin", branch)

    def pull(self) -> GitResult:
        return self._git("pull", "pull")

    def fetch(self) -> GitResult:
        return self._git("fetch", "fetch")

    def set_remote(self, url: str) -> GitResult:
        """
        Point ``origin`` at ``url`` and fetch from it.

        The remote is added when missing and re-targeted otherwise.
        """
        existing = self.runner.execute(self.repo_root, "remote", ["get-url", "origin"], read_only=True)
        if existing.success:
            result = self._git("set_remote", "remote", "set-url", "origin", url)
        else:
            result = self._git("set_remote", "remote", "add", "origin", url)
        if not result.success:
            return result

        fetched = self._git("fetch", "fetch", "origin")
        if not fetched.success:
            return chain_failure("set_remote", fetched)
        fetched.operation = "set_remote"
        return fetched

    def stage(self, paths: Sequence[str]) -> GitResult:
        return self._git("stage", "add", "--", *paths)

    def unstage(self, paths: Sequence[str]) -> GitResult:
        return self._git("unstage", "reset", "-q", "HEAD", "--", *paths)

    def commit(self, message: str) -> GitResult:
        return self._git("commit", "commit", "-m", message)

    def init_repository(self) -> GitResult:
        """
        Initialize a repository with one empty commit.

        A local identity from the configuration is set when git has none,
        so the commit succeeds on machines without a global identity.
        """
        result = self._git("init_repository", "init")
        if not result.success:
            return result

        self._ensure_identity()

        committed = self._git("init_repository", "commit", "--allow-empty", "-m", "Initial commit")
        if committed.success:
            committed.message = f"Initialized repository in {self.repo_root}"
        return committed

    def _ensure_identity(self) -> None:
        for key, default in (
            ("user.name", self.config.default_author_name),
            ("user.email", self.config.default_author_email),
        ):
            current = self.runner.execute(self.repo_root, "config", ["--get", key], read_only=True)
            if current.success and current.stdout.strip():
                continue
            outcome = self.runner.execute(self.repo_root, "config", [key, default])
            if outcome.success:
                self.logger.debug(f"Set default git {key}")
            else:
                self.logger.warning(f"Failed to set git {key}: {outcome.message}")

    def clone_into(self, local_path: Union[str, Path], remote_url: str) -> GitResult:
        return clone_into(self.runner, local_path, remote_url)
