"""Helpers shared by the test suites for building real git repositories."""

import os
import subprocess
from pathlib import Path
from typing import Dict, Optional

from vcsync.config import Config
from vcsync.platform import get_git_executable

# Fixed commit dates keep commit ordering deterministic
BASE_TIMESTAMP = 1700000000


def create_test_config(**overrides) -> Config:
    """Create a configuration with short timeouts suitable for tests."""
    values = dict(
        git_executable=get_git_executable(),
        command_timeout=30.0,
        network_timeout=30.0,
        poll_interval=0.1,
        log_level="DEBUG",
    )
    values.update(overrides)
    return Config(**values)


def git(repo_dir: Path, *args: str, env: Optional[Dict[str, str]] = None) -> str:
    """Run git in ``repo_dir`` and return stdout; raises on failure."""
    full_env = dict(os.environ)
    full_env["GIT_TERMINAL_PROMPT"] = "0"
    if env:
        full_env.update(env)
    result = subprocess.run(
        [get_git_executable(), *args],
        cwd=str(repo_dir),
        check=True,
        capture_output=True,
        text=True,
        env=full_env
    )
    return result.stdout


def init_repo(repo_dir: Path, branch: str = "main") -> Path:
    """Initialize a repository on ``branch`` with a local identity."""
    repo_dir.mkdir(parents=True, exist_ok=True)
    git(repo_dir, "init", "-q")
    git(repo_dir, "symbolic-ref", "HEAD", f"refs/heads/{branch}")
    git(repo_dir, "config", "user.name", "Test User")
    git(repo_dir, "config", "user.email", "test@example.com")
    git(repo_dir, "config", "commit.gpgsign", "false")
    return repo_dir


def init_bare_repo(repo_dir: Path) -> Path:
    repo_dir.mkdir(parents=True, exist_ok=True)
    git(repo_dir, "init", "-q", "--bare")
    return repo_dir


_commit_counter = 0


def commit(repo_dir: Path, message: str, files: Optional[Dict[str, str]] = None) -> str:
    """
    Write ``files``, stage everything and commit.

    Each commit gets a strictly later timestamp than the previous one.

    Returns:
        The new commit's hash
    """
    global _commit_counter
    _commit_counter += 1
    for relative, content in (files or {}).items():
        path = repo_dir / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")

    stamp = f"@{BASE_TIMESTAMP + _commit_counter * 60} +0000"
    git(repo_dir, "add", "-A")
    git(
        repo_dir, "commit", "-q", "--allow-empty", "-m", message,
        env={"GIT_AUTHOR_DATE": stamp, "GIT_COMMITTER_DATE": stamp}
    )
    return rev_parse(repo_dir, "HEAD")


def rev_parse(repo_dir: Path, ref: str) -> str:
    return git(repo_dir, "rev-parse", ref).strip()


def build_diverged_repo(repo_dir: Path) -> Dict[str, str]:
    """
    Build ``main`` two commits ahead of and one behind ``origin/main``.

    The remote-tracking ref is written directly so no remote is needed.

    Returns:
        Commit hashes by label: base, remote, local1, local2
    """
    init_repo(repo_dir)
    shas = {"base": commit(repo_dir, "base", {"base.txt": "base\n"})}

    git(repo_dir, "checkout", "-q", "-b", "upstream-work")
    shas["remote"] = commit(repo_dir, "remote change", {"remote.txt": "remote\n"})
    git(repo_dir, "checkout", "-q", "main")
    git(repo_dir, "branch", "-q", "-D", "upstream-work")

    shas["local1"] = commit(repo_dir, "local change 1", {"local1.txt": "one\n"})
    shas["local2"] = commit(repo_dir, "local change 2", {"local2.txt": "two\n"})

    git(repo_dir, "update-ref", "refs/remotes/origin/main", shas["remote"])
    return shas
