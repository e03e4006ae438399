"""Full repository state probing."""

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Dict, List, Optional, Union

from .branch_utils import (
    LOG_FORMAT, REF_FORMAT, LOCAL_PREFIX, REMOTE_PREFIX, BranchRef,
    parse_ahead_behind, parse_commit_log, parse_ref_listing,
    remote_display_name, remote_head_target, sort_commits
)
from .error_types import VcsErrorKind
from .performance_logger import PerformanceLogger, get_performance_logger
from .remote_utils import extract_fatal_message, normalize_remote_url
from .repository_info import (
    AheadBehind, BranchInfo, BranchKind, CommitInfo, RemoteStatus, RepositoryState
)
from .runner import VcsCommandRunner
from .utils import GitResult, chain_failure, create_git_result


# Upper bound on parallel log fetches when the runner allows concurrent reads
MAX_PARALLEL_LOG_FETCHES = 8


class RepositoryStateProber:
    """
    Builds a complete RepositoryState snapshot for a working copy.

    Only branch enumeration is allowed to fail the probe. The remaining steps
    (remote URL, commit logs, remote reachability, ahead/behind) fall back to
    defaults so that a partially working repository still produces a state.
    """

    def __init__(self, runner: VcsCommandRunner, perf_logger: Optional[PerformanceLogger] = None):
        self.runner = runner
        self.perf_logger = perf_logger or get_performance_logger()
        self.logger = logging.getLogger('vcsync.git_sync.state')

    def probe(self, repo_root: Union[str, Path]) -> GitResult:
        """
        Probe the repository at ``repo_root``.

        Returns:
            GitResult whose ``value`` is the RepositoryState, or None when
            the branches could not be listed
        """
        with self.perf_logger.time_operation("probe_repository", {"repo_root": str(repo_root)}):
            listing = self.list_branches(repo_root)
            if not listing.success:
                self.logger.warning(f"Cannot probe {repo_root}: {listing.message}")
                return chain_failure("probe_repository", listing)

            local_refs, remote_refs = listing.value
            current_branch = self._resolve_current_branch(repo_root, local_refs, remote_refs)
            branch_map = self.build_branch_map(local_refs, remote_refs)

            state = RepositoryState(
                branches=list(branch_map),
                current_branch=current_branch,
                branch_map=branch_map,
                remote_url=self.remote_url(repo_root),
            )

            self._attach_commits(repo_root, branch_map)
            state.remote = self.remote_status(repo_root)
            state.ahead_behind = self.ahead_behind(repo_root, current_branch)

        self.logger.info(
            f"Probed {repo_root}: {len(state.branches)} branches, current '{state.current_branch}', "
            f"ahead {state.ahead_behind.ahead}, behind {state.ahead_behind.behind}"
        )
        return create_git_result(
            success=True,
            message=f"Repository state loaded for {repo_root}",
            operation="probe_repository",
            value=state
        )

    def list_branches(self, repo_root: Union[str, Path]) -> GitResult:
        """List local and remote-tracking refs; ``value`` is ``(local, remote)``."""
        local = self.runner.execute(
            repo_root, "for-each-ref", [f"--format={REF_FORMAT}", LOCAL_PREFIX.rstrip("/")], read_only=True
        )
        if not local.success:
            return local

        remote = self.runner.execute(
            repo_root, "for-each-ref", [f"--format={REF_FORMAT}", REMOTE_PREFIX.rstrip("/")], read_only=True
        )
        if not remote.success:
            return remote

        return create_git_result(
            success=True,
            message="Branches listed",
            operation="list_branches",
            value=(parse_ref_listing(local.stdout), parse_ref_listing(remote.stdout))
        )

    def _resolve_current_branch(
        self,
        repo_root: Union[str, Path],
        local_refs: List[BranchRef],
        remote_refs: List[BranchRef]
    ) -> str:
        # symbolic-ref also names an unborn branch, which for-each-ref cannot
        result = self.runner.execute(repo_root, "symbolic-ref", ["--quiet", "--short", "HEAD"], read_only=True)
        if result.success and result.stdout.strip():
            return result.stdout.strip()

        for ref in local_refs:
            if ref.is_head:
                return ref.short_name

        # Detached HEAD: fall back to what the remote's HEAD points at
        remote_current = remote_head_target(remote_refs)
        if remote_current:
            self.logger.debug(f"No local HEAD branch, using remote current branch '{remote_current}'")
            return remote_current

        return ""

    def build_branch_map(self, local_refs: List[BranchRef], remote_refs: List[BranchRef]) -> Dict[str, BranchInfo]:
        """Merge local and remote listings, locals first."""
        branch_map: Dict[str, BranchInfo] = {}

        for ref in local_refs:
            branch_map[ref.short_name] = BranchInfo(
                name=ref.short_name, commit_sha=ref.commit_sha, kind=BranchKind.LOCAL
            )

        for ref in remote_refs:
            if ref.is_symbolic:
                continue
            name = remote_display_name(ref.refname)
            key = name
            if key in branch_map:
                key = ref.short_name
                self.logger.warning(
                    f"Remote branch '{name}' collides with a local branch, keeping it as '{key}'"
                )
            branch_map[key] = BranchInfo(name=name, commit_sha=ref.commit_sha, kind=BranchKind.REMOTE)

        return branch_map

    def remote_url(self, repo_root: Union[str, Path]) -> Optional[str]:
        """Return the normalized ``origin`` URL, or None when unset."""
        result = self.runner.execute(repo_root, "config", ["--get", "remote.origin.url"], read_only=True)
        if not result.success:
            self.logger.debug(f"No origin URL configured for {repo_root}")
            return None
        return normalize_remote_url(result.stdout)

    def branch_commits(self, repo_root: Union[str, Path], ref: str) -> List[CommitInfo]:
        """Return the commits reachable from ``ref``, newest first; empty on failure."""
        result = self.runner.execute(repo_root, "log", [f"--format={LOG_FORMAT}", ref, "--"], read_only=True)
        if not result.success:
            self.logger.debug(f"Could not read log of '{ref}': {result.message}")
            return []
        try:
            return sort_commits(parse_commit_log(result.stdout))
        except ValueError as e:
            self.logger.warning(f"Unparseable log output for '{ref}': {e}")
            return []

    def _attach_commits(self, repo_root: Union[str, Path], branch_map: Dict[str, BranchInfo]) -> None:
        def full_ref(info: BranchInfo) -> str:
            prefix = LOCAL_PREFIX if info.kind is BranchKind.LOCAL else REMOTE_PREFIX
            return f"{prefix}{info.name}"

        branches = list(branch_map.values())
        if self.runner.supports_concurrent_reads and len(branches) > 1:
            workers = min(MAX_PARALLEL_LOG_FETCHES, len(branches))
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="vcsync-log") as pool:
                logs = list(pool.map(lambda info: self.branch_commits(repo_root, full_ref(info)), branches))
        else:
            logs = [self.branch_commits(repo_root, full_ref(info)) for info in branches]

        for info, commits in zip(branches, logs):
            info.commits = commits

    def remote_status(self, repo_root: Union[str, Path]) -> RemoteStatus:
        """
        Check whether ``origin`` can be reached.

        Only an authentication failure is distinguished; every other failure,
        including a missing remote, reports the not-probed status.
        """
        result = self.runner.execute(repo_root, "remote", ["show", "origin"], read_only=True)
        if result.success:
            return RemoteStatus.reachable()

        if result.error_kind is VcsErrorKind.AUTHENTICATION_REQUIRED:
            message = extract_fatal_message(result.error.stderr or result.error.message)
            self.logger.info(f"Remote origin of {repo_root} requires authentication: {message}")
            return RemoteStatus.requires_auth(message)

        self.logger.debug(f"Remote origin of {repo_root} not reachable: {result.message}")
        return RemoteStatus.not_probed()

    def ahead_behind(self, repo_root: Union[str, Path], branch: str) -> AheadBehind:
        """Count commits of ``branch`` vs ``origin/<branch>``; zeros when unavailable."""
        if not branch:
            return AheadBehind()

        result = self.runner.execute(
            repo_root, "rev-list", ["--left-right", "--count", f"{branch}...origin/{branch}"], read_only=True
        )
        if not result.success:
            self.logger.debug(f"Ahead/behind unavailable for '{branch}': {result.message}")
            return AheadBehind()

        try:
            ahead, behind = parse_ahead_behind(result.stdout)
        except ValueError as e:
            self.logger.warning(str(e))
            return AheadBehind()
        return AheadBehind(ahead=ahead, behind=behind)


def probe_repository(runner: VcsCommandRunner, repo_root: Union[str, Path]) -> Optional[RepositoryState]:
    """Convenience wrapper returning the state or None."""
    return RepositoryStateProber(runner).probe(repo_root).value
