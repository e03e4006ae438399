"""Working-tree change sets and resources stored at a commit."""

import logging
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Union

from .performance_logger import PerformanceLogger, get_performance_logger
from .repository_info import ChangedFile, FileStatus, ProjectFileIndex
from .resource_filters import DerivedResourceFilter
from .runner import VcsCommandRunner
from .utils import GitResult, chain_failure, create_git_result


@dataclass(frozen=True)
class StatusEntry:
    """One entry of ``git status --porcelain=v1 -z``."""
    code: str
    path: str
    original_path: Optional[str] = None

    @property
    def status(self) -> FileStatus:
        return status_from_code(self.code)

    @property
    def staged(self) -> bool:
        return self.code[:1] not in (" ", "?", "")


def status_from_code(code: str) -> FileStatus:
    """Map a two-letter porcelain code to a FileStatus."""
    if code == "??":
        return FileStatus.UNTRACKED
    if "R" in code or "C" in code:
        return FileStatus.RENAMED
    if "D" in code:
        return FileStatus.DELETED
    if "A" in code:
        return FileStatus.ADDED
    return FileStatus.MODIFIED


def parse_porcelain_status(output: str) -> List[StatusEntry]:
    """
    Parse NUL-separated porcelain v1 output.

    Rename and copy entries are followed by an extra field holding the
    source path. Ignored entries (``!!``) are dropped.
    """
    fields = output.split("\x00")
    entries = []
    index = 0
    while index < len(fields):
        field = fields[index]
        index += 1
        if len(field) < 4:
            continue

        code, path = field[:2], field[3:]
        original_path = None
        if "R" in code or "C" in code:
            if index < len(fields):
                original_path = fields[index] or None
            index += 1

        if code == "!!":
            continue
        entries.append(StatusEntry(code=code, path=path, original_path=original_path))
    return entries


class ChangeSetBuilder:
    """
    Computes uncommitted changes and historical file contents.

    Nothing here writes to the working tree or the index.
    """

    def __init__(
        self,
        runner: VcsCommandRunner,
        resource_extensions: Sequence[str] = (".yaml", ".yml"),
        perf_logger: Optional[PerformanceLogger] = None
    ):
        self.runner = runner
        self.resource_extensions = tuple(ext.lower() for ext in resource_extensions)
        self.perf_logger = perf_logger or get_performance_logger()
        self.logger = logging.getLogger('vcsync.git_sync.changes')

    def build(self, repo_root: Union[str, Path], project_file_index: ProjectFileIndex) -> GitResult:
        """
        List the changed files of the project tracked by ``project_file_index``.

        Returns:
            GitResult whose ``value`` is a list of ChangedFile
        """
        operation = "build_change_set"
        with self.perf_logger.time_operation(operation, {"repo_root": str(repo_root)}):
            toplevel = self.runner.execute(repo_root, "rev-parse", ["--show-toplevel"], read_only=True)
            if not toplevel.success:
                return chain_failure(operation, toplevel)
            git_root = Path(toplevel.stdout.strip()).resolve()

            revision = self.current_revision(repo_root)

            status = self.runner.execute(
                repo_root, "status", ["--porcelain=v1", "-z", "-uall"], read_only=True
            )
            if not status.success:
                return chain_failure(operation, status)

            changed_files = self._join_with_index(
                parse_porcelain_status(status.stdout), git_root, project_file_index
            )

            for changed in changed_files:
                if changed.original_content is None:
                    source_path = changed.original_path or changed.repo_relative_path
                    changed.original_content = self.file_at_revision(repo_root, revision, source_path) or ""

        self.logger.debug(f"{len(changed_files)} changed files in {repo_root}")
        return create_git_result(
            success=True,
            message=f"{len(changed_files)} changed files",
            operation=operation,
            value=changed_files
        )

    def current_revision(self, repo_root: Union[str, Path]) -> str:
        """Current branch name, or ``HEAD`` when detached."""
        result = self.runner.execute(repo_root, "symbolic-ref", ["--quiet", "--short", "HEAD"], read_only=True)
        branch = result.stdout.strip() if result.success else ""
        return branch or "HEAD"

    def _join_with_index(
        self,
        entries: Iterable[StatusEntry],
        git_root: Path,
        project_file_index: ProjectFileIndex
    ) -> List[ChangedFile]:
        project_root = project_file_index.root.resolve()
        changed_files = []

        for entry in entries:
            working_path = git_root / entry.path
            try:
                project_relative = working_path.relative_to(project_root).as_posix()
            except ValueError:
                continue

            status = entry.status
            # Deleted files are no longer indexed by the host but still belong to the project
            if status is not FileStatus.DELETED and project_relative not in project_file_index:
                continue

            if status is FileStatus.DELETED:
                current_content = ""
            else:
                current_content = project_file_index.files.get(project_relative)
                if current_content is None:
                    current_content = self._read_working_file(working_path)

            changed_files.append(ChangedFile(
                working_path=working_path,
                repo_relative_path=entry.path,
                status=status,
                project_relative_path=project_relative,
                staged=entry.staged,
                original_path=entry.original_path,
                current_content=current_content,
            ))

        return changed_files

    def _read_working_file(self, path: Path) -> str:
        try:
            return path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            self.logger.debug(f"Cannot read {path}: {e}")
            return ""

    def file_at_revision(self, repo_root: Union[str, Path], revision: str, path: str) -> Optional[str]:
        """Content of ``path`` at ``revision``, or None if it did not exist there."""
        result = self.runner.execute(repo_root, "show", [f"{revision}:{path}"], read_only=True)
        if not result.success:
            self.logger.debug(f"No content for {path} at {revision}: {result.message}")
            return None
        return result.stdout

    def resources_at_commit(
        self,
        repo_root: Union[str, Path],
        commit_hash: str,
        exclude: Optional[Callable[[str], bool]] = None
    ) -> GitResult:
        """
        Contents of the resource files stored at ``commit_hash``.

        Paths are kept when their extension is one of ``resource_extensions``
        and ``exclude`` does not mark them as derived; by default kustomization
        and Helm chart files are excluded. Files whose content cannot be read
        or is empty are omitted.

        Returns:
            GitResult whose ``value`` maps repository paths to content
        """
        operation = "resources_at_commit"
        listing = self.runner.execute(repo_root, "ls-tree", ["-r", "--name-only", commit_hash], read_only=True)
        if not listing.success:
            return chain_failure(operation, listing)

        all_paths = [line for line in listing.stdout.splitlines() if line]
        if exclude is None:
            exclude = DerivedResourceFilter(all_paths)

        selected = [
            path for path in all_paths
            if PurePosixPath(path).suffix.lower() in self.resource_extensions and not exclude(path)
        ]

        contents: Dict[str, str] = {}
        for path in selected:
            content = self.file_at_revision(repo_root, commit_hash, path)
            if content:
                contents[path] = content

        self.logger.debug(f"{len(contents)} of {len(all_paths)} paths at {commit_hash} are resources")
        return create_git_result(
            success=True,
            message=f"{len(contents)} resources at {commit_hash}",
            operation=operation,
            value=contents
        )
