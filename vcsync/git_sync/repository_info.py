"""Repository state data structures."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union


class BranchKind(Enum):
    """Whether a branch is local or remote-tracking."""
    LOCAL = "local"
    REMOTE = "remote"


class FileStatus(Enum):
    """Working-tree status of a changed file."""
    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"
    UNTRACKED = "untracked"


@dataclass(frozen=True)
class CommitInfo:
    """A single commit from a branch log."""
    hash: str
    date: datetime
    message: str
    author: str
    author_email: str = ""
    refs: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hash": self.hash,
            "date": self.date.isoformat(),
            "message": self.message,
            "author": self.author,
            "author_email": self.author_email,
            "refs": self.refs,
        }


@dataclass
class BranchInfo:
    """A branch and its commit history."""
    name: str
    commit_sha: str
    kind: BranchKind
    commits: List[CommitInfo] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "commit_sha": self.commit_sha,
            "kind": self.kind.value,
            "commits": [commit.to_dict() for commit in self.commits],
        }


@dataclass(frozen=True)
class RemoteStatus:
    """Reachability of the ``origin`` remote."""
    exists: bool = False
    auth_required: bool = False
    error_message: Optional[str] = None

    def __post_init__(self):
        if self.auth_required and not self.exists:
            raise ValueError("auth_required implies exists")

    @classmethod
    def not_probed(cls) -> "RemoteStatus":
        return cls(exists=False, auth_required=False)

    @classmethod
    def reachable(cls) -> "RemoteStatus":
        return cls(exists=True, auth_required=False)

    @classmethod
    def requires_auth(cls, error_message: str) -> "RemoteStatus":
        return cls(exists=True, auth_required=True, error_message=error_message)

    @property
    def probed(self) -> bool:
        return self.exists

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"exists": self.exists, "auth_required": self.auth_required}
        if self.error_message is not None:
            result["error_message"] = self.error_message
        return result


@dataclass(frozen=True)
class AheadBehind:
    """Commit counts of the current branch relative to its origin counterpart."""
    ahead: int = 0
    behind: int = 0

    def __post_init__(self):
        if self.ahead < 0 or self.behind < 0:
            raise ValueError("ahead/behind counts must be non-negative")


@dataclass
class RepositoryState:
    """In-memory model of a working copy."""
    branches: List[str] = field(default_factory=list)
    current_branch: str = ""
    branch_map: Dict[str, BranchInfo] = field(default_factory=dict)
    ahead_behind: AheadBehind = field(default_factory=AheadBehind)
    remote: RemoteStatus = field(default_factory=RemoteStatus.not_probed)
    remote_url: Optional[str] = None

    def local_branches(self) -> List[str]:
        return [name for name, info in self.branch_map.items() if info.kind is BranchKind.LOCAL]

    def remote_branches(self) -> List[str]:
        return [name for name, info in self.branch_map.items() if info.kind is BranchKind.REMOTE]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "branches": list(self.branches),
            "current_branch": self.current_branch,
            "branch_map": {name: info.to_dict() for name, info in self.branch_map.items()},
            "ahead_behind": {"ahead": self.ahead_behind.ahead, "behind": self.ahead_behind.behind},
            "remote": self.remote.to_dict(),
            "remote_url": self.remote_url,
        }


@dataclass
class ChangedFile:
    """A file with uncommitted changes."""
    working_path: Path
    repo_relative_path: str
    status: FileStatus
    project_relative_path: str = ""
    staged: bool = False
    original_path: Optional[str] = None
    original_content: Optional[str] = None
    current_content: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "working_path": str(self.working_path),
            "repo_relative_path": self.repo_relative_path,
            "project_relative_path": self.project_relative_path,
            "status": self.status.value,
            "staged": self.staged,
            "original_path": self.original_path,
            "original_content": self.original_content,
            "current_content": self.current_content,
        }


@dataclass
class ProjectFileIndex:
    """
    Files the host application tracks in a project folder.

    Keys are project-relative POSIX paths. Values are the host's cached text,
    or ``None`` when the content should be read from disk.
    """
    root: Path
    files: Dict[str, Optional[str]] = field(default_factory=dict)

    def __post_init__(self):
        if isinstance(self.root, str):
            self.root = Path(self.root)

    @classmethod
    def scan(cls, root: Union[str, Path], exclude_dirs: tuple = (".git",)) -> "ProjectFileIndex":
        """Index every regular file below ``root``, content loaded lazily."""
        root = Path(root)
        files: Dict[str, Optional[str]] = {}
        for path in root.rglob("*"):
            relative = path.relative_to(root)
            if any(part in exclude_dirs for part in relative.parts):
                continue
            if path.is_file():
                files[relative.as_posix()] = None
        return cls(root=root, files=files)

    def __contains__(self, relative_path: str) -> bool:
        return relative_path in self.files


# Incremental updates published by the change watcher

@dataclass(frozen=True)
class AheadBehindUpdate:
    ahead: int
    behind: int


@dataclass(frozen=True)
class BranchCommitsUpdate:
    branch_name: str
    commits: List[CommitInfo]


@dataclass(frozen=True)
class RepositoryClearedUpdate:
    repo_root: Path


RepositoryUpdate = Union[AheadBehindUpdate, BranchCommitsUpdate, RepositoryClearedUpdate]
