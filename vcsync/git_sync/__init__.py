"""Git state synchronization functionality for vcsync."""

from .changes import ChangeSetBuilder
from .error_patterns import ErrorClassifier
from .error_types import VcsError, VcsErrorKind
from .manager import ProjectRepositoryManager, RepositoryStateStore
from .operations import BranchMutator
from .repository_info import (
    AheadBehind, AheadBehindUpdate, BranchCommitsUpdate, BranchInfo, BranchKind,
    ChangedFile, CommitInfo, FileStatus, ProjectFileIndex, RemoteStatus,
    RepositoryClearedUpdate, RepositoryState
)
from .runner import VcsCommandRunner
from .state import RepositoryStateProber, probe_repository
from .utils import GitResult
from .watcher import ChangeWatcher, WatcherState

__all__ = [
    'AheadBehind',
    'AheadBehindUpdate',
    'BranchCommitsUpdate',
    'BranchInfo',
    'BranchKind',
    'BranchMutator',
    'ChangeSetBuilder',
    'ChangeWatcher',
    'ChangedFile',
    'CommitInfo',
    'ErrorClassifier',
    'FileStatus',
    'GitResult',
    'ProjectFileIndex',
    'ProjectRepositoryManager',
    'RemoteStatus',
    'RepositoryClearedUpdate',
    'RepositoryState',
    'RepositoryStateProber',
    'RepositoryStateStore',
    'VcsCommandRunner',
    'VcsError',
    'VcsErrorKind',
    'WatcherState',
    'probe_repository',
]
