"""Project-level owner of a repository's runner, state and watcher."""

import logging
import queue
import threading
from pathlib import Path
from typing import Callable, List, Optional, Union

from ..config import Config
from .changes import ChangeSetBuilder
from .operations import BranchMutator
from .performance_logger import get_performance_logger
from .repository_info import (
    AheadBehind, AheadBehindUpdate, BranchCommitsUpdate, ProjectFileIndex,
    RepositoryClearedUpdate, RepositoryState, RepositoryUpdate
)
from .runner import VcsCommandRunner
from .state import RepositoryStateProber
from .utils import GitResult
from .validation import resolve_working_tree
from .watcher import ChangeWatcher

Listener = Callable[[Optional[RepositoryState]], None]


class RepositoryStateStore:
    """
    Holds the current RepositoryState and applies incremental updates.

    Listeners are called after every change with the new state, which is
    None once the repository has been cleared.
    """

    def __init__(self):
        self._state: Optional[RepositoryState] = None
        self._lock = threading.RLock()
        self._listeners: List[Listener] = []
        self.logger = logging.getLogger('vcsync.git_sync.manager')

    @property
    def state(self) -> Optional[RepositoryState]:
        with self._lock:
            return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; returns a function that unregisters it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        with self._lock:
            listeners = list(self._listeners)
            state = self._state
        for listener in listeners:
            try:
                listener(state)
            except Exception as e:
                self.logger.error(f"State listener failed: {e}", exc_info=True)

    def replace(self, state: Optional[RepositoryState]) -> None:
        with self._lock:
            self._state = state
        self._notify()

    def clear(self) -> None:
        self.replace(None)

    def apply(self, update: RepositoryUpdate) -> bool:
        """
        Patch the stored state with ``update``.

        Returns:
            True if the state changed
        """
        if isinstance(update, RepositoryClearedUpdate):
            with self._lock:
                if self._state is None:
                    return False
            self.clear()
            return True

        with self._lock:
            state = self._state
            if state is None:
                return False

            if isinstance(update, AheadBehindUpdate):
                state.ahead_behind = AheadBehind(ahead=update.ahead, behind=update.behind)
            elif isinstance(update, BranchCommitsUpdate):
                info = state.branch_map.get(update.branch_name)
                if info is None:
                    self.logger.debug(f"Ignoring commits for unknown branch '{update.branch_name}'")
                    return False
                info.commits = list(update.commits)
            else:
                raise TypeError(f"Unsupported repository update: {update!r}")

        self._notify()
        return True


class ProjectRepositoryManager:
    """
    Owns everything attached to the currently open project folder.

    Switching projects cancels queued and running commands of the previous
    repository and stops its watcher before the new one is probed.
    """

    def __init__(self, config: Config):
        self.config = config
        self.logger = logging.getLogger('vcsync.git_sync.manager')
        self.perf_logger = get_performance_logger()
        self.runner = VcsCommandRunner(config)
        self.prober = RepositoryStateProber(self.runner, self.perf_logger)
        self.changes = ChangeSetBuilder(self.runner, config.resource_extensions, self.perf_logger)
        self.store = RepositoryStateStore()
        self.updates: "queue.Queue[RepositoryUpdate]" = queue.Queue()
        self.watcher = ChangeWatcher(self.prober, lambda: self.store.state, self.updates, config)
        self.project_root: Optional[Path] = None
        self.repo_root: Optional[Path] = None

    @property
    def state(self) -> Optional[RepositoryState]:
        return self.store.state

    @property
    def mutator(self) -> BranchMutator:
        """Mutator bound to the open repository, or the project folder before init."""
        root = self.repo_root or self.project_root
        if root is None:
            raise RuntimeError("No project is open")
        return BranchMutator(self.runner, self.config, root)

    def open_project(self, project_root: Union[str, Path]) -> Optional[RepositoryState]:
        """
        Open ``project_root``, closing the previously open project.

        Returns:
            The probed state, or None when the folder is not inside a repository
        """
        root = Path(project_root).expanduser().resolve()
        if self.project_root is not None:
            self.close_project()

        self.project_root = root
        self.repo_root = resolve_working_tree(root)
        self.logger.info(f"Opened project {root} (repository: {self.repo_root})")

        state = self.refresh()
        if state is not None:
            self.watcher.start(self.repo_root)
        return state

    def close_project(self) -> None:
        """Cancel pending commands, stop watching and forget the state."""
        if self.repo_root is not None:
            self.runner.cancel(self.repo_root)
        self.watcher.stop()
        self._drain()
        self.store.clear()
        if self.project_root is not None:
            self.logger.info(f"Closed project {self.project_root}")
        self.project_root = None
        self.repo_root = None

    def refresh(self) -> Optional[RepositoryState]:
        """Re-probe the open repository and replace the stored state."""
        if self.project_root is None:
            return None

        # The folder may have become a repository since it was opened
        if self.repo_root is None:
            self.repo_root = resolve_working_tree(self.project_root)
            if self.repo_root is not None:
                self.watcher.start(self.repo_root)
        if self.repo_root is None:
            self.store.clear()
            return None

        result = self.prober.probe(self.repo_root)
        self.store.replace(result.value)
        return result.value

    def change_set(self, project_file_index: Optional[ProjectFileIndex] = None) -> GitResult:
        """Build the change set of the open project; the folder is scanned when no index is given."""
        if self.project_root is None or self.repo_root is None:
            raise RuntimeError("No repository is open")
        if project_file_index is None:
            project_file_index = ProjectFileIndex.scan(self.project_root)
        return self.changes.build(self.repo_root, project_file_index)

    def process_updates(self, timeout: Optional[float] = 0.0) -> int:
        """
        Apply pending watcher updates to the store.

        Waits up to ``timeout`` seconds for the first update, then drains
        whatever else is queued.

        Returns:
            Number of updates applied
        """
        applied = 0
        block = bool(timeout)
        while True:
            try:
                update = self.updates.get(block=block, timeout=timeout if block else None)
            except queue.Empty:
                break
            block = False

            if self.store.apply(update):
                applied += 1
            if isinstance(update, RepositoryClearedUpdate):
                self.watcher.stop()
                self.repo_root = None
        return applied

    def _drain(self) -> None:
        while True:
            try:
                self.updates.get_nowait()
            except queue.Empty:
                return

    def log_performance_summary(self) -> None:
        """Log a summary of timed probes and change-set builds."""
        summary = self.perf_logger.get_performance_summary()
        if not summary["total_operations"]:
            self.logger.debug("No timed operations to summarize")
            return
        self.logger.info(
            f"Performance: {summary['total_operations']} operations, "
            f"average {summary['average_duration']:.3f}s, "
            f"slowest '{summary['slowest_operation']['name']}' "
            f"({summary['slowest_operation']['duration']:.3f}s)"
        )

    def close(self) -> None:
        """Close the project and shut down every runner queue."""
        self.close_project()
        self.runner.close()
        self.log_performance_summary()
