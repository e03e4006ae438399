"""Polling watch of a working copy's git metadata directory.

Ref-log writes under ``<gitdir>/logs/refs`` are turned into incremental
updates for the current branch. Removing the metadata directory clears the
repository. Updates are published on a queue; the watcher never touches the
stored state itself.
"""

import logging
import queue
import threading
from enum import Enum
from pathlib import Path, PurePath
from typing import Callable, Optional, Union

from watchdog.events import FileSystemEventHandler
from watchdog.observers.polling import PollingObserver

from ..config import Config
from .branch_utils import LOCAL_PREFIX, REMOTE_PREFIX
from .repository_info import (
    AheadBehindUpdate, BranchCommitsUpdate, RepositoryClearedUpdate, RepositoryState
)
from .state import RepositoryStateProber
from .validation import is_git_repository, resolve_git_dir

logger = logging.getLogger('vcsync.git_sync.watcher')


class WatcherState(Enum):
    IDLE = "idle"
    WATCHING = "watching"


StateProvider = Callable[[], Optional[RepositoryState]]


class ChangeWatcher:
    """
    Watches one repository at a time.

    Recomputations go through the prober and therefore through the runner's
    per-root queue; they run on the observer thread.
    """

    def __init__(
        self,
        prober: RepositoryStateProber,
        state_provider: StateProvider,
        updates: "queue.Queue",
        config: Config
    ):
        self.prober = prober
        self.state_provider = state_provider
        self.updates = updates
        self.config = config
        self.state = WatcherState.IDLE
        self.repo_root: Optional[Path] = None
        self.git_dir: Optional[Path] = None
        self._observer: Optional[PollingObserver] = None
        self._lock = threading.Lock()
        self._cleared = False

    @property
    def refs_log_dir(self) -> Optional[Path]:
        if self.git_dir is None:
            return None
        return self.git_dir / "logs" / "refs"

    def start(self, repo_root: Union[str, Path]) -> bool:
        """
        Start watching ``repo_root``, stopping any previous watch first.

        Returns:
            True if a watch was started, False when ``repo_root`` is not a
            repository and the watcher stays idle
        """
        self.stop()

        root = Path(repo_root).expanduser().resolve()
        if not is_git_repository(root):
            logger.info(f"Not watching {root}: not a git repository")
            return False

        git_dir = resolve_git_dir(root)
        if git_dir is None:
            logger.warning(f"Not watching {root}: cannot resolve the git directory")
            return False

        observer = PollingObserver(timeout=self.config.poll_interval)
        observer.schedule(_GitMetadataHandler(self), str(git_dir), recursive=True)
        observer.start()

        with self._lock:
            self.repo_root = root
            self.git_dir = git_dir
            self._observer = observer
            self._cleared = False
            self.state = WatcherState.WATCHING

        logger.info(f"Watching {git_dir} for ref changes (every {self.config.poll_interval}s)")
        return True

    def stop(self) -> None:
        """Stop and join the observer; no-op when idle."""
        with self._lock:
            observer = self._observer
            root = self.repo_root
            self._observer = None
            self.repo_root = None
            self.git_dir = None
            self.state = WatcherState.IDLE

        if observer is None:
            return

        observer.stop()
        # Handlers may call stop() from the observer thread itself
        if threading.current_thread() is not observer:
            observer.join()
        logger.info(f"Stopped watching {root}")

    def _selected_branch(self, path: Union[str, Path], git_dir: Path, current_branch: str) -> Optional[str]:
        try:
            relative = PurePath(path).relative_to(git_dir / "logs" / "refs")
        except ValueError:
            return None
        if not relative.parts:
            return None
        if relative.parts[0] == "heads":
            return current_branch
        return f"origin/{current_branch}"

    def on_change(self, path: Union[str, Path]) -> None:
        """Handle a modified or created file below the metadata directory."""
        with self._lock:
            root, git_dir = self.repo_root, self.git_dir
        if root is None or git_dir is None:
            return

        state = self.state_provider()
        if state is None or not state.current_branch:
            return

        branch = self._selected_branch(path, git_dir, state.current_branch)
        if branch is None:
            return

        logger.debug(f"Ref log changed at {path}, refreshing '{branch}'")

        ahead_behind = self.prober.ahead_behind(root, state.current_branch)
        self.updates.put(AheadBehindUpdate(ahead=ahead_behind.ahead, behind=ahead_behind.behind))

        prefix = LOCAL_PREFIX if branch == state.current_branch else REMOTE_PREFIX
        commits = self.prober.branch_commits(root, f"{prefix}{branch}")
        self.updates.put(BranchCommitsUpdate(branch_name=branch, commits=commits))

    def on_directory_removed(self, path: Union[str, Path]) -> None:
        """Clear the repository once if removing ``path`` made it stop being one."""
        with self._lock:
            root = self.repo_root
            if root is None or self._cleared:
                return

        if is_git_repository(root):
            return

        with self._lock:
            if self._cleared or self.repo_root != root:
                return
            self._cleared = True

        logger.info(f"{root} is no longer a git repository (removed {path})")
        self.updates.put(RepositoryClearedUpdate(repo_root=root))


class _GitMetadataHandler(FileSystemEventHandler):
    """Watchdog handler forwarding metadata events to a ChangeWatcher."""

    def __init__(self, watcher: ChangeWatcher):
        self._watcher = watcher

    def _dispatch(self, callback, path) -> None:
        try:
            callback(path)
        except Exception as e:
            logger.error(f"Error handling change at {path}: {e}", exc_info=True)

    def on_modified(self, event):
        if not event.is_directory:
            self._dispatch(self._watcher.on_change, event.src_path)

    def on_created(self, event):
        if not event.is_directory:
            self._dispatch(self._watcher.on_change, event.src_path)

    def on_deleted(self, event):
        if event.is_directory:
            self._dispatch(self._watcher.on_directory_removed, event.src_path)
