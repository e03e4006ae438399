"""Serialized execution of git commands against a working copy."""

import logging
import threading
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor
from pathlib import Path
from subprocess import Popen, TimeoutExpired
from typing import Dict, Optional, Sequence, Set, Union

from git.cmd import Git
from git.exc import GitCommandNotFound

from ..config import Config
from .error_patterns import ErrorClassifier
from .error_types import VcsError
from .utils import CommandOutput, GitResult, create_git_result, failed_result


# Commands that talk to a remote get the longer network timeout
NETWORK_COMMANDS = frozenset({"clone", "fetch", "pull", "push", "ls-remote"})


def _decode(data: Optional[bytes]) -> str:
    if not data:
        return ""
    return data.decode("utf-8", errors="replace")


class VcsCommandRunner:
    """
    Runs git commands with at most one process per working-copy root.

    Every root gets its own single-worker queue, so commands against the same
    root run strictly in submission order. git keeps one index lock per
    working copy and concurrent invocations can fail on it or leave it behind,
    so reads and writes share that queue.

    With ``concurrent_reads`` enabled, commands submitted as ``read_only``
    skip the queue and run on the calling thread.
    """

    def __init__(self, config: Config, classifier: Optional[ErrorClassifier] = None):
        self.config = config
        self.classifier = classifier or ErrorClassifier()
        self.logger = logging.getLogger('vcsync.git_sync.runner')
        self._lock = threading.Lock()
        self._queues: Dict[Path, ThreadPoolExecutor] = {}
        self._processes: Dict[Path, Set[Popen]] = {}
        self._terminated: Set[Popen] = set()
        # Bumped by cancel(); commands submitted under an older value never run
        self._generations: Dict[Path, int] = {}

    @property
    def supports_concurrent_reads(self) -> bool:
        return self.config.concurrent_reads

    @staticmethod
    def _key(repo_root: Union[str, Path]) -> Path:
        return Path(repo_root).expanduser().resolve()

    def execute(
        self,
        repo_root: Union[str, Path],
        command: str,
        args: Sequence[str] = (),
        read_only: bool = False,
        timeout: Optional[float] = None
    ) -> GitResult:
        """
        Run ``git <command> <args...>`` in ``repo_root`` and wait for it.

        Returns:
            GitResult; failures carry a VcsError and are never raised
        """
        future = self.submit(repo_root, command, args, read_only=read_only, timeout=timeout)
        try:
            return future.result()
        except CancelledError:
            self.logger.debug(f"git {command} in {repo_root} was cancelled before it started")
            return failed_result(f"git {command}", VcsError.cancelled())

    def submit(
        self,
        repo_root: Union[str, Path],
        command: str,
        args: Sequence[str] = (),
        read_only: bool = False,
        timeout: Optional[float] = None
    ) -> "Future[GitResult]":
        """Queue a git command and return a future for its result."""
        key = self._key(repo_root)
        args = tuple(args)

        if not key.is_dir():
            future: "Future[GitResult]" = Future()
            future.set_result(failed_result(f"git {command}", VcsError.path_not_found(key)))
            return future

        if read_only and self.supports_concurrent_reads:
            with self._lock:
                generation = self._generations.get(key, 0)
            future = Future()
            future.set_result(self._run(key, command, args, timeout, generation))
            return future

        with self._lock:
            generation = self._generations.get(key, 0)
            executor = self._queues.get(key)
            if executor is None:
                executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="vcsync-git")
                self._queues[key] = executor
            return executor.submit(self._run, key, command, args, timeout, generation)

    def cancel(self, repo_root: Union[str, Path]) -> None:
        """
        Drop queued commands for ``repo_root`` and terminate the running one.

        Queued commands resolve to a ``Cancelled`` error. The in-flight
        process is terminated, not awaited; a command that is about to spawn
        its process is stopped as well.
        """
        key = self._key(repo_root)
        with self._lock:
            self._generations[key] = self._generations.get(key, 0) + 1
            executor = self._queues.pop(key, None)
            processes = list(self._processes.get(key, ()))
            self._terminated.update(processes)

        if executor is not None:
            executor.shutdown(wait=False, cancel_futures=True)

        for proc in processes:
            self.logger.info(f"Terminating git process {proc.pid} in {key}")
            try:
                proc.terminate()
            except OSError as e:
                self.logger.debug(f"Process {proc.pid} already gone: {e}")

    def close(self) -> None:
        """Cancel every queue this runner owns."""
        with self._lock:
            roots = set(self._queues) | set(self._processes)
        for root in roots:
            self.cancel(root)

    def _timeout_for(self, command: str, args: Sequence[str]) -> float:
        if command in NETWORK_COMMANDS or (command == "remote" and args[:1] == ("show",)):
            return self.config.network_timeout
        return self.config.command_timeout

    def _is_current(self, key: Path, generation: int) -> bool:
        with self._lock:
            return self._generations.get(key, 0) == generation

    def _track(self, key: Path, proc: Popen, generation: int) -> bool:
        """Register ``proc``; return False if ``key`` was cancelled since submission."""
        with self._lock:
            if self._generations.get(key, 0) != generation:
                return False
            self._processes.setdefault(key, set()).add(proc)
            return True

    def _untrack(self, key: Path, proc: Popen) -> bool:
        """Forget ``proc``; return True if it was terminated by cancel()."""
        with self._lock:
            procs = self._processes.get(key)
            if procs is not None:
                procs.discard(proc)
                if not procs:
                    del self._processes[key]
            if proc in self._terminated:
                self._terminated.discard(proc)
                return True
            return False

    def _run(
        self,
        key: Path,
        command: str,
        args: Sequence[str],
        timeout: Optional[float],
        generation: int = 0
    ) -> GitResult:
        operation = f"git {command}"
        if timeout is None:
            timeout = self._timeout_for(command, args)

        # The root may have vanished while the command sat in the queue
        if not key.is_dir():
            return failed_result(operation, VcsError.path_not_found(key))

        argv = [self.config.git_executable, command, *args]

        git = Git(str(key))
        git.update_environment(GIT_TERMINAL_PROMPT="0")

        if not self._is_current(key, generation):
            self.logger.info(f"{operation} in {key} cancelled before it started")
            return failed_result(operation, VcsError.cancelled(f"{operation} cancelled"))

        self.logger.debug(f"Running {' '.join(argv)} in {key}")
        try:
            handle = git.execute(argv, as_process=True)
        except GitCommandNotFound as e:
            error = VcsError.command_failed(
                127, str(e), f"Git executable not found: {self.config.git_executable}"
            )
            self.logger.error(error.message)
            return failed_result(operation, error)

        proc = handle.proc
        if not self._track(key, proc, generation):
            # cancel() ran between the check above and the spawn
            self.logger.info(f"Terminating git process {proc.pid} in {key}")
            proc.terminate()
            stdout, stderr = proc.communicate()
            output = CommandOutput(stdout=_decode(stdout), stderr=_decode(stderr), exit_code=proc.returncode)
            return failed_result(operation, VcsError.cancelled(f"{operation} cancelled"), output)

        timed_out = False
        try:
            try:
                stdout, stderr = proc.communicate(timeout=timeout)
            except TimeoutExpired:
                timed_out = True
                proc.kill()
                stdout, stderr = proc.communicate()
        finally:
            was_cancelled = self._untrack(key, proc)

        output = CommandOutput(stdout=_decode(stdout), stderr=_decode(stderr), exit_code=proc.returncode)

        if was_cancelled:
            self.logger.info(f"{operation} in {key} cancelled")
            return failed_result(operation, VcsError.cancelled(f"{operation} cancelled"), output)

        if timed_out:
            error = VcsError.command_failed(-1, output.stderr, f"{operation} timed out after {timeout:.0f}s")
            self.logger.warning(f"{error.message} in {key}")
            return failed_result(operation, error, output)

        if output.exit_code != 0:
            error = self.classifier.classify(output.exit_code, output.stderr)
            self.logger.debug(f"{operation} failed ({error.kind.value}): {error.message}")
            return failed_result(operation, error, output)

        return create_git_result(
            success=True,
            message=f"{operation} completed successfully",
            operation=operation,
            output=output
        )
