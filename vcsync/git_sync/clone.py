"""Cloning a remote repository into a local folder."""

import logging
from pathlib import Path
from typing import Union

from .error_types import VcsError
from .runner import VcsCommandRunner
from .utils import GitResult, failed_result


def clone_into(runner: VcsCommandRunner, local_path: Union[str, Path], remote_url: str) -> GitResult:
    """
    Clone ``remote_url`` into ``local_path``.

    This function performs the following operations:
    1. Creates the target directory when it does not exist
    2. Refuses a target that is a file or a non-empty directory
    3. Runs ``git clone <url> .`` inside the target

    Args:
        runner: Command runner used for the clone
        local_path: Directory that will become the working copy
        remote_url: URL of the repository to clone

    Returns:
        GitResult indicating success or failure of the clone operation
    """
    logger = logging.getLogger('vcsync.git_sync.clone')
    operation = "clone_repository"
    target = Path(local_path).expanduser()

    if target.exists():
        if not target.is_dir():
            logger.error(f"Cannot clone into {target}: not a directory")
            return failed_result(operation, VcsError.path_not_found(target))
        if any(target.iterdir()):
            error = VcsError.command_failed(
                1, "", f"Cannot clone into {target}: directory is not empty"
            )
            logger.error(error.message)
            return failed_result(operation, error)
    else:
        try:
            target.mkdir(parents=True)
        except OSError as e:
            logger.error(f"Cannot create clone target {target}: {e}")
            return failed_result(operation, VcsError.path_not_found(target))

    logger.info(f"Cloning {remote_url} into {target}")
    result = runner.execute(target, "clone", [remote_url, "."])
    if result.success:
        logger.info(f"Repository cloned successfully from {remote_url}")
        result.message = f"Repository cloned successfully from {remote_url}"
    else:
        logger.error(f"Git clone failed: {result.message}")
    result.operation = operation
    return result
