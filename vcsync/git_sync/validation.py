"""Repository detection using GitPython."""

import logging
from pathlib import Path
from typing import Optional, Union

from git import Repo, InvalidGitRepositoryError, NoSuchPathError


def _open_repository(path: Union[str, Path]) -> Optional[Repo]:
    logger = logging.getLogger('vcsync.git_sync.validation')
    try:
        return Repo(str(path), search_parent_directories=True)
    except (InvalidGitRepositoryError, NoSuchPathError):
        return None
    except OSError as e:
        logger.debug(f"Error opening repository at {path}: {e}")
        return None


def is_git_repository(path: Union[str, Path]) -> bool:
    """Check whether ``path`` lies inside a non-bare git working copy."""
    repo = _open_repository(path)
    if repo is None:
        return False
    try:
        return not repo.bare
    finally:
        repo.close()


def resolve_git_dir(path: Union[str, Path]) -> Optional[Path]:
    """Return the absolute metadata directory of the working copy containing ``path``."""
    repo = _open_repository(path)
    if repo is None:
        return None
    try:
        return Path(repo.git_dir).resolve()
    finally:
        repo.close()


def resolve_working_tree(path: Union[str, Path]) -> Optional[Path]:
    """Return the top-level directory of the working copy containing ``path``."""
    repo = _open_repository(path)
    if repo is None:
        return None
    try:
        if repo.bare:
            return None
        return Path(repo.working_tree_dir).resolve()
    finally:
        repo.close()
