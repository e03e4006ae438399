"""Cross-platform compatibility utilities for vcsync."""

import platform
import subprocess
from enum import Enum
from pathlib import Path
from typing import Optional, Dict, Any, Union


class PlatformType(Enum):
    """Supported platform types."""
    WINDOWS = "windows"
    MACOS = "macos"
    LINUX = "linux"
    UNKNOWN = "unknown"


class PlatformInfo:
    """Platform information and utilities."""

    def __init__(self):
        """Initialize platform detection."""
        self._platform_type = self._detect_platform()

    def _detect_platform(self) -> PlatformType:
        """Detect the current platform."""
        system = platform.system().lower()

        if system == "windows":
            return PlatformType.WINDOWS
        elif system == "darwin":
            return PlatformType.MACOS
        elif system == "linux":
            return PlatformType.LINUX
        else:
            return PlatformType.UNKNOWN

    @property
    def platform_type(self) -> PlatformType:
        """Get the detected platform type."""
        return self._platform_type

    @property
    def is_windows(self) -> bool:
        """Check if running on Windows."""
        return self._platform_type == PlatformType.WINDOWS

    @property
    def is_macos(self) -> bool:
        """Check if running on macOS."""
        return self._platform_type == PlatformType.MACOS

    @property
    def is_linux(self) -> bool:
        """Check if running on Linux."""
        return self._platform_type == PlatformType.LINUX


_platform_info: Optional[PlatformInfo] = None


def get_platform_info() -> PlatformInfo:
    """Get the global platform info instance."""
    global _platform_info
    if _platform_info is None:
        _platform_info = PlatformInfo()
    return _platform_info


def normalize_path(path: Union[str, Path]) -> Path:
    """Expand ``~`` and resolve a path to an absolute one."""
    if isinstance(path, str):
        path = Path(path)
    return path.expanduser().resolve()


def get_git_executable() -> str:
    """Get the Git executable name for the current platform."""
    if get_platform_info().is_windows:
        return "git.exe"
    return "git"


def get_platform_specific_defaults() -> Dict[str, Any]:
    """
    Get platform-specific configuration defaults.

    Network mounts on Windows and macOS are slower to poll and to run git
    against, so both the poll interval and the timeouts are stretched there.

    Returns:
        Dictionary of platform-specific defaults
    """
    platform_info = get_platform_info()

    defaults = {
        'git_executable': get_git_executable(),
        'log_level': "INFO",
        'command_timeout': 30.0,
        'network_timeout': 120.0,
        'poll_interval': 1.0,
    }

    if platform_info.is_windows:
        defaults.update({
            'command_timeout': 60.0,
            'poll_interval': 1.5,
        })
    elif platform_info.is_macos:
        defaults.update({
            'poll_interval': 1.0,
        })

    return defaults


def validate_git_availability(git_executable: Optional[str] = None) -> tuple[bool, Optional[str]]:
    """
    Validate that Git is available on the current platform.

    Returns:
        Tuple of (is_available, error_message)
    """
    git_cmd = git_executable or get_git_executable()

    try:
        result = subprocess.run(
            [git_cmd, "--version"],
            capture_output=True,
            text=True,
            timeout=10
        )

        if result.returncode == 0:
            return True, None
        else:
            return False, f"Git command failed: {result.stderr}"

    except FileNotFoundError:
        return False, f"Git executable '{git_cmd}' not found"
    except subprocess.TimeoutExpired:
        return False, "Git command timed out"
    except OSError as e:
        return False, f"Error checking Git availability: {e}"
