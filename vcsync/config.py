"""Configuration management for vcsync."""

import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, List, Tuple

from dotenv import load_dotenv

from .platform import get_platform_specific_defaults, get_git_executable, normalize_path

load_dotenv()  # Load .env file if it exists


DEFAULT_RESOURCE_EXTENSIONS: Tuple[str, ...] = (".yaml", ".yml")


@dataclass
class Config:
    """Configuration class for the repository synchronization engine."""

    # Git executable and timeouts (seconds)
    git_executable: str = field(default_factory=get_git_executable)
    command_timeout: float = 30.0
    network_timeout: float = 120.0

    # Allow read-only commands to bypass the per-repository queue
    concurrent_reads: bool = False

    # Metadata watch
    poll_interval: float = 1.0

    # Resources resolved at a commit
    resource_extensions: Tuple[str, ...] = DEFAULT_RESOURCE_EXTENSIONS

    # Identity used for the initial commit when git has none configured
    default_author_name: str = "vcsync"
    default_author_email: str = "vcsync@localhost"

    # Logging
    log_level: str = "INFO"

    # Project opened at server start, if any
    project_dir: Optional[Path] = None

    def __post_init__(self):
        """Validate configuration after initialization."""
        if isinstance(self.project_dir, str):
            self.project_dir = Path(self.project_dir)
        if self.project_dir is not None:
            self.project_dir = normalize_path(self.project_dir)

        self.log_level = self.log_level.upper()
        valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.log_level not in valid_log_levels:
            raise ValueError(f"Invalid log level: {self.log_level}. Must be one of {valid_log_levels}")

        if not self.git_executable:
            raise ValueError("git_executable must not be empty")

        if self.command_timeout <= 0:
            raise ValueError("command_timeout must be positive")

        if self.network_timeout <= 0:
            raise ValueError("network_timeout must be positive")

        if self.poll_interval <= 0:
            raise ValueError("poll_interval must be positive")

        # Normalise extensions to ".ext" lowercase form
        self.resource_extensions = tuple(
            ext.lower() if ext.startswith(".") else f".{ext.lower()}"
            for ext in self.resource_extensions
            if ext
        )


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def load_configuration() -> Config:
    """Load configuration from environment variables with platform-specific defaults."""
    try:
        platform_defaults = get_platform_specific_defaults()

        extensions = os.getenv("VCSYNC_RESOURCE_EXTENSIONS")
        resource_extensions = (
            tuple(ext.strip() for ext in extensions.split(",") if ext.strip())
            if extensions else DEFAULT_RESOURCE_EXTENSIONS
        )

        project_dir = os.getenv("VCSYNC_PROJECT_DIR")

        return Config(
            git_executable=os.getenv("VCSYNC_GIT_EXECUTABLE", platform_defaults['git_executable']),
            command_timeout=float(os.getenv("VCSYNC_COMMAND_TIMEOUT", str(platform_defaults['command_timeout']))),
            network_timeout=float(os.getenv("VCSYNC_NETWORK_TIMEOUT", str(platform_defaults['network_timeout']))),
            concurrent_reads=_env_flag("VCSYNC_CONCURRENT_READS", "false"),
            poll_interval=float(os.getenv("VCSYNC_POLL_INTERVAL", str(platform_defaults['poll_interval']))),
            resource_extensions=resource_extensions,
            default_author_name=os.getenv("VCSYNC_AUTHOR_NAME", "vcsync"),
            default_author_email=os.getenv("VCSYNC_AUTHOR_EMAIL", "vcsync@localhost"),
            log_level=os.getenv("VCSYNC_LOG_LEVEL", platform_defaults['log_level']).upper(),
            project_dir=Path(project_dir) if project_dir else None,
        )
    except (ValueError, TypeError) as e:
        raise ValueError(f"Configuration error: {e}")


def validate_configuration(config: Config) -> List[str]:
    """Validate configuration and return any errors or warnings."""
    from .platform import validate_git_availability

    errors = []

    available, message = validate_git_availability(config.git_executable)
    if not available:
        errors.append(f"ERROR: {message}")

    if config.project_dir is not None:
        if not config.project_dir.exists():
            errors.append(f"WARNING: Project directory does not exist: {config.project_dir}")
        elif not config.project_dir.is_dir():
            errors.append(f"ERROR: Project path is not a directory: {config.project_dir}")

    if config.poll_interval < 0.2:
        errors.append("WARNING: Very short poll_interval may impact performance")

    if config.concurrent_reads:
        logging.getLogger('vcsync.config').debug(
            "Concurrent read-only git commands enabled; reads bypass the per-repository queue"
        )

    return errors
