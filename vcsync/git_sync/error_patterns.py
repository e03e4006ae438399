"""Classification of raw git failures into typed errors."""

import logging
from typing import Dict, Optional

from .error_types import VcsError, VcsErrorKind


def build_error_patterns() -> Dict[str, VcsErrorKind]:
    """Build mapping of lowercase git error substrings to error kinds."""
    return {
        # Repository detection
        "not a git repository": VcsErrorKind.NOT_A_REPOSITORY,

        # Authentication
        "authentication failed": VcsErrorKind.AUTHENTICATION_REQUIRED,
        "could not read username": VcsErrorKind.AUTHENTICATION_REQUIRED,
        "could not read password": VcsErrorKind.AUTHENTICATION_REQUIRED,
    }


class ErrorClassifier:
    """
    Maps git exit codes and stderr text to VcsError values.

    Patterns are matched case-insensitively in insertion order; the first
    match wins. Anything unmatched is a generic command failure.
    """

    def __init__(self, patterns: Optional[Dict[str, VcsErrorKind]] = None):
        self.logger = logging.getLogger('vcsync.git_sync.error_patterns')
        self._patterns = dict(patterns) if patterns is not None else build_error_patterns()

    @property
    def patterns(self) -> Dict[str, VcsErrorKind]:
        return dict(self._patterns)

    def register(self, pattern: str, kind: VcsErrorKind) -> None:
        """Register an additional error substring."""
        self._patterns[pattern.lower()] = kind

    def match(self, message: str) -> Optional[VcsErrorKind]:
        """Return the kind of the first pattern found in ``message``."""
        if not message:
            return None

        message_lower = message.lower()
        for pattern, kind in self._patterns.items():
            if pattern in message_lower:
                self.logger.debug(f"Categorized git error as {kind.value}: pattern '{pattern}' found")
                return kind
        return None

    def classify(self, exit_code: int, stderr: str) -> VcsError:
        """Classify a failed git invocation."""
        kind = self.match(stderr)
        message = stderr.strip() or f"git exited with code {exit_code}"

        if kind is VcsErrorKind.NOT_A_REPOSITORY:
            return VcsError.not_a_repository(message, exit_code, stderr)
        if kind is VcsErrorKind.AUTHENTICATION_REQUIRED:
            return VcsError.authentication_required(message, exit_code, stderr)
        return VcsError.command_failed(exit_code, stderr, message)

    def is_authentication_failure(self, message: str) -> bool:
        return self.match(message) is VcsErrorKind.AUTHENTICATION_REQUIRED
