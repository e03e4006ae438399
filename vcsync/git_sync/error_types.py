"""Error types for git command execution."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class VcsErrorKind(Enum):
    """Kinds of failures surfaced by the command runner."""
    NOT_A_REPOSITORY = "not_a_repository"
    PATH_NOT_FOUND = "path_not_found"
    AUTHENTICATION_REQUIRED = "authentication_required"
    COMMAND_FAILED = "command_failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class VcsError:
    """A typed git failure."""
    kind: VcsErrorKind
    message: str
    exit_code: Optional[int] = None
    stderr: str = ""

    @classmethod
    def not_a_repository(cls, message: str, exit_code: Optional[int] = None, stderr: str = "") -> "VcsError":
        return cls(VcsErrorKind.NOT_A_REPOSITORY, message, exit_code, stderr)

    @classmethod
    def path_not_found(cls, path: Any) -> "VcsError":
        return cls(VcsErrorKind.PATH_NOT_FOUND, f"Path not found: {path}")

    @classmethod
    def authentication_required(cls, message: str, exit_code: Optional[int] = None, stderr: str = "") -> "VcsError":
        return cls(VcsErrorKind.AUTHENTICATION_REQUIRED, message, exit_code, stderr)

    @classmethod
    def command_failed(cls, exit_code: int, stderr: str, message: Optional[str] = None) -> "VcsError":
        return cls(VcsErrorKind.COMMAND_FAILED, message or stderr.strip() or f"git exited with code {exit_code}", exit_code, stderr)

    @classmethod
    def cancelled(cls, message: str = "Command cancelled") -> "VcsError":
        return cls(VcsErrorKind.CANCELLED, message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert the error to dictionary format."""
        result = {
            "kind": self.kind.value,
            "message": self.message,
        }
        if self.exit_code is not None:
            result["exit_code"] = self.exit_code
        if self.stderr:
            result["stderr"] = self.stderr
        return result
