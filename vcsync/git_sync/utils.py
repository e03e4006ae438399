"""Result types shared by git operations."""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from .error_types import VcsError, VcsErrorKind


@dataclass(frozen=True)
class CommandOutput:
    """Raw output of one git invocation."""
    stdout: str
    stderr: str
    exit_code: int


@dataclass
class GitResult:
    """Result of a git operation."""
    success: bool
    message: str
    operation: str
    output: Optional[CommandOutput] = None
    error: Optional[VcsError] = None
    value: Any = None

    @property
    def stdout(self) -> str:
        return self.output.stdout if self.output else ""

    @property
    def error_kind(self) -> Optional[VcsErrorKind]:
        return self.error.kind if self.error else None

    def to_dict(self) -> Dict[str, Any]:
        """Convert the result to dictionary format."""
        result: Dict[str, Any] = {
            "success": self.success,
            "operation": self.operation,
            "message": self.message,
        }
        if self.error:
            result["error"] = self.error.to_dict()
        return result


def create_git_result(
    success: bool,
    message: str,
    operation: str,
    output: Optional[CommandOutput] = None,
    error: Optional[VcsError] = None,
    value: Any = None
) -> GitResult:
    """
    Helper function to create GitResult instances.

    Args:
        success: Whether the operation was successful
        message: Descriptive message about the operation result
        operation: Name of the operation that was performed
        output: Raw output of the git invocation, if one ran
        error: Typed failure for unsuccessful operations
        value: Parsed payload of a successful operation

    Returns:
        GitResult instance with all fields populated
    """
    return GitResult(
        success=success,
        message=message,
        operation=operation,
        output=output,
        error=error,
        value=value
    )


def failed_result(operation: str, error: VcsError, output: Optional[CommandOutput] = None) -> GitResult:
    """Create a failed GitResult carrying ``error``'s message."""
    return create_git_result(
        success=False,
        message=error.message,
        operation=operation,
        output=output,
        error=error
    )


def chain_failure(operation: str, result: GitResult) -> GitResult:
    """Re-label a failed result from a sub-step under ``operation``."""
    return create_git_result(
        success=False,
        message=result.message,
        operation=operation,
        output=result.output,
        error=result.error
    )
