from __future__ import annotations

from pathlib import Path

from historian.exceptions.base import HistorianError


class GitError(HistorianError):
    """Exception for git operation failures.

    Attributes:
        message: Human-readable error message.
        operation: Git operation that failed (e.g., "log", "rev-list").
        recoverable: True if error might be recoverable.
    """

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        recoverable: bool = False,
    ) -> None:
        """Initialize the GitError.

        Args:
            message: Human-readable error message.
            operation: Git operation that failed.
            recoverable: True if error might be recoverable.
        """
        self.operation = operation
        self.recoverable = recoverable
        super().__init__(message)


class GitNotFoundError(GitError):
    """Exception raised when git CLI is not installed or not in PATH."""

    def __init__(self, message: str = "Git CLI not found") -> None:
        super().__init__(message, operation="git_check", recoverable=False)


class NotARepositoryError(GitError):
    """Exception raised when operating outside a git repository.

    Attributes:
        message: Human-readable error message.
        path: Directory that is not a repo.
    """

    def __init__(
        self,
        message: str,
        path: Path | str | None = None,
    ) -> None:
        """Initialize the NotARepositoryError.

        Args:
            message: Human-readable error message.
            path: Directory that is not a repo.
        """
        self.path = path
        super().__init__(message, operation="repo_check", recoverable=False)


class SourceUnavailableError(GitError):
    """Exception raised when a history query against git fails.

    Covers non-zero exits and I/O failures of the commands that back the
    history cache (log, rev-list, rev-parse). The original GitPython error
    is kept as ``__cause__``.

    Attributes:
        message: Human-readable error message.
        operation: Git operation that failed.
        stderr: Error output captured from git, if any.
    """

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        stderr: str = "",
    ) -> None:
        """Initialize the SourceUnavailableError.

        Args:
            message: Human-readable error message.
            operation: Git operation that failed.
            stderr: Error output captured from git.
        """
        self.stderr = stderr
        super().__init__(message, operation=operation, recoverable=True)
