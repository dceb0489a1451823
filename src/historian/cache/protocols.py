"""Protocol definitions for the collaborators of the history cache.

The Dataloader only depends on these structural interfaces.
:class:`~historian.git.source.GitHistorySource`,
:class:`~historian.cache.watcher.GitDirWatcher` and
:class:`~historian.git.locator.RepositoryLocator` satisfy them without
explicit inheritance, and tests substitute mocks.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Protocol, runtime_checkable

from historian.git.models import LogEntry, RepositoryHandle

__all__ = [
    "ChangeCallback",
    "HistorySource",
    "RepositoryTracker",
    "RepositoryWatcher",
    "WatcherFactory",
]

#: Called with the changed path for every filesystem notification
ChangeCallback = Callable[[str], None]


@runtime_checkable
class HistorySource(Protocol):
    """Answers history queries, typically by running git.

    All calls may take seconds and may fail; failures are propagated to the
    caller unchanged.
    """

    async def get_log_entries(
        self,
        handle: RepositoryHandle,
        express: bool,
        start: int,
        count: int,
        branch: str,
        stash: bool = False,
        file: Path | str | None = None,
        line: int | None = None,
        author: str | None = None,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
    ) -> list[LogEntry]:
        """Return entries ``[start, start + count)`` of the history, newest first."""
        ...

    async def get_commits_count(
        self,
        handle: RepositoryHandle,
        branch: str,
        author: str | None = None,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
    ) -> int:
        """Return the number of commits matching the filters."""
        ...

    async def get_commits(self, handle: RepositoryHandle, branch: str) -> list[str]:
        """Return every commit hash of ``branch``, newest first."""
        ...

    async def get_current_branch(self, handle: RepositoryHandle) -> str:
        """Return the checked-out branch name."""
        ...


@runtime_checkable
class RepositoryWatcher(Protocol):
    """Watches a repository's metadata directory for changes."""

    def start(self) -> None:
        """Begin delivering notifications. Requires a running event loop."""
        ...

    def close(self) -> None:
        """Stop delivering notifications. Safe to call more than once."""
        ...


#: Builds a watcher for a repository root that reports to a callback
WatcherFactory = Callable[[str, ChangeCallback], RepositoryWatcher]


@runtime_checkable
class RepositoryTracker(Protocol):
    """Knows the current repository and announces when it changes."""

    @property
    def current(self) -> RepositoryHandle | None: ...

    def subscribe(
        self, listener: Callable[[RepositoryHandle], None]
    ) -> Callable[[], None]: ...
