"""Mock fixtures for the collaborators of the Dataloader.

Provides:
- make_entries: factory for synthetic LogEntry sequences
- mock_history_source: mock HistorySource backed by an in-memory history
- watcher_factory: WatcherFactory building FakeWatcher instances
"""

from __future__ import annotations

import os
from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from historian.cache.protocols import ChangeCallback
from historian.git.models import LogEntry

#: Size of the default history served by mock_history_source
HISTORY_SIZE = 3000


def _entries(count: int, prefix: str = "h") -> list[LogEntry]:
    return [
        LogEntry(
            subject=f"Commit {count - i}",
            hash=f"{prefix}{count - i}",
            ref="",
            author="Test User",
            email="test@example.com",
            timestamp=1_700_000_000 + count - i,
            date="Tue Nov 14 22:13:20 2023",
            relative_date=f"{i + 1} minutes ago",
        )
        for i in range(count)
    ]


@pytest.fixture
def make_entries() -> Callable[..., list[LogEntry]]:
    """Factory fixture creating ``count`` entries, newest first.

    Hashes run from ``{prefix}{count}`` down to ``{prefix}1``.

    Example:
        >>> def test_page(make_entries):
        ...     entries = make_entries(3)
        ...     assert [e.hash for e in entries] == ["h3", "h2", "h1"]
    """
    return _entries


@pytest.fixture
def mock_history_source() -> MagicMock:
    """Fixture providing a mock HistorySource.

    Serves a 3000-entry history on branch ``main``. Windows are sliced from
    the in-memory history, so the returned length follows ``start``/``count``
    exactly like git's ``--skip``/``--max-count``.

    The history can be replaced through ``source.history``; individual
    methods can be reconfigured as usual:

        >>> mock_history_source.get_commits_count.side_effect = (
        ...     SourceUnavailableError("git rev-list failed", operation="rev-list")
        ... )
    """
    source = MagicMock()
    source.history = _entries(HISTORY_SIZE)

    async def get_log_entries(
        handle: Any, express: bool, start: int, count: int, branch: str, *args: Any
    ) -> list[LogEntry]:
        return list(source.history[start : start + count])

    async def get_commits(handle: Any, branch: str) -> list[str]:
        return [entry.hash for entry in source.history]

    async def get_commits_count(handle: Any, branch: str, *args: Any) -> int:
        return len(source.history)

    source.get_log_entries = AsyncMock(side_effect=get_log_entries)
    source.get_commits = AsyncMock(side_effect=get_commits)
    source.get_commits_count = AsyncMock(side_effect=get_commits_count)
    source.get_current_branch = AsyncMock(return_value="main")
    return source


class FakeWatcher:
    """In-memory RepositoryWatcher; tests call :meth:`emit` to simulate changes."""

    def __init__(self, root: str, on_change: ChangeCallback) -> None:
        self.root = root
        self.on_change = on_change
        self.started = False
        self.closed = False

    def start(self) -> None:
        self.started = True

    def close(self) -> None:
        self.closed = True

    def emit(self, path: str = "index") -> None:
        if self.closed:
            return
        self.on_change(os.path.join(self.root, ".git", path))


class FakeWatcherFactory:
    """WatcherFactory recording every watcher it creates."""

    def __init__(self) -> None:
        self.watchers: list[FakeWatcher] = []

    def __call__(self, root: str, on_change: ChangeCallback) -> FakeWatcher:
        watcher = FakeWatcher(root, on_change)
        self.watchers.append(watcher)
        return watcher

    @property
    def last(self) -> FakeWatcher:
        return self.watchers[-1]


@pytest.fixture
def watcher_factory() -> FakeWatcherFactory:
    """Fixture providing a fresh FakeWatcherFactory."""
    return FakeWatcherFactory()
