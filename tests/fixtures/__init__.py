"""Shared test fixtures for the Historian test suite.

Available Fixtures
==================

Git repositories (from tests/fixtures/repos.py)
-----------------------------------------------

Fixtures:
    temp_git_repo: Temporary working tree on ``main`` with three commits
        by "Test User". Built with GitPython.

    non_git_dir: Temporary directory that is not inside any repository.

History source mocks (from tests/fixtures/sources.py)
-----------------------------------------------------

Classes:
    FakeWatcher: Records start/close and lets a test emit change events.

    FakeWatcherFactory: WatcherFactory that keeps every watcher it built.

Fixtures:
    make_entries: Factory for synthetic LogEntry sequences.

    mock_history_source: MagicMock with AsyncMock methods matching the
        HistorySource protocol, serving a 3000-entry history on ``main``.

    watcher_factory: Fresh FakeWatcherFactory for each test.

Example:
    >>> @pytest.mark.asyncio
    ... async def test_refill(mock_history_source, watcher_factory):
    ...     dataloader = Dataloader(mock_history_source, watcher_factory=watcher_factory)
    ...     dataloader.on_repository_changed(RepositoryHandle.from_path("/work/repo"))
    ...     await dataloader.wait_for_background()
    ...     watcher_factory.last.emit()
"""

from __future__ import annotations

from tests.fixtures.repos import non_git_dir, temp_git_repo
from tests.fixtures.sources import (
    FakeWatcher,
    FakeWatcherFactory,
    make_entries,
    mock_history_source,
    watcher_factory,
)

__all__ = [
    # Git repositories
    "temp_git_repo",
    "non_git_dir",
    # History source mocks
    "FakeWatcher",
    "FakeWatcherFactory",
    "make_entries",
    "mock_history_source",
    "watcher_factory",
]
