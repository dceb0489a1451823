"""Git access for Historian.

This package provides the GitPython-backed collaborators of the history
cache:

- GitRepository / AsyncGitRepository: history queries against one working
  tree (sync, and async via worker threads)
- GitHistorySource: the HistorySource implementation used by the Dataloader
- RepositoryLocator: root discovery and current-repository change events

Usage:
    ```python
    from historian.git import GitHistorySource, RepositoryLocator

    locator = RepositoryLocator()
    handle = locator.find_root("/path/to/repo/README.md")
    source = GitHistorySource()
    count = await source.get_commits_count(handle, "main")
    ```
"""

from __future__ import annotations

from historian.git.locator import RepositoryListener, RepositoryLocator
from historian.git.models import LogEntry, RepositoryHandle, normalize_root
from historian.git.repository import (
    AsyncGitRepository,
    GitRepository,
    configure_git_executable,
    parse_log_entries,
)
from historian.git.source import GitHistorySource

__all__ = [
    "AsyncGitRepository",
    "GitHistorySource",
    "GitRepository",
    "LogEntry",
    "RepositoryHandle",
    "RepositoryListener",
    "RepositoryLocator",
    "configure_git_executable",
    "normalize_root",
    "parse_log_entries",
]
