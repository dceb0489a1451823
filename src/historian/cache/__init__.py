"""In-memory history cache.

- Dataloader: serves history reads, from cache when safe
- RepositoryCacheState: everything cached for the active repository
- BoundedCache: LRU map with a fixed capacity
- Debouncer: coalesces bursts of change notifications
- GitDirWatcher: reports changes below a repository's ``.git``
"""

from __future__ import annotations

from historian.cache.dataloader import Dataloader
from historian.cache.debounce import Debouncer
from historian.cache.keys import count_key, log_entry_key
from historian.cache.protocols import (
    ChangeCallback,
    HistorySource,
    RepositoryTracker,
    RepositoryWatcher,
    WatcherFactory,
)
from historian.cache.state import RepositoryCacheState
from historian.cache.store import BoundedCache
from historian.cache.watcher import GitDirWatcher, resolve_git_dir

__all__ = [
    "BoundedCache",
    "ChangeCallback",
    "Dataloader",
    "Debouncer",
    "GitDirWatcher",
    "HistorySource",
    "RepositoryCacheState",
    "RepositoryTracker",
    "RepositoryWatcher",
    "WatcherFactory",
    "count_key",
    "log_entry_key",
    "resolve_git_dir",
]
