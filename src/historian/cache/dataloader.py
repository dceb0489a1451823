"""History cache coordinator.

The Dataloader sits between a history UI and a :class:`HistorySource`. It
answers reads from an in-memory cache of the active repository when that is
safe, and falls through to the source otherwise:

- Caching disabled, another repository, or a refill in progress: the read
  goes straight to the source. Stale-but-consistent beats mixed.
- A cached page shorter than the full-load threshold is the complete
  history of its query and answers any window.
- A cached page at the threshold is a prefix and only answers windows that
  lie inside it.

Changes under ``.git`` are coalesced by a :class:`Debouncer`; after the
quiet interval the branch, commit list, default count and default first page
are re-read together and swapped in at once.

Example:
    ```python
    locator = RepositoryLocator()
    dataloader = Dataloader(GitHistorySource(), tracker=locator)
    async with dataloader:
        locator.set_current(locator.find_root("/path/to/repo"))
        entries = await dataloader.get_log_entries(
            locator.current, express=False, start=0, count=50, branch="main"
        )
    ```
"""

from __future__ import annotations

import asyncio
import itertools
import os
from collections.abc import Callable, Coroutine, Sequence
from datetime import datetime
from pathlib import Path
from types import TracebackType
from typing import Any, Self

from historian.cache.debounce import Debouncer
from historian.cache.keys import count_key, log_entry_key
from historian.cache.protocols import (
    HistorySource,
    RepositoryTracker,
    RepositoryWatcher,
    WatcherFactory,
)
from historian.cache.state import RepositoryCacheState
from historian.cache.watcher import GitDirWatcher
from historian.config import CacheConfig
from historian.git.models import LogEntry, RepositoryHandle
from historian.logging import get_logger, repository_context

logger = get_logger(__name__)

__all__ = ["Dataloader"]


def _index(commits: Sequence[str], ref: str) -> int:
    try:
        return commits.index(ref)
    except ValueError:
        return -1


class Dataloader:
    """Serves history reads from a per-repository cache.

    Must be driven from a single asyncio event loop. Reads never wait for a
    refill; they either bypass the cache or see the last committed state.

    Attributes:
        config: Cache settings (capacities, threshold, quiet interval).
    """

    def __init__(
        self,
        source: HistorySource,
        config: CacheConfig | None = None,
        watcher_factory: WatcherFactory | None = None,
        tracker: RepositoryTracker | None = None,
    ) -> None:
        """Initialize the Dataloader.

        Args:
            source: Where uncached reads and refills are answered.
            config: Cache settings. Defaults to :class:`CacheConfig` defaults.
            watcher_factory: Builds the watcher for an activated repository.
                Defaults to :class:`GitDirWatcher`.
            tracker: Optional source of current-repository changes. The
                Dataloader follows it until :meth:`close`.
        """
        self.config = config or CacheConfig()
        self._source = source
        self._watcher_factory: WatcherFactory = watcher_factory or GitDirWatcher
        self._enabled = self.config.enabled
        self._current: RepositoryHandle | None = None
        self._state: RepositoryCacheState | None = None
        self._watcher: RepositoryWatcher | None = None
        self._generations = itertools.count(1)
        self._debouncer = Debouncer(self._schedule_refill, self.config.quiet_interval)
        self._tasks: set[asyncio.Task[Any]] = set()
        self._unsubscribe: Callable[[], None] | None = None
        if tracker is not None:
            self._current = tracker.current
            self._unsubscribe = tracker.subscribe(self.on_repository_changed)

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def active_repository(self) -> RepositoryHandle | None:
        """Repository whose data is cached, if any."""
        return self._state.handle if self._state is not None else None

    @property
    def state(self) -> RepositoryCacheState | None:
        """Cached state of the active repository (read-only use)."""
        return self._state

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Activate caching for the current repository, if enabled.

        Requires a running event loop.
        """
        if self._enabled and self._state is None:
            self._activate(self._current)

    def enable_cache(self, enabled: bool) -> None:
        """Turn caching on or off.

        Turning it on activates the current repository, unless its root
        cannot be watched. Turning it off drops all cached data.
        """
        if self._enabled == enabled:
            return
        self._enabled = enabled
        if enabled:
            self._activate(self._current)
        else:
            self._deactivate()

    def on_repository_changed(self, handle: RepositoryHandle) -> None:
        """Follow a switch of the current repository.

        The previous repository's cache and watcher are discarded before the
        new repository is activated.
        """
        self._current = handle
        if not self._enabled:
            return
        if self._state is not None and self._state.handle == handle:
            return
        self._deactivate()
        self._activate(handle)

    def close(self) -> None:
        """Tear down the watcher, cached data and background tasks."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._deactivate()
        for task in list(self._tasks):
            task.cancel()

    async def aclose(self) -> None:
        """Like :meth:`close`, then wait for cancelled tasks to finish."""
        self.close()
        await self.wait_for_background()

    async def wait_for_background(self) -> None:
        """Wait until no warm-up or refill task is running."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def __aenter__(self) -> Self:
        self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    def _is_watchable(self, handle: RepositoryHandle) -> bool:
        for prefix in self.config.unwatchable_prefixes:
            prefix = prefix.rstrip("/\\")
            if handle.root == prefix or handle.root.startswith(prefix + os.sep):
                return False
        return True

    def _activate(self, handle: RepositoryHandle | None) -> None:
        if handle is None:
            logger.debug("cache_activation_deferred", reason="no_current_repository")
            return
        if not self._is_watchable(handle):
            # network mounts do not deliver reliable change events
            logger.info("cache_watch_unsupported", root=handle.root)
            return

        state = RepositoryCacheState.create(
            handle,
            generation=next(self._generations),
            page_capacity=self.config.page_capacity,
            count_capacity=self.config.count_capacity,
        )
        # bypass until the first refill lands
        state.refilling = True
        self._state = state
        self._watcher = self._watcher_factory(
            handle.root, lambda path: self._handle_file_update(state, path)
        )
        self._watcher.start()
        logger.info("cache_enabled", root=handle.root, generation=state.generation)
        self._spawn(self._refill_in_background(state))

    def _deactivate(self) -> None:
        self._debouncer.cancel()
        if self._watcher is not None:
            self._watcher.close()
            self._watcher = None
        if self._state is not None:
            logger.info(
                "cache_disabled",
                root=self._state.handle.root,
                generation=self._state.generation,
            )
            self._state.clear()
            self._state = None

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    # -------------------------------------------------------------------------
    # Invalidation and refill
    # -------------------------------------------------------------------------

    def _handle_file_update(
        self, state: RepositoryCacheState, path: str | None = None
    ) -> None:
        if self._state is not state:
            return
        logger.debug("repository_files_changed", root=state.handle.root, path=path)
        # one git command touches many files; refill once things settle
        state.refilling = True
        self._debouncer.notify(state)

    def _schedule_refill(self, state: RepositoryCacheState) -> None:
        if self._state is state:
            self._spawn(self._refill_in_background(state))

    async def _refill_in_background(self, state: RepositoryCacheState) -> None:
        with repository_context(state.handle.root, state.generation):
            try:
                await self._refill(state)
            except Exception:
                logger.exception("cache_refill_failed")

    async def refill(self, handle: RepositoryHandle) -> bool:
        """Re-read branch, commit list, default count and default page.

        Source failures propagate to the caller.

        Returns:
            True if the result was committed, False if it was discarded or
            ``handle`` is not the active repository.
        """
        state = self._state
        if state is None or state.handle != handle:
            logger.info("refill_skipped", root=handle.root, reason="not_active")
            return False
        with repository_context(state.handle.root, state.generation):
            return await self._refill(state)

    async def _refill(self, state: RepositoryCacheState) -> bool:
        version = state.begin_refill()
        handle = state.handle
        log = logger.bind(version=version)
        log.debug("cache_refill_started")

        branch = await self._source.get_current_branch(handle)
        commits, count, entries = await asyncio.gather(
            self._source.get_commits(handle, branch),
            self._source.get_commits_count(handle, branch),
            self._source.get_log_entries(
                handle, False, 0, self.config.full_load_threshold, branch
            ),
        )

        if self._state is not state:
            active = self.active_repository
            log.info(
                "refill_discarded",
                reason="repository_changed",
                active=active.root if active else None,
            )
            return False
        if state.version != version:
            log.info("refill_discarded", reason="superseded", latest=state.version)
            return False

        state.commit_refill(branch, commits, count, entries)
        if not self._debouncer.pending:
            state.refilling = False
        log.info(
            "cache_refilled",
            branch=branch,
            commits=len(commits),
            count=count,
            entries=len(entries),
        )
        return True

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def _cache_for(self, handle: RepositoryHandle) -> RepositoryCacheState | None:
        state = self._state
        if not self._enabled or state is None:
            return None
        if state.handle != handle:
            logger.debug(
                "cache_bypassed",
                reason="different_repository",
                root=handle.root,
                active=state.handle.root,
            )
            return None
        if state.refilling:
            logger.debug("cache_bypassed", reason="refilling", root=handle.root)
            return None
        return state

    def _store_page(
        self,
        state: RepositoryCacheState,
        version: int,
        key: str,
        entries: Sequence[LogEntry],
    ) -> bool:
        if self._state is not state or not state.accepts(version):
            logger.debug("page_store_skipped", key=key)
            return False
        state.pages.set(key, tuple(entries))
        return True

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
        """Get entries ``[start, start + count)`` of a history query.

        A first-page miss smaller than the full-load threshold also starts a
        background warm-up that caches the first ``full_load_threshold``
        entries for later pages. The warm-up never delays this call.

        Raises:
            SourceUnavailableError: If the source fails for this read.
        """
        state = self._cache_for(handle)
        if state is None:
            return await self._source.get_log_entries(
                handle, express, start, count, branch,
                stash, file, line, author, start_time, end_time,
            )

        threshold = self.config.full_load_threshold
        key = log_entry_key(branch, stash, file, line, author, start_time, end_time)
        cached = state.pages.get(key)
        if cached is not None:
            # short page: complete history; full page: only a prefix
            if len(cached) < threshold or start + count <= len(cached):
                return list(cached[start : start + count])

        version = state.version
        entries = await self._source.get_log_entries(
            handle, express, start, count, branch,
            stash, file, line, author, start_time, end_time,
        )

        if start != 0:
            logger.info("page_cache_miss", key=key, start=start, count=count)
        elif count >= threshold:
            # only a result shorter than the threshold is known to be complete
            if len(entries) < threshold:
                self._store_page(state, version, key, entries)
        elif self._state is state:
            self._spawn(
                self._warm_up(
                    state, version, key, handle, express, branch,
                    stash, file, line, author, start_time, end_time,
                )
            )
        return entries

    async def _warm_up(
        self,
        state: RepositoryCacheState,
        version: int,
        key: str,
        handle: RepositoryHandle,
        express: bool,
        branch: str,
        stash: bool,
        file: Path | str | None,
        line: int | None,
        author: str | None,
        start_time: datetime | None,
        end_time: datetime | None,
    ) -> None:
        with repository_context(state.handle.root, state.generation):
            try:
                entries = await self._source.get_log_entries(
                    handle, express, 0, self.config.full_load_threshold, branch,
                    stash, file, line, author, start_time, end_time,
                )
            except Exception as e:
                logger.warning("warm_up_failed", key=key, error=str(e))
                return
            if self._store_page(state, version, key, entries):
                logger.info("page_cache_updated", key=key, entries=len(entries))

    async def get_commits_count(
        self,
        handle: RepositoryHandle,
        branch: str,
        author: str | None = None,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
    ) -> int:
        """Get the number of commits matching the filters.

        Raises:
            SourceUnavailableError: If the source fails for this read.
        """
        state = self._cache_for(handle)
        if state is None:
            return await self._source.get_commits_count(
                handle, branch, author, start_time, end_time
            )

        key = count_key(branch, author, start_time, end_time)
        cached = state.counts.get(key)
        if cached is not None:
            return cached

        version = state.version
        result = await self._source.get_commits_count(
            handle, branch, author, start_time, end_time
        )
        if self._state is state and state.accepts(version):
            state.counts.set(key, result)
        return result

    async def get_current_branch(self, handle: RepositoryHandle | None = None) -> str:
        """Get the current branch; empty when there is no repository."""
        if handle is None:
            return ""
        state = self._cache_for(handle)
        if state is not None:
            return state.branch
        return await self._source.get_current_branch(handle) or ""

    async def _commits(self, handle: RepositoryHandle) -> Sequence[str]:
        state = self._cache_for(handle)
        if state is not None:
            return state.commits
        branch = await self._source.get_current_branch(handle)
        return await self._source.get_commits(handle, branch)

    async def get_next_commit(self, handle: RepositoryHandle | None, ref: str) -> str:
        """Get the commit right after ``ref`` (newer), or empty."""
        if handle is None:
            return ""
        commits = await self._commits(handle)
        index = _index(commits, ref)
        return commits[index - 1] if index > 0 else ""

    async def get_previous_commit(self, handle: RepositoryHandle | None, ref: str) -> str:
        """Get the commit right before ``ref`` (older), or empty."""
        if handle is None:
            return ""
        commits = await self._commits(handle)
        index = _index(commits, ref)
        return commits[index + 1] if 0 <= index < len(commits) - 1 else ""

    async def has_neighbor_commits(
        self, handle: RepositoryHandle | None, ref: str
    ) -> tuple[bool, bool]:
        """Whether ``ref`` has an older and a newer neighbour.

        Returns:
            ``(has_older, has_newer)``.
        """
        if handle is None:
            return False, False
        commits = await self._commits(handle)
        index = _index(commits, ref)
        return 0 <= index < len(commits) - 1, index > 0
