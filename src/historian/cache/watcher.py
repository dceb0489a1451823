"""Watches a repository's git directory for changes."""

from __future__ import annotations

import asyncio
from pathlib import Path

from watchfiles import awatch

from historian.cache.protocols import ChangeCallback
from historian.logging import get_logger

logger = get_logger(__name__)

__all__ = ["GitDirWatcher", "resolve_git_dir"]

# watchfiles groups raw events this long (ms) before yielding a batch
BATCH_MS = 50


def resolve_git_dir(root: Path | str) -> Path:
    """Locate the metadata directory of a working tree.

    Follows ``gitdir:`` pointer files used by linked worktrees and
    submodules.
    """
    dot_git = Path(root) / ".git"
    if dot_git.is_file():
        content = dot_git.read_text(encoding="utf-8", errors="replace").strip()
        if content.startswith("gitdir:"):
            target = Path(content.removeprefix("gitdir:").strip())
            return target if target.is_absolute() else (dot_git.parent / target).resolve()
    return dot_git


class GitDirWatcher:
    """Reports every change, creation and deletion below ``<root>/.git``.

    Uses ``watchfiles`` (Rust-backed) in an asyncio task. The changed path is
    passed to ``on_change``; callers treat every notification the same way.

    Example:
        ```python
        watcher = GitDirWatcher("/path/to/repo", lambda path: print(path))
        watcher.start()
        ...
        watcher.close()
        ```
    """

    def __init__(self, root: str, on_change: ChangeCallback) -> None:
        self.root = root
        self.git_dir = resolve_git_dir(root)
        self._on_change = on_change
        self._stop_event: asyncio.Event | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the watcher task on the running event loop."""
        if self.running:
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(
            self._watch_loop(self._stop_event),
            name=f"historian-watch:{self.root}",
        )
        logger.info("watch_started", git_dir=str(self.git_dir))

    def close(self) -> None:
        """Signal the watcher to stop."""
        if self._stop_event is not None:
            self._stop_event.set()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        self._stop_event = None

    async def _watch_loop(self, stop_event: asyncio.Event) -> None:
        try:
            # no filter: the default one drops everything under .git
            async for changes in awatch(
                self.git_dir,
                watch_filter=None,
                stop_event=stop_event,
                debounce=BATCH_MS,
                recursive=True,
            ):
                for _change, path in changes:
                    self._on_change(path)
        except FileNotFoundError:
            logger.warning("watch_target_missing", git_dir=str(self.git_dir))
        except asyncio.CancelledError:
            logger.debug("watch_cancelled", git_dir=str(self.git_dir))
            raise
        finally:
            logger.debug("watch_stopped", git_dir=str(self.git_dir))
