"""Repository discovery and current-repository tracking.

The locator resolves which working tree owns a filesystem location, keeps
the set of repositories seen so far and publishes "current repository
changed" events to subscribers such as the history cache.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Callable, Iterable
from pathlib import Path

from git import InvalidGitRepositoryError, NoSuchPathError, Repo

from historian.exceptions import GitError
from historian.git.models import RepositoryHandle, normalize_root
from historian.git.repository import GitRepository
from historian.logging import get_logger

logger = get_logger(__name__)

__all__ = ["RepositoryListener", "RepositoryLocator"]

RepositoryListener = Callable[[RepositoryHandle], None]

#: Directories never descended into while scanning for repositories
_SCAN_SKIP_DIRS = frozenset({".git", "node_modules", "__pycache__", ".venv", "venv"})


def _is_within(path: str, root: str) -> bool:
    return path == root or path.startswith(root.rstrip(os.sep) + os.sep)


class RepositoryLocator:
    """Resolves repository roots and tracks the current repository.

    Example:
        ```python
        locator = RepositoryLocator()
        unsubscribe = locator.subscribe(lambda handle: print(handle.root))
        handle = locator.find_root("/path/to/repo/src/module.py")
        if handle:
            locator.set_current(handle)
        ```
    """

    def __init__(self) -> None:
        self._repositories: list[RepositoryHandle] = []
        self._current: RepositoryHandle | None = None
        self._listeners: list[RepositoryListener] = []

    @property
    def repositories(self) -> list[RepositoryHandle]:
        """Repositories discovered so far."""
        return list(self._repositories)

    @property
    def current(self) -> RepositoryHandle | None:
        """The repository the user is currently working in."""
        return self._current

    def subscribe(self, listener: RepositoryListener) -> Callable[[], None]:
        """Register a listener for current-repository changes.

        Returns:
            Callable that removes the listener again.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return unsubscribe

    def set_current(self, handle: RepositoryHandle) -> None:
        """Make a repository current and notify every listener."""
        self._current = handle
        logger.info("current_repository_changed", root=handle.root)
        for listener in list(self._listeners):
            listener(handle)

    def find_root(self, path: Path | str) -> RepositoryHandle | None:
        """Resolve the repository owning a file or directory.

        Args:
            path: Any path inside a working tree.

        Returns:
            Handle of the owning repository, or None outside any repository.
        """
        location = Path(path)
        if location.is_file():
            location = location.parent
        normalized = normalize_root(location)

        # innermost known repository wins (submodules)
        matches = [h for h in self._repositories if _is_within(normalized, h.root)]
        if matches:
            return max(matches, key=lambda h: len(h.root))
        return self._resolve(location)

    def _resolve(self, location: Path) -> RepositoryHandle | None:
        try:
            repo = Repo(location, search_parent_directories=True)
        except (InvalidGitRepositoryError, NoSuchPathError):
            return None
        if repo.working_tree_dir is None:
            # bare repository: nothing to show history for
            return None

        root = normalize_root(repo.working_tree_dir)
        existing = next((h for h in self._repositories if h.root == root), None)
        if existing is not None:
            return existing
        handle = RepositoryHandle(root=root, remote_url=self._remote_url(root))
        self._repositories.append(handle)
        logger.debug("repository_found", root=root)
        return handle

    def _remote_url(self, root: str) -> str:
        try:
            return GitRepository(root).get_remote_url()
        except GitError as e:
            logger.debug("remote_url_unavailable", root=root, error=str(e))
            return ""

    def _scan_folder(self, folder: Path, include_subfolders: bool) -> list[RepositoryHandle]:
        found: list[RepositoryHandle] = []
        try:
            children = list(os.scandir(folder))
        except OSError as e:
            logger.debug("scan_folder_failed", folder=str(folder), error=str(e))
            return found
        if any(child.name == ".git" for child in children):
            handle = self._resolve(folder)
            if handle is not None and handle not in found:
                found.append(handle)
        if include_subfolders:
            for child in children:
                if child.name in _SCAN_SKIP_DIRS or not child.is_dir(follow_symlinks=False):
                    continue
                found.extend(self._scan_folder(Path(child.path), include_subfolders))
        return found

    def _discover(self, folders: list[Path | str]) -> list[RepositoryHandle]:
        self._repositories = []
        found: list[RepositoryHandle] = []
        for folder in folders:
            found.extend(self._scan_folder(Path(folder), include_subfolders=True))
        return found

    def _adopt(self, found: list[RepositoryHandle]) -> list[RepositoryHandle]:
        logger.info("repositories_scanned", count=len(found))
        if len(found) == 1:
            self.set_current(found[0])
        return found

    def scan(self, folders: Iterable[Path | str]) -> list[RepositoryHandle]:
        """Discover every repository below the given workspace folders.

        The known repository list is reset first. When exactly one repository
        is found it becomes the current one.
        """
        return self._adopt(self._discover(list(folders)))

    async def scan_async(self, folders: Iterable[Path | str]) -> list[RepositoryHandle]:
        """Like :meth:`scan`, walking the folders in a worker thread.

        Listeners are notified on the event loop thread.
        """
        found = await asyncio.to_thread(self._discover, list(folders))
        return self._adopt(found)
