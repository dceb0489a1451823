"""Git-backed implementation of the HistorySource protocol."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

from historian.git.models import LogEntry, RepositoryHandle
from historian.git.repository import AsyncGitRepository, configure_git_executable
from historian.logging import get_logger

logger = get_logger(__name__)

__all__ = ["GitHistorySource"]


class GitHistorySource:
    """Answers history queries by running git in the handle's working tree.

    One AsyncGitRepository is opened lazily per repository root, in a worker
    thread, and reused for later queries. Failures surface unchanged as
    :class:`~historian.exceptions.SourceUnavailableError` (or
    :class:`~historian.exceptions.NotARepositoryError` for a bad root).

    Example:
        ```python
        source = GitHistorySource()
        handle = RepositoryHandle.from_path("/path/to/repo")
        branch = await source.get_current_branch(handle)
        entries = await source.get_log_entries(handle, False, 0, 50, branch)
        ```
    """

    def __init__(self, git_path: str | None = None) -> None:
        """Initialize GitHistorySource.

        Args:
            git_path: Optional git executable to use instead of PATH's git.
        """
        self._git_executable = configure_git_executable(git_path)
        self._repos: dict[str, AsyncGitRepository] = {}

    @property
    def git_executable(self) -> str:
        """The git executable in use."""
        return self._git_executable

    async def _repo(self, handle: RepositoryHandle) -> AsyncGitRepository:
        repo = self._repos.get(handle.root)
        if repo is None:
            opened = await AsyncGitRepository.open(handle.root)
            # a concurrent first query may have opened it meanwhile
            repo = self._repos.setdefault(handle.root, opened)
            logger.debug("repository_opened", root=handle.root)
        return repo

    def forget(self, handle: RepositoryHandle) -> None:
        """Drop the cached Repo for a handle (e.g. after the folder closed)."""
        self._repos.pop(handle.root, None)

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
        logger.debug(
            "get_log_entries",
            root=handle.root,
            express=express,
            start=start,
            count=count,
            branch=branch,
            stash=stash,
            file=str(file) if file is not None else None,
            line=line,
            author=author,
        )
        repo = await self._repo(handle)
        return await repo.log_entries(
            start,
            count,
            branch,
            express=express,
            stash=stash,
            file=file,
            line=line,
            author=author,
            start_time=start_time,
            end_time=end_time,
        )

    async def get_commits_count(
        self,
        handle: RepositoryHandle,
        branch: str,
        author: str | None = None,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
    ) -> int:
        repo = await self._repo(handle)
        return await repo.commits_count(branch, author, start_time, end_time)

    async def get_commits(self, handle: RepositoryHandle, branch: str) -> list[str]:
        repo = await self._repo(handle)
        return await repo.commit_hashes(branch)

    async def get_current_branch(self, handle: RepositoryHandle) -> str:
        repo = await self._repo(handle)
        return await repo.current_branch()
