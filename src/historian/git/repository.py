"""GitPython-based history queries for Historian.

This module wraps the handful of git commands the history cache depends on:
paginated ``git log``, ``git rev-list --count``, the full list of commit
hashes of a branch and the current branch name.

Key features:
- Uses GitPython's Repo class for every git invocation
- Provides both sync and async APIs (async via asyncio.to_thread)
- Converts GitPython failures into Historian exceptions, keeping the cause

Example:
    ```python
    from historian.git import AsyncGitRepository

    repo = AsyncGitRepository("/path/to/repo")
    branch = await repo.current_branch()
    entries = await repo.log_entries(start=0, count=50, branch=branch)
    total = await repo.commits_count(branch)
    ```
"""

from __future__ import annotations

import asyncio
import os
import re
from datetime import datetime
from pathlib import Path

import git
from git import GitCommandError, InvalidGitRepositoryError, NoSuchPathError, Repo
from git.exc import GitCommandNotFound

from historian.exceptions import (
    GitNotFoundError,
    NotARepositoryError,
    SourceUnavailableError,
)
from historian.git.models import LogEntry
from historian.logging import get_logger

logger = get_logger(__name__)

__all__ = [
    "AsyncGitRepository",
    "GitRepository",
    "configure_git_executable",
    "parse_log_entries",
]

# =============================================================================
# Constants
# =============================================================================

#: Marks the start of every entry in formatted log output
ENTRY_SEPARATOR = "[historian-es]"

#: Separates the fields of a single entry in formatted log output
FORMAT_SEPARATOR = "[historian-fs]"

#: Pretty-format placeholders in LogEntry field order (subject .. relative_date)
_LOG_FIELDS: tuple[str, ...] = ("%s", "%h", "%d", "%aN", "%ae", "%ct", "%cd", "%cr")

#: Fields per entry: the placeholders above plus the trailing stat/diff block
_FIELDS_PER_ENTRY = len(_LOG_FIELDS) + 1

#: Date format git parses unambiguously; naive datetimes are local time
_GIT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S %z"

_NEWLINES = re.compile(r"\r?\n|\r")

#: Hosts that already look like a browsable repository URL
_KNOWN_HOST_SUFFIX = re.compile(r"\.(com|org|net|io|cloud)/")


# =============================================================================
# Helper Functions
# =============================================================================


def configure_git_executable(git_path: str | None) -> str:
    """Point GitPython at a configured git executable.

    Falls back to ``git`` from PATH when the configured executable cannot
    be run.

    Args:
        git_path: Path to the git executable, or None for the default.

    Returns:
        The executable GitPython will use.
    """
    if not git_path:
        return "git"
    try:
        git.refresh(git_path)
    except (GitCommandNotFound, ImportError) as e:
        logger.warning("git_path_unusable", git_path=git_path, error=str(e))
        return "git"
    return git_path


def _convert_git_error(exc: GitCommandError, operation: str) -> SourceUnavailableError:
    """Convert a GitPython command failure to a Historian exception.

    Args:
        exc: GitPython exception.
        operation: Name of the git operation that failed.

    Returns:
        SourceUnavailableError carrying git's error output.
    """
    stderr = str(exc.stderr or exc.stdout or "").strip()
    return SourceUnavailableError(
        f"git {operation} failed: {stderr or exc}",
        operation=operation,
        stderr=stderr,
    )


def _single_lined(value: str) -> str:
    return _NEWLINES.sub(" ", value)


def _time_args(start_time: datetime | None, end_time: datetime | None) -> list[str]:
    args: list[str] = []
    if start_time is not None:
        args.append(f"--after={start_time.strftime(_GIT_DATE_FORMAT)}")
    if end_time is not None:
        args.append(f"--before={end_time.strftime(_GIT_DATE_FORMAT)}")
    return args


def _log_format(stash: bool) -> str:
    prefix = "%gd:" if stash else ""
    return ENTRY_SEPARATOR + prefix + FORMAT_SEPARATOR.join(_LOG_FIELDS) + FORMAT_SEPARATOR


def parse_log_entries(output: str, line_history: bool = False) -> list[LogEntry]:
    """Parse formatted ``git log`` / ``git stash list`` output.

    Entries are returned in the order git printed them.

    Args:
        output: Raw output produced with the Historian log format.
        line_history: True when the output came from ``git log -L``; the
            trailing block is then the line diff instead of the shortstat.

    Returns:
        Parsed log entries.
    """
    entries: list[LogEntry] = []
    for chunk in output.split(ENTRY_SEPARATOR):
        if not chunk:
            continue
        parts = chunk.split(FORMAT_SEPARATOR, _FIELDS_PER_ENTRY - 1)
        if len(parts) < _FIELDS_PER_ENTRY:
            logger.debug("log_entry_skipped", chunk=chunk[:80])
            continue
        subject, hash_, ref, author, email, timestamp, date, relative_date, extra = parts
        try:
            ts = int(timestamp)
        except ValueError:
            ts = 0
        extra = extra.strip()
        entries.append(
            LogEntry(
                subject=_single_lined(subject),
                hash=hash_,
                ref=ref,
                author=author,
                email=email,
                timestamp=ts,
                date=date,
                relative_date=relative_date,
                stat=None if line_history else (extra or None),
                line_info=(extra or None) if line_history else None,
            )
        )
    return entries


# =============================================================================
# Main Class: GitRepository
# =============================================================================


class GitRepository:
    """GitPython-based history queries against one working tree.

    Thread-safe: only stores immutable configuration and the Repo instance;
    every query spawns its own git process.

    Example:
        ```python
        repo = GitRepository("/path/to/repo")
        branch = repo.current_branch()
        first_page = repo.log_entries(start=0, count=50, branch=branch)
        ```
    """

    def __init__(self, path: Path | str | None = None) -> None:
        """Initialize GitRepository.

        Args:
            path: Path to the git working tree. Defaults to current directory.

        Raises:
            GitNotFoundError: If git is not installed.
            NotARepositoryError: If path is not a git repository.
        """
        resolved_path = Path.cwd() if path is None else Path(path)
        self._path = resolved_path

        try:
            self._repo = Repo(resolved_path)
        except GitCommandNotFound as e:
            raise GitNotFoundError("Git CLI not found. Please install git.") from e
        except (InvalidGitRepositoryError, NoSuchPathError) as e:
            raise NotARepositoryError(
                f"Not a git repository: {path}",
                path=path,
            ) from e

    @property
    def path(self) -> Path:
        """Path the repository was opened with."""
        return self._path

    @property
    def repo(self) -> Repo:
        """Underlying GitPython Repo instance."""
        return self._repo

    def get_repo_root(self) -> Path:
        """Get the working tree root directory."""
        return Path(self._repo.working_tree_dir or self._path)

    # -------------------------------------------------------------------------
    # Branch and commit list
    # -------------------------------------------------------------------------

    def current_branch(self) -> str:
        """Get the current branch name.

        Returns:
            Branch name, or ``HEAD`` in detached HEAD state.

        Raises:
            SourceUnavailableError: If git fails (e.g. no commits yet).
        """
        try:
            return self._repo.git.rev_parse("--abbrev-ref", "HEAD").strip()
        except GitCommandError as e:
            raise _convert_git_error(e, "rev-parse") from e

    def commit_hashes(self, branch: str) -> list[str]:
        """Get abbreviated hashes of every commit on a branch, newest first.

        Args:
            branch: Branch or ref to list. An empty ref yields an empty list.
        """
        if not branch:
            return []
        try:
            output = self._repo.git.log(
                "--format=%h", "--simplify-merges", "--date-order", branch, "--"
            )
        except GitCommandError as e:
            raise _convert_git_error(e, "log") from e
        return [line.strip() for line in output.splitlines() if line.strip()]

    def commits_count(
        self,
        branch: str,
        author: str | None = None,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
    ) -> int:
        """Count commits reachable from a branch, with optional filters."""
        args = ["--simplify-merges", "--count", branch]
        if author:
            args.append(f"--author={author}")
        args.extend(_time_args(start_time, end_time))
        # '--' keeps a branch and a file of the same name apart
        args.append("--")
        try:
            output = self._repo.git.rev_list(*args)
        except GitCommandError as e:
            raise _convert_git_error(e, "rev-list") from e
        try:
            return int(output.strip() or 0)
        except ValueError as e:
            raise SourceUnavailableError(
                f"Unexpected rev-list output: {output!r}", operation="rev-list"
            ) from e

    # -------------------------------------------------------------------------
    # Log entries
    # -------------------------------------------------------------------------

    def relative_path(self, file: Path | str) -> str:
        """Express a file path relative to the working tree, git style."""
        file_path = Path(file)
        if file_path.is_absolute():
            relative = os.path.relpath(file_path, self.get_repo_root())
        else:
            relative = os.fspath(file_path)
        relative = relative.replace("\\", "/")
        return relative if relative not in ("", ".") else "."

    def log_entries(
        self,
        start: int,
        count: int,
        branch: str,
        express: bool = False,
        stash: bool = False,
        file: Path | str | None = None,
        line: int | None = None,
        author: str | None = None,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
    ) -> list[LogEntry]:
        """Get one window of commit history.

        Args:
            start: Number of entries to skip.
            count: Maximum number of entries to return.
            branch: Branch or ref to walk.
            express: Skip the per-commit shortstat (faster).
            stash: List stash entries instead of branch history.
            file: Restrict to the history of one file (follows renames).
            line: With ``file``, restrict to the history of one line.
            author: Author filter.
            start_time: Only commits after this time.
            end_time: Only commits before this time.

        Returns:
            Log entries, newest first.
        """
        format_args = [f"--format={_log_format(stash)}"]
        if not stash:
            # a date mode turns %gd into stash@{<date>} instead of stash@{0}
            format_args.append("--date=local")
        if not express and not line:
            format_args.append("--shortstat")

        try:
            if stash:
                output = self._repo.git.stash("list", *format_args)
            else:
                args = [
                    f"--skip={start}",
                    f"--max-count={count}",
                    "--date-order",
                    "--simplify-merges",
                    branch,
                    *format_args,
                ]
                if author:
                    args.append(f"--author={author}")
                args.extend(_time_args(start_time, end_time))
                if file is not None:
                    relative = self.relative_path(file)
                    if line:
                        args.extend([f"-L{line},{line}:{relative}", "--"])
                    else:
                        args.extend(["--follow", "--", relative])
                else:
                    args.append("--")
                output = self._repo.git.log(*args)
        except GitCommandError as e:
            raise _convert_git_error(e, "stash list" if stash else "log") from e

        return parse_log_entries(output, line_history=bool(file is not None and line))

    # -------------------------------------------------------------------------
    # Remote
    # -------------------------------------------------------------------------

    def get_remote_url(self) -> str:
        """Get a browsable URL for the ``upstream`` or ``origin`` remote.

        Returns:
            URL without ``.git`` suffix, or empty string if neither remote
            exists.
        """
        names = [remote.name for remote in self._repo.remotes]
        name = next((n for n in ("upstream", "origin") if n in names), None)
        if name is None:
            return ""
        try:
            remote_git = self._repo.git.remote("get-url", "--push", name).strip()
        except GitCommandError as e:
            logger.debug("remote_url_unavailable", remote=name, error=str(e))
            return ""
        if remote_git.startswith("git@"):
            remote_git = remote_git.replace(":", "/", 1).replace("git@", "https://", 1)
        url = re.sub(r"\.git$", "", remote_git)
        if _KNOWN_HOST_SUFFIX.search(url):
            return url
        # Self-hosted alias: best guess is the same path on github.com
        return re.sub(r"://.*?/", "://github.com/", url, count=1)


# =============================================================================
# Async Wrapper
# =============================================================================


class AsyncGitRepository:
    """Async wrapper for GitRepository.

    Delegates all operations to a synchronous GitRepository running in
    a worker thread, so git processes never block the event loop.
    """

    def __init__(
        self,
        path: Path | str | None = None,
        *,
        sync: GitRepository | None = None,
    ) -> None:
        """Initialize AsyncGitRepository.

        Args:
            path: Repository path; opened on the calling thread.
            sync: An already opened GitRepository to wrap instead.

        Raises:
            GitNotFoundError: If git is not installed.
            NotARepositoryError: If path is not a git repository.
        """
        self._sync = sync if sync is not None else GitRepository(path)

    @classmethod
    async def open(cls, path: Path | str) -> AsyncGitRepository:
        """Open the repository in a worker thread.

        Raises:
            NotARepositoryError: If path is not a git repository.
        """
        return cls(sync=await asyncio.to_thread(GitRepository, path))

    @property
    def path(self) -> Path:
        """Path the repository was opened with."""
        return self._sync.path

    @property
    def sync(self) -> GitRepository:
        """The wrapped synchronous repository."""
        return self._sync

    async def current_branch(self) -> str:
        """Get current branch name."""
        return await asyncio.to_thread(self._sync.current_branch)

    async def commit_hashes(self, branch: str) -> list[str]:
        """Get all commit hashes of a branch, newest first."""
        return await asyncio.to_thread(self._sync.commit_hashes, branch)

    async def commits_count(
        self,
        branch: str,
        author: str | None = None,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
    ) -> int:
        """Count commits reachable from a branch."""
        return await asyncio.to_thread(
            self._sync.commits_count, branch, author, start_time, end_time
        )

    async def log_entries(
        self,
        start: int,
        count: int,
        branch: str,
        express: bool = False,
        stash: bool = False,
        file: Path | str | None = None,
        line: int | None = None,
        author: str | None = None,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
    ) -> list[LogEntry]:
        """Get one window of commit history."""
        return await asyncio.to_thread(
            self._sync.log_entries,
            start,
            count,
            branch,
            express,
            stash,
            file,
            line,
            author,
            start_time,
            end_time,
        )

    async def get_remote_url(self) -> str:
        """Get a browsable URL of the preferred remote."""
        return await asyncio.to_thread(self._sync.get_remote_url)

    async def get_repo_root(self) -> Path:
        """Get the working tree root directory."""
        return await asyncio.to_thread(self._sync.get_repo_root)
