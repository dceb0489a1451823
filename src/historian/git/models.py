"""Value objects shared by the git layer and the history cache.

All models are frozen dataclasses with slots. Log entries are produced in
reverse-chronological order by git and are never re-sorted afterwards.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

__all__ = [
    "LogEntry",
    "RepositoryHandle",
    "normalize_root",
]


@dataclass(frozen=True, slots=True)
class RepositoryHandle:
    """Identifies a git working tree by its normalized absolute root.

    Two handles are equal when their roots are equal; the remote URL is
    informational only.

    Attributes:
        root: Normalized absolute path of the working tree root.
        remote_url: Browsable URL of the preferred remote, or empty.
    """

    root: str
    remote_url: str = field(default="", compare=False)

    @classmethod
    def from_path(cls, path: Path | str, remote_url: str = "") -> RepositoryHandle:
        """Build a handle from any spelling of the root path."""
        return cls(root=normalize_root(path), remote_url=remote_url)

    @property
    def path(self) -> Path:
        """Root as a Path."""
        return Path(self.root)

    def __str__(self) -> str:
        return self.root


@dataclass(frozen=True, slots=True)
class LogEntry:
    """Single commit as shown in a history view.

    Attributes:
        subject: First line of the commit message, newlines flattened. Stash
            entries carry their selector as a prefix, e.g. ``stash@{0}:``.
        hash: Abbreviated commit hash.
        ref: Ref decoration string, e.g. `` (HEAD -> main, origin/main)``.
        author: Author name.
        email: Author email.
        timestamp: Committer timestamp in unix seconds.
        date: Committer date formatted in local time.
        relative_date: Human relative date, e.g. ``3 days ago``.
        stat: ``--shortstat`` summary line, when requested.
        line_info: Line-range diff for single-line history, when requested.
    """

    subject: str
    hash: str
    ref: str
    author: str
    email: str
    timestamp: int
    date: str
    relative_date: str
    stat: str | None = None
    line_info: str | None = None


def normalize_root(path: Path | str) -> str:
    """Normalize a repository root so equal locations compare equal."""
    normalized = os.path.normpath(os.path.abspath(os.fspath(path)))
    if os.name == "nt":
        normalized = normalized.lower()
    return normalized
