"""Cached state of the active repository."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from historian.cache.keys import count_key, log_entry_key
from historian.cache.store import BoundedCache
from historian.git.models import LogEntry, RepositoryHandle

__all__ = ["RepositoryCacheState"]


@dataclass(eq=False)
class RepositoryCacheState:
    """Everything cached for the one active repository.

    Attributes:
        handle: Repository the state belongs to.
        generation: Identifies this activation. A repository that is left and
            re-entered gets a new state with a new generation.
        pages: Log-entry pages by query key.
        counts: Commit counts by count key.
        branch: Current branch, empty until the first refill completes.
        commits: All commit hashes of ``branch``, newest first.
        refilling: True from the first change notification until a refill
            has committed; readers bypass the cache meanwhile.
        version: Bumped whenever a refill starts. Results computed under an
            older version are never written.
    """

    handle: RepositoryHandle
    generation: int
    pages: BoundedCache[str, tuple[LogEntry, ...]]
    counts: BoundedCache[str, int]
    branch: str = ""
    commits: tuple[str, ...] = field(default_factory=tuple)
    refilling: bool = False
    version: int = 0

    @classmethod
    def create(
        cls,
        handle: RepositoryHandle,
        generation: int,
        page_capacity: int = 5,
        count_capacity: int = 100,
    ) -> RepositoryCacheState:
        return cls(
            handle=handle,
            generation=generation,
            pages=BoundedCache(page_capacity),
            counts=BoundedCache(count_capacity),
        )

    def begin_refill(self) -> int:
        """Mark a refill as started and return its version."""
        self.refilling = True
        self.version += 1
        return self.version

    def accepts(self, version: int) -> bool:
        """Whether data read under ``version`` may still be cached."""
        return not self.refilling and self.version == version

    def commit_refill(
        self,
        branch: str,
        commits: Sequence[str],
        count: int,
        entries: Sequence[LogEntry],
    ) -> None:
        """Replace all cached data with the result of a full refill."""
        self.pages.clear()
        self.counts.clear()
        self.branch = branch
        self.commits = tuple(commits)
        self.counts.set(count_key(branch), count)
        self.pages.set(log_entry_key(branch), tuple(entries))

    def clear(self) -> None:
        self.branch = ""
        self.commits = ()
        self.pages.clear()
        self.counts.clear()
        self.refilling = False
