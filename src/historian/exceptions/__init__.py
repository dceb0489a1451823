"""Historian exception hierarchy.

All exceptions can be imported from this package:
    from historian.exceptions import GitError, SourceUnavailableError
"""

from __future__ import annotations

from historian.exceptions.base import HistorianError
from historian.exceptions.config import ConfigError
from historian.exceptions.git import (
    GitError,
    GitNotFoundError,
    NotARepositoryError,
    SourceUnavailableError,
)

__all__ = [
    "ConfigError",
    "GitError",
    "GitNotFoundError",
    "HistorianError",
    "NotARepositoryError",
    "SourceUnavailableError",
]
