"""Cache keys for history queries.

Keys are plain strings built from a fixed field order joined by ``,``.
Absent optional fields encode as an empty field; present strings are JSON
quoted, so an absent author and an empty author produce different keys and a
path containing ``,`` cannot shift the following fields.
"""

from __future__ import annotations

import json
import os
from datetime import datetime
from pathlib import Path

__all__ = ["KEY_SEPARATOR", "count_key", "log_entry_key"]

KEY_SEPARATOR = ","


def _encode(value: str | int | bool | datetime | Path | None) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "1" if value else ""
    if isinstance(value, datetime):
        return str(int(value.timestamp() * 1000))
    if isinstance(value, int):
        return str(value)
    return json.dumps(os.fspath(value))


def log_entry_key(
    branch: str,
    stash: bool = False,
    file: Path | str | None = None,
    line: int | None = None,
    author: str | None = None,
    start_time: datetime | None = None,
    end_time: datetime | None = None,
) -> str:
    """Key of a log-entry page query."""
    return KEY_SEPARATOR.join(
        _encode(v) for v in (branch, stash, file, line, author, start_time, end_time)
    )


def count_key(
    branch: str,
    author: str | None = None,
    start_time: datetime | None = None,
    end_time: datetime | None = None,
) -> str:
    """Key of a commit-count query. Counts are not scoped to files or stashes."""
    return KEY_SEPARATOR.join(_encode(v) for v in (branch, author, start_time, end_time))
