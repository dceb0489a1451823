"""Historian: cached commit history for git repositories.

Historian sits between a history UI and the git executable. It serves
paginated log queries, commit counts and commit-neighbour lookups from an
in-memory cache that is refilled whenever the repository metadata changes.
"""

from __future__ import annotations

__version__ = "0.1.0"
