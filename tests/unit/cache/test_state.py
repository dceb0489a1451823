"""Unit tests for RepositoryCacheState."""

from __future__ import annotations

from collections.abc import Callable

from historian.cache.keys import count_key, log_entry_key
from historian.cache.state import RepositoryCacheState
from historian.git.models import LogEntry, RepositoryHandle

HANDLE = RepositoryHandle.from_path("/work/repo")


def test_create_uses_capacities() -> None:
    state = RepositoryCacheState.create(HANDLE, generation=1, page_capacity=2, count_capacity=7)

    assert state.pages.capacity == 2
    assert state.counts.capacity == 7
    assert state.branch == ""
    assert state.commits == ()
    assert not state.refilling


def test_begin_refill_bumps_version() -> None:
    state = RepositoryCacheState.create(HANDLE, generation=1)

    first = state.begin_refill()
    second = state.begin_refill()

    assert state.refilling
    assert second == first + 1


def test_accepts_only_current_version_when_idle() -> None:
    state = RepositoryCacheState.create(HANDLE, generation=1)
    version = state.version
    assert state.accepts(version)

    state.begin_refill()
    assert not state.accepts(state.version)

    state.refilling = False
    assert state.accepts(state.version)
    assert not state.accepts(version)


def test_commit_refill_replaces_everything(
    make_entries: Callable[..., list[LogEntry]],
) -> None:
    state = RepositoryCacheState.create(HANDLE, generation=1)
    state.pages.set(log_entry_key("main", author="alice"), ())
    state.counts.set(count_key("main", author="alice"), 3)
    entries = make_entries(3)

    state.commit_refill("dev", ["h3", "h2", "h1"], 3, entries)

    assert state.branch == "dev"
    assert state.commits == ("h3", "h2", "h1")
    assert state.counts.keys() == [count_key("dev")]
    assert state.counts.get(count_key("dev")) == 3
    assert state.pages.keys() == [log_entry_key("dev")]
    assert state.pages.get(log_entry_key("dev")) == tuple(entries)


def test_clear_resets_flag_and_data(
    make_entries: Callable[..., list[LogEntry]],
) -> None:
    state = RepositoryCacheState.create(HANDLE, generation=1)
    state.commit_refill("main", ["h1"], 1, make_entries(1))
    state.begin_refill()

    state.clear()

    assert state.branch == ""
    assert state.commits == ()
    assert len(state.pages) == 0
    assert len(state.counts) == 0
    assert not state.refilling


def test_states_compare_by_identity() -> None:
    a = RepositoryCacheState.create(HANDLE, generation=1)
    b = RepositoryCacheState.create(HANDLE, generation=1)
    assert a != b
