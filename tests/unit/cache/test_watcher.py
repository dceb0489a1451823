"""Tests for GitDirWatcher and git directory resolution."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from historian.cache.protocols import RepositoryWatcher
from historian.cache.watcher import GitDirWatcher, resolve_git_dir


class TestResolveGitDir:
    def test_plain_repository(self, temp_git_repo: Path) -> None:
        assert resolve_git_dir(temp_git_repo) == temp_git_repo / ".git"

    def test_gitdir_pointer_absolute(self, tmp_path: Path) -> None:
        worktree = tmp_path / "worktree"
        worktree.mkdir()
        target = tmp_path / "main" / ".git" / "worktrees" / "wt"
        (worktree / ".git").write_text(f"gitdir: {target}\n")

        assert resolve_git_dir(worktree) == target

    def test_gitdir_pointer_relative(self, tmp_path: Path) -> None:
        submodule = tmp_path / "super" / "sub"
        submodule.mkdir(parents=True)
        (submodule / ".git").write_text("gitdir: ../.git/modules/sub\n")

        expected = (tmp_path / "super" / ".git" / "modules" / "sub").resolve()
        assert resolve_git_dir(submodule) == expected

    def test_missing_git_dir_is_returned_as_is(self, tmp_path: Path) -> None:
        assert resolve_git_dir(tmp_path) == tmp_path / ".git"


class TestGitDirWatcher:
    def test_satisfies_protocol(self, temp_git_repo: Path) -> None:
        watcher = GitDirWatcher(str(temp_git_repo), lambda path: None)
        assert isinstance(watcher, RepositoryWatcher)
        assert not watcher.running

    @pytest.mark.asyncio
    async def test_reports_changes_under_git_dir(self, temp_git_repo: Path) -> None:
        changed = asyncio.Event()
        paths: list[str] = []

        def on_change(path: str) -> None:
            paths.append(path)
            changed.set()

        watcher = GitDirWatcher(str(temp_git_repo), on_change)
        watcher.start()
        assert watcher.running
        try:
            # give the notify backend time to register the watch
            await asyncio.sleep(0.3)
            (temp_git_repo / ".git" / "HEAD").write_text("ref: refs/heads/main\n")
            await asyncio.wait_for(changed.wait(), timeout=5)
        finally:
            watcher.close()

        assert any(Path(p).name == "HEAD" for p in paths)
        assert not watcher.running

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, temp_git_repo: Path) -> None:
        watcher = GitDirWatcher(str(temp_git_repo), lambda path: None)
        watcher.start()
        watcher.close()
        watcher.close()
        assert not watcher.running

    @pytest.mark.asyncio
    async def test_missing_git_dir_stops_quietly(self, tmp_path: Path) -> None:
        watcher = GitDirWatcher(str(tmp_path), lambda path: None)
        watcher.start()
        await asyncio.sleep(0.1)
        assert not watcher.running
        watcher.close()
