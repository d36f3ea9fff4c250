"""Tests for heritage watch -- polling file watcher feeding the index update queue."""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from conftest import bump_mtime, started_index
from heritage.commands.cmd_watch import (
    DebounceAccumulator,
    apply_batch,
    detect_changes,
    poll_loop,
    scan_disk_mtimes,
)
from heritage.index.symbol_index import iso_mtime


class StopLoop(Exception):
    pass


def _sleeper(actions):
    """Async sleep replacement running one action per call, then stopping."""
    calls = iter(actions)

    async def _sleep(_seconds):
        action = next(calls, None)
        if action is None:
            raise StopLoop
        action()

    return _sleep


class TestDetectChanges:
    def test_no_changes(self):
        tracked = {"a.ts": "2024-01-01T00:00:00.000Z"}
        added, modified, removed = detect_changes(tracked, dict(tracked))
        assert (added, modified, removed) == ([], [], [])

    def test_new_file_detected(self):
        added, modified, removed = detect_changes({}, {"b.ts": "2024-01-01T00:00:00.000Z"})
        assert added == ["b.ts"]
        assert modified == []
        assert removed == []

    def test_deleted_file_detected(self):
        added, modified, removed = detect_changes({"b.ts": "2024-01-01T00:00:00.000Z"}, {})
        assert removed == ["b.ts"]

    def test_modified_file_detected(self):
        tracked = {"a.ts": "2024-01-01T00:00:00.000Z"}
        disk = {"a.ts": "2024-01-01T00:00:00.001Z"}
        _, modified, _ = detect_changes(tracked, disk)
        assert modified == ["a.ts"]

    def test_results_are_sorted(self):
        disk = {"c.ts": "t", "a.ts": "t", "b.ts": "t"}
        added, _, _ = detect_changes({}, disk)
        assert added == ["a.ts", "b.ts", "c.ts"]


class TestScanDiskMtimes:
    def test_existing_file_returns_iso_stamp(self, tmp_path):
        (tmp_path / "a.ts").write_text("class A {}")
        result = scan_disk_mtimes(["a.ts"], tmp_path)
        assert result == {"a.ts": iso_mtime(tmp_path / "a.ts")}

    def test_missing_file_omitted(self, tmp_path):
        assert scan_disk_mtimes(["gone.ts"], tmp_path) == {}


class TestDebounceAccumulator:
    def test_initially_no_pending(self):
        assert not DebounceAccumulator().has_pending()

    def test_add_empty_list_no_pending(self):
        acc = DebounceAccumulator()
        acc.add([])
        assert not acc.has_pending()

    def test_flush_returns_sorted_deduplicated_paths(self):
        acc = DebounceAccumulator()
        acc.add(["b.ts", "a.ts"])
        acc.add(["a.ts"])
        assert acc.flush() == ["a.ts", "b.ts"]
        assert not acc.has_pending()

    def test_should_fire_false_before_window(self):
        acc = DebounceAccumulator(window=10.0)
        acc.add(["a.ts"])
        assert not acc.should_fire(acc._last_change + 1.0)

    def test_should_fire_true_after_window(self):
        acc = DebounceAccumulator(window=1.0)
        acc.add(["a.ts"])
        assert acc.should_fire(acc._last_change + 1.5)

    def test_should_fire_false_when_no_pending(self):
        assert not DebounceAccumulator(window=0.0).should_fire(1e9)


class TestApplyBatch:
    def test_existing_paths_change_missing_paths_delete(self, project_factory):
        proj = project_factory({"a.ts": "class A {}", "b.ts": "class B {}"})
        index = started_index(proj)
        (proj / "a.ts").write_text("class Renamed {}")
        bump_mtime(proj / "a.ts")
        (proj / "b.ts").unlink()

        changed, deleted = asyncio.run(apply_batch(index, ["a.ts", "b.ts"]))
        assert (changed, deleted) == (1, 1)
        assert index.lookup("Renamed") is not None
        assert index.lookup("A") is None
        assert index.lookup("B") is None


class TestPollLoop:
    def test_modification_reaches_index(self, project_factory):
        proj = project_factory({"a.ts": "class Before {}"})
        index = started_index(proj)
        assert index.files == {"a.ts": iso_mtime(proj / "a.ts")}

        def edit():
            (proj / "a.ts").write_text("class After {}")
            bump_mtime(proj / "a.ts")

        with pytest.raises(StopLoop):
            asyncio.run(poll_loop(index, interval=0, debounce=0, quiet=True, _sleep=_sleeper([edit])))
        assert index.lookup("After") is not None
        assert index.lookup("Before") is None

    def test_added_and_removed_files(self, project_factory):
        proj = project_factory({"a.ts": "class A {}", "b.ts": "class B {}"})
        index = started_index(proj)

        def churn():
            (proj / "b.ts").unlink()
            (proj / "c.ts").write_text("interface C {}")

        with pytest.raises(StopLoop):
            asyncio.run(poll_loop(index, interval=0, debounce=0, quiet=True, _sleep=_sleeper([churn])))
        assert index.lookup("B") is None
        assert index.lookup("C") is not None
        assert set(index.files) == {"a.ts", "c.ts"}

    def test_debounce_holds_changes(self, project_factory):
        proj = project_factory({"a.ts": "class Before {}"})
        index = started_index(proj)

        def edit():
            (proj / "a.ts").write_text("class After {}")
            bump_mtime(proj / "a.ts")

        with pytest.raises(StopLoop):
            asyncio.run(poll_loop(index, interval=0, debounce=3600, quiet=True, _sleep=_sleeper([edit])))
        assert index.lookup("Before") is not None

    def test_reports_changes_when_not_quiet(self, project_factory, capsys):
        proj = project_factory({"a.ts": "class A {}"})
        index = started_index(proj)

        def add():
            (proj / "new.ts").write_text("class New {}")

        with pytest.raises(StopLoop):
            asyncio.run(poll_loop(index, interval=0, debounce=0, quiet=False, _sleep=_sleeper([add])))
        out = capsys.readouterr().out
        assert "Watching 1 files" in out
        assert "  + new.ts" in out
        assert "Updated 1 file(s), removed 0." in out

    def test_uses_injected_discovery(self, project_factory):
        proj = project_factory({"a.ts": "class A {}", "hidden.ts": "class Hidden {}"})
        index = started_index(proj)

        def touch():
            bump_mtime(proj / "hidden.ts")

        with pytest.raises(StopLoop):
            asyncio.run(
                poll_loop(
                    index,
                    interval=0,
                    debounce=0,
                    quiet=True,
                    _sleep=_sleeper([touch]),
                    _discover=lambda: ["a.ts"],
                )
            )
        # Dropped from discovery but still on disk: re-indexed, not deleted
        assert index.lookup("Hidden") is not None


class TestWatchCommand:
    def test_help_text(self):
        from heritage.cli import cli

        result = CliRunner().invoke(cli, ["watch", "--help"])
        assert result.exit_code == 0
        assert "--interval" in result.output
        assert "--debounce" in result.output
        assert "--quiet" in result.output

    def test_flags_forwarded(self, project_factory):
        from heritage.cli import cli

        proj = project_factory({"a.ts": "class A {}"})
        fake_watch = MagicMock(return_value=None)
        with (
            patch("heritage.commands.cmd_watch._watch", fake_watch),
            patch("heritage.commands.cmd_watch.run") as fake_run,
        ):
            result = CliRunner().invoke(cli, ["--root", str(proj), "watch", "-i", "0.5", "-d", "2", "-q"])
        assert result.exit_code == 0, result.output
        config, interval, debounce, quiet = fake_watch.call_args.args
        assert config.root == proj.resolve()
        assert (interval, debounce, quiet) == (0.5, 2.0, True)
        fake_run.assert_called_once()

    def test_keyboard_interrupt_shows_stopped(self, project_factory):
        from heritage.cli import cli

        proj = project_factory({"a.ts": "class A {}"})
        with (
            patch("heritage.commands.cmd_watch._watch", MagicMock(return_value=None)),
            patch("heritage.commands.cmd_watch.run", side_effect=KeyboardInterrupt),
        ):
            result = CliRunner().invoke(cli, ["--root", str(proj), "watch"])
        assert result.exit_code == 0
        assert "Watch stopped." in result.output
