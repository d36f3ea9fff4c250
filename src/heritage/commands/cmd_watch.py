"""Watch mode: poll for file changes and feed them to the symbol index."""

from __future__ import annotations

import asyncio
import time
from pathlib import Path

import click

from heritage.commands.engine import open_engine, project_config, run
from heritage.index.discovery import discover_files
from heritage.index.symbol_index import SymbolIndex, iso_mtime


def scan_disk_mtimes(
    file_paths: list[str],
    project_root: Path,
) -> dict[str, str]:
    """Return {relative_path: iso_mtime} for paths that exist on disk.

    Missing files are omitted from the result.
    """
    result: dict[str, str] = {}
    for rel in file_paths:
        stamp = iso_mtime(project_root / rel)
        if stamp is not None:
            result[rel] = stamp
    return result


def detect_changes(
    tracked: dict[str, str],
    current_disk: dict[str, str],
) -> tuple[list[str], list[str], list[str]]:
    """Compare the last seen state with the current disk state.

    Returns:
        (added, modified, removed) -- three sorted lists of relative paths.
        added    = paths on disk but not tracked.
        modified = paths in both whose timestamp differs.
        removed  = paths tracked but no longer on disk.
    """
    tracked_set = set(tracked)
    disk_set = set(current_disk)

    added = sorted(disk_set - tracked_set)
    removed = sorted(tracked_set - disk_set)
    modified = sorted(p for p in tracked_set & disk_set if current_disk[p] != tracked[p])
    return added, modified, removed


class DebounceAccumulator:
    """Accumulate file-change events and fire after a quiet period.

    Call add() with changed paths each poll cycle, then check
    should_fire() to know when the debounce window has elapsed.
    """

    def __init__(self, window: float = 1.0) -> None:
        self.window = window
        self._pending: set[str] = set()
        self._last_change: float | None = None

    def add(self, paths: list[str]) -> None:
        """Record newly changed paths and reset the quiet-period timer."""
        if paths:
            self._pending.update(paths)
            self._last_change = time.monotonic()

    def has_pending(self) -> bool:
        return bool(self._pending)

    def should_fire(self, now: float) -> bool:
        """Return True when the quiet window has elapsed since the last change."""
        if not self._pending or self._last_change is None:
            return False
        return (now - self._last_change) >= self.window

    def flush(self) -> list[str]:
        """Return accumulated paths and reset internal state."""
        result = sorted(self._pending)
        self._pending.clear()
        self._last_change = None
        return result


async def apply_batch(index: SymbolIndex, batch: list[str]) -> tuple[int, int]:
    """Send each path to the index as a change or a deletion.

    Returns (changed, deleted) counts.
    """
    changed = deleted = 0
    for rel_path in batch:
        if (index.root / rel_path).exists():
            await index.on_file_changed(rel_path)
            changed += 1
        else:
            await index.on_file_deleted(rel_path)
            deleted += 1
    return changed, deleted


async def poll_loop(
    index: SymbolIndex,
    interval: float,
    debounce: float,
    quiet: bool,
    *,
    _sleep=asyncio.sleep,
    _discover=None,
) -> None:
    """Run the watch loop until interrupted.

    Args:
        index:     A started :class:`SymbolIndex`.
        interval:  Poll interval in seconds.
        debounce:  Quiet-period window in seconds before updating the index.
        quiet:     Suppress per-file change messages when True.
        _sleep:    Injectable async sleep (for testing).
        _discover: Injectable file-discovery callable (for testing).
    """
    if _discover is None:
        _discover = lambda: discover_files(index.root, index.config.exclude_dirs)

    acc = DebounceAccumulator(window=debounce)
    tracked = dict(index.files)

    click.echo(f"Watching {len(tracked)} files... (interval={interval}s, debounce={debounce}s)")
    click.echo("Press Ctrl+C to stop.")

    while True:
        await _sleep(interval)

        current_paths = await asyncio.to_thread(_discover)
        current_disk = await asyncio.to_thread(scan_disk_mtimes, current_paths, index.root)

        added, modified, removed = detect_changes(tracked, current_disk)
        changed = added + modified + removed
        if changed and not quiet:
            for path in added:
                click.echo(f"  + {path}")
            for path in modified:
                click.echo(f"  ~ {path}")
            for path in removed:
                click.echo(f"  - {path}")
        # Unparsable files never enter the index; diff against the last poll
        tracked = current_disk
        acc.add(changed)

        if acc.should_fire(time.monotonic()):
            batch = acc.flush()
            n_changed, n_deleted = await apply_batch(index, batch)
            if not quiet:
                click.echo(
                    f"Updated {n_changed} file(s), removed {n_deleted}. "
                    f"{len(index.symbols)} symbol(s) in {len(index.files)} file(s)."
                )


async def _watch(config, interval: float, debounce: float, quiet: bool) -> None:
    async with open_engine(config, require=False) as engine:
        await poll_loop(engine.index, interval, debounce, quiet)


@click.command("watch")
@click.option(
    "--interval",
    "-i",
    default=2.0,
    show_default=True,
    type=float,
    help="Poll interval in seconds.",
)
@click.option(
    "--debounce",
    "-d",
    default=1.0,
    show_default=True,
    type=float,
    help="Quiet-period window before updating the index (seconds).",
)
@click.option(
    "--quiet",
    "-q",
    is_flag=True,
    help="Suppress per-file change messages.",
)
@click.pass_context
def watch(ctx, interval, debounce, quiet):
    """Watch for file changes and update the index incrementally.

    Uses polling (no external dependencies). Debounces rapid bursts of
    changes; each changed file goes through the index update queue.

    Press Ctrl+C to stop.
    """
    config = project_config(ctx)
    try:
        run(_watch(config, interval, debounce, quiet))
    except KeyboardInterrupt:
        click.echo("\nWatch stopped.")
