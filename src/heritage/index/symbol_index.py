"""Workspace-wide symbol table: full scans, incremental updates, JSON persistence.

All mutations (full rebuilds, file changes, file deletions) are pushed onto a
single asyncio queue and applied one at a time by a worker task, so two
notifications can never interleave their read-modify-write of the maps.
Blocking work (discovery, stat, parsing, writing the JSON document) runs in
worker threads via ``asyncio.to_thread``.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import time
from datetime import datetime, timezone
from pathlib import Path

from heritage.config import ProjectConfig
from heritage.exit_codes import IndexNotReadyError
from heritage.index.discovery import (
    declaration_for,
    discover_files,
    implementation_for,
    is_source_file,
    should_index,
)
from heritage.index.parser import SourceParser
from heritage.index.symbols import Symbol, SymbolKind, extract_symbols

log = logging.getLogger(__name__)


def iso_mtime(path: Path) -> str | None:
    """Modification time of *path* as an ISO-8601 UTC string (ms precision).

    Returns None when the file does not exist.
    """
    try:
        mtime = path.stat().st_mtime
    except OSError:
        return None
    stamp = datetime.fromtimestamp(mtime, tz=timezone.utc).isoformat(timespec="milliseconds")
    return stamp.replace("+00:00", "Z")


class SymbolIndex:
    """Qualified type name -> :class:`Symbol`, plus relative path -> mtime.

    Create one per project and pass it to the resolver::

        async with SymbolIndex(config) as index:
            symbol = index.lookup("NS.Bar")
    """

    def __init__(self, config: ProjectConfig, parser: SourceParser | None = None):
        self.config = config
        self.root = config.root
        self.index_path = Path(config.index_path)
        # Indexing always re-reads from disk, never through a cache.
        self._parser = parser or SourceParser(
            target=config.target,
            cache=False,
            tolerate_errors=config.tolerate_syntax_errors,
        )
        self.symbols: dict[str, Symbol] = {}
        self.files: dict[str, str] = {}
        self._tree_caches: list[SourceParser] = []
        self._lost: set[str] = set()
        self._ready = asyncio.Event()
        self._queue: asyncio.Queue | None = None
        self._worker: asyncio.Task | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    # ── lifecycle ────────────────────────────────────────────────────────

    async def start(self) -> "SymbolIndex":
        """Load the persisted document, then run a full scan and mark ready."""
        if self._ready.is_set():
            return self
        await asyncio.to_thread(self.load)
        await self.rebuild()
        self._ready.set()
        return self

    async def wait_ready(self, timeout: float | None = None) -> None:
        await asyncio.wait_for(self._ready.wait(), timeout)

    @property
    def is_ready(self) -> bool:
        return self._ready.is_set()

    async def dispose(self) -> None:
        """Finish queued updates, then stop the worker.

        Registered tree caches are emptied as well.
        """
        if self._worker is not None and self._loop is asyncio.get_running_loop():
            await self._queue.join()
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
        self._worker = None
        self._queue = None
        self._loop = None
        self._ready.clear()
        for cache in self._tree_caches:
            cache.clear()

    async def __aenter__(self) -> "SymbolIndex":
        return await self.start()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.dispose()

    def watch_cache(self, parser: SourceParser) -> None:
        """Register a caching parser whose trees must be evicted on file changes."""
        if parser is not self._parser and parser not in self._tree_caches:
            self._tree_caches.append(parser)

    # ── queries ──────────────────────────────────────────────────────────

    def lookup(self, name: str) -> Symbol | None:
        if not self._ready.is_set():
            raise IndexNotReadyError()
        return self.symbols.get(name)

    def symbols_for_file(self, rel_path: str) -> list[Symbol]:
        return [s for s in self.symbols.values() if s.relative_path == rel_path]

    def stats(self) -> dict:
        classes = sum(1 for s in self.symbols.values() if s.kind is SymbolKind.CLASS)
        return {
            "files": len(self.files),
            "symbols": len(self.symbols),
            "classes": classes,
            "interfaces": len(self.symbols) - classes,
        }

    # ── mutations (all serialized through the update queue) ─────────────

    async def rebuild(self, root: Path | str | None = None) -> None:
        await self._submit(self._do_rebuild, root)

    async def on_file_changed(self, path) -> None:
        await self._submit(self._do_change, path)

    async def on_file_deleted(self, path) -> None:
        await self._submit(self._do_delete, path)

    def _ensure_worker(self) -> asyncio.Queue:
        loop = asyncio.get_running_loop()
        if self._loop is not loop or self._worker is None or self._worker.done():
            self._loop = loop
            self._queue = asyncio.Queue()
            self._worker = loop.create_task(self._run_updates(self._queue))
        return self._queue

    async def _submit(self, fn, *args):
        queue = self._ensure_worker()
        future = asyncio.get_running_loop().create_future()
        queue.put_nowait((fn, args, future))
        return await future

    async def _run_updates(self, queue: asyncio.Queue) -> None:
        while True:
            fn, args, future = await queue.get()
            try:
                result = await fn(*args)
            except Exception as exc:
                log.exception("Index update %s failed", fn.__name__)
                if not future.done():
                    future.set_exception(exc)
            else:
                if not future.done():
                    future.set_result(result)
            finally:
                queue.task_done()

    async def _do_rebuild(self, root) -> None:
        if root is not None:
            self.root = Path(root).resolve()
        t0 = time.monotonic()
        paths = await asyncio.to_thread(discover_files, self.root, self.config.exclude_dirs)
        present = set(paths)

        updated = 0
        for rel_path in paths:
            stamp = await asyncio.to_thread(iso_mtime, self.root / rel_path)
            if stamp is None or self.files.get(rel_path) == stamp:
                continue
            if await self._reindex_file(rel_path, stamp):
                updated += 1

        removed = [rel for rel in self.files if rel not in present]
        for rel_path in removed:
            self._lost |= self._forget_file(rel_path)
        self._purge_dangling()
        await self._restore_lost()

        await asyncio.to_thread(self.save)
        log.info(
            "Indexed %d file(s), removed %d, %d symbol(s) in %d file(s) (%.2fs)",
            updated,
            len(removed),
            len(self.symbols),
            len(self.files),
            time.monotonic() - t0,
        )

    async def _do_change(self, path) -> None:
        rel_path = self._relative(path)
        if rel_path is None or not is_source_file(rel_path):
            return

        stamp = await asyncio.to_thread(iso_mtime, self.root / rel_path)
        if stamp is None:
            await self._do_delete(path)
            return

        exclude = self.config.exclude_dirs
        implementation = implementation_for(rel_path)
        if not should_index(self.root, rel_path, exclude):
            log.debug("Ignoring %s, excluded from indexing", rel_path)
            await self._drop_if_indexed(rel_path)
            return
        if implementation and should_index(self.root, implementation, exclude):
            log.debug("Ignoring %s, shadowed by %s", rel_path, implementation)
            await self._drop_if_indexed(rel_path)
            return
        if self.files.get(rel_path) == stamp:
            return

        await self._reindex_file(rel_path, stamp)
        shadowed = declaration_for(rel_path)
        if shadowed and shadowed in self.files:
            self._lost |= self._forget_file(shadowed)
        await self._restore_lost()
        await asyncio.to_thread(self.save)

    async def _do_delete(self, path) -> None:
        rel_path = self._relative(path)
        if rel_path is None:
            return
        self._lost |= self._forget_file(rel_path)

        # x.d.ts stops being shadowed once x.ts is gone
        shadowed = declaration_for(rel_path)
        exclude = self.config.exclude_dirs
        if (
            shadowed
            and shadowed not in self.files
            and not should_index(self.root, rel_path, exclude)
            and should_index(self.root, shadowed, exclude)
        ):
            stamp = await asyncio.to_thread(iso_mtime, self.root / shadowed)
            if stamp is not None:
                await self._reindex_file(shadowed, stamp)

        await self._restore_lost()
        await asyncio.to_thread(self.save)

    async def _drop_if_indexed(self, rel_path: str) -> None:
        if rel_path not in self.files:
            return
        self._lost |= self._forget_file(rel_path)
        await self._restore_lost()
        await asyncio.to_thread(self.save)

    async def _reindex_file(self, rel_path: str, stamp: str) -> bool:
        """Re-parse one file and swap its symbols in.

        On failure the file loses its symbols and its timestamp, so the next
        scan retries it.
        """
        parsed = await asyncio.to_thread(self._parser.get_tree, self.root / rel_path)
        symbols = None
        if parsed is not None:
            try:
                symbols = extract_symbols(parsed, rel_path)
            except Exception as exc:
                log.warning("Failed to index %s: %s", rel_path, exc)

        dropped = self._forget_file(rel_path)
        if symbols is None:
            self._lost |= dropped
            return False
        self._lost |= dropped - symbols.keys()
        self.symbols.update(symbols)
        self.files[rel_path] = stamp
        return True

    def _forget_file(self, rel_path: str) -> set[str]:
        """Drop *rel_path* and its symbols; return the names removed."""
        self.files.pop(rel_path, None)
        names = {n for n, s in self.symbols.items() if s.relative_path == rel_path}
        for name in names:
            del self.symbols[name]
        for cache in self._tree_caches:
            cache.evict(self.root / rel_path)
        return names

    async def _restore_lost(self) -> None:
        """Re-add removed names still declared by another indexed file.

        A name declared in several files keeps only the last one seen, so
        removing that file must fall back to the others.  Later paths win,
        as in a full scan.
        """
        missing = {name for name in self._lost if name not in self.symbols}
        self._lost = set()
        if not missing:
            return
        needles = {name.rsplit(".", 1)[-1].encode("utf-8") for name in missing}
        for rel_path in sorted(self.files):
            try:
                source = await asyncio.to_thread((self.root / rel_path).read_bytes)
            except OSError as exc:
                log.debug("Cannot re-read %s: %s", rel_path, exc)
                continue
            if not any(needle in source for needle in needles):
                continue
            parsed = await asyncio.to_thread(
                self._parser.get_tree, self.root / rel_path, source.decode("utf-8", errors="replace")
            )
            if parsed is None:
                continue
            try:
                symbols = extract_symbols(parsed, rel_path)
            except Exception as exc:
                log.warning("Failed to index %s: %s", rel_path, exc)
                continue
            for name in missing & symbols.keys():
                self.symbols[name] = symbols[name]
                log.debug("Restored %s from %s", name, rel_path)

    def _purge_dangling(self) -> None:
        for name in [n for n, s in self.symbols.items() if s.relative_path not in self.files]:
            del self.symbols[name]

    def _relative(self, path) -> str | None:
        p = Path(path)
        if not p.is_absolute():
            p = self.root / p
        try:
            rel = Path(os.path.abspath(p)).relative_to(self.root)
        except ValueError:
            log.debug("Ignoring %s, outside of %s", path, self.root)
            return None
        return rel.as_posix()

    # ── persistence ─────────────────────────────────────────────────────

    def to_dict(self) -> dict:
        return {
            "symbols": {name: sym.to_dict() for name, sym in self.symbols.items()},
            "files": dict(self.files),
        }

    def load_dict(self, data: dict) -> None:
        """Replace the in-memory maps with a persisted document.

        Raises ValueError when the document is not shaped like an index.
        """
        if not isinstance(data, dict):
            raise ValueError("index document must be a JSON object")
        raw_symbols = data.get("symbols")
        raw_files = data.get("files")
        if not isinstance(raw_symbols, dict) or not isinstance(raw_files, dict):
            raise ValueError("index document needs 'symbols' and 'files' objects")
        try:
            symbols = {name: Symbol.from_dict(name, entry) for name, entry in raw_symbols.items()}
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"bad symbol entry: {exc}") from exc
        self.symbols = symbols
        self.files = {str(k): str(v) for k, v in raw_files.items()}
        self._purge_dangling()

    def load(self) -> bool:
        """Load the persisted index; fall back to an empty one on any failure."""
        try:
            data = json.loads(self.index_path.read_text(encoding="utf-8"))
            self.load_dict(data)
        except (OSError, ValueError) as exc:
            log.warning("Could not load symbol index %s (%s), starting empty", self.index_path, exc)
            self.symbols = {}
            self.files = {}
            return False
        log.debug("Loaded %d symbol(s) from %s", len(self.symbols), self.index_path)
        return True

    def save(self) -> Path:
        self.index_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.index_path.with_suffix(".json.tmp")
        tmp_path.write_text(json.dumps(self.to_dict(), indent=2, sort_keys=True), encoding="utf-8")
        os.replace(tmp_path, self.index_path)
        return self.index_path
