"""Tree-sitter parsing of TypeScript sources, with an optional per-path cache."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from tree_sitter_language_pack import get_parser

from heritage.config import CompileTarget

log = logging.getLogger(__name__)

EXTENSION_MAP: dict[str, str] = {
    ".ts": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".tsx": "tsx",
}


def detect_language(path: str) -> str:
    """Grammar name for *path*; unknown extensions parse as plain TypeScript."""
    _, ext = os.path.splitext(str(path))
    return EXTENSION_MAP.get(ext.lower(), "typescript")


def node_text(node, source: bytes) -> str:
    if node is None:
        return ""
    return source[node.start_byte : node.end_byte].decode("utf-8", errors="replace")


@dataclass(frozen=True)
class ParsedFile:
    """One parsed source file.  Replaced, never mutated, on re-parse."""

    path: str
    source: bytes
    tree: object
    language: str = "typescript"
    target: CompileTarget = CompileTarget.ES3

    @property
    def root(self):
        return self.tree.root_node

    def text(self, node) -> str:
        return node_text(node, self.source)


class SourceParser:
    """Parse files (or unsaved buffers) into :class:`ParsedFile` objects.

    With ``cache=True`` the first parse of a path is memoized and returned
    on later calls without touching the disk again.  Keeping the cache
    fresh is the caller's job (see :meth:`evict`).
    """

    def __init__(
        self,
        target: CompileTarget = CompileTarget.ES3,
        cache: bool = False,
        tolerate_errors: bool = False,
    ):
        self.target = target
        self.cache_enabled = cache
        self.tolerate_errors = tolerate_errors
        self._cache: dict[str, ParsedFile | None] = {}

    def get_tree(self, path, text: str | None = None) -> ParsedFile | None:
        """Return the parsed file for *path*, or None when it cannot be parsed.

        When *text* is given it is parsed instead of the file contents.
        """
        key = os.path.abspath(str(path))
        if self.cache_enabled and key in self._cache:
            return self._cache[key]

        parsed = self._parse(key, text)
        if self.cache_enabled:
            self._cache[key] = parsed
        return parsed

    def evict(self, path) -> None:
        """Forget the cached tree for *path* (no-op when caching is off)."""
        self._cache.pop(os.path.abspath(str(path)), None)

    def clear(self) -> None:
        self._cache.clear()

    def _parse(self, path: str, text: str | None) -> ParsedFile | None:
        if text is not None:
            source = text.encode("utf-8")
        else:
            try:
                source = Path(path).read_bytes()
            except OSError as exc:
                log.warning("Cannot read %s: %s", path, exc)
                return None

        language = detect_language(path)
        try:
            tree = get_parser(language).parse(source)
        except Exception as exc:
            log.warning("Failed to parse %s: %s", path, exc)
            return None

        if tree.root_node.has_error and not self.tolerate_errors:
            log.warning("Syntax errors in %s, skipping", path)
            return None

        return ParsedFile(path=path, source=source, tree=tree, language=language, target=self.target)
