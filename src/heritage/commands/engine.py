"""Shared index/resolver setup and lookup helpers for all heritage commands."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path

import click

from heritage.config import ProjectConfig
from heritage.exit_codes import HeritageError, IndexMissingError, SymbolNotFoundError
from heritage.index.parser import SourceParser
from heritage.index.symbol_index import SymbolIndex
from heritage.resolve.members import MemberCollector
from heritage.resolve.resolver import Declaration, SymbolResolver


@dataclass
class Engine:
    config: ProjectConfig
    index: SymbolIndex
    resolver: SymbolResolver

    def collector(self, dedupe: bool | None = None) -> MemberCollector:
        return MemberCollector(dedupe=self.config.dedupe_members if dedupe is None else dedupe)


def project_config(ctx: click.Context) -> ProjectConfig:
    root = ctx.obj.get("root") if ctx.obj else None
    return ProjectConfig.load(root)


def json_mode(ctx: click.Context) -> bool:
    return bool(ctx.obj.get("json")) if ctx.obj else False


def require_index(config: ProjectConfig) -> None:
    """Raise IndexMissingError if no persisted index exists.

    Query commands refuse to build an index implicitly; `heritage index`
    creates it.
    """
    if not Path(config.index_path).exists():
        raise IndexMissingError()


@asynccontextmanager
async def open_engine(config: ProjectConfig, require: bool = True):
    """Start the index (load + refresh scan) and yield an :class:`Engine`."""
    if require:
        require_index(config)
    index = SymbolIndex(config)
    await index.start()
    try:
        parser = SourceParser(
            target=config.target,
            cache=config.cache_trees,
            tolerate_errors=config.tolerate_syntax_errors,
        )
        yield Engine(config, index, SymbolResolver(index, parser))
    finally:
        await index.dispose()


def run(coro):
    return asyncio.run(coro)


def document_path(config: ProjectConfig, file: str) -> Path:
    """Absolute path of a FILE argument; relative paths are tried against cwd, then the root."""
    path = Path(file)
    if path.is_absolute():
        return path
    if path.exists():
        return path.resolve()
    return config.root / path


def declaration_in(engine: Engine, file: str, name: str) -> Declaration:
    """Resolve *name* as written in *file* and locate its declaration."""
    resolver = engine.resolver
    path = document_path(engine.config, file)
    parsed = resolver.parser.get_tree(path)
    if parsed is None:
        raise HeritageError(f"Could not parse {file}")
    resolved = resolver.resolve_text(parsed, name)
    if resolved is None:
        raise SymbolNotFoundError(name)
    declaration = resolver.find_declaration(resolved)
    if declaration is None:
        raise SymbolNotFoundError(name)
    return declaration


def declaration_to_dict(engine: Engine, declaration: Declaration) -> dict:
    return {
        "name": declaration.qualified_name,
        "kind": declaration.kind.value,
        "abstract": declaration.is_abstract_class,
        "path": engine.resolver.relative_path(declaration.parsed),
        "line": declaration.line,
    }
