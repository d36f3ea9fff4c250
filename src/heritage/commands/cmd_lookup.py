"""Look up a qualified class or interface name in the index."""

from __future__ import annotations

import click

from heritage.commands.engine import json_mode, open_engine, project_config, run
from heritage.exit_codes import SymbolNotFoundError
from heritage.output.formatter import abbrev_kind, json_envelope, to_json


async def _lookup(config, name: str):
    async with open_engine(config) as engine:
        return engine.index.lookup(name)


@click.command()
@click.argument("name")
@click.pass_context
def lookup(ctx, name):
    """Show where NAME (e.g. ``NS.Inner.Bar``) is declared."""
    symbol = run(_lookup(project_config(ctx), name))
    if symbol is None:
        raise SymbolNotFoundError(name)

    if json_mode(ctx):
        click.echo(to_json(json_envelope("lookup", summary={"found": True}, symbol=symbol.name, **symbol.to_dict())))
        return

    namespaced = "  (namespaced)" if symbol.has_namespace else ""
    click.echo(f"{abbrev_kind(symbol.kind.value)}  {symbol.name}  {symbol.relative_path}{namespaced}")
