"""List the members a class or interface collects from its hierarchy."""

from __future__ import annotations

import click

from heritage.commands.engine import (
    declaration_in,
    declaration_to_dict,
    json_mode,
    open_engine,
    project_config,
    run,
)
from heritage.output.formatter import (
    abbrev_kind,
    format_signature,
    format_table,
    json_envelope,
    loc,
    to_json,
)
from heritage.resolve.hierarchy import HierarchyWalker


async def _members(config, file: str, name: str, dedupe: bool | None) -> dict:
    async with open_engine(config) as engine:
        declaration = declaration_in(engine, file, name)
        ancestors = HierarchyWalker(engine.resolver).ancestors(declaration)
        collector = engine.collector(dedupe)
        members = collector.collect(declaration, ancestors)
        return {
            "declaration": declaration_to_dict(engine, declaration),
            "mode": collector.mode_for(declaration),
            "members": [
                {
                    "name": m.name,
                    "kind": "method" if m.is_method else "property",
                    "implemented": m.has_implementation,
                    "path": engine.resolver.relative_path(m.parsed),
                    "line": m.line,
                    "text": m.text,
                }
                for m in members
            ],
        }


@click.command()
@click.argument("file")
@click.argument("name")
@click.option("--dedupe/--no-dedupe", default=None,
              help="Keep only the member nearest NAME for each name (default: settings)")
@click.pass_context
def members(ctx, file, name, dedupe):
    """Members of NAME and its ancestors, furthest ancestor first."""
    result = run(_members(project_config(ctx), file, name, dedupe))

    if json_mode(ctx):
        click.echo(
            to_json(
                json_envelope(
                    "members",
                    summary={"members": len(result["members"]), "mode": result["mode"]},
                    declaration=result["declaration"],
                    members=result["members"],
                )
            )
        )
        return

    root = result["declaration"]
    click.echo(f"{abbrev_kind(root['kind'])} {root['name']}  ({result['mode']})")
    click.echo()
    rows = [
        [
            abbrev_kind(m["kind"]),
            m["name"],
            "yes" if m["implemented"] else "",
            loc(m["path"], m["line"]),
            format_signature(m["text"], 60),
        ]
        for m in result["members"]
    ]
    click.echo(format_table(["kind", "name", "impl", "location", "declaration"], rows))
