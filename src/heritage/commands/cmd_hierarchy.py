"""Show the ancestor chain of a class or interface."""

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
from heritage.output.formatter import abbrev_kind, format_table, json_envelope, loc, to_json
from heritage.resolve.hierarchy import HierarchyWalker


async def _hierarchy(config, file: str, name: str) -> dict:
    async with open_engine(config) as engine:
        declaration = declaration_in(engine, file, name)
        walker = HierarchyWalker(engine.resolver)
        ancestors = walker.ancestors(declaration)
        return {
            "declaration": declaration_to_dict(engine, declaration),
            "ancestors": [declaration_to_dict(engine, a) for a in ancestors],
            "tree": walker.render_tree(declaration.qualified_name),
        }


@click.command()
@click.argument("file")
@click.argument("name")
@click.pass_context
def hierarchy(ctx, file, name):
    """Ancestors of NAME as referenced from FILE, furthest first."""
    result = run(_hierarchy(project_config(ctx), file, name))

    if json_mode(ctx):
        click.echo(
            to_json(
                json_envelope(
                    "hierarchy",
                    summary={"ancestors": len(result["ancestors"])},
                    declaration=result["declaration"],
                    ancestors=result["ancestors"],
                )
            )
        )
        return

    root = result["declaration"]
    click.echo(f"{abbrev_kind(root['kind'])} {root['name']}  {loc(root['path'], root['line'])}")
    click.echo()
    rows = [
        [abbrev_kind(a["kind"]), a["name"], loc(a["path"], a["line"])]
        for a in result["ancestors"]
    ]
    click.echo(format_table(["kind", "ancestor", "location"], rows))
    if len(result["tree"]) > 1:
        click.echo()
        click.echo("\n".join(result["tree"]))
