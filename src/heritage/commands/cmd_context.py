"""Show what could be generated at a cursor position."""

from __future__ import annotations

import click

from heritage.commands.engine import (
    declaration_to_dict,
    document_path,
    json_mode,
    open_engine,
    project_config,
    run,
)
from heritage.output.formatter import abbrev_kind, format_table, json_envelope, loc, to_json
from heritage.resolve.context import ContextProvider, PropertyContext, TypeContext, offset_for


def _generator_dict(engine, ctx_obj) -> dict | None:
    if isinstance(ctx_obj, PropertyContext):
        return {
            "kind": "property",
            "name": ctx_obj.declaration.name,
            "class": ctx_obj.owner.qualified_name if ctx_obj.owner else None,
            "insert_at": ctx_obj.insert_at_offset,
        }
    if isinstance(ctx_obj, TypeContext):
        return {
            "kind": "type",
            "type": declaration_to_dict(engine, ctx_obj.declaration),
            "ancestors": [a.qualified_name for a in ctx_obj.ancestors],
            "methods": [m.name for m in ctx_obj.methods],
            "properties": [m.name for m in ctx_obj.properties],
            "insert_at": ctx_obj.insert_at_offset,
        }
    return None


async def _context(config, path, offset: int) -> dict:
    async with open_engine(config) as engine:
        provider = ContextProvider(engine.resolver, engine.collector())
        generator = provider.generator_context(path, offset)
        needed = provider.import_context(path, offset)
        import_info = None
        if needed is not None:
            import_info = {
                "symbol": needed.symbol_name,
                "module": needed.module_specifier,
                "reference": needed.is_reference,
                "extends_existing": needed.existing_import is not None,
                "insert_at": needed.insert_at_offset,
            }
        return {
            "offset": offset,
            "generator": _generator_dict(engine, generator),
            "import": import_info,
        }


@click.command()
@click.argument("file")
@click.argument("offset", type=int, required=False)
@click.option("--line", type=int, default=None, help="1-based line (instead of OFFSET)")
@click.option("--column", type=int, default=0, show_default=True, help="0-based column, with --line")
@click.pass_context
def context(ctx, file, offset, line, column):
    """Cursor context at byte OFFSET (or --line/--column) of FILE."""
    config = project_config(ctx)
    path = document_path(config, file)
    if offset is None:
        if line is None:
            raise click.UsageError("Give an OFFSET or --line.")
        if not path.exists():
            raise click.BadParameter(f"{file} does not exist", param_hint="FILE")
        offset = offset_for(path, line, column)

    result = run(_context(config, path, offset))

    if json_mode(ctx):
        click.echo(
            to_json(
                json_envelope(
                    "context",
                    summary={
                        "generator": (result["generator"] or {}).get("kind"),
                        "import_needed": result["import"] is not None,
                    },
                    **result,
                )
            )
        )
        return

    generator = result["generator"]
    if generator is None:
        click.echo("Nothing to generate at this position.")
    elif generator["kind"] == "property":
        click.echo(f"property {generator['class']}.{generator['name']}  insert at {generator['insert_at']}")
    else:
        decl = generator["type"]
        click.echo(f"{abbrev_kind(decl['kind'])} {decl['name']}  {loc(decl['path'], decl['line'])}")
        if generator["ancestors"]:
            click.echo(f"  ancestors: {', '.join(generator['ancestors'])}")
        rows = [["meth", n] for n in generator["methods"]] + [["prop", n] for n in generator["properties"]]
        click.echo(format_table(["kind", "member"], rows))
        click.echo(f"  insert at {generator['insert_at']}")

    needed = result["import"]
    if needed is not None:
        how = "reference path" if needed["reference"] else "import"
        click.echo(f"needs {how}: {needed['symbol']} from {needed['module']}  insert at {needed['insert_at']}")
