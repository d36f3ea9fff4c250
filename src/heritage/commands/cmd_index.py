"""Build or refresh the persisted symbol index."""

from __future__ import annotations

import time
from pathlib import Path

import click

from heritage.commands.engine import json_mode, open_engine, project_config, run
from heritage.output.formatter import json_envelope, to_json


async def _build(config, force: bool) -> dict:
    if force:
        Path(config.index_path).unlink(missing_ok=True)
    async with open_engine(config, require=False) as engine:
        return engine.index.stats()


@click.command()
@click.option("--force", is_flag=True, help="Discard the persisted index and rescan every file")
@click.pass_context
def index(ctx, force):
    """Build or refresh the symbol index."""
    config = project_config(ctx)

    t0 = time.monotonic()
    stats = run(_build(config, force))
    elapsed = time.monotonic() - t0

    if json_mode(ctx):
        click.echo(
            to_json(
                json_envelope(
                    "index",
                    summary=stats,
                    elapsed_s=round(elapsed, 1),
                    index_path=str(config.index_path),
                    target=config.target.value,
                )
            )
        )
        return

    click.echo(f"Index complete. ({elapsed:.1f}s)")
    click.echo(
        f"  Files: {stats['files']}  Symbols: {stats['symbols']}"
        f"  (classes: {stats['classes']}, interfaces: {stats['interfaces']})"
    )
    click.echo(f"  Written to {config.index_path}")
