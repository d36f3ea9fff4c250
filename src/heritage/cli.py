"""Click CLI entry point with lazy-loaded subcommands."""

import logging
import os
import sys

# Fix Unicode output on Windows consoles (cp1253, cp1252, etc.)
if sys.platform == "win32" and not os.environ.get("PYTHONIOENCODING"):
    sys.stdout.reconfigure(encoding="utf-8", errors="replace")
    sys.stderr.reconfigure(encoding="utf-8", errors="replace")

import click


# Lazy-loading command group: imports command modules only when invoked.
# This avoids importing tree-sitter and networkx on `--help`.
_COMMANDS = {
    "index":     ("heritage.commands.cmd_index",     "index"),
    "lookup":    ("heritage.commands.cmd_lookup",    "lookup"),
    "hierarchy": ("heritage.commands.cmd_hierarchy", "hierarchy"),
    "members":   ("heritage.commands.cmd_members",   "members"),
    "context":   ("heritage.commands.cmd_context",   "context"),
    "watch":     ("heritage.commands.cmd_watch",     "watch"),
}


class LazyGroup(click.Group):
    """A Click group that lazy-loads command modules on first access."""

    def list_commands(self, ctx):
        return sorted(_COMMANDS.keys())

    def get_command(self, ctx, cmd_name):
        if cmd_name not in _COMMANDS:
            return None
        module_path, attr_name = _COMMANDS[cmd_name]
        import importlib
        mod = importlib.import_module(module_path)
        return getattr(mod, attr_name)


def _configure_logging(verbose: bool) -> None:
    # No-op when the host already installed root handlers
    logging.basicConfig(format="%(levelname)s %(name)s: %(message)s", stream=sys.stderr)
    logging.getLogger("heritage").setLevel(logging.DEBUG if verbose else logging.WARNING)


@click.group(cls=LazyGroup)
@click.version_option(package_name="heritage")
@click.option('--json', 'json_mode', is_flag=True, help='Output in JSON format')
@click.option('--root', type=click.Path(file_okay=False, path_type=str), default=None,
              help='Project root (default: nearest directory containing .git)')
@click.option('-v', '--verbose', is_flag=True, help='Log resolution details to stderr')
@click.pass_context
def cli(ctx, json_mode, root, verbose):
    """Heritage: TypeScript class/interface index and inheritance resolver."""
    _configure_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj['json'] = json_mode
    ctx.obj['root'] = root
    ctx.obj['verbose'] = verbose
