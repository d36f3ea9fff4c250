"""Project configuration: root discovery, compile target, settings, index location."""

from __future__ import annotations

import enum
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

log = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = ".vscode"
INDEX_FILE_NAME = "symbols.json"
SETTINGS_FILE_NAME = "heritage.json"
TSCONFIG_NAME = "tsconfig.json"


class CompileTarget(enum.Enum):
    """Language level of the project, from ``compilerOptions.target``."""

    ES3 = "es3"
    ES5 = "es5"
    ES6 = "es6"

    @classmethod
    def from_option(cls, value) -> "CompileTarget":
        """Map a tsconfig target string to a level.

        ``es6``/``es2015`` and every later ``esNNNN``/``esnext`` map to ES6;
        anything unknown falls back to the most conservative level.
        """
        if not isinstance(value, str):
            return cls.ES3
        key = value.strip().lower()
        if key == "es5":
            return cls.ES5
        if key in ("es6", "esnext") or (key.startswith("es20") and key[2:].isdigit()):
            return cls.ES6
        return cls.ES3


def find_project_root(start: str = ".") -> Path:
    """Find the project root by looking for .git directory."""
    current = Path(start).resolve()
    while current != current.parent:
        if (current / ".git").exists():
            return current
        current = current.parent
    return Path(start).resolve()


def get_config_dir(project_root: Path) -> Path:
    """Return the tooling-configuration directory of a project.

    Resolution order (first match wins):

    1. ``HERITAGE_CONFIG_DIR`` environment variable.  Relative values are
       taken relative to *project_root*.
    2. Default: ``<project_root>/.vscode``.
    """
    override = os.environ.get("HERITAGE_CONFIG_DIR")
    if override:
        path = Path(override)
        return path if path.is_absolute() else Path(project_root) / path
    return Path(project_root) / DEFAULT_CONFIG_DIR


def get_index_path(project_root: Path) -> Path:
    """Path of the persisted symbol index (the directory is not created)."""
    return get_config_dir(project_root) / INDEX_FILE_NAME


def read_compile_target(project_root: Path) -> CompileTarget:
    """Read ``compilerOptions.target`` from tsconfig.json.

    Missing or unparsable configuration yields ES3.
    """
    tsconfig = Path(project_root) / TSCONFIG_NAME
    if not tsconfig.exists():
        return CompileTarget.ES3
    try:
        data = json.loads(tsconfig.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        log.warning("Could not read %s (%s), assuming es3", tsconfig, exc)
        return CompileTarget.ES3
    options = data.get("compilerOptions") if isinstance(data, dict) else None
    if not isinstance(options, dict):
        return CompileTarget.ES3
    return CompileTarget.from_option(options.get("target"))


def _load_settings(project_root: Path) -> dict:
    """Load <config_dir>/heritage.json if it exists.

    Returns an empty dict if the file is missing or malformed.
    """
    settings_path = get_config_dir(project_root) / SETTINGS_FILE_NAME
    if not settings_path.exists():
        return {}
    try:
        data = json.loads(settings_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        log.warning("Ignoring malformed settings file %s: %s", settings_path, exc)
        return {}
    if not isinstance(data, dict):
        log.warning("Ignoring settings file %s: expected a JSON object", settings_path)
        return {}
    return data


@dataclass
class ProjectConfig:
    """Everything the engine needs to know about one project."""

    root: Path
    target: CompileTarget = CompileTarget.ES3
    index_path: Path | None = None
    dedupe_members: bool = False
    cache_trees: bool = True
    tolerate_syntax_errors: bool = False
    exclude_dirs: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self):
        self.root = Path(self.root).resolve()
        if self.index_path is None:
            self.index_path = get_index_path(self.root)

    @classmethod
    def load(cls, project_root: Path | str | None = None) -> "ProjectConfig":
        """Build the configuration for *project_root* (default: discovered root)."""
        root = Path(project_root).resolve() if project_root else find_project_root()
        settings = _load_settings(root)
        exclude = settings.get("exclude_dirs") or []
        return cls(
            root=root,
            target=read_compile_target(root),
            dedupe_members=bool(settings.get("dedupe_members", False)),
            cache_trees=bool(settings.get("cache_trees", True)),
            tolerate_syntax_errors=bool(settings.get("tolerate_syntax_errors", False)),
            exclude_dirs=frozenset(str(d) for d in exclude if isinstance(d, str)),
        )
