"""Shared test fixtures and helpers for heritage tests.

Provides:
- Git helper: git_init()
- CliRunner fixtures: cli_runner, invoke_cli()
- Factory fixture: project_factory for custom TypeScript file layouts
- Engine helpers: make_config(), started_index(), make_resolver(), bump_mtime()
- JSON validation helpers: parse_json_output(), assert_json_envelope()
"""

from __future__ import annotations

import asyncio
import json
import os
import shutil
import subprocess

import pytest
from click.testing import CliRunner

from heritage.config import ProjectConfig
from heritage.index.parser import SourceParser
from heritage.index.symbol_index import SymbolIndex
from heritage.resolve.resolver import SymbolResolver

HAS_GIT = shutil.which("git") is not None

# ===========================================================================
# Git helpers
# ===========================================================================


def git_init(path):
    """Initialize a git repo, add all files, and commit."""
    subprocess.run(["git", "init"], cwd=path, capture_output=True)
    subprocess.run(["git", "config", "user.email", "t@t.com"], cwd=path, capture_output=True)
    subprocess.run(["git", "config", "user.name", "Test"], cwd=path, capture_output=True)
    subprocess.run(["git", "add", "."], cwd=path, capture_output=True)
    subprocess.run(["git", "commit", "-m", "init"], cwd=path, capture_output=True)


# ===========================================================================
# Engine helpers
# ===========================================================================


def write_files(root, files):
    for rel_path, content in files.items():
        fp = root / rel_path
        fp.parent.mkdir(parents=True, exist_ok=True)
        fp.write_text(content)


def bump_mtime(path, seconds=10.0):
    """Move the mtime of *path* forward so a change is always visible."""
    st = os.stat(path)
    os.utime(path, (st.st_atime + seconds, st.st_mtime + seconds))


def make_config(root, **overrides):
    config = ProjectConfig.load(root)
    for key, value in overrides.items():
        setattr(config, key, value)
    return config


def started_index(root, **overrides):
    """A SymbolIndex for *root* after its initial load + full scan."""
    index = SymbolIndex(make_config(root, **overrides))
    asyncio.run(index.start())
    return index


def make_resolver(root, **overrides):
    index = started_index(root, **overrides)
    return SymbolResolver(index, SourceParser(target=index.config.target, cache=True))


# ===========================================================================
# CliRunner helpers
# ===========================================================================


@pytest.fixture
def cli_runner():
    """Provide a Click CliRunner for in-process CLI testing."""
    return CliRunner()


def invoke_cli(runner, args, cwd=None, json_mode=False):
    """Invoke the heritage CLI via CliRunner.

    Args:
        runner: CliRunner instance
        args: list of CLI arguments (e.g. ["index"])
        cwd: project directory, passed as --root
        json_mode: if True, prepend --json flag
    Returns:
        click.testing.Result
    """
    from heritage.cli import cli

    full_args = []
    if json_mode:
        full_args.append("--json")
    if cwd:
        full_args.extend(["--root", str(cwd)])
    full_args.extend(args)

    old_cwd = os.getcwd()
    try:
        if cwd:
            os.chdir(str(cwd))
        result = runner.invoke(cli, full_args, catch_exceptions=False)
    finally:
        os.chdir(old_cwd)

    return result


# ===========================================================================
# JSON validation helpers
# ===========================================================================


def parse_json_output(result, command=None):
    """Parse JSON from a CliRunner result."""
    assert result.exit_code == 0, f"Command {command or '?'} failed (exit {result.exit_code}):\n{result.output}"
    try:
        return json.loads(result.output)
    except json.JSONDecodeError as e:
        pytest.fail(f"Invalid JSON from {command or '?'}: {e}\nOutput was:\n{result.output[:500]}")


def assert_json_envelope(data, command=None):
    """Validate that a parsed JSON dict follows the heritage envelope contract."""
    assert isinstance(data, dict), f"Expected dict, got {type(data)}"
    assert "command" in data, "Missing 'command' key in envelope"
    assert "version" in data, "Missing 'version' key in envelope"
    assert "summary" in data, "Missing 'summary' key in envelope"
    assert "timestamp" in data.get("_meta", {}), "Missing 'timestamp' in _meta"
    if command:
        assert data["command"] == command, f"Expected command={command}, got {data['command']}"
    assert isinstance(data["summary"], dict), f"summary should be dict, got {type(data['summary'])}"


# ===========================================================================
# Project fixtures
# ===========================================================================


@pytest.fixture(autouse=True)
def _isolated_config_dir(monkeypatch):
    monkeypatch.delenv("HERITAGE_CONFIG_DIR", raising=False)


@pytest.fixture
def project_factory(tmp_path_factory):
    """Factory fixture for creating TypeScript project layouts.

    Usage:
        def test_something(project_factory):
            proj = project_factory({
                "src/shapes.ts": "export class Shape {}",
                "tsconfig.json": '{"compilerOptions": {"target": "es5"}}',
            })

    Returns a callable that accepts a dict of {relative_path: content}
    and returns the project path.  With ``git=True`` the files are
    committed to a fresh repository.
    """

    def _create(files, *, git=False):
        proj = tmp_path_factory.mktemp("project")
        (proj / ".gitignore").write_text(".vscode/\n")
        write_files(proj, files)
        if git:
            if not HAS_GIT:
                pytest.skip("git not available")
            git_init(proj)
        return proj

    return _create


@pytest.fixture
def zoo_project(project_factory):
    """A small cross-file hierarchy used by resolver, hierarchy and member tests.

    animals/base.ts     -- interface Named, abstract class Animal implements Named
    animals/pets.ts     -- namespace Pets { class Dog extends Animal }
    app/kennel.ts       -- reference directive + class Puppy extends Pets.Dog
    app/shelter.ts      -- named, aliased and namespace imports
    """
    return project_factory({
        "animals/base.ts": (
            "export interface Named {\n"
            "    name: string;\n"
            "    describe(): string;\n"
            "}\n"
            "\n"
            "export abstract class Animal implements Named {\n"
            "    name: string = '';\n"
            "    abstract describe(): string;\n"
            "    sleep(): void {}\n"
            "}\n"
        ),
        "animals/pets.ts": (
            "import { Animal } from './base';\n"
            "\n"
            "export namespace Pets {\n"
            "    export class Dog extends Animal {\n"
            "        describe(): string { return 'dog'; }\n"
            "        bark(): void {}\n"
            "    }\n"
            "}\n"
        ),
        "app/kennel.ts": (
            '/// <reference path="../animals/pets.ts" />\n'
            "\n"
            "class Puppy extends Pets.Dog {\n"
            "    wag(): void {}\n"
            "}\n"
        ),
        "app/shelter.ts": (
            "import { Animal as Beast, Named } from '../animals/base';\n"
            "import * as base from '../animals/base';\n"
            "\n"
            "export class Shelter implements Named {\n"
            "    name = 'shelter';\n"
            "    describe(): string { return this.name; }\n"
            "}\n"
            "\n"
            "export class Stray extends Beast {\n"
            "    describe(): string { return 'stray'; }\n"
            "}\n"
            "\n"
            "export class Rescue extends base.Animal {\n"
            "    describe(): string { return 'rescue'; }\n"
            "}\n"
        ),
    })
