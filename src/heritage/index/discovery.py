"""Source file discovery using git ls-files with fallback to os.walk."""

from __future__ import annotations

import os
import subprocess
from pathlib import Path

SOURCE_EXTENSIONS = (".ts", ".tsx")
DECLARATION_SUFFIX = ".d.ts"

# Dependency, vendor and build directories never scanned
SKIP_DIRS = frozenset({
    ".git", ".hg", ".svn", "node_modules", "bower_components", "jspm_packages",
    "typings", "vendor", "dist", "build", "out", "coverage",
    ".next", ".nuxt", ".output", ".vscode",
})

MAX_FILE_SIZE = 1_000_000  # 1MB


def is_source_file(rel_path: str) -> bool:
    """True for TypeScript sources (declaration files included)."""
    return rel_path.lower().endswith(SOURCE_EXTENSIONS)


def is_declaration_file(rel_path: str) -> bool:
    return rel_path.lower().endswith(DECLARATION_SUFFIX)


def implementation_for(rel_path: str) -> str | None:
    """Return the ``x.ts`` counterpart of ``x.d.ts``, or None for other files."""
    if not is_declaration_file(rel_path):
        return None
    return rel_path[: -len(DECLARATION_SUFFIX)] + ".ts"


def declaration_for(rel_path: str) -> str | None:
    """Return the ``x.d.ts`` counterpart of ``x.ts``, or None for other files."""
    if is_declaration_file(rel_path) or not rel_path.lower().endswith(".ts"):
        return None
    return rel_path[:-3] + DECLARATION_SUFFIX


def _is_skippable(rel_path: str, skip_dirs: frozenset[str]) -> bool:
    parts = rel_path.split("/")
    return any(part in skip_dirs for part in parts[:-1])


def should_index(root: Path, rel_path: str, exclude_dirs: frozenset[str] = frozenset()) -> bool:
    """True when a full scan would pick up *rel_path*, declaration shadowing aside."""
    if not is_source_file(rel_path) or _is_skippable(rel_path, SKIP_DIRS | frozenset(exclude_dirs)):
        return False
    try:
        return (Path(root) / rel_path).stat().st_size <= MAX_FILE_SIZE
    except OSError:
        return False


def _git_ls_files(root: Path) -> list[str] | None:
    """Try to list files using git ls-files. Returns None if git unavailable."""
    try:
        result = subprocess.run(
            ["git", "ls-files", "--cached", "--others", "--exclude-standard"],
            cwd=str(root),
            capture_output=True,
            text=True,
            timeout=30,
        )
        if result.returncode != 0:
            return None
        return [p.strip() for p in result.stdout.splitlines() if p.strip()]
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return None


def _walk_files(root: Path, skip_dirs: frozenset[str]) -> list[str]:
    """Fallback file discovery using os.walk, respecting ignore dirs."""
    result = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = [d for d in dirnames if d not in skip_dirs and not d.startswith(".")]
        for fname in filenames:
            full = os.path.join(dirpath, fname)
            try:
                rel = os.path.relpath(full, root).replace("\\", "/")
            except (ValueError, OSError):
                continue
            result.append(rel)
    return result


def drop_shadowed_declarations(paths: list[str]) -> list[str]:
    """Remove ``x.d.ts`` entries whose ``x.ts`` implementation is also listed."""
    present = set(paths)
    return [p for p in paths if implementation_for(p) not in present]


def discover_files(root: Path, exclude_dirs: frozenset[str] = frozenset()) -> list[str]:
    """Discover TypeScript source files in a project directory.

    Uses git ls-files when available, falls back to os.walk.  Vendor
    directories, oversized files and declaration files shadowed by their
    implementation are dropped.  Returns a sorted list of relative paths
    using forward slashes.
    """
    root = Path(root).resolve()
    skip_dirs = SKIP_DIRS | frozenset(exclude_dirs)
    raw = _git_ls_files(root)
    if raw is None:
        raw = _walk_files(root, skip_dirs)

    kept = [
        rel_path
        for rel_path in (p.replace("\\", "/") for p in raw)
        if should_index(root, rel_path, exclude_dirs)
    ]

    kept = drop_shadowed_declarations(kept)
    kept.sort()
    return kept
