"""Standardized CLI exit codes and exceptions for heritage.

Exit code scheme:

    0  SUCCESS          -- command completed
    1  GENERAL_ERROR    -- unexpected failure
    2  USAGE_ERROR      -- invalid arguments, bad flags (Click default)
    3  INDEX_MISSING    -- no persisted symbol index, run `heritage index` first
    4  SYMBOL_NOT_FOUND -- the requested symbol or declaration could not be resolved
"""

from __future__ import annotations

import click

# ---------------------------------------------------------------------------
# Exit code constants
# ---------------------------------------------------------------------------

EXIT_SUCCESS: int = 0
EXIT_ERROR: int = 1
EXIT_USAGE: int = 2
EXIT_INDEX_MISSING: int = 3
EXIT_SYMBOL_NOT_FOUND: int = 4

DESCRIPTIONS: dict[int, str] = {
    EXIT_SUCCESS: "success",
    EXIT_ERROR: "unexpected error",
    EXIT_USAGE: "invalid usage (bad arguments or flags)",
    EXIT_INDEX_MISSING: "index not found -- run `heritage index`",
    EXIT_SYMBOL_NOT_FOUND: "symbol not found",
}

# ---------------------------------------------------------------------------
# Custom exceptions (caught by CLI error handler)
# ---------------------------------------------------------------------------


class HeritageError(click.ClickException):
    """Base class for heritage errors with exit codes."""

    def __init__(self, message: str, exit_code: int = EXIT_ERROR):
        super().__init__(message)
        self.exit_code = exit_code

    def format_message(self) -> str:
        return self.message


class IndexMissingError(HeritageError):
    """Raised when no persisted symbol index exists."""

    def __init__(self, message: str = "No symbol index found. Run `heritage index` to create one."):
        super().__init__(message, EXIT_INDEX_MISSING)


class IndexNotReadyError(HeritageError):
    """Raised when the index is queried before its initial load/scan finished."""

    def __init__(self, message: str = "Symbol index is not ready yet."):
        super().__init__(message, EXIT_ERROR)


class SymbolNotFoundError(HeritageError):
    """Raised by commands when a name cannot be resolved to a declaration."""

    def __init__(self, name: str):
        super().__init__(
            f'Symbol not found: "{name}"\n'
            f"  Tip: If the type was recently added, run `heritage index` to refresh the index.",
            EXIT_SYMBOL_NOT_FOUND,
        )
