"""Heritage: symbol index and inheritance resolution for TypeScript sources."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("heritage")
except PackageNotFoundError:
    __version__ = "dev"
