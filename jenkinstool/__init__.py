"""jenkinstool - Jenkins build metadata and artifact download client."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("jenkinstool")
except PackageNotFoundError:
    # Package not installed, fallback to pyproject.toml version
    __version__ = "0.1.0"
