"""strata — versioned migrations for a server's database, config and content."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("strata")
except PackageNotFoundError:
    __version__ = "0.1.0"  # fallback for development
