"""Command-line interface for callscrub."""

from callscrub import __version__

__all__ = ["__version__"]
