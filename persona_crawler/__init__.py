"""Resilient extraction engine for public person-centric web data."""

from .version import __version__

__all__ = ["__version__"]
