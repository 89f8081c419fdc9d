"""Dotege - derives proxy hostnames from running docker containers."""

from dotege.version import __version__

__all__ = ["__version__"]
