"""Command-line interface."""

from durapack.cli.app import app

__all__ = ["app"]
