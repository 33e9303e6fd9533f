"""Command-line interface for cvstack."""

from cvstack.cli.main import cli

__all__ = ["cli"]
