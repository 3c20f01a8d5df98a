"""CLI module for eventbus.

Provides command-line tools for inspecting configuration and running the
order demo against a live event bus.
"""

from eventbus.cli.app import app

__all__ = ["app"]
