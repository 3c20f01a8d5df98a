"""CLI entry point.

Usage:
    python -m eventbus.cli demo orders
    python -m eventbus.cli demo orders --mode async --workers 4 --fail
    eventbus-cli config show
"""

from eventbus.cli.app import app
from eventbus.logging import setup_logging
from eventbus.settings import get_settings

# Compact format for the CLI: level + message, no timestamps
CLI_LOG_FORMAT = "<level>{level: <8}</level> | <level>{message}</level>"


def main() -> None:
    """CLI entry point with logging configuration."""
    setup_logging(get_settings().log_level, log_format=CLI_LOG_FORMAT)
    app()


if __name__ == "__main__":
    main()
