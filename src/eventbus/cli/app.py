"""Main CLI application."""

import typer

from eventbus.cli.commands import config, demo

app = typer.Typer(
    name="eventbus-cli",
    help="Event Bus CLI - Demo and diagnostic tools",
    no_args_is_help=True,
)


@app.callback()
def main_callback():
    """Global options for all commands."""


# Register command groups
app.add_typer(demo.app, name="demo")
app.add_typer(config.app, name="config")
