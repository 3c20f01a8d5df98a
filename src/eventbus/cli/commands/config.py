"""Configuration commands."""

import typer
from rich.console import Console
from rich.table import Table

from eventbus.settings import Settings, get_settings

app = typer.Typer(help="Configuration inspection")
console = Console()


@app.command()
def show():
    """Show the effective event bus settings.

    Values come from ``EVENTBUS_*`` environment variables, an optional
    ``.env`` file, or the built-in defaults.

    Examples:
        eventbus-cli config show
        EVENTBUS_DELIVERY_MODE=async eventbus-cli config show
    """
    settings = get_settings()

    table = Table(title="Event bus settings")
    table.add_column("Setting", style="cyan", no_wrap=True)
    table.add_column("Value")
    table.add_column("Environment variable", style="dim", no_wrap=True)

    for name, field in Settings.model_fields.items():
        value = getattr(settings, name)
        table.add_row(name, "-" if value is None else str(value), f"EVENTBUS_{name.upper()}")
        if field.description:
            table.add_row("", f"[dim]{field.description}[/dim]", "")

    console.print(table)
