"""Order demo commands."""

import threading

import typer
from rich.console import Console
from rich.table import Table

from eventbus.bus import EventBus
from eventbus.dispatcher import DeliveryMode
from eventbus.events import (
    FlakyWarehouse,
    OrderAuditLog,
    OrderCreated,
    OrderNotifier,
    OrderShipped,
    register_order_subscribers,
)
from eventbus.registry import MatchPolicy
from eventbus.settings import get_settings

app = typer.Typer(help="Demonstrations")
console = Console()


@app.command()
def orders(
    mode: DeliveryMode | None = typer.Option(
        None,
        "--mode",
        "-m",
        help="Delivery mode (overrides EVENTBUS_DELIVERY_MODE)",
        case_sensitive=False,
    ),
    workers: int | None = typer.Option(
        None,
        "--workers",
        "-w",
        min=1,
        help="Worker threads for async mode (overrides EVENTBUS_MAX_WORKERS)",
    ),
    fail: bool = typer.Option(
        False,
        "--fail",
        help="Also register a subscriber whose handler always fails",
    ),
):
    """Post an OrderCreated and an OrderShipped event and report deliveries.

    Registers a notifier (one handler per event type) and an audit log (one
    handler for the OrderEvent base class). With --fail a failing warehouse
    handler is added to show that other handlers still run.

    Examples:
        eventbus-cli demo orders
        eventbus-cli demo orders --mode async --workers 4
        eventbus-cli demo orders --fail
    """
    settings = get_settings()
    failures: list[tuple[str, str, str]] = []
    failures_lock = threading.Lock()

    def collect_failure(subscription, event, error):
        with failures_lock:
            failures.append((subscription.name, type(event).__name__, f"{type(error).__name__}: {error}"))

    delivery_mode = mode or DeliveryMode(settings.delivery_mode)
    bus = EventBus(
        delivery_mode,
        max_workers=workers or settings.max_workers,
        max_pending=settings.max_pending,
        error_handler=collect_failure,
        match_policy=MatchPolicy(settings.match_policy),
        isolate_events=settings.isolate_events,
    )

    notifier = OrderNotifier()
    audit_log = OrderAuditLog()
    subscribers: list[object] = [notifier, audit_log]
    if fail:
        subscribers.append(FlakyWarehouse())
    register_order_subscribers(bus, *subscribers)

    console.print(f"[bold]Posting order events ({delivery_mode.value} delivery)...[/bold]\n")
    bus.post(OrderCreated(order_id="A-1001", customer_id="C-42", total=99.5))
    bus.post(OrderShipped(order_id="A-1001", carrier="DHL"))
    abandoned = bus.shutdown(timeout=settings.shutdown_timeout)

    deliveries = Table(title="Deliveries")
    deliveries.add_column("Subscriber", style="cyan")
    deliveries.add_column("Received")
    for message in notifier.notifications:
        deliveries.add_row("OrderNotifier", message)
    for event_name, order_id in audit_log.entries:
        deliveries.add_row("OrderAuditLog", f"{event_name} {order_id}")
    console.print(deliveries)

    if failures:
        table = Table(title="Reported failures")
        table.add_column("Handler", style="cyan")
        table.add_column("Event")
        table.add_column("Error", style="red")
        for row in failures:
            table.add_row(*row)
        console.print(table)

    if abandoned:
        console.print(f"[yellow]{abandoned} invocation(s) abandoned at shutdown[/yellow]")

    delivered = len(notifier.notifications) + len(audit_log.entries)
    console.print(f"[green]Done: {delivered} deliveries, {len(failures)} failures[/green]")
