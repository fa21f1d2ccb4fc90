"""Command-line interface for the Docker collector."""

import asyncio
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from .config import settings
from .errors import RegistrationError, StoreError, TargetListError
from .models import CollectorItem, OPTION_API_VERSION, OPTION_HOST, OPTION_PORT
from .orchestrator import Collector
from .report import CycleReport
from .scheduler import CollectionScheduler
from .store import AsyncDocumentStore, DocumentStore
from .targets import load_targets

app = typer.Typer(
    name="docker-collector",
    help="Collect Docker inventory and utilization from remote engines into a document store",
    add_completion=False,
)

console = Console()


def run_async(coro):
    """Run async function in sync context."""
    return asyncio.run(coro)


def open_store() -> DocumentStore:
    settings.ensure_dirs()
    return DocumentStore(settings.db_path, max_error_log=settings.max_error_log)


def _format_ms(timestamp: int) -> str:
    if not timestamp:
        return "never"
    return datetime.fromtimestamp(timestamp / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def print_report(report: CycleReport):
    table = Table(title=f"Collection cycle ({report.duration:.2f}s)")
    table.add_column("Target", style="cyan")
    table.add_column("Status")
    table.add_column("Records", justify="right")
    table.add_column("Errors")

    for target in report.targets:
        if target.skipped:
            status = "[dim]disabled[/dim]"
        elif target.success:
            status = "[green]ok[/green]"
        else:
            status = "[red]errors[/red]"
        messages = [e.errorMessages for e in target.errors]
        table.add_row(target.name or target.target_id, status, str(target.records), "\n".join(messages[:3]))

    console.print(table)
    console.print(f"Total records: {report.records}")
    if report.summary_error:
        console.print(f"[yellow]{report.summary_error}[/yellow]")


@app.command()
def collect():
    """Run a single collection cycle."""
    store = AsyncDocumentStore(store=open_store())
    collector = Collector(store)

    try:
        report = run_async(collector.collect())
    except RegistrationError as e:
        console.print(f"[red]Fatal: {e}[/red]")
        raise typer.Exit(1)
    except TargetListError as e:
        console.print(f"[red]Error collecting: {e}[/red]")
        raise typer.Exit(2)
    finally:
        store.close()

    print_report(report)


@app.command()
def run(
    cron: Optional[str] = typer.Option(None, "--cron", "-c", help="Cron schedule (default from settings)"),
):
    """Collect on a cron schedule until interrupted."""
    store = AsyncDocumentStore(store=open_store())
    collector = Collector(store)

    try:
        scheduler = CollectionScheduler(collector, cron or settings.cron)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        store.close()
        raise typer.Exit(2)

    console.print(f"[bold]Collecting as {collector.name} on schedule '{scheduler.cron}'[/bold]")
    console.print("Press Ctrl+C to stop\n")

    try:
        run_async(scheduler.run())
    except RegistrationError as e:
        console.print(f"[red]Fatal: {e}[/red]")
        raise typer.Exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopping collector...[/yellow]")
    finally:
        store.close()


@app.command()
def status(
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Collector name (default from settings)"),
):
    """Show the collector's run summary."""
    name = name or settings.collector_name
    with open_store() as store:
        record = store.find_collector(name)

    if record is None:
        console.print(f"[yellow]Collector {name} has not run yet.[/yellow]")
        raise typer.Exit(1)

    table = Table(title=f"Collector {record.name}")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Id", record.id)
    table.add_row("Type", record.collectorType)
    table.add_row("Enabled", "Yes" if record.enabled else "No")
    table.add_row("Last Run", record.lastExecutedTime or "never")
    table.add_row("Duration", f"{record.lastExecutedSeconds:.2f}s")
    table.add_row("Records (total)", str(record.lastExecutionRecordCount))
    table.add_row("Logged Errors", str(len(record.errors)))
    console.print(table)

    for error in record.errors[-5:]:
        console.print(f"  [red]{error.errorCode}[/red] {_format_ms(error.timestamp)} {error.errorMessages}")


@app.command()
def targets():
    """List configured collection targets."""
    with open_store() as store:
        items = store.list_collector_items()

    if not items:
        console.print("[yellow]No targets configured. Use 'add-target' or 'load-targets'.[/yellow]")
        return

    table = Table(title="Collection Targets")
    table.add_column("Id", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Host")
    table.add_column("API")
    table.add_column("Enabled")
    table.add_column("Last Updated")
    table.add_column("Errors", justify="right")

    for item in items:
        table.add_row(
            item.id,
            item.niceName or "-",
            item.host or "[red]missing[/red]",
            item.api_version or "[red]missing[/red]",
            "Yes" if item.enabled else "No",
            _format_ms(item.lastUpdated),
            str(len(item.errors)),
        )

    console.print(table)


@app.command("add-target")
def add_target(
    host: str = typer.Argument(..., help="Docker host, e.g. tcp://10.0.0.5:2375 or unix:///var/run/docker.sock"),
    api_version: str = typer.Option("1.41", "--api-version", "-a", help="Docker Engine API version"),
    name: str = typer.Option("", "--name", "-n", help="Display name"),
    environment: str = typer.Option("", "--env", "-e", help="Environment label"),
    port: Optional[str] = typer.Option(None, "--port", "-p", help="Port (informational)"),
    disabled: bool = typer.Option(False, "--disabled", help="Add the target disabled"),
):
    """Register a remote Docker engine as a collection target."""
    options = {OPTION_HOST: host, OPTION_API_VERSION: api_version}
    if port:
        options[OPTION_PORT] = port

    item = CollectorItem(niceName=name, environment=environment, enabled=not disabled, options=options)
    with open_store() as store:
        store.save_collector_item(item)

    console.print(f"[green]Added target {item.id} ({host})[/green]")


@app.command("load-targets")
def load_targets_command(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="YAML file with a 'targets' list"),
):
    """Create or replace targets from a YAML file."""
    try:
        items = load_targets(path)
    except ValueError as e:
        console.print(f"[red]Invalid targets file: {e}[/red]")
        raise typer.Exit(2)

    with open_store() as store:
        for item in items:
            store.save_collector_item(item)

    console.print(f"[green]Loaded {len(items)} targets from {path}[/green]")


def _set_enabled(item_id: str, enabled: bool):
    with open_store() as store:
        try:
            store.set_collector_item_enabled(item_id, enabled)
        except StoreError as e:
            console.print(f"[red]{e}[/red]")
            raise typer.Exit(1)
    console.print(f"[green]Target {item_id} {'enabled' if enabled else 'disabled'}[/green]")


@app.command()
def enable(item_id: str = typer.Argument(..., help="Target id")):
    """Enable a collection target."""
    _set_enabled(item_id, True)


@app.command()
def disable(item_id: str = typer.Argument(..., help="Target id")):
    """Disable a collection target."""
    _set_enabled(item_id, False)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", "-h", help="API host"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="API port"),
):
    """Start the status API server."""
    import uvicorn

    host = host or settings.api_host
    port = port or settings.api_port
    settings.ensure_dirs()
    console.print(f"[bold]Starting API server on {host}:{port}[/bold]")
    uvicorn.run("docker_collector.api.main:create_app", factory=True, host=host, port=port)


if __name__ == "__main__":
    app()
