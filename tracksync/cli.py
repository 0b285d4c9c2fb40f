"""
Command-line interface for tracksync.
Provides commands for syncing, tracking and checking credentials.
"""

import asyncio
import signal
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from tracksync import __version__
from tracksync.errors import CarrierError

console = Console()

STATUS_COLORS = {
    "delivered": "green",
    "in_transit": "cyan",
    "posted": "blue",
    "not_found": "yellow",
    "unknown": "dim",
}


def _load(ctx: click.Context):
    """Build config, logging, store and service for a command."""
    from tracksync.config import init_config
    from tracksync.logging_config import setup_logging
    from tracksync.stores import JsonFileStore
    from tracksync.sync_service import TrackingSyncService

    config = init_config(ctx.obj.get("config_file"))
    setup_logging(config, console=ctx.obj.get("verbose", False))

    store = JsonFileStore(config.store_path)
    service = TrackingSyncService(config, credential_store=store, order_store=store)
    return config, store, service


def _print_result(tenant_id: str, result):
    color = "green" if result.failed_updates == 0 else "yellow"
    console.print(
        f"[bold]{tenant_id}[/bold]: [{color}]{result.successful_updates}/{result.total_processed} "
        f"updated[/{color}] in {result.chunks} chunk(s)"
    )
    if result.status_counts:
        table = Table(show_header=True)
        table.add_column("Status", style="cyan")
        table.add_column("Orders", justify="right")
        for status, count in sorted(result.status_counts.items()):
            table.add_row(status, str(count))
        console.print(table)
    if result.aborted:
        console.print("[red]Run aborted: authentication failed mid-run[/red]")
    if result.cancelled:
        console.print("[yellow]Run cancelled[/yellow]")


@click.group()
@click.version_option(version=__version__, prog_name="tracksync")
@click.option(
    "--config", "-c",
    type=click.Path(exists=True),
    help="Path to configuration file"
)
@click.option("--verbose", "-v", is_flag=True, help="Log to console")
@click.pass_context
def cli(ctx, config, verbose):
    """tracksync - Correios tracking synchronization"""
    ctx.ensure_object(dict)
    ctx.obj["config_file"] = config
    ctx.obj["verbose"] = verbose


@cli.command()
@click.option("--tenant", "-t", help="Tenant to sync")
@click.option("--all", "all_tenants", is_flag=True, help="Sync every tenant")
@click.pass_context
def sync(ctx, tenant, all_tenants):
    """Sync shipping statuses from Correios."""
    if not tenant and not all_tenants:
        raise click.UsageError("Pass --tenant or --all")

    _, _, service = _load(ctx)

    async def run():
        cancel_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        if sys.platform != "win32":
            loop.add_signal_handler(signal.SIGINT, cancel_event.set)

        async with service:
            if all_tenants:
                return await service.sync_all_tenants(cancel_event=cancel_event)
            return {tenant: await service.sync_tenant(tenant, cancel_event=cancel_event)}

    try:
        results = asyncio.run(run())
    except CarrierError as e:
        console.print(f"[red]✗ Sync failed: {e}[/red]")
        sys.exit(1)

    if not results:
        console.print("[yellow]No tenants synced[/yellow]")
    for tenant_id, result in results.items():
        _print_result(tenant_id, result)


@cli.command()
@click.argument("tracking_code")
@click.option("--tenant", "-t", required=True, help="Tenant whose credential to use")
@click.pass_context
def track(ctx, tracking_code, tenant):
    """Show status and history of one tracking code."""
    _, _, service = _load(ctx)

    async def run():
        async with service:
            return await service.track(tenant, tracking_code)

    try:
        lookup = asyncio.run(run())
    except CarrierError as e:
        console.print(f"[red]✗ Tracking failed: {e}[/red]")
        sys.exit(1)

    color = STATUS_COLORS.get(lookup.status.value, "white")
    console.print(Panel.fit(
        f"[bold]{lookup.tracking_code}[/bold]\n"
        f"Status: [{color}]{lookup.status.value}[/{color}]",
        title="Tracking"
    ))

    if lookup.events:
        table = Table(title="History")
        table.add_column("When", style="cyan")
        table.add_column("Event")
        table.add_column("Where", style="dim")
        for event in lookup.events:
            table.add_row(
                event.occurred_at.strftime("%Y-%m-%d %H:%M"),
                event.description,
                str(event.origin) if event.origin else "",
            )
        console.print(table)


@cli.command()
@click.argument("order_id")
@click.argument("tracking_code")
@click.option("--tenant", "-t", required=True, help="Tenant owning the order")
@click.pass_context
def assign(ctx, order_id, tracking_code, tenant):
    """Attach a tracking code to an order and fetch its status."""
    _, _, service = _load(ctx)

    async def run():
        async with service:
            return await service.assign_tracking(tenant, order_id, tracking_code)

    try:
        status = asyncio.run(run())
    except CarrierError as e:
        console.print(f"[red]✗ {e}[/red]")
        sys.exit(1)

    console.print(f"[green]✓ Order {order_id}: {tracking_code.upper()} -> {status.value}[/green]")


@cli.command("test-credentials")
@click.option("--tenant", "-t", required=True, help="Tenant whose credential to check")
@click.pass_context
def test_credentials(ctx, tenant):
    """Check a tenant's credential against Correios."""
    console.print("[bold]Testing Correios credentials...[/bold]")

    _, store, service = _load(ctx)

    async def run():
        async with service:
            credential = await store.find_by_tenant(tenant)
            if credential is None:
                return None
            return await service.verify_credentials(credential)

    check = asyncio.run(run())
    if check is None:
        console.print(f"[red]✗ No credential configured for tenant {tenant}[/red]")
        sys.exit(1)

    table = Table(title="Credential check")
    table.add_column("Step", style="cyan")
    table.add_column("Result")
    for label, passed in (
        ("Basic authentication", check.basic_auth),
        ("Contract authentication", check.contract_auth),
        ("Tracking API", check.tracking_api),
    ):
        table.add_row(label, "[green]✓[/green]" if passed else "[red]✗[/red]")
    console.print(table)

    if check.success:
        console.print("[green]✓ Credentials are valid[/green]")
    else:
        console.print(f"[red]✗ {check.error}[/red]")
        sys.exit(1)


@cli.command()
@click.pass_context
def schedule(ctx):
    """Run scheduled daily syncs in the foreground."""
    from tracksync.scheduler import SyncScheduler

    config, _, service = _load(ctx)

    console.print(Panel.fit(
        f"[bold blue]tracksync v{__version__}[/bold blue]\n"
        f"Daily syncs at {', '.join(config.sync_times)}\n"
        "Press Ctrl+C to stop",
        title="Scheduler"
    ))

    async def run():
        scheduler = SyncScheduler(config, service)
        loop = asyncio.get_running_loop()
        if sys.platform != "win32":
            loop.add_signal_handler(signal.SIGTERM, scheduler.stop)
            loop.add_signal_handler(signal.SIGINT, scheduler.stop)
        async with service:
            await scheduler.run_forever()

    asyncio.run(run())


@cli.command()
@click.pass_context
def status(ctx):
    """Show configuration."""
    from tracksync.config import SyncConfig

    config = SyncConfig.from_env(ctx.obj.get("config_file"))

    table = Table(title="Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Correios URL", config.correios_base_url)
    table.add_row("Request timeout", f"{config.request_timeout}s")
    table.add_row("Batch size", str(config.batch_size))
    table.add_row("Batch delay", f"{config.batch_delay_seconds}s")
    table.add_row("Token safety margin", f"{config.token_safety_margin_seconds}s")
    table.add_row("Store", str(config.store_path))
    table.add_row("Sync times", ", ".join(config.sync_times) if config.sync_enabled else "[dim]disabled[/dim]")
    table.add_row("Log File", config.log_file)

    console.print(table)

    for error in config.validate():
        console.print(f"[red]Config error: {error}[/red]")


@cli.command()
@click.argument("config_path", type=click.Path())
def init(config_path):
    """Initialize configuration file."""
    config_path = Path(config_path)

    if config_path.exists():
        if not click.confirm(f"{config_path} already exists. Overwrite?"):
            return

    template = '''# tracksync Configuration

# Correios API
CORREIOS_BASE_URL=https://api.correios.com.br
REQUEST_TIMEOUT=30

# Batching (Correios accepts at most 50 codes per request)
BATCH_SIZE=50
BATCH_DELAY_SECONDS=1.0
TOKEN_SAFETY_MARGIN_SECONDS=300

# Storage
STORE_PATH=./tracksync-data.json

# Scheduling
SYNC_TIMES=08:00,12:00
SYNC_ENABLED=true

# Logging
LOG_LEVEL=INFO
LOG_FILE=./logs/tracksync.log
'''

    config_path.write_text(template, encoding='utf-8')
    console.print(f"[green]✓ Configuration file created: {config_path}[/green]")
    console.print("\nEdit this file with your settings, then run:")
    console.print(f"  tracksync --config {config_path} sync --all")


@cli.command()
@click.pass_context
def logs(ctx):
    """View recent logs."""
    from tracksync.config import SyncConfig
    config = SyncConfig.from_env(ctx.obj.get("config_file"))

    log_file = Path(config.log_file)

    if not log_file.exists():
        console.print(f"[yellow]Log file not found: {log_file}[/yellow]")
        return

    console.print(f"[bold]Recent logs from {log_file}:[/bold]\n")

    # Read last 50 lines
    with open(log_file, "r", encoding="utf-8") as f:
        recent = f.readlines()[-50:]

    for line in recent:
        # Color based on log level
        if "ERROR" in line:
            console.print(f"[red]{escape(line.rstrip())}[/red]", highlight=False)
        elif "WARNING" in line:
            console.print(f"[yellow]{escape(line.rstrip())}[/yellow]", highlight=False)
        else:
            console.print(line.rstrip(), markup=False, highlight=False)


def main():
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
