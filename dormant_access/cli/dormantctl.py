#!/usr/bin/env python3
"""
Dormant Access Control CLI - Command Line Interface for the Dormant Access Engine.

Provides commands for scanning tenants, running revocation passes,
approving or exempting records and managing tenant configuration.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..detector import DormantAccessDetector
from ..errors import ConfigValidationError, InvalidTransition, RecordNotFound
from ..models import AutoRevocationResult, RecordStatus, ScanResult

# Setup logging
logging.basicConfig(level=logging.WARNING, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

# Rich console for pretty output
console = Console()

DEFAULT_STATE_FILE = "dormant_state.json"
DEFAULT_CONFIG_FILE = "dormant_config.yaml"


class DormantController:
    """Main controller for Dormant Access Engine operations."""

    def __init__(self, config_path: Optional[str] = None, inventory_file: Optional[str] = None):
        """Initialize the controller."""
        self.config_path = Path(config_path) if config_path else None
        self.config = self._load_config()

        if inventory_file:
            self.config["inventory_file"] = inventory_file

        self.detector = DormantAccessDetector.from_config(self.config)

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from file or use defaults."""
        config: Dict[str, Any] = {
            "mock_mode": True,
            "state_file": DEFAULT_STATE_FILE,
            "config_file": DEFAULT_CONFIG_FILE,
        }

        if self.config_path and self.config_path.exists():
            try:
                with open(self.config_path, 'r', encoding='utf-8') as f:
                    config.update(json.load(f))
            except (OSError, ValueError) as e:
                raise click.ClickException(f"Error loading config {self.config_path}: {e}") from e

        return config


@click.group()
@click.option('--config', '-c', help='Path to engine configuration file (JSON)')
@click.option('--inventory', '-i', type=click.Path(exists=True),
              help='Inventory file (JSON/YAML) used instead of live providers')
@click.option('--verbose', '-v', is_flag=True, help='Enable info logging')
@click.pass_context
def cli(ctx, config, inventory, verbose):
    """Dormant Access Engine Control CLI - detect and revoke unused access"""
    if verbose:
        logging.getLogger().setLevel(logging.INFO)
    ctx.ensure_object(dict)
    ctx.obj['controller'] = DormantController(config, inventory)


@cli.command()
@click.argument('tenant_id')
@click.option('--limit', default=50, help='Maximum number of records to show')
@click.option('--json', 'as_json', is_flag=True, help='Print the raw scan result as JSON')
@click.pass_context
def scan(ctx, tenant_id, limit, as_json):
    """Scan a tenant for dormant access."""
    detector = ctx.obj['controller'].detector
    result = detector.scan_for_dormant_access(tenant_id)

    if as_json:
        click.echo(result.model_dump_json(indent=2))
        return

    display_scan_result(result, limit)


@cli.command()
@click.argument('tenant_id')
@click.pass_context
def process(ctx, tenant_id):
    """Run an auto-revocation pass for a tenant."""
    detector = ctx.obj['controller'].detector
    result = detector.process_auto_revocation(tenant_id)
    display_revocation_result(result)


@cli.command()
@click.argument('tenant_id')
@click.argument('record_id')
@click.option('--by', 'approved_by', required=True, help='Approver identifier')
@click.pass_context
def approve(ctx, tenant_id, record_id, approved_by):
    """Approve a pending revocation."""
    detector = ctx.obj['controller'].detector
    try:
        record = detector.approve_revocation(tenant_id, record_id, approved_by)
    except (RecordNotFound, InvalidTransition) as e:
        raise click.ClickException(str(e)) from e

    console.print(f"[green]✓ Revocation of {record.user_name} from {record.app_name} approved[/green]")


@cli.command()
@click.argument('tenant_id')
@click.argument('record_id')
@click.option('--by', 'exempted_by', required=True, help='Who grants the exemption')
@click.option('--reason', required=True, help='Why the access is kept')
@click.pass_context
def exempt(ctx, tenant_id, record_id, exempted_by, reason):
    """Exempt a record from automated revocation."""
    detector = ctx.obj['controller'].detector
    try:
        record = detector.exempt_record(tenant_id, record_id, exempted_by, reason)
    except (RecordNotFound, InvalidTransition) as e:
        raise click.ClickException(str(e)) from e

    console.print(f"[green]✓ {record.user_name} keeps access to {record.app_name}[/green]")


@cli.command()
@click.argument('tenant_id')
@click.option('--status', type=click.Choice([s.value for s in RecordStatus]),
              help='Filter by workflow status')
@click.pass_context
def records(ctx, tenant_id, status):
    """List stored workflow records."""
    detector = ctx.obj['controller'].detector
    stored = detector.list_records(tenant_id, RecordStatus(status) if status else None)

    if not stored:
        console.print("[yellow]No records found[/yellow]")
        return

    table = Table(title=f"Workflow records ({len(stored)})")
    table.add_column("Record ID", style="cyan")
    table.add_column("User", style="green")
    table.add_column("Application", style="yellow")
    table.add_column("Days", justify="right")
    table.add_column("Status", style="magenta")
    table.add_column("Updated by", style="blue")

    for record in stored:
        table.add_row(
            record.id,
            record.user_name,
            record.app_name,
            str(record.days_since_access),
            record.status.value,
            record.approved_by or record.exempted_by or "",
        )

    console.print(table)


@cli.command('show-config')
@click.argument('tenant_id')
@click.pass_context
def show_config(ctx, tenant_id):
    """Show a tenant's configuration."""
    config = ctx.obj['controller'].detector.get_config(tenant_id)

    table = Table(title=f"Configuration for {tenant_id}")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="magenta")
    for name, value in config.model_dump().items():
        table.add_row(name, str(value))

    console.print(table)


@cli.command('set-config')
@click.argument('tenant_id')
@click.option('--warning-days', type=int)
@click.option('--critical-days', type=int)
@click.option('--auto-revoke-days', type=int)
@click.option('--grace-period-days', type=int)
@click.option('--exclude-admins/--include-admins', default=None)
@click.option('--exclude-service-accounts/--include-service-accounts', default=None)
@click.option('--require-approval/--no-require-approval', default=None)
@click.option('--notify-user/--no-notify-user', default=None)
@click.option('--notify-manager/--no-notify-manager', default=None)
@click.pass_context
def set_config(ctx, tenant_id, **changes):
    """Update a tenant's configuration and save it."""
    controller = ctx.obj['controller']
    changes = {k: v for k, v in changes.items() if v is not None}
    if not changes:
        raise click.UsageError("No settings given")

    try:
        controller.detector.set_config(tenant_id, **changes)
    except ConfigValidationError as e:
        raise click.ClickException(str(e)) from e

    saved = controller.detector.config_manager.save()
    console.print(f"[green]✓ Configuration for {tenant_id} saved to {saved}[/green]")


@cli.command()
@click.option('--port', default=8000, help='Port to run the API server on')
@click.option('--host', default='127.0.0.1', help='Host to bind the API server to')
def serve(port, host):
    """Start the Dormant Access Engine API server."""
    from ..api.server import start_server

    console.print(f"[green]Starting Dormant Access Engine API server on {host}:{port}[/green]")
    console.print("[blue]Press Ctrl+C to stop[/blue]")

    try:
        start_server(host=host, port=port, reload=False)
    except KeyboardInterrupt:
        console.print("[yellow]Server stopped[/yellow]")


def display_scan_result(result: ScanResult, limit: int = 50):
    """Display scan records and summary."""
    summary = result.summary

    console.print(Panel.fit(
        f"[bold blue]{summary.total_dormant} dormant grants[/bold blue] in tenant {result.tenant_id}\n"
        f"warning: {summary.by_category.warning}  "
        f"critical: {summary.by_category.critical}  "
        f"auto-revoke: {summary.by_category.auto_revoke}\n"
        f"Potential savings: {summary.potential_savings.monthly:,.2f}/month, "
        f"{summary.potential_savings.annual:,.2f}/year"
    ))

    if result.records:
        table = Table(title="Dormant access")
        table.add_column("User", style="green")
        table.add_column("Department", style="blue")
        table.add_column("Application", style="yellow")
        table.add_column("Days", justify="right")
        table.add_column("Category", style="magenta")
        table.add_column("Cost", justify="right")

        for record in result.records[:limit]:
            table.add_row(
                record.user_name,
                record.department or "Unknown",
                record.app_name,
                str(record.days_since_access),
                record.category.value,
                f"{record.cost_per_license:,.2f}",
            )
        console.print(table)

    if summary.top_offenders:
        table = Table(title="Top offenders")
        table.add_column("User", style="green")
        table.add_column("Dormant apps", justify="right")
        table.add_column("Total cost", justify="right")
        for offender in summary.top_offenders:
            table.add_row(offender.user_name, str(offender.dormant_apps), f"{offender.total_cost:,.2f}")
        console.print(table)

    if result.errors:
        console.print("[red]Applications skipped:[/red]")
        for error in result.errors:
            console.print(f"  - {error}")


def display_revocation_result(result: AutoRevocationResult):
    """Display revocation pass results."""
    if result.errors:
        console.print(f"[red]✗ Pass finished with {len(result.errors)} errors[/red]")
    else:
        console.print("[green]✓ Pass completed successfully[/green]")

    table = Table(title=f"Auto-revocation for {result.tenant_id}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="magenta")
    table.add_row("Processed", str(result.processed))
    table.add_row("Revoked", str(result.revoked))
    table.add_row("Pending approval", str(result.pending_approval))
    table.add_row("Skipped", str(result.skipped))
    console.print(table)

    if result.errors:
        console.print("[red]Errors:[/red]")
        for error in result.errors:
            console.print(f"  - {error}")


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
