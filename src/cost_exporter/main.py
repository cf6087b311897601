"""
Main CLI interface for the AWS cost exporter.

Provides commands to serve the Prometheus exporter, run one-off refreshes
and inspect the billing windows and configuration.
"""

import json
import logging
import sys
from datetime import date, datetime

import click
import uvicorn

from .config.settings import get_config, load_config_file
from .export.prometheus import save_metrics_to_file
from .monitoring.exporter import CostExporter
from .monitoring.windows import compute_range, granularity_for
from .providers.base import ConfigurationError
from .utils.auth import AWSAuthenticator

# Set up logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False):
    """Configure logging based on verbosity settings."""
    logging.getLogger().setLevel(logging.DEBUG if verbose else logging.INFO)

    # Configure cloud SDK loggers to reduce noise
    cloud_loggers = ["boto3", "botocore", "urllib3"]

    for logger_name in cloud_loggers:
        logging.getLogger(logger_name).setLevel(logging.INFO if verbose else logging.WARNING)


def _reference_date(value: datetime | None) -> date:
    return value.date() if value else date.today()


@click.group()
@click.option("--config", "-c", type=click.Path(exists=True), help="Path to configuration file")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging and debug output")
@click.pass_context
def cli(ctx, config, verbose):
    """AWS Cost Exporter - Expose AWS billing windows as Prometheus gauges."""
    setup_logging(verbose)

    # Ensure context object exists
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose

    # Load configuration
    try:
        ctx.obj["config"] = load_config_file(config) if config else get_config()
    except ConfigurationError as e:
        click.echo(f"Error loading configuration: {e}", err=True)
        sys.exit(1)


@cli.command()
@click.option("--host", help="Listen address (default: from configuration)")
@click.option("--port", type=int, help="Listen port (default: from configuration, $PORT or 8080)")
@click.option("--interval", type=int, help="Refresh interval in seconds")
@click.pass_context
def serve(ctx, host, port, interval):
    """Serve /metrics and /health while refreshing costs in the background."""
    from .api.exporter_service import create_app

    config = ctx.obj["config"]
    try:
        config.override_from_cli({"host": host, "port": port, "interval": interval})
    except ConfigurationError as e:
        click.echo(f"Invalid option: {e}", err=True)
        sys.exit(1)

    logger.info(f"Starting AWS Cost Exporter on port {config.server_port}")
    uvicorn.run(
        create_app(config),
        host=config.server_host,
        port=config.server_port,
        log_level="debug" if ctx.obj["verbose"] else "info",
    )


@cli.command()
@click.option(
    "--date",
    "ref_date",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    help="Reference date for the windows (default: today)",
)
@click.option(
    "--output", "-o", type=click.Path(), help="Output file for metrics (default: print to stdout)"
)
@click.pass_context
def refresh(ctx, ref_date, output):
    """Run one refresh cycle and print the resulting metrics."""
    config = ctx.obj["config"]

    try:
        exporter = CostExporter.from_config(config)
        result = exporter.refresh(_reference_date(ref_date))
    except ConfigurationError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)

    metrics_text = exporter.render()
    if output:
        if not save_metrics_to_file(metrics_text, output):
            sys.exit(1)
        click.echo(f"Metrics written to: {output}")
    else:
        click.echo(metrics_text.decode("utf-8"), nl=False)

    for kind, count in result.updated.items():
        click.echo(f"{kind.value}: {count} series", err=True)
    for kind, error in result.errors.items():
        click.echo(f"{kind.value}: failed - {error}", err=True)
    for kind in result.skipped:
        click.echo(f"{kind.value}: skipped", err=True)

    if not result.succeeded:
        sys.exit(1)


@cli.command()
@click.option(
    "--date",
    "ref_date",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    help="Reference date for the windows (default: today)",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format",
)
@click.pass_context
def windows(ctx, ref_date, output_format):
    """Show the date range each configured window queries."""
    config = ctx.obj["config"]
    today = _reference_date(ref_date)
    definitions = config.gauge_definitions

    rows = []
    for kind, definition in definitions.items():
        time_range = compute_range(kind, today)
        rows.append(
            {
                "window": kind.value,
                "gauge": definition.name,
                "start": time_range.start.isoformat(),
                "end": time_range.end.isoformat(),
                "granularity": granularity_for(kind).value,
            }
        )

    if output_format == "json":
        click.echo(json.dumps({"date": today.isoformat(), "windows": rows}, indent=2))
        return

    click.echo(f"\nBilling windows for {today}")
    click.echo("=" * 50)
    for row in rows:
        click.echo(
            f"  {row['window']:<16} [{row['start']}, {row['end']})  "
            f"{row['granularity']:<8} {row['gauge']}"
        )


@cli.command()
@click.pass_context
def test_auth(ctx):
    """Test AWS authentication for the billing query."""
    config = ctx.obj["config"]
    authenticator = AWSAuthenticator(config.aws)

    auth_result = authenticator.authenticate()
    if not auth_result.success:
        click.echo(f"❌ AWS: Failed - {auth_result.error_message}")
        sys.exit(1)

    if authenticator.test_credentials(auth_result.session):
        click.echo(f"✅ AWS: Authenticated ({auth_result.method})")
    else:
        click.echo(f"❌ AWS: Credentials rejected ({auth_result.method})")
        sys.exit(1)


@cli.command()
@click.pass_context
def config_info(ctx):
    """Display current configuration information."""
    config = ctx.obj["config"]
    info = config.to_dict()

    click.echo("AWS Cost Exporter Configuration")
    click.echo("=" * 40)
    click.echo(f"Provider: {info['provider']} ({info['region']})")
    click.echo(f"Cost metric: {info['cost_metric']}")
    click.echo(f"Refresh interval: {info['refresh_interval']:g} seconds")
    click.echo(f"Fail fast: {info['fail_fast']}")
    click.echo(f"Listen: {info['server']['host']}:{info['server']['port']}")
    click.echo("\nGauges:")
    for window, gauge in info["gauges"].items():
        click.echo(f"  {window}: {gauge}")


@cli.command()
def version():
    """Display version information."""
    from . import __version__

    click.echo(f"AWS Cost Exporter v{__version__}")
    click.echo("Expose AWS Cost Explorer billing windows as Prometheus gauges")


if __name__ == "__main__":
    cli()
