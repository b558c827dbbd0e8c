"""
Custom Flask CLI commands.

These commands are registered with the app by ``register_commands()``
in the application factory. Run them with ``flask <command_name>``.

Usage::

    flask db-check                        # Verify connectivity and tables
    flask init-db                         # Create tables (local use)
    flask mark-overdue                    # Overdue allocation sweep
    flask run-depreciation --period 2026-10
"""

from datetime import date, datetime

import click
from flask import current_app
from flask.cli import with_appcontext
from sqlalchemy import inspect
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

from assetlife.exceptions import LifecycleError
from assetlife.extensions import db

# Tables the lifecycle services expect to find.
EXPECTED_TABLES = (
    "asset_master_data",
    "asset_allocation",
    "maintenance_record",
    "depreciation_schedule",
    "asset_disposal",
    "asset_location_history",
    "audit_log",
)


def _mask_password(db_uri: str) -> str:
    """Hide the password component of a database URL."""
    try:
        return make_url(db_uri).render_as_string(hide_password=True)
    except ArgumentError:
        return db_uri


@click.command("db-check")
@with_appcontext
def db_check_command():
    """
    Verify database connectivity and confirm the lifecycle tables exist.

    Runs a trivial query against the configured database and lists
    which of the expected tables are present.  Useful for confirming
    that DATABASE_URL is correct and migrations have been applied.
    """
    click.echo("=" * 60)
    click.echo("  AssetLife — Database Connectivity Check")
    click.echo("=" * 60)

    db_uri = current_app.config["SQLALCHEMY_DATABASE_URI"]
    click.echo(f"\n  Connection string: {_mask_password(db_uri)}\n")

    # -- Step 1: Basic connectivity ----------------------------------------
    click.echo("[1/2] Testing connection...")
    try:
        row = db.session.execute(db.text("SELECT 1 AS connected")).fetchone()
    except Exception as exc:  # pylint: disable=broad-exception-caught
        click.secho(f"      ✗ Connection failed: {exc}", fg="red")
        click.echo("\n  Troubleshooting tips:")
        click.echo("    - Is the database service reachable from this host?")
        click.echo("    - Does your .env DATABASE_URL match the server config?")
        raise SystemExit(1)
    if not row or row[0] != 1:
        click.secho("      ✗ Unexpected result from test query.", fg="red")
        raise SystemExit(1)
    click.secho("      ✓ Connected successfully.", fg="green")

    # -- Step 2: Tables ----------------------------------------------------
    click.echo("[2/2] Checking tables...\n")
    present = set(inspect(db.engine).get_table_names())
    missing = [name for name in EXPECTED_TABLES if name not in present]
    for name in EXPECTED_TABLES:
        mark = "✗" if name in missing else "✓"
        click.secho(f"      {mark} {name}", fg="red" if name in missing else "green")

    click.echo("\n" + "=" * 60)
    if missing:
        click.secho(
            f"  {len(missing)} table(s) missing. Run 'flask db upgrade'.",
            fg="red",
            bold=True,
        )
        click.echo("=" * 60)
        raise SystemExit(1)
    click.secho("  All checks passed. Database is ready.", fg="green", bold=True)
    click.echo("=" * 60)


@click.command("init-db")
@with_appcontext
def init_db_command():
    """Create all tables directly from the models (local development only)."""
    db.create_all()
    click.secho("Tables created.", fg="green")


@click.command("mark-overdue")
@click.option(
    "--today",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None,
    help="Reference date (YYYY-MM-DD). Defaults to the current date.",
)
@with_appcontext
def mark_overdue_command(today: datetime | None):
    """Flip active allocations past their expected return date to overdue."""
    from assetlife.services import allocation_service  # pylint: disable=import-outside-toplevel

    as_of = today.date() if today else date.today()
    count = allocation_service.mark_overdue(today=as_of)
    click.echo(f"Marked {count} allocation(s) overdue as of {as_of.isoformat()}.")


@click.command("run-depreciation")
@click.option(
    "--period",
    type=click.DateTime(formats=["%Y-%m", "%Y-%m-%d"]),
    default=None,
    help="Period to post (YYYY-MM). Defaults to the current month.",
)
@with_appcontext
def run_depreciation_command(period: datetime | None):
    """Post one month of depreciation for every eligible asset."""
    from assetlife.services import depreciation_service  # pylint: disable=import-outside-toplevel

    try:
        result = depreciation_service.run_depreciation(
            period.date() if period else None
        )
    except LifecycleError as exc:
        click.secho(f"Error: {exc}", fg="red")
        raise SystemExit(1) from exc

    click.echo(f"Period: {result.period_date.isoformat()}")
    click.echo(
        f"Processed: {len(result.processed)}  "
        f"Skipped: {len(result.skipped)}  "
        f"Failed: {len(result.failed)}"
    )
    for asset_id, message in result.failed.items():
        click.secho(f"  asset {asset_id}: {message}", fg="red")


def register_commands(app):
    """Register all custom CLI commands with the Flask application."""
    app.cli.add_command(db_check_command)
    app.cli.add_command(init_db_command)
    app.cli.add_command(mark_overdue_command)
    app.cli.add_command(run_depreciation_command)
