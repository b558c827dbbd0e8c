"""
Seed script — populate a development database with sample assets.

Registers a ``flask seed-dev-assets`` CLI command that registers a
small set of equipment, tools and materials through the asset service,
so local development starts with something to allocate, depreciate
and dispose.  Assets whose codes already exist are left untouched.

Usage::

    flask seed-dev-assets                  # Create the sample register
    flask seed-dev-assets --user dev.admin # Record a different creator

Prerequisites:
    - The database must exist and migrations must have been applied
      (``flask db upgrade`` or ``flask init-db``).
"""

from datetime import date
from decimal import Decimal

import click
from flask.cli import with_appcontext

from assetlife.exceptions import LifecycleError
from assetlife.services import asset_service


# -- Sample register -------------------------------------------------------
_DEFAULT_USER = "dev.seed"

_SAMPLE_ASSETS = (
    {
        "asset_code": "EQ-0001",
        "asset_name": "Excavator 20t",
        "asset_type": "equipment",
        "cost_basis": Decimal("1200000.00"),
        "depreciation_method": "straight_line",
        "useful_life_months": 120,
        "activation_date": date(2026, 1, 1),
        "current_location": "Main Yard",
        "brand": "Komatsu",
    },
    {
        "asset_code": "EQ-0002",
        "asset_name": "Mobile Generator 100kVA",
        "asset_type": "equipment",
        "cost_basis": Decimal("300000.00"),
        "depreciation_method": "declining_balance",
        "useful_life_months": 60,
        "current_location": "Warehouse A",
    },
    {
        "asset_code": "EQ-0003",
        "asset_name": "Drilling Rig",
        "asset_type": "equipment",
        "cost_basis": Decimal("850000.00"),
        "depreciation_method": "units_of_production",
        "total_estimated_units": Decimal("10000"),
        "current_location": "Main Yard",
    },
    {
        "asset_code": "TL-0001",
        "asset_name": "Laser Level Kit",
        "asset_type": "tools",
        "cost_basis": Decimal("4500.00"),
        "depreciation_method": "straight_line",
        "useful_life_months": 36,
        "current_location": "Tool Crib",
    },
    {
        "asset_code": "MT-0001",
        "asset_name": "Fiber Optic Cable (m)",
        "asset_type": "materials",
        "cost_basis": Decimal("18000.00"),
        "unit": "m",
        "current_location": "Warehouse A",
        "quantity_per_contract": Decimal("5000"),
        "quantity_supplied_previous": Decimal("1200"),
        "quantity_requested": Decimal("800"),
    },
)


@click.command("seed-dev-assets")
@click.option(
    "--user",
    "user_id",
    default=_DEFAULT_USER,
    show_default=True,
    help="User id recorded as the creator of the seeded assets.",
)
@with_appcontext
def seed_dev_assets_command(user_id: str):
    """
    Register a handful of sample assets for local development.

    Safe to run repeatedly: codes that already exist are skipped.
    """
    click.echo("=" * 60)
    click.echo("  AssetLife — Seed Dev Assets")
    click.echo("=" * 60)

    total = len(_SAMPLE_ASSETS)
    created = 0
    for step, sample in enumerate(_SAMPLE_ASSETS, start=1):
        code = sample["asset_code"]
        click.echo(f"\n[{step}/{total}] {code} — {sample['asset_name']}")

        existing = asset_service.get_asset_by_code(code)
        if existing is not None:
            click.echo(f"      Asset '{code}' already exists (id={existing.id}).")
            continue

        try:
            asset = asset_service.register_asset(user_id=user_id, **sample)
        except LifecycleError as exc:
            click.secho(f"      ✗ {exc}", fg="red")
            raise SystemExit(1) from exc

        created += 1
        click.secho(
            f"      ✓ Registered (id={asset.id}, status={asset.current_status})",
            fg="green",
        )

    click.echo("\n" + "=" * 60)
    click.secho(f"  Seeded {created} new asset(s).", fg="green", bold=True)
    click.echo("=" * 60)


def register_seed_commands(app):
    """Register seed commands with the Flask application."""
    app.cli.add_command(seed_dev_assets_command)
