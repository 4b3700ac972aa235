# Overview: Flask CLI command groups for bootstrap, integrity checks and reports.

# backend/tenpeso/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (use `flask db upgrade` for managed schemas).
# - python -m flask system seed-settings
#   Store catalog defaults for settings that have no stored value.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Inventory:
# - python -m flask inventory check
#   List products whose cached stock differs from their lots; exits 1 when any.
#
# Reports:
# - python -m flask reports daily --day 2026-01-17 --mode realized
#   Print one business day's revenue, COGS and profit.

import sys

import click
from flask.cli import with_appcontext

from .errors import SettlementError
from .extensions import db
from .services import reporting_service, settings_service


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Tables created.")


@system_group.command('seed-settings')
@with_appcontext
def seed_settings():
    """Write default values for every unset setting. Idempotent."""
    added = settings_service.seed_defaults()
    click.echo(f"PASS Seeded {added} setting(s).")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system seed-settings' next.")


@click.group('inventory')
def inventory_group():
    """Inventory integrity commands."""


@inventory_group.command('check')
@with_appcontext
def inventory_check():
    """Compare cached stock against lot totals."""
    rows = reporting_service.stock_discrepancies()
    if not rows:
        click.echo("PASS Stock matches lots for every product.")
        return

    click.echo(f"{'ID':<6} {'Product':<32} {'Stock':>7} {'Lots':>7} {'Diff':>7}")
    click.echo("-" * 62)
    for row in rows:
        click.echo(
            f"{row['product_id']:<6} {row['name'][:32]:<32} "
            f"{row['stock_qty']:>7} {row['lot_qty_remaining']:>7} {row['difference']:>7}"
        )
    click.echo(f"FAIL {len(rows)} product(s) out of sync.", err=True)
    sys.exit(1)


@click.group('reports')
def reports_group():
    """Profit reports."""


@reports_group.command('daily')
@click.option('--day', default=None, help='Business day, YYYY-MM-DD (default: today)')
@click.option('--mode', type=click.Choice(['realized', 'pipeline']), default='realized', show_default=True)
@with_appcontext
def daily_report(day, mode):
    try:
        report = reporting_service.daily_profit(day, mode)
    except SettlementError as exc:
        raise click.ClickException(exc.message)

    click.echo(f"Day:      {report['day']} ({report['mode']})")
    click.echo(f"Orders:   {report['orders_count']}")
    click.echo(f"Revenue:  {report['revenue_cents'] / 100:.2f}")
    click.echo(f"COGS:     {report['cogs_cents'] / 100:.2f}")
    click.echo(f"Profit:   {report['profit_cents'] / 100:.2f}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(inventory_group)
    app.cli.add_command(reports_group)
