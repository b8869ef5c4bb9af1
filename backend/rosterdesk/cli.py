# Overview: Flask CLI command groups for syncing and database maintenance.

# backend/rosterdesk/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to rosterdesk (PowerShell: $env:FLASK_APP="rosterdesk").
# - Use: python -m flask <group> <command> [options]
#
# Syncing (same code paths as the dashboard buttons):
# - python -m flask sync orders
#   Pull every order and product from WooCommerce.
# - python -m flask sync registrations
#   Derive registrations from synced orders.
# - python -m flask sync status
#   Compare the latest WooCommerce orders with the stored ones.
#
# Database:
# - python -m flask system init-db
#   Create any missing tables (no data is touched).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).

import click
from flask.cli import with_appcontext

from .errors import ServiceError
from .extensions import db
from .services import order_sync_service, registration_sync_service
from .services.order_feed import open_order_feed


@click.group('sync')
def sync_group():
    """WooCommerce sync commands."""


@sync_group.command('orders')
@with_appcontext
def sync_orders_command():
    """Pull every order and product from WooCommerce."""
    click.echo("SYNC  Fetching orders and products...")
    try:
        with open_order_feed() as feed:
            result = order_sync_service.sync_orders(feed)
    except ServiceError as e:
        db.session.rollback()
        raise click.ClickException(f"{e.message} ({e.kind})")
    click.echo(f"PASS {result.message}")


@sync_group.command('registrations')
@with_appcontext
def sync_registrations_command():
    """Derive registrations from synced orders."""
    try:
        synced = registration_sync_service.sync_registrations()
    except ServiceError as e:
        db.session.rollback()
        raise click.ClickException(f"{e.message} ({e.kind})")
    if synced:
        click.echo(f"PASS Synced {synced} registrations")
    else:
        click.echo("PASS No new registrations to sync")


@sync_group.command('status')
@click.option('--limit', default=5, show_default=True, help='Number of recent orders to compare')
@with_appcontext
def sync_status_command(limit):
    """Show which recent WooCommerce orders are missing locally."""
    try:
        with open_order_feed() as feed:
            report = order_sync_service.compare_recent_orders(feed, limit=limit)
    except ServiceError as e:
        raise click.ClickException(f"{e.message} ({e.kind})")

    upstream = report["woocommerce"]
    local = report["database"]
    click.echo(f"WooCommerce latest: #{upstream['latest_order_number']} ({upstream['latest_order_date']})")
    click.echo(f"Database latest:    #{local['latest_order_number']} ({local['latest_order_date']})")
    missing = report["comparison"]["missing_in_database"]
    if missing:
        click.echo(f"WARN {len(missing)} recent order(s) not synced yet: {', '.join(str(m) for m in missing)}")
    else:
        click.echo("PASS All recent orders are synced")


@click.group('system')
def system_group():
    """Database bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create any missing tables."""
    db.create_all()
    click.echo("PASS Database tables ready")


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

    click.echo("PASS Database reset complete")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(sync_group)
    app.cli.add_command(system_group)
