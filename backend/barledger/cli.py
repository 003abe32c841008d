# Overview: Flask CLI command groups for bootstrap, staff accounts and stock checks.

# backend/barledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py.
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--admin-username admin] [--admin-password ...]
#   Create tables (if missing) and a first admin user. Idempotent.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Staff accounts:
# - python -m flask users list
# - python -m flask users create --username ana --password "..." --role cashier
#
# Reports:
# - python -m flask reports low-stock
#   Products at or below their low-stock threshold.

import click
from flask.cli import with_appcontext

from .context import current_context
from .errors import BarError
from .extensions import db
from .models import User
from .models.auth import ROLE_ADMIN, ROLES
from .money import quantity_to_json
from .services import auth_service, reporting


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-username', default='admin', show_default=True, help='Username of the first admin')
@click.option('--admin-password', default='Password123!', help='Password of the first admin')
@with_appcontext
def init_system(admin_username, admin_password):
    """
    Create missing tables and the first admin account.

    SECURITY: Change the default password immediately in production!
    """
    click.echo("START Initializing bar ledger...")
    db.create_all()
    click.echo("PASS Tables ready")

    ctx = current_context()
    existing = db.session.query(User).filter_by(username=admin_username.strip().lower()).first()
    if existing:
        click.echo(f"PASS Using existing admin: {existing.username} (ID: {existing.id})")
        return

    try:
        user = auth_service.create_user(ctx, admin_username, admin_password, ROLE_ADMIN, name="Administrator")
    except BarError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Created admin: {user.username} (ID: {user.id})")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('users')
def users_group():
    """Staff account commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(ROLES)), prompt=True, help='Role')
@click.option('--name', default=None, help='Display name')
@with_appcontext
def create_user_cmd(username, password, role, name):
    """Create a staff account."""
    try:
        user = auth_service.create_user(current_context(), username, password, role, name=name)
    except BarError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Created user: {user.username} (ID: {user.id}, role: {user.role})")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all staff accounts."""
    users = auth_service.list_users(current_context())

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*70)
    click.echo(f"{'ID':<5} {'Username':<20} {'Role':<10} {'Active':<8} {'Name'}")
    click.echo("="*70)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {user.role:<10} {active_str:<8} {user.name or ''}")

    click.echo("="*70 + "\n")


@click.group('reports')
def reports_group():
    """Read-only operational reports."""


@reports_group.command('low-stock')
@with_appcontext
def low_stock_cmd():
    """List products at or below their low-stock threshold."""
    ctx = current_context()
    from .services.catalog_service import list_products

    rows = reporting.low_stock_products(list_products(ctx), ctx.settings.low_stock_default_threshold)
    if not rows:
        click.echo("PASS No products below threshold.")
        return

    click.echo(f"WARN {len(rows)} product(s) low on stock:")
    for product in rows:
        threshold = product.low_stock_threshold
        if threshold is None:
            threshold = ctx.settings.low_stock_default_threshold
        click.echo(
            f"  {product.id:<5} {product.name:<30} stock={quantity_to_json(product.stock)} "
            f"threshold={quantity_to_json(threshold)}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(reports_group)
