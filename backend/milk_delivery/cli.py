# Overview: Flask CLI command groups for bootstrap and inspection.

# backend/milk_delivery/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv and export SECRET_KEY.
# - Set FLASK_APP to wsgi.py.
# - Use: python -m flask <group> <command> [options]
#
# Schema:
# - python -m flask db upgrade
#   Apply versioned migrations (never drops data).
#
# System bootstrap:
# - python -m flask system init --admin-email admin@milkdelivery.com --admin-password "..."
#   Idempotent: seeds the default pricing catalog and the first admin account.
#
# Users:
# - python -m flask users create --name "Asha" --email asha@example.com --role subscriber --address "..."
# - python -m flask users list [--role admin]
#
# Catalog:
# - python -m flask rates list

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User, UserRole
from .money import to_decimal
from .services import catalog_service
from .services.auth_service import create_user
from .validation import ConflictError, ValidationError


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@click.option('--admin-name', default='Admin User', show_default=True, help='Admin display name')
@click.option('--admin-email', default='admin@milkdelivery.com', show_default=True, help='Admin email')
@click.option('--admin-password', prompt=True, hide_input=True, confirmation_prompt=True, help='Admin password')
@with_appcontext
def init_system(admin_name, admin_email, admin_password):
    """
    Seed the default pricing catalog and an admin account.

    Safe to re-run: existing rates and an existing admin email are kept.
    """
    click.echo("START Initializing milk delivery system...")

    created = catalog_service.ensure_default_rates()
    click.echo(f"PASS Pricing catalog ready ({len(created)} rate(s) added)")

    existing = db.session.query(User).filter_by(email=admin_email.strip().lower()).first()
    if existing:
        click.echo(f"PASS Using existing admin account: {existing.email} (ID: {existing.id})")
    else:
        try:
            admin = create_user(
                name=admin_name,
                email=admin_email,
                password=admin_password,
                address=None,
                role=UserRole.ADMIN,
            )
        except (ValidationError, ConflictError) as e:
            raise click.ClickException(str(e))
        click.echo(f"PASS Created admin account: {admin.email} (ID: {admin.id})")

    click.echo("DONE Initialization complete.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice([r.value for r in UserRole]), default=UserRole.SUBSCRIBER.value, show_default=True)
@click.option('--address', default=None, help='Delivery address (required for subscribers)')
@with_appcontext
def create_user_cli(name, email, password, role, address):
    """Create a user account."""
    user_role = UserRole(role)
    if user_role == UserRole.SUBSCRIBER and not address:
        raise click.ClickException("--address is required for subscribers")

    try:
        user = create_user(name=name, email=email, password=password, address=address, role=user_role)
    except (ValidationError, ConflictError) as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Created {user.role.value} {user.email} (ID: {user.id})")


@users_group.command('list')
@click.option('--role', type=click.Choice([r.value for r in UserRole]), default=None, help='Filter by role')
@with_appcontext
def list_users(role):
    """List users with role and active status."""
    query = db.session.query(User)
    if role:
        query = query.filter(User.role == UserRole(role))
    users = query.order_by(User.id.asc()).all()

    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<5} {'Name':<20} {'Email':<30} {'Role':<12} {'Active'}")
    click.echo("=" * 80)
    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.name[:20]:<20} {user.email[:30]:<30} {user.role.value:<12} {active_str}")
    click.echo("=" * 80 + "\n")


@click.group('rates')
def rates_group():
    """Pricing catalog inspection."""


@rates_group.command('list')
@with_appcontext
def list_rates_cli():
    """List catalog entries by ascending quantity."""
    rates = catalog_service.list_rates()
    if not rates:
        click.echo("WARN Pricing catalog is empty. Run 'flask system init'.")
        return

    for rate in rates:
        click.echo(f"{rate.id:<5} {rate.quantity:>6} ml  {to_decimal(rate.price):>10}  {rate.notes or ''}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(rates_group)
