# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/barflow/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init [--admin-username admin] [--admin-password "Password123!"]
#   Idempotent: creates tables, the config row and the default admin.
#
# Users:
# - python -m flask users create --username ana --name "Ana" --password "Password123!" --role EMPLOYEE
#   Create a user (prompts if options are omitted).
#
# Catalog:
# - python -m flask products create --name "BeerA" --cost 1000 --price 2500 [--category Beer]
#   Create a product (prices in minor units).
#
# Shifts:
# - python -m flask shifts list [--status OPEN] [--limit 20]
#   List recent shifts with their cash difference.
#
# Credit:
# - python -m flask credit check-balances
#   Compare each customer's balance with a fold of its ledger; exits 1 on mismatch.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import ShiftSession, User
from .models.auth import ROLE_ADMIN, ROLES
from .services import credit_service, products_service, settings_service
from .services.auth_service import create_user, PasswordValidationError
from .validation import BarflowError


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@click.option('--admin-username', default='admin', help='Username of the default admin')
@click.option('--admin-name', default='Administrator', help='Display name of the default admin')
@click.option('--admin-password', default='Password123!', help='Password of the default admin')
@with_appcontext
def init_system(admin_username, admin_name, admin_password):
    """
    Create tables, the config row and a default admin.

    SECURITY: Change the default password immediately in production!
    """
    click.echo("START Initializing BarFlow...")

    db.create_all()
    cfg = settings_service.get_config()
    click.echo(f"PASS Config ready: {cfg.bar_name}")

    existing = db.session.query(User).filter_by(username=admin_username).first()
    if existing:
        click.echo(f"WARN  User '{admin_username}' already exists, skipping...")
        return

    try:
        create_user(admin_username, admin_name, admin_password, role=ROLE_ADMIN)
        click.echo(f"PASS Created admin: {admin_username}")
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed for '{admin_username}': {str(e)}")


@click.group('users')
def users_group():
    """User management commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--name', prompt=True, help='Display name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(ROLES)), prompt=True, help='Role')
@with_appcontext
def create_user_cli(username, name, password, role):
    """
    Create a new user.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter, one lowercase letter and one digit
    - At least one special character
    """
    try:
        user = create_user(username, name, password, role=role)
        click.echo(f"PASS Created user: {user.username} with role '{user.role}'")
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        raise SystemExit(1)
    except BarflowError as e:
        click.echo(f"FAIL Failed to create user: {str(e)}")
        raise SystemExit(1)


@click.group('products')
def products_group():
    """Catalog commands."""


@products_group.command('create')
@click.option('--name', prompt=True, help='Product name')
@click.option('--cost', 'cost_price_cents', type=int, prompt=True, help='Cost price in minor units')
@click.option('--price', 'sale_price_cents', type=int, prompt=True, help='Sale price in minor units')
@click.option('--category', default=None, help='Category label')
@with_appcontext
def create_product_cli(name, cost_price_cents, sale_price_cents, category):
    try:
        product = products_service.create_product(name, cost_price_cents, sale_price_cents, category=category)
        click.echo(f"PASS Created product {product.id}: {product.name}")
    except BarflowError as e:
        click.echo(f"FAIL Failed to create product: {str(e)}")
        raise SystemExit(1)


@click.group('shifts')
def shifts_group():
    """Shift inspection commands."""


@shifts_group.command('list')
@click.option('--status', type=click.Choice(['OPEN', 'CLOSED']), help='Filter by status')
@click.option('--limit', type=int, default=20, help='Max shifts to show')
@with_appcontext
def list_shifts_cli(status, limit):
    """
    List recent shifts.

    Example:
        flask shifts list
        flask shifts list --status CLOSED
    """
    query = db.session.query(ShiftSession)
    if status:
        query = query.filter_by(status=status)
    shifts = query.order_by(ShiftSession.opened_at.desc(), ShiftSession.id.desc()).limit(limit).all()

    if not shifts:
        click.echo("No shifts found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Status':<8} {'Opened':<20} {'Closed':<20} {'To deliver':<12} {'Difference'}")
    click.echo("="*90)
    for shift in shifts:
        opened = shift.opened_at.strftime("%Y-%m-%d %H:%M")
        closed = shift.closed_at.strftime("%Y-%m-%d %H:%M") if shift.closed_at else "-"
        to_deliver = shift.cash_to_deliver_cents if shift.cash_to_deliver_cents is not None else "-"
        difference = shift.difference_cents if shift.difference_cents is not None else "-"
        click.echo(f"{shift.id:<5} {shift.status:<8} {opened:<20} {closed:<20} {str(to_deliver):<12} {difference}")
    click.echo("")


@click.group('credit')
def credit_group():
    """Credit ledger maintenance commands."""


@credit_group.command('check-balances')
@with_appcontext
def check_balances_cli():
    """Compare current_used_cents with a fold of each customer's ledger."""
    mismatches = credit_service.find_balance_mismatches()
    if not mismatches:
        click.echo("PASS All customer balances match their ledgers")
        return

    for m in mismatches:
        click.echo(
            f"FAIL Customer {m['customer_id']} ({m['name']}): "
            f"stored={m['current_used_cents']} ledger={m['ledger_balance_cents']}"
        )
    raise SystemExit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(products_group)
    app.cli.add_command(shifts_group)
    app.cli.add_command(credit_group)
