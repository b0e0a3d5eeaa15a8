# Overview: Flask CLI command groups for bootstrap, user administration and ledger checks.

# backend/shopledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Create all tables (idempotent). Use "flask db upgrade" for migrated deployments.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list
#   List all users with role and active status.
# - python -m flask users create --username admin --email admin@shop.local --password "Password123!" --role ADMIN
#   Create a user (prompts if options are omitted).
#
# Ledger:
# - python -m flask ledger verify [--product-id 1]
#   Replay stock movements and compare with current stock. Exits 1 on mismatch.

import sys

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .permissions import Role
from .services.auth_service import PasswordValidationError, create_user
from .services.ledger_service import verify_all_ledgers, verify_product_ledger
from .errors import ShopError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """Create any missing tables."""
    db.create_all()
    click.echo("PASS Schema ready. Create a first user with 'python -m flask users create'.")


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

    click.echo("PASS Database reset complete.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice([r.value for r in Role], case_sensitive=False),
              default=Role.SALES.value, show_default=True, help='Role')
@click.option('--first-name', default=None, help='First name')
@click.option('--last-name', default=None, help='Last name')
@with_appcontext
def create_user_cli(username, email, password, role, first_name, last_name):
    """
    Create a new user.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        user = create_user(
            username=username,
            email=email,
            password=password,
            role=role.upper(),
            first_name=first_name,
            last_name=last_name,
        )
        click.echo(f"PASS Created user: {user.username} ({user.email}) with role '{user.role}'")
        click.echo("SECURITY Password securely hashed with bcrypt")
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {e.message}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
        sys.exit(1)
    except ShopError as e:
        click.echo(f"FAIL Failed to create user: {e.message}")
        sys.exit(1)


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Username':<20} {'Email':<30} {'Active':<8} {'Role'}")
    click.echo("="*90)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {user.email:<30} {active_str:<8} {user.role}")

    click.echo("="*90 + "\n")


@click.group('ledger')
def ledger_group():
    """Stock ledger checks."""


@ledger_group.command('verify')
@click.option('--product-id', type=int, default=None, help='Check a single product')
@with_appcontext
def verify_ledger(product_id):
    """Replay movements for every product (or one) and report drift."""
    if product_id is not None:
        try:
            results = [verify_product_ledger(product_id)]
        except ShopError as e:
            click.echo(f"FAIL {e.message}")
            sys.exit(1)
        mismatches = [r for r in results if not r["ok"]]
        checked = 1
    else:
        summary = verify_all_ledgers()
        mismatches = summary["mismatches"]
        checked = summary["checked"]

    for row in mismatches:
        click.echo(
            f"FAIL product {row['product_id']} ({row['product_name']}): "
            f"current={row['current_stock']} expected={row['expected_stock']} chain_ok={row['chain_ok']}"
        )

    if mismatches:
        click.echo(f"FAIL {len(mismatches)} of {checked} products out of balance")
        sys.exit(1)

    click.echo(f"PASS {checked} products balanced")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(ledger_group)
