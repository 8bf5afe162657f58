# Overview: Flask CLI command groups for bootstrap and user management.

# backend/pos_backend/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (development; use `flask db upgrade` for migrations).
# - python -m flask system seed
#   Idempotent: admin + cashier accounts and a few sample products.
#
# Users:
# - python -m flask users list
# - python -m flask users create --name "Ana" --email ana@pos.local --password "Password123!" --role CASHIER

import click
from flask.cli import with_appcontext

from .errors import PosError
from .extensions import db
from .models import Product, User
from .models.auth import ROLE_ADMIN, ROLE_CASHIER, VALID_ROLES
from .services import auth_service, catalog_service


DEFAULT_PASSWORD = "Password123!"

DEFAULT_USERS = [
    ("Administrator", "admin@pos.local", ROLE_ADMIN),
    ("Cashier", "cashier@pos.local", ROLE_CASHIER),
]

SAMPLE_PRODUCTS = [
    ("SKU-001", "Mineral Water 600ml", "3500.00", 120),
    ("SKU-002", "Instant Noodles", "3000.00", 200),
    ("SKU-003", "Coffee Sachet", "1500.00", 8),
    ("SKU-004", "Chocolate Bar", "12500.00", 40),
]


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables for the current models."""
    db.create_all()
    click.echo("PASS Database tables created")


@system_group.command('seed')
@with_appcontext
def seed():
    """
    Create default users and sample products. Safe to re-run.

    SECURITY: Change default passwords immediately in production!
    """
    click.echo("START Seeding POS data...")

    for name, email, role in DEFAULT_USERS:
        if db.session.query(User).filter_by(email=email).first():
            click.echo(f"WARN  User '{email}' already exists, skipping...")
            continue
        try:
            auth_service.create_user(db.session, name, email, DEFAULT_PASSWORD, role=role)
            click.echo(f"PASS Created user: {email} ({role})")
        except PosError as e:
            click.echo(f"FAIL Failed to create user '{email}': {e.message}")

    for sku, name, price, stock in SAMPLE_PRODUCTS:
        if db.session.query(Product).filter_by(sku=sku).first():
            click.echo(f"WARN  Product '{sku}' already exists, skipping...")
            continue
        product = catalog_service.create_product(db.session, name, price, initial_stock=stock, sku=sku)
        click.echo(f"PASS Created product: {product.name} (stock {stock})")

    click.echo("\nDefault Credentials (CHANGE IN PRODUCTION!):")
    for _, email, role in DEFAULT_USERS:
        click.echo(f"   {role:<8} -> {email} / {DEFAULT_PASSWORD}")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('list')
@with_appcontext
def list_users():
    users = db.session.query(User).order_by(User.created_at).all()
    if not users:
        click.echo("No users found.")
        return

    click.echo(f"{'Email':<30} {'Name':<24} {'Role':<8} {'Active'}")
    for user in users:
        click.echo(f"{user.email:<30} {user.name:<24} {user.role:<8} {'Yes' if user.is_active else 'No'}")


@users_group.command('create')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Login email (unique)')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--role', type=click.Choice(VALID_ROLES, case_sensitive=False), default=ROLE_CASHIER)
@with_appcontext
def create_user_cli(name, email, password, role):
    """Create a user account."""
    try:
        user = auth_service.create_user(db.session, name, email, password, role=role)
    except PosError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Created user: {user.email} ({user.role})")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
