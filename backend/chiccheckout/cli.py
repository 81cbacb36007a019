# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/chiccheckout/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: roles, default admin user, categories, farewell messages.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Inventory:
# - python -m flask inventory low-stock [--limit 50]
#   Print active products at or below their minimum stock level.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Category, FarewellMessage, Role, User
from .services import farewell_service, inventory_service


DEFAULT_ROLES = (
    ("admin", "Administrator", "Full access to the back office"),
    ("manager", "Manager", "Catalog, discounts and reports"),
    ("cashier", "Cashier", "Checkout and customer feedback"),
)

DEFAULT_CATEGORIES = (
    ("Tops", "Shirts, blouses and knitwear"),
    ("Bottoms", "Trousers, skirts and shorts"),
    ("Dresses", "Day and evening dresses"),
    ("Accessories", "Bags, belts and jewelry"),
)

DEFAULT_FAREWELL_MESSAGES = (
    "Thank you for shopping with us!",
    "Have a wonderful day!",
    "We hope to see you again soon!",
)


def create_default_roles() -> list[Role]:
    roles = []
    for name, display_name, description in DEFAULT_ROLES:
        role = db.session.query(Role).filter_by(name=name).first()
        if role is None:
            role = Role(name=name, display_name=display_name, description=description)
            db.session.add(role)
        roles.append(role)
    db.session.commit()
    return roles


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-email', default='admin@chiccheckout.local', help='Email of the default admin user')
@with_appcontext
def init_system(admin_email):
    """
    Initialize the back office: roles, default admin user, categories and
    farewell messages. Safe to run repeatedly.
    """
    click.echo("START Initializing system...")

    db.create_all()

    click.echo("\nLIST Creating roles...")
    roles = create_default_roles()
    click.echo(f"PASS Roles: {', '.join(r.name for r in roles)}")

    admin_role = db.session.query(Role).filter_by(name="admin").one()
    admin = db.session.query(User).filter_by(email=admin_email).first()
    if admin is None:
        admin = User(first_name="System", last_name="Admin", email=admin_email, role_id=admin_role.id)
        db.session.add(admin)
        db.session.commit()
        click.echo(f"PASS Created admin user {admin.email} (ID: {admin.id})")
    else:
        click.echo(f"PASS Using existing admin user {admin.email} (ID: {admin.id})")

    created = 0
    for name, description in DEFAULT_CATEGORIES:
        if db.session.query(Category).filter_by(name=name).first() is None:
            db.session.add(Category(name=name, description=description))
            created += 1
    db.session.commit()
    click.echo(f"PASS Categories created: {created}")

    if db.session.query(FarewellMessage).count() == 0:
        for message in DEFAULT_FAREWELL_MESSAGES:
            farewell_service.create_message(message)
        click.echo(f"PASS Farewell messages created: {len(DEFAULT_FAREWELL_MESSAGES)}")
    else:
        click.echo("PASS Farewell messages already present")

    click.echo("\nDONE System initialized.")
    click.echo(f"Use X-Actor-Id: {admin.id} for write requests as the admin user.")


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

    click.echo("PASS Database reset. Run 'flask system init' to seed defaults.")


@click.group('inventory')
def inventory_group():
    """Inventory inspection commands."""


@inventory_group.command('low-stock')
@click.option('--limit', type=int, default=None, help='Maximum rows to print')
@with_appcontext
def low_stock(limit):
    """List active products at or below their minimum stock level."""
    products = inventory_service.get_low_stock_products(limit=limit)
    if not products:
        click.echo("PASS No products are low on stock.")
        return

    click.echo(f"{'ID':>5}  {'SKU':<16} {'NAME':<32} {'STOCK':>6} {'MIN':>6}")
    for p in products:
        click.echo(f"{p.id:>5}  {p.sku:<16} {p.name[:32]:<32} {p.stock_quantity:>6} {p.min_stock_level:>6}")
    click.echo(f"\nWARN {len(products)} product(s) need restocking.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(inventory_group)
