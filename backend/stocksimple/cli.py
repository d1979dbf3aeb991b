# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/stocksimple/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (use `flask db upgrade` for migrated deployments).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list
#   List all users with role and active status.
# - python -m flask users create --email admin@stocksimple.local --name Admin --password "secret1" --role admin
#   Create a user (prompts if options are omitted).
# - python -m flask users set-role admin@stocksimple.local admin
#   Change a user's role.
#
# Products / stock ledger:
# - python -m flask products low-stock
#   Print the low-stock alert list.
# - python -m flask products check-stock [--sku A1]
#   Replay movement history and compare with stored stock counters (exit 1 on drift).
# - python -m flask products record-movement --sku A1 --type in --quantity 5 --reason "Recount"
#   Record an unattributed movement from the command line.
#
# Maintenance:
# - python -m flask maintenance cleanup-tokens --retention-days 30
#   Delete refresh tokens expired or revoked longer ago than the retention window.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Product, User
from .services import auth_service, ledger_service, products_service, token_service
from .validation import ConflictError, NotFoundError, ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created.")


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
@click.option('--email', prompt=True)
@click.option('--name', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--role', default='user', show_default=True)
@with_appcontext
def create_user_cli(email, name, password, role):
    """Create a user."""
    try:
        user = auth_service.register_user(email=email, password=password, name=name)
        if role != user.role:
            auth_service.set_role(user, role)
    except (ValidationError, ConflictError) as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Created user: {user.email} (ID: {user.id}) with role '{user.role}'")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Email':<35} {'Name':<25} {'Role':<10} {'Active'}")
    click.echo("="*90)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.email:<35} {(user.name or ''):<25} {user.role:<10} {active_str}")

    click.echo("="*90 + "\n")


@users_group.command('set-role')
@click.argument('email')
@click.argument('role')
@with_appcontext
def set_role_cli(email, role):
    """Change a user's role."""
    user = db.session.query(User).filter_by(email=email.strip().lower()).first()
    if not user:
        raise click.ClickException(f"User {email} not found")
    try:
        auth_service.set_role(user, role)
    except ValidationError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS {user.email} now has role '{user.role}'")


@click.group('products')
def products_group():
    """Catalog and stock ledger commands."""


@products_group.command('low-stock')
@with_appcontext
def low_stock_cli():
    """Print products at or below their reorder point."""
    alerts = ledger_service.get_alerts()
    if not alerts:
        click.echo("No low-stock products.")
        return

    click.echo(f"{'SKU':<20} {'Name':<30} {'Stock':>7} {'Reorder':>8}  Status")
    for p in alerts:
        click.echo(f"{p.sku:<20} {p.name[:30]:<30} {p.current_stock:>7} {p.reorder_point:>8}  {p.stock_status}")


@products_group.command('check-stock')
@click.option('--sku', default=None, help='Check a single product')
@with_appcontext
@click.pass_context
def check_stock_cli(ctx, sku):
    """
    Replay each product's movement history and compare it with the stored
    current_stock. Exits with status 1 if any counter has drifted.
    """
    query = db.session.query(Product.id).order_by(Product.id.asc())
    if sku:
        query = query.filter(Product.sku == sku)
    product_ids = [row.id for row in query.all()]

    if not product_ids:
        raise click.ClickException("No matching products.")

    drifted = 0
    for product_id in product_ids:
        result = ledger_service.recompute_stock(product_id)
        sku_str = result["product"]["sku"]
        if result["consistent"]:
            click.echo(f"PASS {sku_str}: {result['stored']} ({result['movements']} movements)")
        else:
            drifted += 1
            click.echo(
                f"FAIL {sku_str}: stored={result['stored']} replayed={result['replayed']} "
                f"({result['movements']} movements)"
            )

    click.echo(f"\nChecked {len(product_ids)} products, {drifted} drifted.")
    if drifted:
        ctx.exit(1)


@products_group.command('record-movement')
@click.option('--sku', required=True)
@click.option('--type', 'movement_type', type=click.Choice(['in', 'out']), required=True)
@click.option('--quantity', type=int, required=True)
@click.option('--reason', default='', show_default=False)
@with_appcontext
def record_movement_cli(sku, movement_type, quantity, reason):
    """Record a movement without a user attribution (recounts, imports)."""
    try:
        product = products_service.get_product_by_sku(sku)
        movement, new_stock = ledger_service.record_movement(
            product_id=product.id,
            quantity=quantity,
            movement_type=movement_type,
            reason=reason,
        )
    except (ValidationError, NotFoundError) as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Movement {movement.id}: {sku} {movement_type} {quantity} -> stock {new_stock}")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-tokens')
@click.option('--retention-days', type=int, default=30, show_default=True)
@with_appcontext
def cleanup_tokens_cli(retention_days):
    """
    Cleanup refresh tokens that expired or were revoked before the retention window.
    """
    deleted = token_service.cleanup_expired_tokens(retention_days=retention_days)
    click.echo(f"Deleted {deleted} refresh tokens older than {retention_days} days.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(products_group)
    app.cli.add_command(maintenance_group)
