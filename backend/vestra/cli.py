# Overview: Flask CLI command groups for bootstrap and inspection.

# backend/vestra/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--org "Loja Demo"] [--slug demo]
#   Idempotent bootstrap: creates an organization, its headquarters store and an owner.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Organization management (MULTI-TENANT):
# - python -m flask orgs list
# - python -m flask orgs create --name "Acme Moda" --slug acme
#
# Stores:
# - python -m flask stores create --org-id 1 --name "Filial Centro" [--timezone America/Manaus]
#
# Users:
# - python -m flask users list [--org-id 1]
# - python -m flask users create --org-id 1 --name "Ana" --email ana@loja.com --password "Senha123!" --role manager
#
# Demo data:
# - python -m flask seed demo --org-id 1
#   Products (simple and with variants) with stock in every store of the org.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Organization, Store, User
from .models.auth import ROLES
from .validation import DomainError
from .services.auth_service import create_user, PasswordValidationError
from .services.store_service import create_organization, create_store
from .services.products_service import create_product
from .services.inventory_service import upsert_add
from .services.tenant_service import get_org_stores


DEFAULT_OWNER_EMAIL = "owner@vestra.local"
DEFAULT_PASSWORD = "Password123!"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--org', 'org_name', default='Vestra Demo', help='Organization name')
@click.option('--slug', default='demo', help='Organization slug (unique)')
@with_appcontext
def init_system(org_name, slug):
    """
    Initialize a usable system: organization, headquarters store, owner.

    Creates (when missing):
    - Organization with the given slug
    - Headquarters store "Matriz"
    - Owner owner@vestra.local / "Password123!"

    SECURITY: Change the password immediately in production!
    """
    click.echo("START Initializing Vestra...")

    org = db.session.query(Organization).filter_by(slug=slug).first()
    if not org:
        org = create_organization(org_name, slug)
        click.echo(f"PASS Created organization: {org.name} (ID: {org.id}, slug: {org.slug})")
    else:
        click.echo(f"PASS Using existing organization: {org.name} (ID: {org.id})")

    hq = get_org_stores(org.id)[0]
    click.echo(f"PASS Headquarters store: {hq.name} (ID: {hq.id})")

    owner = db.session.query(User).filter_by(org_id=org.id, email=DEFAULT_OWNER_EMAIL).first()
    if not owner:
        owner = create_user("Owner", DEFAULT_OWNER_EMAIL, DEFAULT_PASSWORD, org.id, role="owner", store_id=hq.id)
        click.echo(f"PASS Created owner: {owner.email}")
    else:
        click.echo(f"PASS Using existing owner: {owner.email}")

    click.echo("\nDONE Login with:")
    click.echo(f"  email: {DEFAULT_OWNER_EMAIL}  password: {DEFAULT_PASSWORD}  org_slug: {org.slug}")


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


# =============================================================================
# ORGANIZATIONS AND STORES
# =============================================================================

@click.group('orgs')
def orgs_group():
    """Organization (tenant) management commands."""


@orgs_group.command('list')
@with_appcontext
def list_orgs():
    """List all organizations."""
    orgs = db.session.query(Organization).order_by(Organization.id.asc()).all()

    if not orgs:
        click.echo("No organizations found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Name':<30} {'Slug':<15} {'Active':<8} {'Stores':<8} {'Users'}")
    click.echo("="*80)

    for org in orgs:
        store_count = db.session.query(Store).filter_by(org_id=org.id).count()
        user_count = db.session.query(User).filter_by(org_id=org.id).count()
        active_str = "Yes" if org.is_active else "No"

        click.echo(f"{org.id:<5} {org.name:<30} {org.slug:<15} {active_str:<8} {store_count:<8} {user_count}")

    click.echo("="*80 + "\n")


@orgs_group.command('create')
@click.option('--name', required=True, help='Organization name')
@click.option('--slug', required=True, help='Slug (unique)')
@click.option('--document', default=None, help='CNPJ')
@with_appcontext
def create_org_cli(name, slug, document):
    """Create a new organization (tenant) with its headquarters store."""
    try:
        org = create_organization(name, slug, document=document)
    except DomainError as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Created organization: {org.name} (ID: {org.id}, slug: {org.slug})")


@click.group('stores')
def stores_group():
    """Store management commands."""


@stores_group.command('create')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@click.option('--name', required=True, help='Store name')
@click.option('--address', default=None, help='Street address')
@click.option('--timezone', default=None, help='IANA timezone (defaults to DEFAULT_STORE_TIMEZONE)')
@with_appcontext
def create_store_cli(org_id, name, address, timezone):
    """Add a store to an organization."""
    org = db.session.query(Organization).filter_by(id=org_id).first()
    if not org:
        click.echo(f"FAIL Organization ID {org_id} not found")
        return

    try:
        store = create_store(org_id, name, address=address, timezone=timezone)
    except DomainError as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Created store: {store.name} (ID: {store.id}) in org '{org.name}'")


# =============================================================================
# USER MANAGEMENT COMMANDS
# =============================================================================

@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(ROLES)), prompt=True, help='Role')
@click.option('--store-id', type=int, default=None, help='Default store (defaults to headquarters)')
@with_appcontext
def create_user_cli(org_id, name, email, password, role, store_id):
    """
    Create a new user.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    org = db.session.query(Organization).filter_by(id=org_id).first()
    if not org:
        click.echo(f"FAIL Organization ID {org_id} not found")
        return

    stores = get_org_stores(org.id)
    if store_id is None:
        store_id = stores[0].id if stores else None
    elif store_id not in {s.id for s in stores}:
        click.echo(f"FAIL Store ID {store_id} is not in organization '{org.name}'")
        return

    try:
        user = create_user(name, email, password, org.id, role=role, store_id=store_id)
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
        return
    except ValueError as e:
        click.echo(f"FAIL Failed to create user: {str(e)}")
        return

    click.echo(f"PASS Created user: {user.email} with role '{role}'")
    click.echo(f"     Organization: {org.name} (ID: {org.id})")


@users_group.command('list')
@click.option('--org-id', type=int, default=None, help='Filter by organization')
@with_appcontext
def list_users(org_id):
    """List users with role and active status."""
    query = db.session.query(User).order_by(User.org_id.asc(), User.id.asc())
    if org_id is not None:
        query = query.filter_by(org_id=org_id)
    users = query.all()

    if not users:
        click.echo("No users found.")
        return

    click.echo(f"{'ID':<5} {'Org':<5} {'Email':<35} {'Role':<10} {'Active'}")
    for user in users:
        click.echo(f"{user.id:<5} {user.org_id:<5} {user.email:<35} {user.role:<10} {'Yes' if user.is_active else 'No'}")


# =============================================================================
# DEMO DATA
# =============================================================================

@click.group('seed')
def seed_group():
    """Demo data commands."""


@seed_group.command('demo')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@click.option('--units', type=int, default=10, help='Units per store and stock row')
@with_appcontext
def seed_demo(org_id, units):
    """Create a simple product and a product with variants, stocked in every store."""
    stores = get_org_stores(org_id)
    if not stores:
        click.echo(f"FAIL Organization ID {org_id} has no stores")
        return

    basic = create_product(org_id, "Camiseta Básica", 4990, sku="CAM-001")
    jeans = create_product(
        org_id, "Calça Jeans", 12990, sku="CAL-001",
        variants=[("Azul", "38"), ("Azul", "40"), ("Preto", "40")],
    )

    for store in stores:
        upsert_add(store.id, basic.id, None, units)
        for variant in jeans.variants:
            upsert_add(store.id, jeans.id, variant.id, units)
    db.session.commit()

    click.echo(f"PASS Seeded 2 products with {units} unit(s) per row in {len(stores)} store(s)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(orgs_group)  # Multi-tenant organization management
    app.cli.add_command(stores_group)
    app.cli.add_command(users_group)
    app.cli.add_command(seed_group)
