# Overview: Flask CLI command groups for bootstrap, account setup, and maintenance.

# pethub/cli.py
# Commands Legend:
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables that do not exist yet (use `flask db upgrade` for migrations).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Businesses (tenants):
# - python -m flask business create --name "Happy Paws" --email hello@paws.test --phone 555-0100 --plan basic
# - python -m flask business list
#
# Accounts:
# - python -m flask accounts create-owner --business-id 1 --email owner@paws.test --name "Ana"
# - python -m flask accounts create-customer --customer-id 7 [--email tutor@mail.test]
#
# Tokens:
# - python -m flask tokens issue --account-id 1 [--ttl-hours 24]
#   Prints a bearer token once; only its hash is stored.
# - python -m flask tokens revoke <token>
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions --older-than-days 30
# - python -m flask maintenance cleanup-security-events --retention-days 90

import click
from flask.cli import with_appcontext

from .errors import PetHubError
from .extensions import db
from .models import Business, Plan
from .services import account_service, session_service
from .services.security_service import cleanup_security_events


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables from the model metadata."""
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


@click.group('business')
def business_group():
    """Business (tenant) management."""


@business_group.command('create')
@click.option('--name', required=True, help='Business name')
@click.option('--email', required=True, help='Contact email')
@click.option('--phone', required=True, help='Contact phone')
@click.option('--address', default='', help='Street address')
@click.option('--plan', type=click.Choice(Plan.values()), default=Plan.FREE.value, show_default=True)
@with_appcontext
def create_business_cli(name, email, phone, address, plan):
    """Create a new business."""
    try:
        business = account_service.create_business(
            name=name, email=email, phone=phone, address=address, plan=plan,
        )
    except PetHubError as e:
        click.echo(f"FAIL {e.message}")
        raise SystemExit(1)

    click.echo(f"PASS Created business: {business.name} (ID: {business.id}, Plan: {business.plan})")


@business_group.command('list')
@with_appcontext
def list_businesses():
    """List all businesses."""
    businesses = db.session.query(Business).order_by(Business.id).all()

    if not businesses:
        click.echo("No businesses found.")
        return

    click.echo(f"\n{'ID':<5} {'Name':<30} {'Plan':<14} {'Appts/month':<12} {'Active':<8}")
    click.echo("-" * 72)
    for b in businesses:
        active = "Yes" if b.is_active else "No"
        click.echo(f"{b.id:<5} {b.name:<30} {b.plan:<14} {b.monthly_appointments or 0:<12} {active:<8}")


@click.group('accounts')
def accounts_group():
    """Owner and customer portal accounts."""


@accounts_group.command('create-owner')
@click.option('--business-id', type=int, required=True)
@click.option('--email', required=True)
@click.option('--name', required=True)
@with_appcontext
def create_owner(business_id, email, name):
    """Create an owner account for a business."""
    if db.session.get(Business, business_id) is None:
        click.echo(f"FAIL Business {business_id} not found")
        raise SystemExit(1)

    try:
        account = account_service.create_owner_account(business_id=business_id, email=email, name=name)
    except PetHubError as e:
        click.echo(f"FAIL {e.message}")
        raise SystemExit(1)

    click.echo(f"PASS Created owner account {account.email} (ID: {account.id})")


@accounts_group.command('create-customer')
@click.option('--customer-id', type=int, required=True)
@click.option('--email', default=None, help='Defaults to the customer email')
@with_appcontext
def create_customer_account(customer_id, email):
    """Create a portal account linked to an existing customer."""
    try:
        account = account_service.create_customer_account(customer_id=customer_id, email=email)
    except PetHubError as e:
        click.echo(f"FAIL {e.message}")
        raise SystemExit(1)

    click.echo(f"PASS Created customer account {account.email} (ID: {account.id}, Customer: {customer_id})")


@click.group('tokens')
def tokens_group():
    """Bearer token management."""


@tokens_group.command('issue')
@click.option('--account-id', type=int, required=True)
@click.option('--ttl-hours', type=int, default=None, help='Defaults to SESSION_TTL_HOURS')
@with_appcontext
def issue_token_cli(account_id, ttl_hours):
    """Issue a bearer token. The plaintext is shown only once."""
    try:
        session, token = session_service.issue_token(account_id, ttl_hours=ttl_hours)
    except PetHubError as e:
        click.echo(f"FAIL {e.message}")
        raise SystemExit(1)

    click.echo(f"PASS Token for account {account_id} (expires {session.expires_at.isoformat()}):")
    click.echo(token)


@tokens_group.command('revoke')
@click.argument('token')
@with_appcontext
def revoke_token_cli(token):
    if session_service.revoke_token(token):
        click.echo("PASS Token revoked")
    else:
        click.echo("FAIL Token not found")
        raise SystemExit(1)


@click.group('maintenance')
def maintenance_group():
    """Maintenance and retention commands."""


@maintenance_group.command('cleanup-sessions')
@click.option('--older-than-days', type=int, default=30, show_default=True)
@with_appcontext
def cleanup_sessions_cli(older_than_days):
    """Delete expired or revoked sessions older than the window."""
    deleted = session_service.cleanup_expired_sessions(older_than_days=older_than_days)
    click.echo(f"Deleted {deleted} sessions older than {older_than_days} days.")


@maintenance_group.command('cleanup-security-events')
@click.option('--retention-days', type=int, default=90, show_default=True)
@with_appcontext
def cleanup_security_events_cli(retention_days):
    """
    Cleanup old security events.

    Default retention: 90 days.
    """
    deleted = cleanup_security_events(retention_days=retention_days)
    click.echo(f"Deleted {deleted} security events older than {retention_days} days.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(business_group)
    app.cli.add_command(accounts_group)
    app.cli.add_command(tokens_group)
    app.cli.add_command(maintenance_group)
