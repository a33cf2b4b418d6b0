# Overview: Flask CLI command groups for bootstrap and ledger repair.

# backend/brandledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py.
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init --brand "Toko Utama" --username owner --password "Password123"
#   Idempotent: creates roles, the brand and an owner user when missing.
#
# Ledger repair (all accept --brand-id N to limit the scope):
# - python -m flask ledger recalc-status
#   Recompute paid_amount / payment_status of every document from its payments.
# - python -m flask ledger rebuild-stock-flags
#   Rebuild stock_applied_at / stock_reversed_at from the stock mutation log.
# - python -m flask ledger check-stock
#   Report tracked products whose qty disagrees with their mutation log.

import re

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import BrandProfile, User
from .services import payment_status_service, stock_service
from .services.auth_service import (
    ROLE_OWNER,
    PasswordValidationError,
    assign_role,
    create_default_roles,
    create_user,
)


def slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.strip().lower()).strip("-")
    return slug or "brand"


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@click.option('--brand', 'brand_name', default='Default Brand', help='Brand name')
@click.option('--username', default='owner', help='Owner username')
@click.option('--password', prompt=True, hide_input=True, help='Owner password')
@with_appcontext
def init_system(brand_name, username, password):
    """Bootstrap roles, one brand and its owner. Safe to re-run."""
    click.echo("START Initializing brandledger...")

    create_default_roles()
    click.echo("PASS Roles ready")

    brand = db.session.query(BrandProfile).filter_by(name=brand_name).first()
    if not brand:
        brand = BrandProfile(name=brand_name, slug=slugify(brand_name), is_active=True)
        db.session.add(brand)
        db.session.commit()
        click.echo(f"PASS Created brand: {brand.name} (ID: {brand.id})")
    else:
        click.echo(f"PASS Using existing brand: {brand.name} (ID: {brand.id})")

    user = db.session.query(User).filter_by(username=username).first()
    if user:
        click.echo(f"WARN  User '{username}' already exists, skipping...")
    else:
        try:
            user = create_user(username, password, default_brand_profile_id=brand.id)
        except PasswordValidationError as e:
            raise click.ClickException(f"Password validation failed: {e}")
        click.echo(f"PASS Created user: {username}")
    assign_role(user.id, ROLE_OWNER)

    click.echo("DONE brandledger initialized")


@click.group('ledger')
def ledger_group():
    """Derived-state repair and consistency checks."""


@ledger_group.command('recalc-status')
@click.option('--brand-id', type=int, default=None, help='Limit to one brand')
@with_appcontext
def recalc_status(brand_id):
    changed = payment_status_service.recalc_all(brand_id)
    click.echo(f"PASS Payment status recalculated, {changed} document(s) updated")


@ledger_group.command('rebuild-stock-flags')
@click.option('--brand-id', type=int, default=None, help='Limit to one brand')
@with_appcontext
def rebuild_stock_flags(brand_id):
    changed = stock_service.rebuild_stock_flags(brand_id)
    click.echo(f"PASS Stock flags rebuilt, {changed} document(s) updated")


@ledger_group.command('check-stock')
@click.option('--brand-id', type=int, default=None, help='Limit to one brand')
@with_appcontext
def check_stock(brand_id):
    """Informational: opening balances show up as differences too."""
    mismatches = stock_service.check_stock(brand_id)
    if not mismatches:
        click.echo("PASS All tracked products match their mutation log")
        return

    click.echo(f"WARN  {len(mismatches)} product(s) differ from their mutation log")
    click.echo(f"{'ID':<6} {'Brand':<6} {'Name':<30} {'Qty':>8} {'Log':>8}")
    for row in mismatches:
        click.echo(
            f"{row['productId']:<6} {row['brandProfileId']:<6} {row['name'][:30]:<30} "
            f"{row['qty']:>8} {row['mutationSum']:>8}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(ledger_group)
