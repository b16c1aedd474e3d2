# Overview: Flask CLI command groups for bootstrap, accounts and promo codes.

# backend/supplytrack/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Business accounts:
# - python -m flask users create --email owner@example.com --tier essential --password "Password123!"
#   Create a business account (optionally with a per-user QR limit override).
# - python -m flask users token --email owner@example.com
#   Print a bearer token for the account.
# - python -m flask users set-tier --email owner@example.com --tier scale
#   Change subscription tier; the QR limit resets to the tier default.
#
# Promo codes:
# - python -m flask promos create --code LAUNCH50 --bonus 50 --max-uses 100 --expires 2027-01-01T00:00:00Z
# - python -m flask promos list
# - python -m flask promos deactivate --code LAUNCH50

from datetime import timedelta

import bcrypt
import click
from flask.cli import with_appcontext

from .errors import ServiceError
from .extensions import db
from .models import PromoCode, User
from .services import token_service, usage_service
from .time_utils import parse_iso_datetime, to_utc_z, utcnow
from .validation import normalize_email, normalize_promo_code


def _hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def _user_by_email(email: str) -> User:
    user = db.session.query(User).filter_by(email=normalize_email(email)).first()
    if not user:
        raise click.ClickException(f"No user with email {email}")
    return user


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database schema created")


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
    click.echo("PASS Database reset complete")


@click.group('users')
def users_group():
    """Business account commands."""


@users_group.command('create')
@click.option('--email', prompt=True, help='Account email')
@click.option('--tier', default='free', show_default=True,
              type=click.Choice(sorted(usage_service.TIER_LIMITS)), help='Subscription tier')
@click.option('--password', default=None, help='Login password (bcrypt hashed)')
@click.option('--limit', 'qr_limit', type=int, default=None, help='Per-user QR limit override')
@click.option('--name', default=None, help='Display name')
@click.option('--company', default=None, help='Company name')
@with_appcontext
def create_user_cmd(email, tier, password, qr_limit, name, company):
    """Create a business account."""
    try:
        email = normalize_email(email)
    except ServiceError as e:
        raise click.ClickException(e.message)

    if db.session.query(User).filter_by(email=email).first():
        raise click.ClickException(f"User {email} already exists")

    user = User(
        email=email,
        password_hash=_hash_password(password) if password else None,
        name=name,
        company_name=company,
        subscription_tier=tier,
        qr_codes_limit=qr_limit,
        billing_cycle_start=utcnow(),
    )
    db.session.add(user)
    db.session.commit()
    click.echo(f"PASS Created user {user.email} (ID: {user.id}, Tier: {tier}, "
               f"Limit: {usage_service.effective_limit(user)})")


@users_group.command('token')
@click.option('--email', required=True, help='Account email')
@click.option('--hours', type=int, default=None, help='Token lifetime (defaults to JWT_EXPIRES_HOURS)')
@with_appcontext
def user_token_cmd(email, hours):
    """Print a bearer token for an account."""
    user = _user_by_email(email)
    expires_in = timedelta(hours=hours) if hours else None
    click.echo(token_service.issue_token(user, expires_in=expires_in))


@users_group.command('set-tier')
@click.option('--email', required=True, help='Account email')
@click.option('--tier', required=True, type=click.Choice(sorted(usage_service.TIER_LIMITS)))
@with_appcontext
def set_tier_cmd(email, tier):
    """Change subscription tier; the QR limit resets to the tier default."""
    user = _user_by_email(email)
    user = usage_service.set_tier(user.id, tier)
    click.echo(f"PASS {user.email} is now on {tier} (Limit: {usage_service.effective_limit(user)})")


@click.group('promos')
def promos_group():
    """Promo code commands."""


@promos_group.command('create')
@click.option('--code', required=True, help='Promo code (stored upper-case)')
@click.option('--bonus', type=click.IntRange(min=1), required=True, help='Extra QR codes granted')
@click.option('--max-uses', type=click.IntRange(min=1), default=None, help='Total redemptions allowed')
@click.option('--expires', default=None, help='Expiry as ISO-8601 (UTC if no offset)')
@with_appcontext
def create_promo_cmd(code, bonus, max_uses, expires):
    """Create a promo code."""
    try:
        code = normalize_promo_code(code)
        expires_at = parse_iso_datetime(expires)
    except ServiceError as e:
        raise click.ClickException(e.message)
    except ValueError:
        raise click.ClickException(f"Invalid --expires value: {expires}")

    if db.session.query(PromoCode).filter_by(code=code).first():
        raise click.ClickException(f"Promo code {code} already exists")

    promo = PromoCode(code=code, qr_bonus=bonus, max_uses=max_uses, expires_at=expires_at)
    db.session.add(promo)
    db.session.commit()
    click.echo(f"PASS Created promo {promo.code} (+{bonus} QR codes)")


@promos_group.command('list')
@with_appcontext
def list_promos_cmd():
    """List promo codes."""
    promos = db.session.query(PromoCode).order_by(PromoCode.created_at.desc()).all()
    if not promos:
        click.echo("No promo codes")
        return

    click.echo(f"{'CODE':<20} {'BONUS':>6} {'USED':>6} {'MAX':>6} {'ACTIVE':<7} EXPIRES")
    for promo in promos:
        max_uses = promo.max_uses if promo.max_uses is not None else "-"
        click.echo(
            f"{promo.code:<20} {promo.qr_bonus:>6} {promo.times_used:>6} {max_uses:>6} "
            f"{'yes' if promo.is_active else 'no':<7} {to_utc_z(promo.expires_at) or '-'}"
        )


@promos_group.command('deactivate')
@click.option('--code', required=True, help='Promo code')
@with_appcontext
def deactivate_promo_cmd(code):
    """Stop a promo code from being redeemed."""
    code = code.strip().upper()
    promo = db.session.query(PromoCode).filter_by(code=code).first()
    if not promo:
        raise click.ClickException(f"No promo code {code}")
    promo.is_active = False
    db.session.commit()
    click.echo(f"PASS Deactivated promo {promo.code}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(promos_group)
