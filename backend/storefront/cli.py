# Overview: Flask CLI command groups for bootstrap and maintenance.

# backend/storefront/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--username admin --password secret]
#   Create all tables (if missing) and an admin back-office user.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users create --username caja --password secret
# - python -m flask users list
#
# Game store:
# - python -m flask games seed games.json
#   Insert or update games from a JSON array of
#   {product_id, title, image, description, price_cents}.

import json

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .services.auth_service import create_user, RegistrationError
from .services.game_service import upsert_games
from .validation import ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--username', default='admin', help='Admin username')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Admin password')
@with_appcontext
def init_system(username, password):
    """Create missing tables and the first admin user (idempotent)."""
    click.echo("START Initializing storefront...")
    db.create_all()
    click.echo("PASS Tables ready")

    if db.session.query(User).filter_by(username=username).first():
        click.echo(f"PASS User {username} already exists")
        return

    user = create_user(username, password)
    click.echo(f"PASS Created user: {user.username} (ID: {user.id})")


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


@click.group('users')
def users_group():
    """Back-office user commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@with_appcontext
def create_user_cli(username, password):
    try:
        user = create_user(username, password)
    except (RegistrationError, ValidationError) as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Created user: {user.username}")
    click.echo("SECURITY Password securely hashed with bcrypt")


@users_group.command('list')
@with_appcontext
def list_users():
    users = db.session.query(User).order_by(User.id.asc()).all()
    if not users:
        click.echo("No users found")
        return
    for user in users:
        status = "active" if user.is_active else "inactive"
        click.echo(f"{user.id:>4}  {user.username:<24} {status}")


@click.group('games')
def games_group():
    """Game-store catalog commands."""


@games_group.command('seed')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@with_appcontext
def seed_games(path):
    with open(path, encoding="utf-8") as fh:
        rows = json.load(fh)
    if not isinstance(rows, list):
        click.echo("FAIL Expected a JSON array of games")
        return
    try:
        created, updated = upsert_games(rows)
    except ValidationError as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Games seeded: {created} created, {updated} updated")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(games_group)
