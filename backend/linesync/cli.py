# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/linesync/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--admin-password "..."]
#   Idempotent bootstrap: creates tables, the admin user and the cash account.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Line staff:
# - python -m flask users create --username jdoe --password "..." --lines L10,B5 [--all-lines] [--closer] [--admin]
#   Create a line staff account (prompts if options are omitted).
# - python -m flask users list
#   List line staff with their line access.
#
# Cash account:
# - python -m flask cash-account check
#   Report whether the cash placeholder account exists.
# - python -m flask cash-account create [--cloud-id 999999999] [--family-id 999999999]
#   Create the cash placeholder account (and its family) if missing.
#
# Station sessions:
# - python -m flask sessions list [--status active] [--limit 20]
#   List recent station sessions.
# - python -m flask sessions sweep
#   Abandon sessions idle past SESSION_IDLE_TIMEOUT_MINUTES so their lines can close.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import User, Family, Student, StationSession
from .services.auth_service import create_user
from .services.cash_service import find_cash_account
from .services import session_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


def ensure_cash_account(cloud_id: int | None = None, family_id: int | None = None) -> tuple[Student, bool]:
    """Return (cash_account, created)."""
    account = find_cash_account()
    if account:
        return account, False

    lcs_id = current_app.config["CASH_ACCOUNT_LCS_ID"]
    cloud_id = cloud_id or lcs_id
    family_id = family_id or lcs_id

    family = db.session.query(Family).filter_by(fam_perm_id=family_id).first()
    if not family:
        family = Family(fam_perm_id=family_id, first_name="Cash", last_name="Sales")
        db.session.add(family)

    account = Student(
        cloud_id=cloud_id,
        lcs_id=lcs_id,
        fam_perm_id=family_id,
        first_name="Cash",
        last_name="Student",
    )
    db.session.add(account)
    db.session.commit()
    return account, True


@system_group.command('init')
@click.option('--admin-username', default='admin', show_default=True, help='Admin username')
@click.option('--admin-password', default='Password123!', show_default=True, help='Admin password')
@with_appcontext
def init_system(admin_username, admin_password):
    """
    Initialize the sync server: tables, admin user and cash account.

    SECURITY: Change the admin password immediately in production!
    """
    click.echo("START Initializing linesync...")

    db.create_all()
    click.echo("PASS Tables ready")

    user = db.session.query(User).filter_by(username=admin_username).first()
    if not user:
        user = create_user(
            username=admin_username,
            password=admin_password,
            line_access_all=True,
            line_closer=True,
            is_admin=True,
        )
        click.echo(f"PASS Created admin user: {user.username} (ID: {user.id})")
    else:
        click.echo(f"PASS Using existing admin user: {user.username} (ID: {user.id})")

    account, created = ensure_cash_account()
    verb = "Created" if created else "Using existing"
    click.echo(f"PASS {verb} cash account: cloud_id={account.cloud_id} lcs_id={account.lcs_id}")

    click.echo("\nDONE linesync initialized.")


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
    """Line staff management commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--lines', default='', help='Comma separated line codes, e.g. L10,B5')
@click.option('--all-lines', is_flag=True, help='Grant access to every line')
@click.option('--closer', is_flag=True, help='Allow closing lines')
@click.option('--admin', is_flag=True, help='Administrator')
@click.option('--first-name', default=None)
@click.option('--last-name', default=None)
@with_appcontext
def create_user_cli(username, password, lines, all_lines, closer, admin, first_name, last_name):
    """Create a line staff account."""
    try:
        user = create_user(
            username=username,
            password=password,
            line_access=[code for code in lines.split(",") if code.strip()],
            line_access_all=all_lines,
            line_closer=closer,
            is_admin=admin,
            first_name=first_name,
            last_name=last_name,
        )
    except ValueError as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Created user {user.username} (ID: {user.id})")


@users_group.command('list')
@with_appcontext
def list_users():
    """List line staff with their line access."""
    users = db.session.query(User).order_by(User.username).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Username':<20} {'Active':<8} {'Closer':<8} {'Admin':<7} {'Lines'}")
    click.echo("="*90)

    for user in users:
        lines_str = "ALL" if user.line_access_all else (", ".join(user.line_access or []) or "none")
        active_str = "Yes" if user.is_active else "No"
        closer_str = "Yes" if user.line_closer else "No"
        admin_str = "Yes" if user.is_admin else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {active_str:<8} {closer_str:<8} {admin_str:<7} {lines_str}")

    click.echo("="*90 + "\n")


@click.group('cash-account')
def cash_account_group():
    """Cash placeholder account commands."""


@cash_account_group.command('check')
@with_appcontext
def check_cash_account():
    """Report whether the cash placeholder account exists."""
    lcs_id = current_app.config["CASH_ACCOUNT_LCS_ID"]
    account = find_cash_account()
    if not account:
        raise click.ClickException(f"No cash account (student with lcs_id={lcs_id}). Cash sales will be rejected.")
    click.echo(f"PASS Cash account present: cloud_id={account.cloud_id} lcs_id={account.lcs_id}")


@cash_account_group.command('create')
@click.option('--cloud-id', type=int, default=None, help='Cloud id (defaults to CASH_ACCOUNT_LCS_ID)')
@click.option('--family-id', type=int, default=None, help='Family id (defaults to CASH_ACCOUNT_LCS_ID)')
@with_appcontext
def create_cash_account(cloud_id, family_id):
    """Create the cash placeholder account if missing."""
    account, created = ensure_cash_account(cloud_id=cloud_id, family_id=family_id)
    if created:
        click.echo(f"PASS Created cash account: cloud_id={account.cloud_id} lcs_id={account.lcs_id}")
    else:
        click.echo(f"PASS Cash account already exists: cloud_id={account.cloud_id}")


@click.group('sessions')
def sessions_group():
    """Station session inspection and maintenance."""


@sessions_group.command('list')
@click.option('--status', type=click.Choice(['active', 'syncing', 'synced', 'abandoned']), default=None)
@click.option('--limit', type=int, default=20, show_default=True)
@with_appcontext
def list_sessions(status, limit):
    """List recent station sessions."""
    query = db.session.query(StationSession).order_by(StationSession.id.desc())
    if status:
        query = query.filter(StationSession.sync_status == status)
    sessions = query.limit(limit).all()

    if not sessions:
        click.echo("No sessions found.")
        return

    click.echo(f"{'ID':<6} {'Station':<8} {'User':<6} {'LineLog':<8} {'Status':<10} {'Last activity'}")
    for s in sessions:
        click.echo(
            f"{s.id:<6} {s.station_id:<8} {s.user_id:<6} {str(s.line_log_id or '-'):<8} "
            f"{s.sync_status:<10} {s.last_activity_at}"
        )


@sessions_group.command('sweep')
@with_appcontext
def sweep_sessions():
    """Abandon station sessions idle past the timeout."""
    count = session_service.sweep_idle_sessions()
    click.echo(f"PASS Abandoned {count} idle session(s)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(cash_account_group)
    app.cli.add_command(sessions_group)
