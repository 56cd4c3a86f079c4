#!/usr/bin/env python3
"""
Lights Out League Management CLI

This script provides command-line management functionality for the league.
"""

import logging
import os
import secrets
import warnings

import click
from flask.cli import with_appcontext
from flask_migrate import downgrade, migrate, upgrade
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from lightsout import create_app, db
from lightsout.exceptions import LeagueError
from lightsout.models import (
    Constructor,
    Driver,
    EventResult,
    InvitationCode,
    LeaderboardEntry,
    ScoringProfile,
    User,
)
from lightsout.services.league_service import LeagueRecalculator
from lightsout.services.reference_data import load_reference_file
from lightsout.utils.cache_utils import invalidate_leaderboard_cache

app = create_app()


@click.group()
def cli():
    """Lights Out League Management CLI"""
    pass


# Scoring Profile Commands
@cli.group()
def scoring():
    """Scoring profile commands"""
    pass


@scoring.command("create")
@click.argument("name")
@click.option("--id", "profile_id", help="Profile id (default: slug of the name)")
@click.option("--activate", is_flag=True, help="Activate this profile")
@with_appcontext
def create_profile(name, profile_id, activate):
    """Create a scoring profile with the default point table"""
    try:
        profile = ScoringProfile.create_profile(name, profile_id=profile_id)
        db.session.commit()
        click.echo(f"✅ Created scoring profile '{profile.id}'")

        if activate:
            profile.activate()
            click.echo(f"✅ Activated scoring profile '{profile.id}'")

    except LeagueError as e:
        db.session.rollback()
        click.echo(f"❌ {e.message}")
    except SQLAlchemyError as e:
        db.session.rollback()
        click.echo(f"❌ Database error creating profile: {str(e)}")
        logging.error(f"Profile creation failed - SQL error: {e}")


@scoring.command("activate")
@click.argument("profile_id")
@with_appcontext
def activate_profile(profile_id):
    """Activate a scoring profile"""
    try:
        ScoringProfile.get_or_404(profile_id).activate()
        click.echo(f"✅ Activated scoring profile '{profile_id}'")
        click.echo("   Results saved from now on freeze this point table.")

    except LeagueError as e:
        click.echo(f"❌ {e.message}")
    except SQLAlchemyError as e:
        db.session.rollback()
        click.echo(f"❌ Database error activating profile: {str(e)}")
        logging.error(f"Profile activation failed - SQL error: {e}")


@scoring.command("list")
@with_appcontext
def list_profiles():
    """List all scoring profiles"""
    profiles = ScoringProfile.query.order_by(ScoringProfile.created_at).all()

    if not profiles:
        click.echo("No scoring profiles found (default point table in use).")
        return

    click.echo("Scoring profiles:")
    for p in profiles:
        status = "🟢 ACTIVE" if p.is_active else "⚪ Inactive"
        locked = "🔒 referenced" if p.is_referenced else "editable"
        click.echo(f"  {p.id}: {p.name} - {status} ({locked})")


# League Commands
@cli.group()
def league():
    """League recomputation commands"""
    pass


@league.command()
@with_appcontext
def recompute():
    """Rebuild the whole leaderboard from stored rosters and results"""
    click.echo("Recalculating league...")
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        try:
            processed = LeagueRecalculator().recalculate()
        except LeagueError as e:
            click.echo(f"❌ {e.message}")
            return

    for warning in caught:
        click.echo(f"⚠️  {warning.message}")

    if processed == 0:
        click.echo("⚠️  No race results found; leaderboard left unchanged")
    else:
        click.echo(f"✅ Processed {processed} users")


@league.command()
@click.option("--limit", default=20, show_default=True, help="Rows to show")
@with_appcontext
def show(limit):
    """Show the top of the leaderboard"""
    entries = LeaderboardEntry.get_page(page=1, per_page=limit).items

    if not entries:
        click.echo("Leaderboard is empty.")
        return

    click.echo(f"{'Rank':>4}  {'Team':<30} {'Total':>6} {'Race':>5} {'Sprint':>6} {'Quali':>5} {'FL':>3} {'Pen':>4}")
    for e in entries:
        click.echo(
            f"{e.rank:>4}  {e.display_name[:30]:<30} {e.total_points:>6} "
            f"{e.race_points:>5} {e.sprint_points:>6} {e.qualifying_points:>5} "
            f"{e.fastest_lap_points:>3} {-e.penalty_points:>4}"
        )


# Invitation Commands
@cli.group()
def invite():
    """Invitation code commands"""
    pass


@invite.command("create")
@click.option("--count", default=1, show_default=True, help="Codes to generate")
@with_appcontext
def create_invites(count):
    """Generate invitation codes"""
    codes = [InvitationCode.create_code() for _ in range(count)]
    db.session.commit()
    for invitation in codes:
        click.echo(f"  {invitation.code}")
    click.echo(f"✅ Created {len(codes)} invitation code(s)")


# Reference Data Commands
@cli.group()
def reference():
    """Driver and constructor reference data"""
    pass


@reference.command("load")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--deactivate-missing", is_flag=True, help="Mark entries absent from the file inactive"
)
@with_appcontext
def load_reference(path, deactivate_missing):
    """Load drivers and constructors from a JSON file"""
    try:
        constructors, drivers = load_reference_file(
            path, deactivate_missing=deactivate_missing
        )
        click.echo(f"✅ Loaded {constructors} constructors and {drivers} drivers")
    except LeagueError as e:
        click.echo(f"❌ {e.message}")
    except (ValueError, SQLAlchemyError) as e:
        click.echo(f"❌ Error loading reference data: {str(e)}")
        logging.error(f"Reference data load failed: {e}")


@reference.command("list")
@with_appcontext
def list_reference():
    """List constructors with their drivers"""
    constructors = Constructor.query.order_by(Constructor.entity_class, Constructor.name).all()

    if not constructors:
        click.echo("No constructors found. Load reference data first.")
        return

    for c in constructors:
        status = "" if c.is_active else " (inactive)"
        click.echo(f"  [{c.entity_class}] {c.name} ({c.id}){status}")
        for d in c.drivers.order_by(Driver.name):
            click.echo(f"      [{d.entity_class}] {d.name} ({d.id})")


# User Management Commands
@cli.group()
def user():
    """User management commands"""
    pass


@user.command()
@click.argument("username")
@click.argument("email")
@click.argument("password")
@click.option("--display-name", help="Display name")
@with_appcontext
def create_admin(username, email, password, display_name=None):
    """Create an admin user"""
    try:
        existing = User.query.filter(
            (User.username == username) | (User.email == email)
        ).first()

        if existing:
            click.echo(
                f"❌ User with username '{username}' or email '{email}' already exists!"
            )
            return

        User.create_user(
            username,
            email,
            display_name=display_name,
            password=password,
            is_admin=True,
        )
        db.session.commit()
        invalidate_leaderboard_cache()

        click.echo(f"✅ Created admin user '{username}' ({email})")

    except IntegrityError as e:
        db.session.rollback()
        click.echo(f"❌ Error creating user: {str(e)}")


@user.command("list")
@with_appcontext
def list_users():
    """List all users"""
    users = User.query.order_by(User.created_at.desc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("Users:")
    for u in users:
        status = "🟢" if u.is_active else "🔴"
        admin = "👑" if u.is_admin else "  "
        click.echo(f"  {status} {admin} [{u.id}] {u.username} ({u.email}) - {u.full_name}")


@user.command()
@click.argument("user_id", type=int)
@click.option("--yes", is_flag=True, help="Skip confirmation")
@with_appcontext
def purge(user_id, yes):
    """Delete a user with their rosters and leaderboard entry"""
    target = db.session.get(User, user_id)
    if target is None:
        click.echo(f"❌ User {user_id} not found!")
        return

    if not yes and not click.confirm(f"Delete {target.username} and all their picks?"):
        click.echo("Cancelled.")
        return

    username = target.username
    target.purge()
    db.session.commit()
    invalidate_leaderboard_cache()
    click.echo(f"✅ Purged user {username}")


# Database Commands
@cli.group()
def db_cmd():
    """Database commands"""
    pass


@db_cmd.command("init")
@with_appcontext
def init_db():
    """Initialize database tables"""
    try:
        db.create_all()
        click.echo("✅ Database tables created successfully!")
    except SQLAlchemyError as e:
        click.echo(f"❌ Error initializing database: {str(e)}")


@db_cmd.command()
@with_appcontext
def reset():
    """⚠️  DANGER: Drop and recreate all tables"""
    if not click.confirm("This will DELETE ALL DATA. Are you sure?"):
        click.echo("Cancelled.")
        return

    try:
        db.drop_all()
        db.create_all()
        click.echo("✅ Database reset successfully!")
    except SQLAlchemyError as e:
        click.echo(f"❌ Error resetting database: {str(e)}")


# Database Migration Commands
@cli.group()
def db_migrate():
    """Database migration commands"""
    pass


@db_migrate.command()
@with_appcontext
def init_migrations():
    """Initialize migrations repository"""
    if os.path.exists("migrations"):
        click.echo("❌ Migrations directory already exists!")
        return

    from flask_migrate import init as flask_migrate_init

    flask_migrate_init()
    click.echo("✅ Migrations repository initialized!")


@db_migrate.command()
@click.option("-m", "--message", required=True, help="Migration message")
@with_appcontext
def create_migration(message):
    """Create a new migration"""
    migrate(message=message)
    click.echo(f"✅ Migration created: {message}")


@db_migrate.command()
@click.option("--revision", default="head", help="Revision to upgrade to")
@with_appcontext
def apply_migrations(revision):
    """Apply migrations to database"""
    upgrade(revision=revision)
    click.echo(f"✅ Migrations applied to {revision}")


@db_migrate.command()
@click.option("--revision", required=True, help="Revision to downgrade to")
@with_appcontext
def rollback_migration(revision):
    """Rollback migrations to specific revision"""
    downgrade(revision=revision)
    click.echo(f"✅ Rolled back to {revision}")


# Setup Commands
@cli.command()
def generate_secrets():
    """Print fresh SECRET_KEY and WTF_CSRF_SECRET_KEY values for .env"""
    click.echo(f"SECRET_KEY={secrets.token_urlsafe(32)}")
    click.echo(f"WTF_CSRF_SECRET_KEY={secrets.token_urlsafe(32)}")
    click.echo("⚠️  Keep these secrets out of version control!")


# Info Commands
@cli.command()
@with_appcontext
def status():
    """Show application status"""
    click.echo("🏁 Lights Out League Status")
    click.echo("=" * 40)

    # Database connection
    try:
        db.session.execute(text("SELECT 1"))
        click.echo("✅ Database: Connected")
    except SQLAlchemyError as e:
        click.echo(f"❌ Database: Error - {str(e)}")
        return

    profile = ScoringProfile.get_active()
    if profile:
        click.echo(f"✅ Scoring profile: {profile.name} ({profile.id})")
    else:
        click.echo("⚠️  Scoring profile: none active, default point table in use")

    user_count = User.query.filter_by(is_active=True).count()
    click.echo(f"👥 Active Users: {user_count}")

    results = EventResult.query.all()
    legacy = len([r for r in results if not r.has_snapshot])
    click.echo(f"🏎️  Results: {len(results)} ({legacy} without scoring snapshot)")

    latest = LeaderboardEntry.query.order_by(
        LeaderboardEntry.last_updated.desc()
    ).first()
    if latest and latest.last_updated:
        click.echo(f"🏆 Leaderboard last updated: {latest.last_updated:%Y-%m-%d %H:%M}")

    auto = "on" if app.config.get("AUTO_RECOMPUTE_ON_RESULTS") else "off"
    click.echo(f"🔁 Automatic recompute on results: {auto}")


if __name__ == "__main__":
    with app.app_context():
        cli()
