#!/usr/bin/env python3
"""
Pick'em Management CLI

Command-line management for the Pick'em service: database setup, ESPN and
odds sync, admin users, score recalculation and calendar checks.
"""

import click
from flask.cli import with_appcontext
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from pickem import create_app, db
from pickem.models import Game, Pick, Pool, User
from pickem.utils.data_sync import DataSync
from pickem.utils.nfl_calendar import (
    check_and_advance_week,
    get_current_season,
    get_current_week,
    get_next_week_preview,
)
from pickem.utils.odds_sync import OddsSync
from pickem.utils.scoring import recalculate_all_scores

app = create_app()


def _report(success, message):
    if success:
        click.echo(f"✅ {message}")
    else:
        click.echo(f"❌ {message}")


@click.group()
def cli():
    """Pick'em Management CLI"""
    pass


# Data Sync Commands
@cli.group()
def sync():
    """ESPN and betting odds synchronization commands"""
    pass


@sync.command()
@with_appcontext
def teams():
    """Sync all teams"""
    click.echo("Syncing teams...")
    _report(*DataSync().sync_teams())


@sync.command()
@click.option("--week", type=int, help="Week number (defaults to current)")
@click.option("--season", type=int, help="Season year (defaults to current)")
@with_appcontext
def games(week, season):
    """Sync games for a week"""
    week = week or get_current_week()
    season = season or get_current_season()

    click.echo(f"Syncing games for Week {week}, {season}...")
    _report(*DataSync().sync_week_games(week, season))


@sync.command()
@click.option("--week", type=int, help="Week number (defaults to current)")
@click.option("--season", type=int, help="Season year (defaults to current)")
@with_appcontext
def scores(week, season):
    """Update scores and settle picks for finished games"""
    click.echo("Updating scores...")
    success, message, _ = DataSync().update_game_scores(week, season)
    _report(success, message)


@sync.command()
@click.option("--week", type=int, help="Week number (defaults to current)")
@click.option("--season", type=int, help="Season year (defaults to current)")
@with_appcontext
def odds(week, season):
    """Refresh betting lines for upcoming games"""
    click.echo("Updating odds...")
    success, message, _ = OddsSync().update_week_odds(week, season)
    _report(success, message)


@sync.command()
@with_appcontext
def current():
    """Sync teams, games and scores for the current week"""
    click.echo("Running current week sync...")
    _report(*DataSync().sync_current_week())


# User Management Commands
@cli.group()
def user():
    """User management commands"""
    pass


@user.command()
@click.argument("username")
@click.argument("email")
@click.argument("password")
@click.option("--name", help="Display name")
@with_appcontext
def create_admin(username, email, password, name=None):
    """Create an admin user"""
    existing = User.query.filter(
        (User.username == username) | (User.email == email.lower())
    ).first()

    if existing:
        click.echo(
            f"❌ User with username '{username}' or email '{email}' already exists!"
        )
        return

    user = User(
        username=username,
        email=email.lower(),
        name=name,
        is_active=True,
        is_admin=True,
    )
    user.set_password(password)

    try:
        db.session.add(user)
        db.session.commit()
        click.echo(f"✅ Created admin user '{username}' ({email})")
    except IntegrityError as e:
        db.session.rollback()
        click.echo(f"❌ Error creating user: {str(e)}")


@user.command()
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
        role = "👑" if u.is_admin else "  "
        click.echo(f"  {status} {role} {u.username} ({u.email}) - {u.display_name}")


# Scoring Commands
@cli.group()
def scoring():
    """Scoring commands"""
    pass


@scoring.command()
@click.option("--season", type=int, help="Season year (defaults to current)")
@with_appcontext
def recalculate(season):
    """Re-settle picks for every final game of a season"""
    season = season or get_current_season()
    try:
        result = recalculate_all_scores(season)
        click.echo(
            f"✅ Recalculated {result['picks']} picks across {result['games']} games ({season})"
        )
    except SQLAlchemyError as e:
        db.session.rollback()
        click.echo(f"❌ Error recalculating scores: {str(e)}")


# Calendar Commands
@cli.group()
def calendar():
    """NFL calendar commands"""
    pass


@calendar.command()
@with_appcontext
def advance():
    """Load games for the computed week if it is ahead of the configured one"""
    result = check_and_advance_week()
    _report(result["success"], result["message"])


# Database Commands
@cli.group()
def db_cmd():
    """Database commands"""
    pass


@db_cmd.command()
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


# Info Commands
@cli.command()
@with_appcontext
def status():
    """Show application status"""
    click.echo("🏈 Pick'em Application Status")
    click.echo("=" * 40)

    try:
        db.session.execute(text("SELECT 1"))
        click.echo("✅ Database: Connected")
    except SQLAlchemyError as e:
        click.echo(f"❌ Database: Error - {str(e)}")
        return

    week = get_current_week()
    season = get_current_season()
    click.echo(f"📅 Current: Week {week}, {season} season")

    preview = get_next_week_preview(week)
    click.echo(
        f"⏭️  Next: Week {preview['week']} ({preview['games_count']} games, "
        f"starts {preview['starts_at'] or 'TBD'})"
    )

    user_count = User.query.filter_by(is_active=True).count()
    click.echo(f"👥 Active Users: {user_count}")

    pool_count = Pool.query.count()
    click.echo(f"🏆 Pools: {pool_count}")

    game_count = Game.query.filter_by(season=season).count()
    final_count = Game.query.filter_by(season=season, is_final=True).count()
    click.echo(f"🏈 Games: {final_count}/{game_count} completed")

    pick_count = (
        Pick.query.join(Game, Pick.game_id == Game.id)
        .filter(Game.season == season)
        .count()
    )
    click.echo(f"🎯 Picks: {pick_count}")


if __name__ == "__main__":
    with app.app_context():
        cli()
