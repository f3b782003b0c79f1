#!/usr/bin/env python3
"""
F1 Podium Predictor Management CLI

Command-line management for races, results, drivers, users and standings.
Result ingestion from external providers is not part of this tool; results
are entered by hand with `race results` / `sprint results`.
"""

import logging

import click
from flask.cli import with_appcontext
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app import create_app, db
from app.errors import InvalidResults, NotFound, RaceNotCompleted
from app.models import Constructor, Driver, Race, SprintRace, User
from app.services import prediction_service, race_service
from app.utils.season_utils import get_current_season, season_or_current
from app.utils.stats import stats_overview
from app.utils.timezone_utils import format_race_time


@click.group()
def cli():
    """F1 Podium Predictor Management CLI"""
    pass


# Race Management Commands
@cli.group()
def race():
    """Race management commands"""
    pass


@race.command("create")
@click.argument("season", type=int)
@click.argument("round_number", type=int)
@click.argument("name")
@click.option(
    "--date",
    "race_date",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    required=True,
    help="Race date (YYYY-MM-DD)",
)
@click.option(
    "--time",
    "race_time",
    type=click.DateTime(formats=["%H:%M"]),
    help="Race start in UTC (HH:MM)",
)
@click.option("--circuit", help="Circuit name")
@click.option("--country", help="Country")
@click.option("--sprint-weekend", is_flag=True, help="Weekend includes a sprint race")
@with_appcontext
def create_race(season, round_number, name, race_date, race_time, circuit, country, sprint_weekend):
    """Create a Grand Prix"""
    race_id = Race.make_id(season, round_number)
    if db.session.get(Race, race_id):
        click.echo(f"Race {race_id} already exists!")
        return

    try:
        new_race = Race(
            id=race_id,
            season=season,
            round=round_number,
            race_name=name,
            circuit_name=circuit,
            country=country,
            date=race_date.date(),
            is_sprint_weekend=sprint_weekend,
        )
        if race_time:
            new_race.time = race_time.time()

        db.session.add(new_race)
        db.session.commit()
        click.echo(f"✅ Created race {race_id}: {name} ({format_race_time(new_race.starts_at)})")

    except IntegrityError as e:
        db.session.rollback()
        click.echo(f"❌ Round {round_number} of {season} already exists!")
        logging.error(f"Race creation failed - integrity error: {e}")
    except SQLAlchemyError as e:
        db.session.rollback()
        click.echo(f"❌ Database error creating race: {str(e)}")
        logging.error(f"Race creation failed - SQL error: {e}")


@race.command("results")
@click.argument("race_id")
@click.option("--first", required=True, help="Winner driver id")
@click.option("--second", required=True, help="Second place driver id")
@click.option("--third", required=True, help="Third place driver id")
@click.option("--fastest-lap", required=True, help="Fastest lap driver id")
@click.option("--dotd", required=True, help="Driver of the day id")
@with_appcontext
def race_results(race_id, first, second, third, fastest_lap, dotd):
    """Record results for a race and score its predictions"""
    results = {
        "first_place": first,
        "second_place": second,
        "third_place": third,
        "fastest_lap": fastest_lap,
        "driver_of_the_day": dotd,
    }
    try:
        scored = race_service.record_race_results(race_id, results)
        click.echo(f"✅ Results recorded for {race_id}, scored {scored} predictions")
    except (NotFound, InvalidResults) as e:
        click.echo(f"❌ {e.message}")
    except SQLAlchemyError as e:
        click.echo(f"❌ Database error recording results: {str(e)}")


@race.command("score")
@click.argument("race_id")
@with_appcontext
def score(race_id):
    """Re-score all predictions for a completed race"""
    try:
        scored = prediction_service.score_race(race_id)
        click.echo(f"✅ Scored {scored} predictions for {race_id}")
    except NotFound as e:
        click.echo(f"❌ {e.message}")
    except RaceNotCompleted:
        click.echo(f"❌ Race {race_id} has no final results yet")
    except SQLAlchemyError as e:
        click.echo(f"❌ Database error scoring race: {str(e)}")


@race.command("delete")
@click.argument("race_id")
@click.option("--yes", is_flag=True, help="Skip confirmation")
@with_appcontext
def delete_race(race_id, yes):
    """Delete a race and every prediction made for it"""
    if not yes and not click.confirm(f"Delete {race_id} and all of its predictions?"):
        click.echo("Cancelled.")
        return

    try:
        removed = race_service.delete_race(race_id)
        click.echo(f"✅ Deleted {race_id} and {removed} predictions")
    except NotFound as e:
        click.echo(f"❌ {e.message}")


@race.command("list")
@click.option("--season", type=int, help="Season year (default: current season)")
@click.option("--sprints", is_flag=True, help="List sprint races instead")
@with_appcontext
def list_races(season, sprints):
    """List races of a season"""
    season = season_or_current(season)
    if sprints:
        races = race_service.get_sprint_races_for_season(season)
        label = "Sprint races"
    else:
        races = race_service.get_races_for_season(season)
        label = "Races"

    if not races:
        click.echo(f"No {label.lower()} found for {season}.")
        return

    click.echo(f"{label} {season}:")
    for r in races:
        status = "✅" if r.completed else "⏳"
        click.echo(f"  {status} {r.id:<14} {r.race_name} - {format_race_time(r.starts_at)}")


# Sprint Race Commands
@cli.group()
def sprint():
    """Sprint race commands"""
    pass


@sprint.command("create")
@click.argument("season", type=int)
@click.argument("round_number", type=int)
@click.argument("name")
@click.option(
    "--date",
    "race_date",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    required=True,
    help="Sprint date (YYYY-MM-DD)",
)
@click.option(
    "--time",
    "race_time",
    type=click.DateTime(formats=["%H:%M"]),
    help="Sprint start in UTC (HH:MM)",
)
@with_appcontext
def create_sprint(season, round_number, name, race_date, race_time):
    """Create a sprint race"""
    sprint_id = SprintRace.make_id(season, round_number)
    if db.session.get(SprintRace, sprint_id):
        click.echo(f"Sprint race {sprint_id} already exists!")
        return

    try:
        sprint_race = SprintRace(
            id=sprint_id,
            season=season,
            round=round_number,
            race_name=name,
            date=race_date.date(),
        )
        if race_time:
            sprint_race.time = race_time.time()

        db.session.add(sprint_race)
        db.session.commit()
        click.echo(f"✅ Created sprint race {sprint_id}: {name}")

    except SQLAlchemyError as e:
        db.session.rollback()
        click.echo(f"❌ Database error creating sprint race: {str(e)}")
        logging.error(f"Sprint creation failed - SQL error: {e}")


@sprint.command("results")
@click.argument("sprint_race_id")
@click.option("--first", required=True, help="Winner driver id")
@click.option("--second", required=True, help="Second place driver id")
@click.option("--third", required=True, help="Third place driver id")
@with_appcontext
def sprint_results(sprint_race_id, first, second, third):
    """Record results for a sprint race and score its predictions"""
    results = {"first_place": first, "second_place": second, "third_place": third}
    try:
        scored = race_service.record_sprint_results(sprint_race_id, results)
        click.echo(f"✅ Results recorded for {sprint_race_id}, scored {scored} predictions")
    except (NotFound, InvalidResults) as e:
        click.echo(f"❌ {e.message}")
    except SQLAlchemyError as e:
        click.echo(f"❌ Database error recording results: {str(e)}")


@sprint.command("delete")
@click.argument("sprint_race_id")
@click.option("--yes", is_flag=True, help="Skip confirmation")
@with_appcontext
def delete_sprint(sprint_race_id, yes):
    """Delete a sprint race and every prediction made for it"""
    if not yes and not click.confirm(
        f"Delete {sprint_race_id} and all of its predictions?"
    ):
        click.echo("Cancelled.")
        return

    try:
        removed = race_service.delete_sprint_race(sprint_race_id)
        click.echo(f"✅ Deleted {sprint_race_id} and {removed} predictions")
    except NotFound as e:
        click.echo(f"❌ {e.message}")


# Driver Commands
@cli.group()
def driver():
    """Driver and constructor commands"""
    pass


@driver.command("add")
@click.argument("driver_id")
@click.argument("given_name")
@click.argument("family_name")
@click.option("--code", help="Three letter code, e.g. VER")
@click.option("--number", help="Permanent car number")
@click.option("--nationality", help="Nationality")
@click.option("--constructor", "constructor_id", help="Constructor id, e.g. red_bull")
@with_appcontext
def add_driver(driver_id, given_name, family_name, code, number, nationality, constructor_id):
    """Add a driver"""
    if db.session.get(Driver, driver_id):
        click.echo(f"Driver {driver_id} already exists!")
        return

    if constructor_id and not db.session.get(Constructor, constructor_id):
        click.echo(f"❌ Constructor {constructor_id} not found! Add it first.")
        return

    try:
        db.session.add(
            Driver(
                id=driver_id,
                given_name=given_name,
                family_name=family_name,
                code=code.upper() if code else None,
                permanent_number=number,
                nationality=nationality,
                constructor_id=constructor_id,
            )
        )
        db.session.commit()
        click.echo(f"✅ Added driver {given_name} {family_name} ({driver_id})")

    except SQLAlchemyError as e:
        db.session.rollback()
        click.echo(f"❌ Database error adding driver: {str(e)}")
        logging.error(f"Driver creation failed - SQL error: {e}")


@driver.command("add-constructor")
@click.argument("constructor_id")
@click.argument("name")
@click.option("--nationality", help="Nationality")
@with_appcontext
def add_constructor(constructor_id, name, nationality):
    """Add a constructor"""
    if db.session.get(Constructor, constructor_id):
        click.echo(f"Constructor {constructor_id} already exists!")
        return

    try:
        db.session.add(Constructor(id=constructor_id, name=name, nationality=nationality))
        db.session.commit()
        click.echo(f"✅ Added constructor {name} ({constructor_id})")

    except SQLAlchemyError as e:
        db.session.rollback()
        click.echo(f"❌ Database error adding constructor: {str(e)}")


@driver.command("list")
@with_appcontext
def list_drivers():
    """List all drivers"""
    drivers = Driver.query.order_by(Driver.family_name).all()

    if not drivers:
        click.echo("No drivers found.")
        return

    click.echo("Drivers:")
    for d in drivers:
        team = d.constructor.name if d.constructor else "-"
        click.echo(f"  {d.code or '---'} {d.full_name} ({d.id}) - {team}")


# User Management Commands
@cli.group()
def user():
    """User management commands"""
    pass


@user.command("create")
@click.argument("external_id")
@click.argument("name")
@click.option("--email", help="Email address")
@click.option("--admin", is_flag=True, help="Grant admin rights")
@with_appcontext
def create_user(external_id, name, email, admin):
    """Create a user"""
    if User.get_by_external_id(external_id):
        click.echo(f"❌ User with external id '{external_id}' already exists!")
        return

    try:
        new_user = User(
            external_id=external_id,
            email=email or User.fallback_email(external_id),
            is_admin=admin,
        )
        new_user.set_name(name)

        db.session.add(new_user)
        db.session.commit()
        click.echo(f"✅ Created user {new_user.id} '{new_user.name}'")

    except IntegrityError as e:
        db.session.rollback()
        click.echo(f"❌ User with external id '{external_id}' already exists!")
        logging.error(f"User creation failed - integrity error: {e}")
    except SQLAlchemyError as e:
        db.session.rollback()
        click.echo(f"❌ Database error creating user: {str(e)}")


@user.command("delete")
@click.argument("user_id", type=int)
@click.option("--yes", is_flag=True, help="Skip confirmation")
@with_appcontext
def delete_user(user_id, yes):
    """Delete a user and all of their predictions"""
    if not yes and not click.confirm(f"Delete user {user_id} and all predictions?"):
        click.echo("Cancelled.")
        return

    try:
        removed = race_service.delete_user(user_id)
        click.echo(f"✅ Deleted user {user_id} and {removed} predictions")
    except NotFound as e:
        click.echo(f"❌ {e.message}")


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
        admin = "⭐" if u.is_admin else "  "
        click.echo(f"  {admin} {u.id:>4} {u.name} ({u.email})")


# Database Commands
@cli.group(name="db")
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


# Info Commands
@cli.command()
@click.option("--season", type=int, help="Season year (default: current season)")
@click.option("--include-sprints", is_flag=True, help="Add sprint race points")
@with_appcontext
def leaderboard(season, include_sprints):
    """Show the season leaderboard"""
    season = season_or_current(season)
    entries = prediction_service.get_season_leaderboard(
        season, include_sprints=include_sprints
    )

    click.echo(f"🏁 Leaderboard {season}")
    click.echo("=" * 40)

    if not entries:
        click.echo("No scored predictions yet.")
        return

    users = {u.id: u for u in User.query.filter(User.id.in_([e.user_id for e in entries]))}
    for entry in entries:
        if entry.trend is None or entry.trend == 0:
            trend = "  "
        elif entry.trend > 0:
            trend = f"▲{entry.trend}"
        else:
            trend = f"▼{-entry.trend}"
        name = users[entry.user_id].name if entry.user_id in users else entry.user_id
        click.echo(f"{entry.rank:>3}. {name:<24} {entry.total_score:>4} pts {trend}")


@cli.command()
@with_appcontext
def status():
    """Show application status"""
    click.echo("🏎️  F1 Podium Predictor Status")
    click.echo("=" * 40)

    # Database connection
    try:
        db.session.execute(text("SELECT 1"))
        click.echo("✅ Database: Connected")
    except SQLAlchemyError as e:
        click.echo(f"❌ Database: Error - {str(e)}")
        return

    overview = stats_overview()
    click.echo(f"📅 Season: {get_current_season()}")
    click.echo(f"👥 Users: {overview['users']}")
    click.echo(f"🏁 Races: {overview['completed_races']}/{overview['races']} completed")
    click.echo(
        f"🔮 Predictions: {overview['scored_predictions']}/{overview['predictions']} scored"
        f" (average {overview['average_score']} pts)"
    )
    favourite = overview["most_predicted_podium_driver"]
    if favourite:
        click.echo(
            f"🏆 Most predicted podium driver: {favourite['driver_name']}"
            f" ({favourite['predictions']} picks)"
        )

    next_race = race_service.get_next_race()
    if next_race:
        click.echo(f"⏭️  Next race: {next_race.race_name} ({format_race_time(next_race.starts_at)})")
    else:
        click.echo("⚠️  Next race: None scheduled")

    pending = race_service.get_races_to_score()
    if pending:
        click.echo(f"⚠️  Races waiting for scoring: {', '.join(r.id for r in pending)}")


if __name__ == "__main__":
    app = create_app()
    with app.app_context():
        cli()
