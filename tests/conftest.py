from datetime import datetime, timezone

import pytest

from app import create_app, db
from app.models import Constructor, Driver, Race, SprintRace, User

SEASON = 2026
RACE_START = datetime(2026, 3, 8, 4, 0, tzinfo=timezone.utc)

DRIVERS = {
    "verstappen": ("Max", "Verstappen", "VER", "red_bull"),
    "norris": ("Lando", "Norris", "NOR", "mclaren"),
    "piastri": ("Oscar", "Piastri", "PIA", "mclaren"),
    "leclerc": ("Charles", "Leclerc", "LEC", "ferrari"),
    "hamilton": ("Lewis", "Hamilton", "HAM", "ferrari"),
    "russell": ("George", "Russell", "RUS", "mercedes"),
}

CONSTRUCTORS = {
    "red_bull": "Red Bull",
    "mclaren": "McLaren",
    "ferrari": "Ferrari",
    "mercedes": "Mercedes",
}


@pytest.fixture(scope="session")
def app():
    app = create_app("testing")
    with app.app_context():
        yield app


@pytest.fixture(autouse=True)
def clean_db(app):
    yield
    db.session.rollback()
    for table in reversed(db.metadata.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()
    db.session.remove()


@pytest.fixture
def drivers(app):
    for constructor_id, name in CONSTRUCTORS.items():
        db.session.add(Constructor(id=constructor_id, name=name))
    for driver_id, (given, family, code, constructor_id) in DRIVERS.items():
        db.session.add(
            Driver(
                id=driver_id,
                given_name=given,
                family_name=family,
                code=code,
                constructor_id=constructor_id,
            )
        )
    db.session.commit()
    return list(DRIVERS)


@pytest.fixture
def make_user(app):
    def _make_user(name="Alice", external_id=None):
        user = User(
            external_id=external_id or f"ext-{name.lower()}",
            name=name,
            email=f"{name.lower()}@example.com",
        )
        db.session.add(user)
        db.session.commit()
        return user

    return _make_user


@pytest.fixture
def make_race(app):
    def _make_race(round_number=1, starts_at=RACE_START, season=SEASON, name=None):
        race = Race(
            id=Race.make_id(season, round_number),
            season=season,
            round=round_number,
            race_name=name or f"Round {round_number} Grand Prix",
            date=starts_at.date(),
            time=starts_at.time(),
        )
        db.session.add(race)
        db.session.commit()
        return race

    return _make_race


@pytest.fixture
def make_sprint_race(app):
    def _make_sprint_race(round_number=1, starts_at=RACE_START, season=SEASON):
        sprint_race = SprintRace(
            id=SprintRace.make_id(season, round_number),
            season=season,
            round=round_number,
            race_name=f"Round {round_number} Sprint",
            date=starts_at.date(),
            time=starts_at.time(),
        )
        db.session.add(sprint_race)
        db.session.commit()
        return sprint_race

    return _make_sprint_race


@pytest.fixture
def guess():
    """Build a full race guess, overriding single categories by keyword"""

    def _guess(**overrides):
        values = {
            "first_place": "verstappen",
            "second_place": "norris",
            "third_place": "leclerc",
            "fastest_lap": "hamilton",
            "driver_of_the_day": "russell",
        }
        values.update(overrides)
        return values

    return _guess


@pytest.fixture
def before_start():
    """Moment well inside the prediction window"""
    return datetime(2026, 3, 7, 12, 0, tzinfo=timezone.utc)
