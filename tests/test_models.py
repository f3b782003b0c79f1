from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from app import db
from app.models import Driver, Race, User
from app.services import prediction_service
from app.utils.season_utils import get_current_season, season_or_current
from app.utils.timezone_utils import format_race_time, minutes_until

from .conftest import RACE_START, SEASON


def test_race_identity_and_start(make_race):
    race = make_race(3)

    assert race.id == "2026-3"
    assert race.starts_at == RACE_START
    assert race.to_dict()["time"] == "04:00:00"
    assert race.status == "in_progress"


def test_duplicate_round_is_rejected(make_race):
    make_race(1)
    db.session.add(
        Race(id="2026-1b", season=SEASON, round=1, race_name="Copy", date=RACE_START.date())
    )
    with pytest.raises(IntegrityError):
        db.session.commit()
    db.session.rollback()


def test_driver_lookups(drivers):
    assert Driver.get_by_code("ver").id == "verstappen"
    assert Driver.existing_ids(["verstappen", "senna", ""]) == {"verstappen"}
    assert db.session.get(Driver, "norris").to_dict()["constructor_name"] == "McLaren"


def test_user_predictions_for_season(drivers, make_user, make_race, guess, before_start):
    user = make_user()
    second = make_race(2, starts_at=RACE_START + timedelta(days=14))
    first = make_race(1)
    prediction_service.submit_prediction(user.id, second.id, guess(), now=before_start)
    prediction_service.submit_prediction(user.id, first.id, guess(), now=before_start)

    predictions = user.get_predictions_for_season(SEASON)

    assert [p.race_id for p in predictions] == [first.id, second.id]
    assert user.get_predictions_for_season(SEASON + 1) == []
    assert "email" not in user.to_public_dict()


def test_user_name_is_escaped(app):
    user = User(external_id="x", email=User.fallback_email("x"))
    user.set_name("  <b>Max</b> ")
    assert user.name == "&lt;b&gt;Max&lt;/b&gt;"


def test_minutes_until_truncates_toward_zero():
    assert minutes_until(RACE_START, RACE_START - timedelta(minutes=5)) == 5
    assert minutes_until(RACE_START, RACE_START - timedelta(minutes=4, seconds=59)) == 4
    assert minutes_until(RACE_START, RACE_START + timedelta(seconds=30)) == 0
    assert minutes_until(RACE_START, RACE_START.replace(tzinfo=None) - timedelta(hours=1)) == 60


def test_format_race_time_uses_app_timezone(app):
    app.config["TIMEZONE"] = "Europe/Berlin"
    try:
        assert format_race_time(RACE_START, "%H:%M") == "05:00"
    finally:
        app.config["TIMEZONE"] = "UTC"
    assert format_race_time(None) == "TBD"


def test_season_helpers():
    assert get_current_season(datetime(2025, 12, 31, tzinfo=timezone.utc)) == 2025
    assert season_or_current("2024") == 2024
    assert season_or_current(None) == get_current_season()
