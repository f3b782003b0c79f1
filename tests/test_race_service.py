from datetime import timedelta

import pytest
from sqlalchemy import text

from app import db
from app.errors import InvalidResults, NotFound, RaceNotCompleted
from app.models import Prediction, Race, SprintPrediction, SprintRace, User
from app.services import prediction_service, race_service
from app.services.scheduler_service import SchedulerService
from app.utils.scoring import Completed, Scheduled

from .conftest import RACE_START, SEASON

ACTUAL = {
    "first_place": "verstappen",
    "second_place": "leclerc",
    "third_place": "norris",
    "fastest_lap": "hamilton",
    "driver_of_the_day": "russell",
}


def test_record_results_completes_and_scores(drivers, make_user, make_race, guess, before_start):
    user = make_user()
    race = make_race()
    prediction_service.submit_prediction(user.id, race.id, guess(), now=before_start)
    assert race.result_state == Scheduled()

    scored = race_service.record_race_results(race.id, ACTUAL)

    race = db.session.get(Race, race.id)
    assert scored == 1
    assert race.completed is True
    assert race.result_state == Completed(ACTUAL)
    assert Prediction.query.one().score == 7


def test_partial_results_are_rejected(drivers, make_user, make_race, guess, before_start):
    user = make_user()
    race = make_race()
    prediction_service.submit_prediction(user.id, race.id, guess(), now=before_start)

    with pytest.raises(InvalidResults):
        race_service.record_race_results(race.id, dict(ACTUAL, driver_of_the_day=None))

    race = db.session.get(Race, race.id)
    assert race.completed is False
    assert race.first_place_driver_id is None
    assert Prediction.query.one().score is None


def test_results_with_unknown_driver_are_rejected(drivers, make_race):
    race = make_race()

    with pytest.raises(InvalidResults):
        race_service.record_race_results(race.id, dict(ACTUAL, fastest_lap="senna"))

    assert db.session.get(Race, race.id).completed is False


def test_results_with_repeated_podium_driver_are_rejected(drivers, make_race):
    race = make_race()

    with pytest.raises(InvalidResults):
        race_service.record_race_results(race.id, dict(ACTUAL, third_place="verstappen"))


def test_result_correction_rescores_without_accumulating(
    drivers, make_user, make_race, guess, before_start
):
    user = make_user()
    race = make_race()
    prediction_service.submit_prediction(user.id, race.id, guess(), now=before_start)
    race_service.record_race_results(race.id, ACTUAL)

    # Stewards swap 2nd and 3rd after the race
    race_service.record_race_results(
        race.id, dict(ACTUAL, second_place="norris", third_place="leclerc")
    )

    assert Prediction.query.one().score == 11
    assert db.session.get(Race, race.id).completed is True


def test_completed_flag_never_reverts(drivers, make_race):
    race = make_race()
    race_service.record_race_results(race.id, ACTUAL)

    race = db.session.get(Race, race.id)
    with pytest.raises(ValueError):
        race.completed = False


def test_race_cannot_complete_without_results(drivers, make_race):
    race = make_race()
    race.first_place_driver_id = "verstappen"

    with pytest.raises(ValueError):
        race.completed = True

    assert race.completed is False


def test_completed_race_without_results_is_never_scored(
    drivers, make_user, make_race, guess, before_start
):
    user = make_user()
    race = make_race()
    prediction_service.submit_prediction(user.id, race.id, guess(), now=before_start)

    # Bypasses the model validator, as a bad manual DB edit would
    db.session.execute(
        text("UPDATE races SET completed = :done WHERE id = :id"),
        {"done": True, "id": race.id},
    )
    db.session.commit()
    db.session.expire_all()

    with pytest.raises(RaceNotCompleted):
        prediction_service.score_race(race.id)

    assert Prediction.query.one().score is None
    assert race_service.get_races_to_score() == []


def test_unknown_race_results(drivers):
    with pytest.raises(NotFound):
        race_service.record_race_results("1999-1", ACTUAL)


def test_delete_user_removes_predictions(
    drivers, make_user, make_race, make_sprint_race, guess, before_start
):
    alice = make_user("Alice")
    bob = make_user("Bob")
    race = make_race()
    sprint_race = make_sprint_race()
    prediction_service.submit_prediction(alice.id, race.id, guess(), now=before_start)
    prediction_service.submit_prediction(bob.id, race.id, guess(), now=before_start)
    prediction_service.submit_sprint_prediction(
        alice.id, sprint_race.id,
        {"first_place": "verstappen", "second_place": "norris", "third_place": "leclerc"},
        now=before_start,
    )
    alice_id = alice.id

    removed = race_service.delete_user(alice_id)

    assert removed == 2
    assert db.session.get(User, alice_id) is None
    assert Prediction.query.filter_by(user_id=alice_id).count() == 0
    assert SprintPrediction.query.count() == 0
    assert Prediction.query.filter_by(user_id=bob.id).count() == 1


def test_delete_race_removes_predictions(drivers, make_user, make_race, guess, before_start):
    user = make_user()
    first = make_race(1)
    second = make_race(2, starts_at=RACE_START + timedelta(days=14))
    prediction_service.submit_prediction(user.id, first.id, guess(), now=before_start)
    prediction_service.submit_prediction(user.id, second.id, guess(), now=before_start)
    first_id = first.id

    assert race_service.delete_race(first_id) == 1

    assert db.session.get(Race, first_id) is None
    assert [p.race_id for p in Prediction.query.all()] == [second.id]
    assert db.session.get(User, user.id) is not None


def test_delete_sprint_race_removes_its_predictions(
    drivers, make_user, make_race, make_sprint_race, guess, before_start
):
    user = make_user()
    race = make_race()
    sprint_race = make_sprint_race()
    prediction_service.submit_prediction(user.id, race.id, guess(), now=before_start)
    prediction_service.submit_sprint_prediction(
        user.id, sprint_race.id,
        {"first_place": "verstappen", "second_place": "norris", "third_place": "leclerc"},
        now=before_start,
    )
    sprint_race_id = sprint_race.id

    assert race_service.delete_sprint_race(sprint_race_id) == 1

    assert db.session.get(SprintRace, sprint_race_id) is None
    assert SprintPrediction.query.count() == 0
    assert Prediction.query.one().race_id == race.id

    with pytest.raises(NotFound):
        race_service.delete_sprint_race(sprint_race_id)


def test_delete_unknown_user(app):
    with pytest.raises(NotFound):
        race_service.delete_user(9999)


def test_schedule_queries(make_race):
    first = make_race(1)
    second = make_race(2, starts_at=RACE_START + timedelta(days=14))
    make_race(1, season=SEASON - 1, starts_at=RACE_START - timedelta(days=365))

    assert [r.id for r in race_service.get_races_for_season(SEASON)] == [first.id, second.id]
    assert [r.id for r in race_service.get_upcoming_races(RACE_START - timedelta(days=1))] == [
        first.id,
        second.id,
    ]
    assert race_service.get_next_race(RACE_START + timedelta(hours=2)).id == second.id
    assert race_service.get_next_race(RACE_START + timedelta(days=30)) is None


def test_scoring_sweep_scores_pending_races(
    app, drivers, make_user, make_race, guess, before_start
):
    user = make_user()
    race = make_race()
    prediction_service.submit_prediction(user.id, race.id, guess(), now=before_start)

    # Completed outside record_race_results, so nothing was scored yet
    for category, column in (
        ("first_place", "first_place_driver_id"),
        ("second_place", "second_place_driver_id"),
        ("third_place", "third_place_driver_id"),
        ("fastest_lap", "fastest_lap_driver_id"),
        ("driver_of_the_day", "driver_of_the_day_id"),
    ):
        setattr(race, column, ACTUAL[category])
    race.completed = True
    db.session.commit()

    assert [r.id for r in race_service.get_races_to_score()] == [race.id]
    db.session.commit()

    sweeper = SchedulerService()
    sweeper.app = app
    assert sweeper.score_pending_races() == 1

    db.session.expire_all()
    assert Prediction.query.one().score == 7
    assert race_service.get_races_to_score() == []
    assert sweeper.get_status()["stats"]["predictions_scored"] == 1
    assert sweeper.get_status()["is_running"] is False
