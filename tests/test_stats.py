from datetime import timedelta

from app.services import prediction_service, race_service
from app.utils.stats import (
    circuit_difficulty,
    constructor_performance,
    driver_performance,
    prediction_accuracy_by_category,
    season_progress,
    stats_overview,
    user_comparison,
)

from .conftest import RACE_START, SEASON

ACTUAL = {
    "first_place": "verstappen",
    "second_place": "leclerc",
    "third_place": "norris",
    "fastest_lap": "hamilton",
    "driver_of_the_day": "russell",
}


def _play_round(make_user, make_race, guess, before_start):
    alice = make_user("Alice")
    bob = make_user("Bob")
    first = make_race(1)
    second = make_race(2, starts_at=RACE_START + timedelta(days=14))

    prediction_service.submit_prediction(alice.id, first.id, guess(), now=before_start)
    prediction_service.submit_prediction(
        bob.id, first.id, guess(second_place="leclerc", third_place="norris"), now=before_start
    )
    prediction_service.submit_prediction(alice.id, second.id, guess(), now=before_start)
    race_service.record_race_results(first.id, ACTUAL)
    return first, second


def test_accuracy_by_category(drivers, make_user, make_race, guess, before_start):
    first, second = _play_round(make_user, make_race, guess, before_start)

    accuracy = prediction_accuracy_by_category(race_service.get_races_for_season(SEASON))

    assert list(accuracy) == [
        "first_place",
        "second_place",
        "third_place",
        "fastest_lap",
        "driver_of_the_day",
    ]
    assert accuracy["first_place"] == {
        "total_predictions": 2,
        "correct_predictions": 2,
        "accuracy": 100.0,
    }
    assert accuracy["second_place"]["correct_predictions"] == 1
    assert accuracy["second_place"]["accuracy"] == 50.0


def test_season_progress_skips_open_races(drivers, make_user, make_race, guess, before_start):
    first, second = _play_round(make_user, make_race, guess, before_start)

    progress = season_progress(race_service.get_races_for_season(SEASON))

    assert len(progress) == 1
    assert progress[0]["race_id"] == first.id
    assert progress[0]["predictions"] == 2
    assert progress[0]["average_score"] == 9.0
    assert progress[0]["best_score"] == 11


def test_stats_overview(drivers, make_user, make_race, guess, before_start):
    _play_round(make_user, make_race, guess, before_start)

    overview = stats_overview()

    assert overview["users"] == 2
    assert overview["races"] == 2
    assert overview["completed_races"] == 1
    assert overview["predictions"] == 3
    assert overview["scored_predictions"] == 2
    assert overview["average_score"] == 9.0
    # Verstappen, Norris and Leclerc are each picked three times
    assert overview["most_predicted_podium_driver"]["driver_id"] == "leclerc"
    assert overview["most_predicted_podium_driver"]["predictions"] == 3


def test_stats_on_empty_database(app):
    assert prediction_accuracy_by_category([]) == {}
    assert season_progress([]) == []
    assert stats_overview()["average_score"] == 0.0
    assert stats_overview()["most_predicted_podium_driver"] is None
    assert driver_performance([]) == []
    assert circuit_difficulty([]) == []
    assert user_comparison([]) == []
    assert constructor_performance([]) == []


def test_stats_overview_counts_every_podium_slot(drivers, make_user, make_race, guess, before_start):
    race = make_race()
    alice = make_user("Alice")
    bob = make_user("Bob")
    prediction_service.submit_prediction(alice.id, race.id, guess(), now=before_start)
    prediction_service.submit_prediction(
        bob.id, race.id, guess(first_place="piastri", third_place="hamilton"), now=before_start
    )

    favourite = stats_overview()["most_predicted_podium_driver"]

    assert favourite == {
        "driver_id": "norris",
        "driver_name": "Lando Norris",
        "driver_code": "NOR",
        "predictions": 2,
    }


def test_driver_performance(drivers, make_user, make_race, guess, before_start):
    _play_round(make_user, make_race, guess, before_start)

    stats = driver_performance(race_service.get_races_for_season(SEASON))

    assert [s["driver_id"] for s in stats] == [
        "leclerc",
        "norris",
        "verstappen",
        "hamilton",
        "piastri",
        "russell",
    ]
    verstappen = stats[2]
    assert verstappen["constructor"] == "Red Bull"
    assert verstappen["podium_finishes"] == 1
    assert verstappen["total_predictions"] == 2
    assert verstappen["correct_predictions"] == 2
    assert verstappen["success_rate"] == 100.0
    # Fastest lap and driver of the day picks are not podium tips
    assert stats[3]["total_predictions"] == 0
    assert stats[3]["success_rate"] == 0.0


def test_circuit_difficulty(drivers, make_user, make_race, guess, before_start):
    alice = make_user("Alice")
    easy = make_race(1, name="Bahrain Grand Prix")
    hard = make_race(2, starts_at=RACE_START + timedelta(days=14), name="Monaco Grand Prix")
    prediction_service.submit_prediction(alice.id, easy.id, guess(), now=before_start)
    prediction_service.submit_prediction(alice.id, hard.id, guess(), now=before_start)
    race_service.record_race_results(easy.id, ACTUAL)
    race_service.record_race_results(
        hard.id,
        {
            "first_place": "leclerc",
            "second_place": "hamilton",
            "third_place": "piastri",
            "fastest_lap": "verstappen",
            "driver_of_the_day": "norris",
        },
    )

    circuits = circuit_difficulty(race_service.get_races_for_season(SEASON))

    assert [c["circuit_name"] for c in circuits] == ["Bahrain Grand Prix", "Monaco Grand Prix"]
    assert circuits[0]["accuracy"] == 100.0
    assert circuits[0]["difficulty"] == 0.0
    assert circuits[1]["race_count"] == 1
    assert circuits[1]["total_predictions"] == 1
    assert circuits[1]["correct_predictions"] == 0
    assert circuits[1]["difficulty"] == 100.0


def test_user_comparison_ignores_open_races(drivers, make_user, make_race, guess, before_start):
    _play_round(make_user, make_race, guess, before_start)

    stats = user_comparison(race_service.get_races_for_season(SEASON))

    assert [s["user_name"] for s in stats] == ["Bob", "Alice"]
    bob, alice = stats
    assert bob["total_score"] == 11
    assert bob["average_score"] == 11.0
    assert alice["total_predictions"] == 1
    assert alice["correct_predictions"] == 1
    assert alice["accuracy"] == 100.0
    assert alice["total_score"] == 7


def test_constructor_performance(drivers, make_user, make_race, guess, before_start):
    carol = make_user("Carol")
    race = make_race()
    prediction_service.submit_prediction(
        carol.id,
        race.id,
        guess(first_place="russell", second_place="piastri", third_place="hamilton"),
        now=before_start,
    )
    race_service.record_race_results(race.id, ACTUAL)

    stats = {s["constructor_id"]: s for s in constructor_performance([race])}

    # A team counts as correct when any of its drivers reached the podium
    assert stats["ferrari"]["correct_predictions"] == 1
    assert stats["ferrari"]["driver_count"] == 2
    assert stats["mclaren"]["success_rate"] == 100.0
    assert stats["mercedes"]["total_predictions"] == 1
    assert stats["mercedes"]["success_rate"] == 0.0
    assert stats["red_bull"]["total_predictions"] == 0
    assert [s["constructor_id"] for s in constructor_performance([race])] == [
        "ferrari",
        "mclaren",
        "mercedes",
        "red_bull",
    ]
