"""
Prediction statistics shown on the stats page and by `manage.py status`
"""

from collections import Counter

from app import db
from app.utils.scoring import (
    PODIUM_CATEGORIES,
    correct_categories,
    guesses_of,
    results_of,
)


def _percentage(part, whole):
    return round(part / whole * 100, 1) if whole else 0.0


def prediction_accuracy_by_category(races):
    """
    Share of correct guesses per category over completed races.

    Args:
        races: Race or SprintRace objects; incomplete ones are skipped
    """
    completed = [race for race in races if race.completed]
    categories = []
    for race in completed:
        for category in race.categories:
            if category not in categories:
                categories.append(category)

    totals = Counter()
    correct = Counter()
    for race in completed:
        for prediction in race.predictions:
            totals.update(race.categories)
            correct.update(correct_categories(prediction, race, race.categories))

    return {
        category: {
            "total_predictions": totals[category],
            "correct_predictions": correct[category],
            "accuracy": _percentage(correct[category], totals[category]),
        }
        for category in categories
    }


def season_progress(races):
    """Prediction count and average score for each completed race, in round order"""
    progress = []
    for race in sorted(races, key=lambda r: r.round):
        if not race.completed:
            continue

        scores = [p.score for p in race.predictions if p.score is not None]
        progress.append(
            {
                "race_id": race.id,
                "race_name": race.race_name,
                "round": race.round,
                "predictions": race.predictions.count(),
                "average_score": round(sum(scores) / len(scores), 2) if scores else 0.0,
                "best_score": max(scores) if scores else 0,
            }
        )
    return progress


def _completed_with_predictions(races):
    return [(race, race.predictions.all()) for race in races if race.completed]


def _podium(values):
    return {driver_id for driver_id in values if driver_id}


def _predicted_podium(prediction):
    return _podium(guesses_of(prediction, PODIUM_CATEGORIES).values())


def _actual_podium(race):
    return _podium(results_of(race, PODIUM_CATEGORIES).values())


def driver_performance(races):
    """
    How often each driver was tipped for the podium and how often those
    tips came true, best success rate first.
    """
    from app.models import Driver

    played = _completed_with_predictions(races)
    stats = []
    for driver in Driver.query.order_by(Driver.id).all():
        podium_finishes = sum(1 for race, _ in played if driver.id in _actual_podium(race))
        tipped = [
            (race, prediction)
            for race, predictions in played
            for prediction in predictions
            if driver.id in _predicted_podium(prediction)
        ]
        correct = sum(1 for race, _ in tipped if driver.id in _actual_podium(race))
        stats.append(
            {
                "driver_id": driver.id,
                "driver_name": driver.full_name,
                "driver_code": driver.code,
                "constructor": driver.constructor.name if driver.constructor else None,
                "podium_finishes": podium_finishes,
                "total_predictions": len(tipped),
                "correct_predictions": correct,
                "success_rate": _percentage(correct, len(tipped)),
            }
        )

    stats.sort(key=lambda s: (-s["success_rate"], s["driver_id"]))
    return stats


def circuit_difficulty(races):
    """
    Podium accuracy per circuit. A prediction counts as correct when at
    least one podium slot was exact; difficulty is 100 minus accuracy.
    Easiest circuit first.
    """
    circuits = {}
    for race, predictions in _completed_with_predictions(races):
        name = race.circuit_name or race.race_name
        circuit = circuits.setdefault(
            name,
            {
                "circuit_name": name,
                "country": race.country,
                "race_count": 0,
                "total_predictions": 0,
                "correct_predictions": 0,
            },
        )
        circuit["race_count"] += 1
        circuit["total_predictions"] += len(predictions)
        circuit["correct_predictions"] += sum(
            1
            for prediction in predictions
            if correct_categories(prediction, race, PODIUM_CATEGORIES)
        )

    for circuit in circuits.values():
        circuit["accuracy"] = _percentage(
            circuit["correct_predictions"], circuit["total_predictions"]
        )
        circuit["difficulty"] = round(100 - circuit["accuracy"], 1)

    return sorted(circuits.values(), key=lambda c: (c["difficulty"], c["circuit_name"]))


def user_comparison(races):
    """Per-user totals over completed races, highest total score first"""
    from app.models import User

    played = _completed_with_predictions(races)
    stats = []
    for user in User.query.order_by(User.id).all():
        own = [
            (race, prediction)
            for race, predictions in played
            for prediction in predictions
            if prediction.user_id == user.id
        ]
        correct = sum(
            1
            for race, prediction in own
            if correct_categories(prediction, race, race.categories)
        )
        total_score = sum(prediction.score or 0 for _, prediction in own)
        stats.append(
            {
                "user_id": user.id,
                "user_name": user.name,
                "profile_picture_url": user.profile_picture_url,
                "total_predictions": len(own),
                "correct_predictions": correct,
                "accuracy": _percentage(correct, len(own)),
                "total_score": total_score,
                "average_score": round(total_score / len(own), 2) if own else 0.0,
            }
        )

    stats.sort(key=lambda s: (-s["total_score"], s["user_id"]))
    return stats


def constructor_performance(races):
    """
    Podium tips per constructor: a tip names at least one of the team's
    drivers on the podium and is correct when one of them finished there.
    """
    from app.models import Constructor

    played = _completed_with_predictions(races)
    stats = []
    for constructor in Constructor.query.order_by(Constructor.id).all():
        driver_ids = {driver.id for driver in constructor.drivers}
        tipped = [
            (race, prediction)
            for race, predictions in played
            for prediction in predictions
            if _predicted_podium(prediction) & driver_ids
        ]
        correct = sum(1 for race, _ in tipped if _actual_podium(race) & driver_ids)
        stats.append(
            {
                "constructor_id": constructor.id,
                "constructor_name": constructor.name,
                "driver_count": len(driver_ids),
                "total_predictions": len(tipped),
                "correct_predictions": correct,
                "success_rate": _percentage(correct, len(tipped)),
            }
        )

    stats.sort(key=lambda s: (-s["success_rate"], s["constructor_id"]))
    return stats


def most_predicted_podium_driver():
    """Driver named most often in 1st, 2nd or 3rd across all predictions"""
    from app.models import Driver, Prediction

    picks = Counter()
    rows = db.session.query(
        Prediction.first_place_driver_id,
        Prediction.second_place_driver_id,
        Prediction.third_place_driver_id,
    )
    for row in rows:
        picks.update(driver_id for driver_id in row if driver_id)

    if not picks:
        return None

    # Ties go to the alphabetically first driver id
    driver_id = min(picks, key=lambda d: (-picks[d], d))
    driver = db.session.get(Driver, driver_id)
    return {
        "driver_id": driver_id,
        "driver_name": driver.full_name if driver else None,
        "driver_code": driver.code if driver else None,
        "predictions": picks[driver_id],
    }


def stats_overview():
    """Headline numbers across all seasons"""
    from app.models import Prediction, Race, User

    average = db.session.query(db.func.avg(Prediction.score)).filter(
        Prediction.score.isnot(None)
    ).scalar()

    return {
        "users": User.query.count(),
        "races": Race.query.count(),
        "completed_races": Race.query.filter(Race.completed.is_(True)).count(),
        "predictions": Prediction.query.count(),
        "scored_predictions": Prediction.query.filter(
            Prediction.score.isnot(None)
        ).count(),
        "average_score": round(float(average), 2) if average is not None else 0.0,
        "most_predicted_podium_driver": most_predicted_podium_driver(),
    }
