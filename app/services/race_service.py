"""
Race lifecycle: recording results, explicit cascading deletes and the
schedule queries used by the CLI and the scoring sweep.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError

from app import db
from app.errors import InvalidResults
from app.models import Driver, Prediction, Race, SprintPrediction, SprintRace
from app.services import prediction_service
from app.utils.logging_config import ContextualLogger
from app.utils.scoring import CATEGORY_FIELDS, PODIUM_CATEGORIES
from app.utils.timezone_utils import as_utc, get_utc_time

logger = logging.getLogger(__name__)


def validate_results(results, categories):
    """Results must name an existing driver for every category"""
    if not isinstance(results, dict):
        raise InvalidResults("Results must map categories to driver ids")

    cleaned = {}
    missing = []
    for category in categories:
        driver_id = results.get(category)
        driver_id = driver_id.strip() if isinstance(driver_id, str) else None
        if driver_id:
            cleaned[category] = driver_id
        else:
            missing.append(category)

    if missing:
        raise InvalidResults(f"Missing results for: {', '.join(missing)}")

    unknown = sorted(set(cleaned.values()) - Driver.existing_ids(cleaned.values()))
    if unknown:
        raise InvalidResults(f"Unknown drivers in results: {', '.join(unknown)}")

    podium = [cleaned[category] for category in PODIUM_CATEGORIES]
    if len(set(podium)) != len(podium):
        raise InvalidResults("A driver cannot finish in two podium places")

    return cleaned


def _record_results(race, results):
    log = ContextualLogger(__name__, {"race_id": race.id})
    cleaned = validate_results(results, race.categories)
    correction = race.completed

    try:
        for category, driver_id in cleaned.items():
            setattr(race, CATEGORY_FIELDS[category], driver_id)
        race.completed = True

        # Results and scores land in the same transaction
        scored = prediction_service.apply_scores(race)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        log.error("Failed to record results", exc_info=True)
        raise

    if correction:
        log.info(f"Results corrected, re-scored {scored} predictions")
    else:
        log.info(f"Results recorded, scored {scored} predictions")
    return scored


def record_race_results(race_id, results):
    """
    Store final results for a Grand Prix, mark it completed and score it.

    Calling this on a completed race replaces the results and re-scores.
    Returns the number of predictions scored.
    """
    return _record_results(prediction_service.get_race_or_404(race_id), results)


def record_sprint_results(sprint_race_id, results):
    return _record_results(
        prediction_service.get_sprint_race_or_404(sprint_race_id), results
    )


def delete_user(user_id):
    """Delete a user together with all of their predictions"""
    user = prediction_service.get_user_or_404(user_id)

    try:
        removed = Prediction.query.filter_by(user_id=user.id).delete()
        removed += SprintPrediction.query.filter_by(user_id=user.id).delete()
        db.session.delete(user)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.error(f"Failed to delete user {user_id}", exc_info=True)
        raise

    logger.info(f"Deleted user {user_id} and {removed} predictions")
    return removed


def delete_race(race_id):
    """Delete a race together with all predictions made for it"""
    race = prediction_service.get_race_or_404(race_id)

    try:
        removed = Prediction.query.filter_by(race_id=race.id).delete()
        db.session.delete(race)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.error(f"Failed to delete race {race_id}", exc_info=True)
        raise

    logger.info(f"Deleted race {race_id} and {removed} predictions")
    return removed


def delete_sprint_race(sprint_race_id):
    sprint_race = prediction_service.get_sprint_race_or_404(sprint_race_id)

    try:
        removed = SprintPrediction.query.filter_by(
            sprint_race_id=sprint_race.id
        ).delete()
        db.session.delete(sprint_race)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.error(f"Failed to delete sprint race {sprint_race_id}", exc_info=True)
        raise

    logger.info(f"Deleted sprint race {sprint_race_id} and {removed} predictions")
    return removed


def get_races_for_season(season):
    return Race.query.filter_by(season=season).order_by(Race.round).all()


def get_sprint_races_for_season(season):
    return SprintRace.query.filter_by(season=season).order_by(SprintRace.round).all()


def get_upcoming_races(now=None):
    """Races not completed yet whose start is still ahead, soonest first"""
    now = as_utc(now) if now is not None else get_utc_time()
    races = Race.query.filter(Race.completed.is_(False)).order_by(
        Race.date, Race.time
    )
    return [race for race in races if race.starts_at > now]


def get_next_race(now=None):
    upcoming = get_upcoming_races(now)
    return upcoming[0] if upcoming else None


def _has_results(model):
    return [
        getattr(model, CATEGORY_FIELDS[category]).isnot(None)
        for category in model.categories
    ]


def get_races_to_score():
    """Completed races and sprint races with full results and unscored predictions"""
    races = (
        Race.query.join(Prediction)
        .filter(Race.completed.is_(True), Prediction.score.is_(None), *_has_results(Race))
        .distinct()
        .order_by(Race.season, Race.round)
        .all()
    )
    sprint_races = (
        SprintRace.query.join(SprintPrediction)
        .filter(
            SprintRace.completed.is_(True),
            SprintPrediction.score.is_(None),
            *_has_results(SprintRace),
        )
        .distinct()
        .order_by(SprintRace.season, SprintRace.round)
        .all()
    )
    return races + sprint_races
