"""
Prediction service for the F1 Podium Predictor

Accepts predictions while a race is open, scores completed races and builds
season leaderboards. All database access for predictions goes through here;
the scoring rules themselves live in app/utils/scoring.py and the ranking
rules in app/utils/leaderboard.py.
"""

import logging

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app import db
from app.errors import (
    AlreadyPredicted,
    ConflictOnWrite,
    InvalidGuess,
    NotFound,
    RaceLocked,
    RaceNotCompleted,
)
from app.models import Driver, Prediction, Race, SprintPrediction, SprintRace, User
from app.utils import leaderboard
from app.utils.logging_config import ContextualLogger
from app.utils.scoring import (
    CATEGORY_FIELDS,
    PODIUM_CATEGORIES,
    RACE_CATEGORIES,
    SPRINT_CATEGORIES,
    ScoringEngine,
    results_of,
)
from app.utils.timezone_utils import get_utc_time, minutes_until

logger = logging.getLogger(__name__)

# Number of insert attempts before a uniqueness conflict is reported
MAX_INSERT_ATTEMPTS = 2


def get_scoring_engine():
    return ScoringEngine.from_config(current_app.config)


def get_user_or_404(user_id):
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFound(f"User {user_id} not found")
    return user


def get_race_or_404(race_id):
    race = db.session.get(Race, race_id)
    if race is None:
        raise NotFound(f"Race {race_id} not found")
    return race


def get_sprint_race_or_404(sprint_race_id):
    sprint_race = db.session.get(SprintRace, sprint_race_id)
    if sprint_race is None:
        raise NotFound(f"Sprint race {sprint_race_id} not found")
    return sprint_race


def is_locked(race, now=None):
    """True once the race is completed or starts within the lock window"""
    if race.completed:
        return True
    lock_minutes = current_app.config.get("PREDICTION_LOCK_MINUTES", 5)
    return minutes_until(race.starts_at, now) < lock_minutes


def ensure_open(race, now=None):
    if race.completed:
        raise RaceLocked(f"{race.race_name} is already completed")
    if is_locked(race, now):
        raise RaceLocked(f"Predictions for {race.race_name} are closed")


def validate_guess(guess, categories=RACE_CATEGORIES):
    """
    Check a guess and return it as {column name: driver id}.

    Every category needs a driver, every driver must exist and a driver may
    appear only once across the podium slots. Fastest lap and driver of the
    day may repeat a podium driver.
    """
    if not isinstance(guess, dict):
        raise InvalidGuess("Prediction must map categories to driver ids")

    cleaned = {}
    for category in categories:
        driver_id = guess.get(category)
        driver_id = driver_id.strip() if isinstance(driver_id, str) else None
        if not driver_id:
            raise InvalidGuess(f"No driver selected for {category.replace('_', ' ')}")
        cleaned[category] = driver_id

    unexpected = set(guess) - set(categories)
    if unexpected:
        raise InvalidGuess(f"Unknown categories: {', '.join(sorted(unexpected))}")

    known = Driver.existing_ids(cleaned.values())
    unknown = sorted(set(cleaned.values()) - known)
    if unknown:
        raise InvalidGuess(f"Unknown drivers: {', '.join(unknown)}")

    podium = [cleaned[category] for category in PODIUM_CATEGORIES if category in cleaned]
    if len(set(podium)) != len(podium):
        raise InvalidGuess("A driver can only be picked once on the podium")

    return {CATEGORY_FIELDS[category]: driver_id for category, driver_id in cleaned.items()}


def _find_prediction(model, race_column, user_id, race_id):
    return model.query.filter(
        model.user_id == user_id, getattr(model, race_column) == race_id
    ).first()


def _insert_prediction(model, race_column, user_id, race_id, fields, now):
    """
    Insert a new prediction, relying on the unique (user, race) constraint.

    The insert runs in a savepoint. When it loses a race against a
    concurrent submission only the savepoint is rolled back and the row is
    re-read: if the competing prediction is there the caller gets
    AlreadyPredicted, otherwise the insert is tried once more.
    """
    log = ContextualLogger(__name__, {"user_id": user_id, race_column: race_id})

    for attempt in range(1, MAX_INSERT_ATTEMPTS + 1):
        prediction = model(user_id=user_id, score=None, created_at=now, updated_at=now)
        setattr(prediction, race_column, race_id)
        for column, driver_id in fields.items():
            setattr(prediction, column, driver_id)

        try:
            with db.session.begin_nested():
                db.session.add(prediction)
        except IntegrityError:
            log.warning(f"Uniqueness conflict on insert (attempt {attempt})")

            if _find_prediction(model, race_column, user_id, race_id) is not None:
                raise AlreadyPredicted("You have already made a prediction for this race")
            continue

        try:
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            log.error("Failed to save prediction", exc_info=True)
            raise

        log.info("Prediction saved")
        return prediction

    log.error("Giving up on prediction insert after repeated conflicts")
    raise ConflictOnWrite("Your prediction could not be saved, please try again")


def _submit(model, race_column, race, user_id, guess, now):
    get_user_or_404(user_id)
    now = now or get_utc_time()

    ensure_open(race, now)
    fields = validate_guess(guess, race.categories)

    if _find_prediction(model, race_column, user_id, race.id) is not None:
        raise AlreadyPredicted("You have already made a prediction for this race")

    return _insert_prediction(model, race_column, user_id, race.id, fields, now)


def submit_prediction(user_id, race_id, guess, now=None):
    """
    Record a user's prediction for a Grand Prix.

    Raises:
        NotFound: unknown user or race
        RaceLocked: race completed or starting within the lock window
        InvalidGuess: missing category, unknown driver or repeated podium driver
        AlreadyPredicted: the user already predicted this race
    """
    race = get_race_or_404(race_id)
    return _submit(Prediction, "race_id", race, user_id, guess, now)


def submit_sprint_prediction(user_id, sprint_race_id, guess, now=None):
    """Record a user's podium prediction for a sprint race"""
    sprint_race = get_sprint_race_or_404(sprint_race_id)
    return _submit(
        SprintPrediction, "sprint_race_id", sprint_race, user_id, guess, now
    )


def _upsert(model, race_column, race, user_id, guess, now):
    get_user_or_404(user_id)
    now = now or get_utc_time()

    ensure_open(race, now)
    fields = validate_guess(guess, race.categories)

    existing = _find_prediction(model, race_column, user_id, race.id)
    if existing is None:
        return _insert_prediction(model, race_column, user_id, race.id, fields, now)

    for column, driver_id in fields.items():
        setattr(existing, column, driver_id)
    existing.updated_at = now

    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.error(
            f"Failed to update prediction {existing.id} for user {user_id}",
            exc_info=True,
        )
        raise

    logger.info(f"Prediction {existing.id} updated by user {user_id}")
    return existing


def upsert_prediction(user_id, race_id, guess, now=None):
    """Create the user's prediction or replace its guesses while the race is open"""
    race = get_race_or_404(race_id)
    return _upsert(Prediction, "race_id", race, user_id, guess, now)


def upsert_sprint_prediction(user_id, sprint_race_id, guess, now=None):
    sprint_race = get_sprint_race_or_404(sprint_race_id)
    return _upsert(
        SprintPrediction, "sprint_race_id", sprint_race, user_id, guess, now
    )


def get_user_prediction(user_id, race_id):
    get_user_or_404(user_id)
    get_race_or_404(race_id)
    return _find_prediction(Prediction, "race_id", user_id, race_id)


def get_user_sprint_prediction(user_id, sprint_race_id):
    get_user_or_404(user_id)
    get_sprint_race_or_404(sprint_race_id)
    return _find_prediction(SprintPrediction, "sprint_race_id", user_id, sprint_race_id)


def apply_scores(race, engine=None):
    """
    Set the score of every prediction for a completed race or sprint race.

    Does not commit; callers own the transaction. Scores are overwritten,
    so applying them twice gives the same result.
    """
    if not race.completed or not all(results_of(race, race.categories).values()):
        raise RaceNotCompleted(race.id)

    engine = engine or get_scoring_engine()
    predictions = race.predictions.all()
    for prediction in predictions:
        prediction.score = engine.calculate_prediction_score(prediction, race)
    return len(predictions)


def _score(race):
    log = ContextualLogger(__name__, {"race_id": race.id})
    try:
        scored = apply_scores(race)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        log.error("Scoring failed, no scores were changed", exc_info=True)
        raise

    log.info(f"Scored {scored} predictions")
    return scored


def score_race(race_id):
    """Score all predictions for a completed race in one transaction"""
    return _score(get_race_or_404(race_id))


def score_sprint_race(sprint_race_id):
    return _score(get_sprint_race_or_404(sprint_race_id))


def _scored_predictions(season, include_sprints=False, before_round=None):
    query = (
        Prediction.query.join(Race)
        .filter(Race.season == season, Prediction.score.isnot(None))
    )
    if before_round is not None:
        query = query.filter(Race.round < before_round)
    predictions = query.all()

    if include_sprints:
        sprint_query = (
            SprintPrediction.query.join(SprintRace)
            .filter(SprintRace.season == season, SprintPrediction.score.isnot(None))
        )
        if before_round is not None:
            sprint_query = sprint_query.filter(SprintRace.round < before_round)
        predictions.extend(sprint_query.all())

    return predictions


def _latest_completed_round(season, include_sprints=False):
    latest = (
        db.session.query(db.func.max(Race.round))
        .filter(Race.season == season, Race.completed.is_(True))
        .scalar()
    )
    if include_sprints:
        latest_sprint = (
            db.session.query(db.func.max(SprintRace.round))
            .filter(SprintRace.season == season, SprintRace.completed.is_(True))
            .scalar()
        )
        if latest_sprint is not None and (latest is None or latest_sprint > latest):
            latest = latest_sprint
    return latest


def get_season_leaderboard(season, include_sprints=False, with_trend=True):
    """
    Ranked season totals.

    With with_trend the previous rank of each user is the rank they held
    before the most recent completed round of the season.
    """
    current = leaderboard.aggregate(
        season, _scored_predictions(season, include_sprints)
    )
    if not with_trend or not current:
        return current

    latest_round = _latest_completed_round(season, include_sprints)
    if latest_round is None:
        return current

    previous = leaderboard.aggregate(
        season, _scored_predictions(season, include_sprints, before_round=latest_round)
    )
    return leaderboard.with_previous_ranks(current, previous)


def get_season_leaderboard_before_race(race_id):
    """Season standings as they were before the given race"""
    race = get_race_or_404(race_id)
    return leaderboard.aggregate(
        race.season, _scored_predictions(race.season, before_round=race.round)
    )


def get_race_results(race_id):
    """
    Every prediction for a race with the predictor's season rank now and
    before this race, best score first.
    """
    race = get_race_or_404(race_id)

    current = get_season_leaderboard(race.season, with_trend=False)
    previous = get_season_leaderboard_before_race(race_id)

    predictions = (
        Prediction.query.filter_by(race_id=race.id)
        .order_by(Prediction.score.desc().nullslast(), Prediction.user_id)
        .all()
    )

    return [
        {
            "user": prediction.user.to_public_dict(),
            "score": prediction.score or 0,
            "prediction": prediction.to_dict(),
            "season_position": leaderboard.rank_of(current, prediction.user_id),
            "previous_season_position": leaderboard.rank_of(
                previous, prediction.user_id
            ),
        }
        for prediction in predictions
    ]


def get_sprint_race_results(sprint_race_id):
    """
    Every prediction for a sprint race, best score first, with the
    predictor's season rank (sprints included) now and before this round.
    """
    sprint_race = get_sprint_race_or_404(sprint_race_id)
    season = sprint_race.season

    current = get_season_leaderboard(season, include_sprints=True, with_trend=False)
    previous = leaderboard.aggregate(
        season,
        _scored_predictions(season, include_sprints=True, before_round=sprint_race.round),
    )

    predictions = (
        SprintPrediction.query.filter_by(sprint_race_id=sprint_race.id)
        .order_by(SprintPrediction.score.desc().nullslast(), SprintPrediction.user_id)
        .all()
    )

    return [
        {
            "user": prediction.user.to_public_dict(),
            "score": prediction.score or 0,
            "prediction": prediction.to_dict(),
            "season_position": leaderboard.rank_of(current, prediction.user_id),
            "previous_season_position": leaderboard.rank_of(
                previous, prediction.user_id
            ),
        }
        for prediction in predictions
    ]


def get_user_season_score(user_id, season, include_sprints=False):
    get_user_or_404(user_id)
    total = (
        db.session.query(db.func.coalesce(db.func.sum(Prediction.score), 0))
        .join(Race)
        .filter(Prediction.user_id == user_id, Race.season == season)
        .scalar()
    )
    if include_sprints:
        total += (
            db.session.query(db.func.coalesce(db.func.sum(SprintPrediction.score), 0))
            .join(SprintRace)
            .filter(SprintPrediction.user_id == user_id, SprintRace.season == season)
            .scalar()
        )
    return int(total)
