"""
Scoring Engine for the F1 Podium Predictor

This module handles scoring calculations for individual predictions.
Batch scoring of a whole race lives in app/services/prediction_service.py and
season aggregation in app/utils/leaderboard.py.

A category only counts when the guessed driver matches the actual result for
that same category, so predicting the right drivers in the wrong podium
order earns nothing for the swapped slots.
"""

from dataclasses import dataclass, field

from app.errors import RaceNotCompleted
from config import DEFAULT_SCORING_POINTS, DEFAULT_SPRINT_SCORING_POINTS

RACE_CATEGORIES = (
    "first_place",
    "second_place",
    "third_place",
    "fastest_lap",
    "driver_of_the_day",
)
SPRINT_CATEGORIES = ("first_place", "second_place", "third_place")
PODIUM_CATEGORIES = SPRINT_CATEGORIES

# Column name holding each category on races and predictions
CATEGORY_FIELDS = {
    "first_place": "first_place_driver_id",
    "second_place": "second_place_driver_id",
    "third_place": "third_place_driver_id",
    "fastest_lap": "fastest_lap_driver_id",
    "driver_of_the_day": "driver_of_the_day_id",
}


@dataclass(frozen=True)
class Pending:
    """Prediction whose race has not been scored yet"""


@dataclass(frozen=True)
class Scored:
    value: int


@dataclass(frozen=True)
class Scheduled:
    """Race without final results"""


@dataclass(frozen=True)
class Completed:
    results: dict = field(default_factory=dict)


class PointTable:
    """Points awarded per correctly predicted category"""

    def __init__(self, points, categories=RACE_CATEGORIES):
        unknown = set(points) - set(categories)
        if unknown:
            raise ValueError(f"Unknown scoring categories: {sorted(unknown)}")

        self.points = {}
        for category in categories:
            value = points.get(category, 0)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ValueError(
                    f"Points for {category} must be a non-negative integer, got {value!r}"
                )
            self.points[category] = value

    def __repr__(self):
        return f"<PointTable {self.points}>"

    def __getitem__(self, category):
        return self.points[category]

    def items(self):
        return self.points.items()

    @property
    def categories(self):
        return tuple(self.points)

    @property
    def max_score(self):
        return sum(self.points.values())

    @classmethod
    def equal_weights(cls, value=1, categories=RACE_CATEGORIES):
        return cls({category: value for category in categories}, categories)


def results_of(race, categories=RACE_CATEGORIES):
    """Map category -> actual driver id for a race or sprint race"""
    return {
        category: getattr(race, CATEGORY_FIELDS[category], None)
        for category in categories
    }


def guesses_of(prediction, categories=RACE_CATEGORIES):
    """Map category -> guessed driver id for a prediction"""
    return {
        category: getattr(prediction, CATEGORY_FIELDS[category], None)
        for category in categories
    }


def correct_categories(prediction, race, categories=RACE_CATEGORIES):
    """Categories where the guess equals the actual result"""
    actual = results_of(race, categories)
    guessed = guesses_of(prediction, categories)
    return [
        category
        for category in categories
        if guessed[category] and guessed[category] == actual[category]
    ]


def calculate_prediction_score(prediction, race, points):
    """
    Calculate score for a single prediction.

    Pure: reads the guessed and actual driver ids and sums the point table
    over matching categories. Blank guesses score zero for their category.

    Args:
        prediction: Prediction or SprintPrediction (anything with *_driver_id attributes)
        race: Race or SprintRace the prediction belongs to
        points: PointTable to apply

    Raises:
        RaceNotCompleted: if the race is not completed or a result is missing
    """
    if not race.completed or not all(results_of(race, points.categories).values()):
        raise RaceNotCompleted(race.id)

    return sum(
        points[category]
        for category in correct_categories(prediction, race, points.categories)
    )


class ScoringEngine:
    """Applies the configured point tables to races and sprint races"""

    def __init__(self, race_points=None, sprint_points=None):
        self.race_points = race_points or PointTable(DEFAULT_SCORING_POINTS)
        self.sprint_points = sprint_points or PointTable(
            DEFAULT_SPRINT_SCORING_POINTS, SPRINT_CATEGORIES
        )

    @classmethod
    def from_config(cls, config):
        """Build an engine from a Flask config mapping"""
        return cls(
            race_points=PointTable(config["SCORING_POINTS"], RACE_CATEGORIES),
            sprint_points=PointTable(
                config["SPRINT_SCORING_POINTS"], SPRINT_CATEGORIES
            ),
        )

    def points_for(self, race):
        return self.sprint_points if getattr(race, "is_sprint", False) else self.race_points

    def max_score(self, race):
        return self.points_for(race).max_score

    def calculate_prediction_score(self, prediction, race):
        return calculate_prediction_score(prediction, race, self.points_for(race))
