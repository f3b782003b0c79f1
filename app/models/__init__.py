from app import db  # noqa: F401 - imported for model imports

from .constructor import Constructor
from .driver import Driver
from .prediction import Prediction
from .race import Race
from .sprint_prediction import SprintPrediction
from .sprint_race import SprintRace
from .user import User

__all__ = [
    "Constructor",
    "Driver",
    "Race",
    "SprintRace",
    "User",
    "Prediction",
    "SprintPrediction",
]
