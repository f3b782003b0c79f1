"""
Error types raised by the prediction game services.

Everything deriving from PredictionGameError is user facing: the message is
safe to show in the UI and never contains another user's data.
RaceNotCompleted is a contract violation by the caller and is not meant to
be caught by request handlers.
"""


class PredictionGameError(Exception):
    """Base class for recoverable, user facing errors"""

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class NotFound(PredictionGameError):
    """Unknown user, race, sprint race, prediction or driver"""


class AlreadyPredicted(PredictionGameError):
    """A prediction already exists for this user and race"""


class ConflictOnWrite(AlreadyPredicted):
    """The uniqueness constraint kept failing after a fresh read"""


class RaceLocked(PredictionGameError):
    """The race is completed or starts within the lock window"""


class InvalidGuess(PredictionGameError):
    """A guess references unknown drivers, repeats a driver or is incomplete"""


class InvalidResults(PredictionGameError):
    """Race results are partial or reference unknown drivers"""


class RaceNotCompleted(RuntimeError):
    """Scoring was requested for a race whose results are not final"""

    def __init__(self, race_id):
        super().__init__(f"Race {race_id} is not completed, results are not final")
        self.race_id = race_id
