from datetime import datetime, timezone
from datetime import time as dt_time

from sqlalchemy.orm import validates

from app import db
from app.utils.scoring import SPRINT_CATEGORIES, Completed, Scheduled, results_of


class SprintRace(db.Model):
    __tablename__ = "sprint_races"

    # season + round + "sprint", e.g. "2023-1-sprint"
    id = db.Column(db.String(30), primary_key=True)

    season = db.Column(db.Integer, nullable=False)
    round = db.Column(db.Integer, nullable=False)
    race_name = db.Column(db.String(100), nullable=False)
    circuit_id = db.Column(db.String(50))
    circuit_name = db.Column(db.String(100))
    country = db.Column(db.String(50))
    locality = db.Column(db.String(50))

    # Sprint start, always UTC
    date = db.Column(db.Date, nullable=False)
    time = db.Column(db.Time, nullable=False, default=dt_time(0, 0))

    # Sprint qualifying
    sprint_qualifying_date = db.Column(db.Date)
    sprint_qualifying_time = db.Column(db.Time)

    # Sprint results
    first_place_driver_id = db.Column(db.String(50), db.ForeignKey("drivers.id"))
    second_place_driver_id = db.Column(db.String(50), db.ForeignKey("drivers.id"))
    third_place_driver_id = db.Column(db.String(50), db.ForeignKey("drivers.id"))

    completed = db.Column(db.Boolean, default=False, nullable=False)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    predictions = db.relationship(
        "SprintPrediction", backref="sprint_race", lazy="dynamic"
    )

    __table_args__ = (
        db.UniqueConstraint("season", "round", name="unique_sprint_season_round"),
        db.Index("idx_sprint_races_season", "season"),
    )

    is_sprint = True
    categories = SPRINT_CATEGORIES

    def __repr__(self):
        return f"<SprintRace {self.id} {self.race_name}>"

    @staticmethod
    def make_id(season, round_number):
        return f"{season}-{round_number}-sprint"

    @validates("completed")
    def _validate_completed(self, key, value):
        if self.completed and not value:
            raise ValueError(f"Sprint race {self.id} is already completed")
        if value and not all(self.results.values()):
            raise ValueError(
                f"Sprint race {self.id} cannot be completed without full results"
            )
        return value

    @property
    def starts_at(self):
        return datetime.combine(self.date, self.time or dt_time(0, 0), tzinfo=timezone.utc)

    @property
    def results(self):
        return results_of(self, self.categories)

    @property
    def result_state(self):
        if self.completed:
            return Completed(self.results)
        return Scheduled()

    def to_dict(self):
        def _iso(value):
            return value.isoformat() if value else None

        return {
            "id": self.id,
            "season": self.season,
            "round": self.round,
            "race_name": self.race_name,
            "circuit_name": self.circuit_name,
            "country": self.country,
            "locality": self.locality,
            "date": _iso(self.date),
            "time": _iso(self.time),
            "sprint_qualifying_date": _iso(self.sprint_qualifying_date),
            "sprint_qualifying_time": _iso(self.sprint_qualifying_time),
            "first_place_driver_id": self.first_place_driver_id,
            "second_place_driver_id": self.second_place_driver_id,
            "third_place_driver_id": self.third_place_driver_id,
            "completed": self.completed,
        }
