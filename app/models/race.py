from datetime import datetime, timezone
from datetime import time as dt_time

from sqlalchemy.orm import validates

from app import db
from app.utils.scoring import RACE_CATEGORIES, Completed, Scheduled, results_of


class Race(db.Model):
    __tablename__ = "races"

    # season + round, e.g. "2023-1"
    id = db.Column(db.String(20), primary_key=True)

    season = db.Column(db.Integer, nullable=False)
    round = db.Column(db.Integer, nullable=False)
    race_name = db.Column(db.String(100), nullable=False)
    circuit_id = db.Column(db.String(50))
    circuit_name = db.Column(db.String(100))
    country = db.Column(db.String(50))
    locality = db.Column(db.String(50))

    # Race start, always UTC
    date = db.Column(db.Date, nullable=False)
    time = db.Column(db.Time, nullable=False, default=dt_time(0, 0))

    # Practice sessions
    practice1_date = db.Column(db.Date)
    practice1_time = db.Column(db.Time)
    practice2_date = db.Column(db.Date)
    practice2_time = db.Column(db.Time)
    practice3_date = db.Column(db.Date)
    practice3_time = db.Column(db.Time)

    # Qualifying
    qualifying_date = db.Column(db.Date)
    qualifying_time = db.Column(db.Time)

    # Sprint weekend information
    is_sprint_weekend = db.Column(db.Boolean, default=False)
    sprint_date = db.Column(db.Date)
    sprint_time = db.Column(db.Time)
    sprint_qualifying_date = db.Column(db.Date)
    sprint_qualifying_time = db.Column(db.Time)

    # Results (set together when the race completes)
    first_place_driver_id = db.Column(db.String(50), db.ForeignKey("drivers.id"))
    second_place_driver_id = db.Column(db.String(50), db.ForeignKey("drivers.id"))
    third_place_driver_id = db.Column(db.String(50), db.ForeignKey("drivers.id"))
    fastest_lap_driver_id = db.Column(db.String(50), db.ForeignKey("drivers.id"))
    driver_of_the_day_id = db.Column(db.String(50), db.ForeignKey("drivers.id"))

    completed = db.Column(db.Boolean, default=False, nullable=False)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    # Deletion of predictions is an explicit step in race_service.delete_race
    predictions = db.relationship("Prediction", backref="race", lazy="dynamic")

    # Indexes
    __table_args__ = (
        db.UniqueConstraint("season", "round", name="unique_race_season_round"),
        db.Index("idx_races_season", "season"),
        db.Index("idx_races_completed", "completed"),
    )

    is_sprint = False
    categories = RACE_CATEGORIES

    def __repr__(self):
        return f"<Race {self.id} {self.race_name}>"

    @staticmethod
    def make_id(season, round_number):
        return f"{season}-{round_number}"

    @validates("completed")
    def _validate_completed(self, key, value):
        # Completion is final; results may be corrected but never withdrawn
        if self.completed and not value:
            raise ValueError(f"Race {self.id} is already completed")
        if value and not all(self.results.values()):
            raise ValueError(f"Race {self.id} cannot be completed without full results")
        return value

    @property
    def starts_at(self):
        """Race start as an aware UTC datetime"""
        return datetime.combine(self.date, self.time or dt_time(0, 0), tzinfo=timezone.utc)

    @property
    def results(self):
        return results_of(self, self.categories)

    @property
    def result_state(self):
        if self.completed:
            return Completed(self.results)
        return Scheduled()

    @property
    def status(self):
        if self.completed:
            return "completed"
        if self.starts_at <= datetime.now(timezone.utc):
            return "in_progress"
        return "scheduled"

    def to_dict(self):
        """Convert race to dictionary for API responses"""

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
            "practice1_date": _iso(self.practice1_date),
            "practice1_time": _iso(self.practice1_time),
            "practice2_date": _iso(self.practice2_date),
            "practice2_time": _iso(self.practice2_time),
            "practice3_date": _iso(self.practice3_date),
            "practice3_time": _iso(self.practice3_time),
            "qualifying_date": _iso(self.qualifying_date),
            "qualifying_time": _iso(self.qualifying_time),
            "is_sprint_weekend": bool(self.is_sprint_weekend),
            "sprint_date": _iso(self.sprint_date),
            "sprint_time": _iso(self.sprint_time),
            "sprint_qualifying_date": _iso(self.sprint_qualifying_date),
            "sprint_qualifying_time": _iso(self.sprint_qualifying_time),
            "first_place_driver_id": self.first_place_driver_id,
            "second_place_driver_id": self.second_place_driver_id,
            "third_place_driver_id": self.third_place_driver_id,
            "fastest_lap_driver_id": self.fastest_lap_driver_id,
            "driver_of_the_day_id": self.driver_of_the_day_id,
            "completed": self.completed,
        }
