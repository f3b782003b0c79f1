from datetime import datetime, timezone

from app import db
from app.utils.scoring import RACE_CATEGORIES, Pending, Scored, guesses_of


class Prediction(db.Model):
    __tablename__ = "predictions"

    id = db.Column(db.Integer, primary_key=True)

    # Prediction identification
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    race_id = db.Column(db.String(20), db.ForeignKey("races.id"), nullable=False)

    # Guesses
    first_place_driver_id = db.Column(db.String(50), nullable=False)
    second_place_driver_id = db.Column(db.String(50), nullable=False)
    third_place_driver_id = db.Column(db.String(50), nullable=False)
    fastest_lap_driver_id = db.Column(db.String(50), nullable=False)
    driver_of_the_day_id = db.Column(db.String(50), nullable=False)

    # Null until the race is scored
    score = db.Column(db.Integer, nullable=True)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Constraints and indexes
    __table_args__ = (
        db.UniqueConstraint("user_id", "race_id", name="unique_user_race_prediction"),
        db.Index("idx_prediction_race", "race_id"),
        db.CheckConstraint("score IS NULL OR score >= 0", name="non_negative_score"),
    )

    categories = RACE_CATEGORIES

    def __repr__(self):
        return f"<Prediction user_id={self.user_id} race_id={self.race_id} score={self.score}>"

    @property
    def target(self):
        return self.race

    @property
    def score_state(self):
        if self.score is None:
            return Pending()
        return Scored(self.score)

    @property
    def guesses(self):
        return guesses_of(self, self.categories)

    def to_dict(self):
        """Convert prediction to dictionary for API responses"""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "race_id": self.race_id,
            "first_place_driver_id": self.first_place_driver_id,
            "second_place_driver_id": self.second_place_driver_id,
            "third_place_driver_id": self.third_place_driver_id,
            "fastest_lap_driver_id": self.fastest_lap_driver_id,
            "driver_of_the_day_id": self.driver_of_the_day_id,
            "score": self.score,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
