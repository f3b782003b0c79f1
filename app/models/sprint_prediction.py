from datetime import datetime, timezone

from app import db
from app.utils.scoring import SPRINT_CATEGORIES, Pending, Scored, guesses_of


class SprintPrediction(db.Model):
    __tablename__ = "sprint_predictions"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    sprint_race_id = db.Column(
        db.String(30), db.ForeignKey("sprint_races.id"), nullable=False
    )

    first_place_driver_id = db.Column(db.String(50), nullable=False)
    second_place_driver_id = db.Column(db.String(50), nullable=False)
    third_place_driver_id = db.Column(db.String(50), nullable=False)

    score = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.UniqueConstraint(
            "user_id", "sprint_race_id", name="unique_user_sprint_prediction"
        ),
        db.Index("idx_sprint_prediction_race", "sprint_race_id"),
        db.CheckConstraint(
            "score IS NULL OR score >= 0", name="non_negative_sprint_score"
        ),
    )

    categories = SPRINT_CATEGORIES

    def __repr__(self):
        return f"<SprintPrediction user_id={self.user_id} sprint_race_id={self.sprint_race_id} score={self.score}>"

    @property
    def race_id(self):
        return self.sprint_race_id

    @property
    def target(self):
        return self.sprint_race

    @property
    def score_state(self):
        if self.score is None:
            return Pending()
        return Scored(self.score)

    @property
    def guesses(self):
        return guesses_of(self, self.categories)

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "sprint_race_id": self.sprint_race_id,
            "first_place_driver_id": self.first_place_driver_id,
            "second_place_driver_id": self.second_place_driver_id,
            "third_place_driver_id": self.third_place_driver_id,
            "score": self.score,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
