from datetime import datetime, timezone

from app import db


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)

    # Durable account id from the identity provider
    external_id = db.Column(db.String(100), unique=True, nullable=False, index=True)

    # Profile information
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(120), nullable=False, index=True)
    profile_picture_url = db.Column(db.String(500))

    # Account status
    is_admin = db.Column(db.Boolean, default=False, nullable=False)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    # Removal goes through race_service.delete_user, which deletes these first
    predictions = db.relationship("Prediction", backref="user", lazy="dynamic")
    sprint_predictions = db.relationship(
        "SprintPrediction", backref="user", lazy="dynamic"
    )

    def __repr__(self):
        return f"<User {self.id} {self.name}>"

    @staticmethod
    def fallback_email(external_id):
        """Placeholder address for providers that do not share an email"""
        return f"{external_id}@f1predictor.local"

    def set_name(self, name):
        """Set display name with sanitization"""
        import html

        if name:
            self.name = html.escape(name.strip())
        else:
            self.name = name

    @staticmethod
    def get_by_external_id(external_id):
        return User.query.filter_by(external_id=external_id).first()

    def get_predictions_for_season(self, season):
        """Get all race predictions for a specific season"""
        from .prediction import Prediction
        from .race import Race

        return (
            Prediction.query.join(Race)
            .filter(Prediction.user_id == self.id, Race.season == season)
            .order_by(Race.round)
            .all()
        )

    def to_dict(self):
        """Convert user to dictionary for API responses"""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "profile_picture_url": self.profile_picture_url,
        }

    def to_public_dict(self):
        """User fields that are safe to show to other players"""
        return {
            "id": self.id,
            "name": self.name,
            "profile_picture_url": self.profile_picture_url,
        }
