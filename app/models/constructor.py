from datetime import datetime, timezone

from app import db


class Constructor(db.Model):
    __tablename__ = "constructors"

    # Stable code, e.g. "red_bull"
    id = db.Column(db.String(50), primary_key=True)

    name = db.Column(db.String(100), nullable=False, index=True)
    nationality = db.Column(db.String(50))
    url = db.Column(db.String(500))

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    # A constructor folding does not remove its drivers
    drivers = db.relationship("Driver", backref="constructor", lazy="dynamic")

    def __repr__(self):
        return f"<Constructor {self.id}>"

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "nationality": self.nationality,
            "url": self.url,
        }
