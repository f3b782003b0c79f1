from datetime import datetime, timezone

from app import db


class Driver(db.Model):
    __tablename__ = "drivers"

    # Stable code, e.g. "verstappen"
    id = db.Column(db.String(50), primary_key=True)

    code = db.Column(db.String(3), index=True)  # e.g. "VER"
    permanent_number = db.Column(db.String(3))
    given_name = db.Column(db.String(50), nullable=False)
    family_name = db.Column(db.String(50), nullable=False)
    nationality = db.Column(db.String(50))
    profile_picture_url = db.Column(db.String(500))

    # Null while a driver is between teams or a reserve
    constructor_id = db.Column(
        db.String(50), db.ForeignKey("constructors.id"), nullable=True
    )

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self):
        return f"<Driver {self.id}>"

    @property
    def full_name(self):
        return f"{self.given_name} {self.family_name}"

    @staticmethod
    def existing_ids(driver_ids):
        """Return the subset of driver_ids that exist"""
        wanted = {driver_id for driver_id in driver_ids if driver_id}
        if not wanted:
            return set()
        rows = db.session.query(Driver.id).filter(Driver.id.in_(wanted)).all()
        return {row.id for row in rows}

    @staticmethod
    def get_by_code(code):
        return Driver.query.filter(db.func.upper(Driver.code) == code.upper()).first()

    def to_dict(self):
        """Convert driver to dictionary for API responses"""
        return {
            "id": self.id,
            "code": self.code,
            "number": self.permanent_number,
            "first_name": self.given_name,
            "last_name": self.family_name,
            "nationality": self.nationality,
            "constructor_id": self.constructor_id,
            "constructor_name": self.constructor.name if self.constructor else None,
            "profile_picture_url": self.profile_picture_url,
        }
