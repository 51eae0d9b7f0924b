from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Rider(db.Model):
    """
    Courier account used by the mobile app.

    Phone number is the login identifier and must be unique.
    Password is stored only as a bcrypt hash (see auth_service.py).
    """
    __tablename__ = "riders"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    phone = db.Column(db.String(32), nullable=False, unique=True, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Rider id={self.id} phone={self.phone!r}>"

    def to_dict(self) -> dict:
        # Never expose password_hash
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
        }


class RiderDevice(db.Model):
    """Push notification target registered by a rider's phone."""
    __tablename__ = "rider_devices"
    __table_args__ = (
        db.UniqueConstraint("rider_id", "device_token", name="uq_rider_devices_rider_token"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    rider_id = db.Column(db.Integer, db.ForeignKey("riders.id"), nullable=False, index=True)
    device_token = db.Column(db.String(512), nullable=False)
    platform = db.Column(db.String(32), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    rider = db.relationship("Rider", backref=db.backref("devices", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "rider_id": self.rider_id,
            "device_token": self.device_token,
            "platform": self.platform,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
