# Overview: Service-layer operations for rider push devices.

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import RiderDevice
from ..validation import ValidationError


def register_device(rider_id: int, device_token: str | None, platform: str | None = None) -> RiderDevice:
    """
    Upsert on (rider_id, device_token): re-registering refreshes platform
    and updated_at instead of failing.
    """
    if not device_token:
        raise ValidationError("deviceToken is required")

    device = db.session.query(RiderDevice).filter_by(rider_id=rider_id, device_token=device_token).first()
    if device is None:
        device = RiderDevice(rider_id=rider_id, device_token=device_token, platform=platform)
        db.session.add(device)
        try:
            db.session.commit()
            return device
        except IntegrityError:
            # Same phone registered twice at once; fall through to update
            db.session.rollback()
            device = db.session.query(RiderDevice).filter_by(rider_id=rider_id, device_token=device_token).one()

    device.platform = platform
    device.updated_at = db.func.now()
    db.session.commit()
    return device


def list_devices(rider_id: int) -> list[RiderDevice]:
    return db.session.query(RiderDevice).filter_by(rider_id=rider_id).order_by(RiderDevice.id).all()
