# Overview: Service-layer operations for rider auth; encapsulates business logic and database work.

"""
Rider Authentication Service

Riders self-register with name, phone and password and log in with
phone + password. Phone is the unique identifier.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12), salted per hash
- Login failures never reveal whether the phone exists
- Bearer tokens are issued separately (see token_service.py)
"""

import bcrypt
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Rider
from ..validation import ConflictError, ValidationError


class AuthenticationError(Exception):
    """Raised when credentials are missing or wrong (401)."""


BCRYPT_ROUNDS = 12

# bcrypt only reads the first 72 bytes; newer releases refuse longer input
MAX_PASSWORD_BYTES = 72


def hash_password(password: str) -> str:
    """Hash password using bcrypt with a fresh salt."""
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    bcrypt.checkpw() is timing-safe. Malformed stored hashes verify as False.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def register_rider(name: str, phone: str, password: str) -> Rider:
    """
    Create a rider account.

    Raises:
        ValidationError: name, phone or password missing
        ConflictError: phone already registered
    """
    name = (name or "").strip()
    phone = (phone or "").strip()
    if not name or not phone or not password:
        raise ValidationError("name, phone and password are required")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"password must be at most {MAX_PASSWORD_BYTES} bytes")

    existing = db.session.query(Rider).filter_by(phone=phone).first()
    if existing:
        raise ConflictError("Phone number is already registered")

    rider = Rider(name=name, phone=phone, password_hash=hash_password(password))
    db.session.add(rider)
    try:
        db.session.commit()
    except IntegrityError:
        # Lost a race with a concurrent registration for the same phone
        db.session.rollback()
        raise ConflictError("Phone number is already registered")
    return rider


def authenticate(phone: str, password: str) -> Rider:
    """
    Return the rider for valid credentials.

    Raises AuthenticationError("Invalid credentials") for an unknown phone
    or a wrong password alike.
    """
    if not phone or not password:
        raise ValidationError("phone and password are required")

    rider = db.session.query(Rider).filter_by(phone=phone.strip()).first()
    if not rider or not verify_password(password, rider.password_hash):
        raise AuthenticationError("Invalid credentials")
    return rider