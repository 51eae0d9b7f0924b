# Overview: Service-layer operations for bearer tokens; signs and validates rider JWTs.

"""
Rider Token Service

Tokens are stateless HS256 JWTs carrying the rider identity:

    sub, riderId, name, phone, iat, exp (issue time + JWT_EXPIRES_HOURS)

The signing secret is passed in explicitly by the caller (taken from
app.config at the HTTP boundary). A missing secret is a configuration
error, never a reason to skip verification.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

import jwt

from ..models import Rider
from ..time_utils import utcnow
from ..validation import ConfigurationError


JWT_ALGORITHM = "HS256"
DEFAULT_EXPIRES_HOURS = 12


class InvalidTokenError(Exception):
    """Raised for malformed, forged or expired tokens (401)."""


@dataclass(frozen=True)
class RiderContext:
    """Authenticated rider identity carried by a token."""
    rider_id: int
    name: str
    phone: str


def _require_secret(secret: str | None) -> str:
    if not secret:
        raise ConfigurationError("JWT_SECRET is not configured")
    return secret


def issue_token(rider: Rider, secret: str | None, *, expires_hours: int = DEFAULT_EXPIRES_HOURS) -> str:
    """Sign a token for rider. Raises ConfigurationError when secret is missing."""
    signing_secret = _require_secret(secret)
    now = utcnow()
    payload = {
        "sub": str(rider.id),
        "riderId": rider.id,
        "name": rider.name,
        "phone": rider.phone,
        "iat": now,
        "exp": now + timedelta(hours=expires_hours),
    }
    return jwt.encode(payload, signing_secret, algorithm=JWT_ALGORITHM)


def decode_token(token: str, secret: str | None) -> RiderContext:
    """
    Validate signature and expiry and return the rider identity.

    Raises:
        ConfigurationError: secret missing
        InvalidTokenError: bad signature, expired, malformed or missing claims
    """
    signing_secret = _require_secret(secret)
    try:
        payload = jwt.decode(
            token,
            signing_secret,
            algorithms=[JWT_ALGORITHM],
            options={"require": ["exp", "riderId"]},
        )
    except jwt.ExpiredSignatureError:
        raise InvalidTokenError("Token expired")
    except jwt.InvalidTokenError:
        raise InvalidTokenError("Invalid token")

    rider_id = payload.get("riderId")
    if not isinstance(rider_id, int) or isinstance(rider_id, bool):
        raise InvalidTokenError("Invalid token")

    return RiderContext(
        rider_id=rider_id,
        name=payload.get("name") or "",
        phone=payload.get("phone") or "",
    )
