# Overview: PayRex API client for QRPH payment intents and webhook signatures.

"""
PayRex client

Only the two calls this backend needs:
- create a QRPH payment intent (returns the scannable QR string)
- verify the Payrex-Signature header of an incoming webhook

No retries here: a failed call surfaces as PaymentProviderError and the
rider can tap "Generate QR" again.
"""

from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import httpx
from flask import current_app

from ..validation import ConfigurationError


class PaymentProviderError(Exception):
    """PayRex could not be reached or rejected the request (502)."""


@dataclass
class QrphIntent:
    id: str | None
    reference: str
    qr_string: str | None
    raw: dict[str, Any] = field(default_factory=dict)


def to_cents(amount) -> int:
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _extract_qr_string(intent: dict) -> str | None:
    qrph = intent.get("qrph")
    if isinstance(qrph, dict) and qrph.get("qr_string"):
        return qrph["qr_string"]
    next_action = intent.get("next_action")
    if isinstance(next_action, dict):
        display = next_action.get("display_qr") or {}
        if isinstance(display, dict) and display.get("qr_string"):
            return display["qr_string"]
    return intent.get("qrph_qr_string") or intent.get("qr_string")


class PayrexClient:
    def __init__(
        self,
        secret_key: str,
        *,
        base_url: str = "https://api.payrexhq.com",
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        if not secret_key:
            raise ConfigurationError("PAYREX_SECRET_API_KEY is not configured")
        self._client = httpx.Client(
            base_url=base_url,
            auth=(secret_key, ""),
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def create_qrph_payment_intent(self, *, amount, currency: str, reference: str) -> QrphIntent:
        if not amount:
            raise ValueError("amount is required for QRPH payment intent")

        form = {
            "amount": str(to_cents(amount)),
            "currency": currency,
            "payment_methods[]": "qrph",
            "metadata[reference]": reference,
        }
        try:
            response = self._client.post("/payment_intents", data=form)
            response.raise_for_status()
            intent = response.json()
        except httpx.HTTPStatusError as exc:
            raise PaymentProviderError(
                f"PayRex rejected payment intent ({exc.response.status_code})"
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise PaymentProviderError("PayRex request failed") from exc

        return QrphIntent(
            id=intent.get("id"),
            reference=reference,
            qr_string=_extract_qr_string(intent),
            raw=intent,
        )


def get_payment_provider():
    """
    Provider bound to the current app, built from app.config on first use.

    Tests (or alternative deployments) install their own object under
    app.extensions["payment_provider"]; anything with a
    create_qrph_payment_intent(amount=, currency=, reference=) method works.
    """
    provider = current_app.extensions.get("payment_provider")
    if provider is None:
        config = current_app.config
        provider = PayrexClient(
            config.get("PAYREX_SECRET_API_KEY"),
            base_url=config.get("PAYREX_API_BASE", "https://api.payrexhq.com"),
            timeout=config.get("PAYMENT_PROVIDER_TIMEOUT", 10.0),
        )
        current_app.extensions["payment_provider"] = provider
    return provider


def verify_webhook_signature(payload: bytes, header: str | None, secret: str) -> bool:
    """
    Check a Payrex-Signature header: "t=<timestamp>,te=<test sig>,li=<live sig>".

    Signature is hex HMAC-SHA256 of "<timestamp>.<raw body>" keyed by the
    webhook secret. Either the test-mode or the live-mode signature may match.
    """
    if not header:
        return False
    parts = {}
    for item in header.split(","):
        key, sep, value = item.strip().partition("=")
        if sep:
            parts[key] = value
    timestamp = parts.get("t")
    signatures = [parts[key] for key in ("te", "li") if parts.get(key)]
    if not timestamp or not signatures:
        return False

    signed = timestamp.encode("utf-8") + b"." + payload
    expected = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return any(hmac.compare_digest(expected, signature) for signature in signatures)
