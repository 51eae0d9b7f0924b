# Overview: Service-layer operations for PayRex payment notifications.

"""
Payment Reconciliation Service

PayRex calls us asynchronously (at-least-once) with the outcome of a QRPH
payment. We match the notification to a Payment by qrph_reference, move the
payment forward and, on PAID, complete the order.

RULES:
- Status mapping is binary: exactly "PAID" -> PAID, anything else -> FAILED
- Unknown references are acknowledged and ignored (test pings, garbage)
- Payment status only moves forward: QR_GENERATED -> PAID | FAILED.
  A repeat of the same outcome is a no-op; a contradicting one is logged
  and dropped.
- A known amount is never replaced by null
- Once parsed, the caller always gets an acknowledgment. Failures to apply
  are logged and sent on signals.payment_webhook_failed, not returned.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..models import Payment
from ..models.orders import PAYMENT_FAILED, PAYMENT_PAID, PAYMENT_QR_GENERATED
from ..signals import payment_webhook_failed
from ..time_utils import parse_iso_datetime, utcnow
from ..validation import ValidationError, parse_amount
from .concurrency import lock_for_update, run_with_retry
from .order_service import complete_order_from_payment


# Outcomes (returned for logging and tests; the HTTP response is always the same)
OUTCOME_APPLIED = "applied"
OUTCOME_DUPLICATE = "duplicate"
OUTCOME_IGNORED = "ignored"
OUTCOME_UNKNOWN_REFERENCE = "unknown_reference"
OUTCOME_FAILED = "failed"


@dataclass(frozen=True)
class PaymentNotification:
    reference: str
    reported_status: str | None
    amount: Decimal | None = None
    paid_at: datetime | None = None


def map_payment_status(reported_status: str | None) -> str:
    return PAYMENT_PAID if reported_status == PAYMENT_PAID else PAYMENT_FAILED


def parse_notification(data: dict) -> PaymentNotification:
    """
    Build a notification from the webhook body.

    Only a missing reference is fatal. An unreadable amount or paidAt is
    logged and treated as absent so PayRex is not pushed into retries.
    """
    reference = data.get("reference")
    if not reference or not isinstance(reference, str):
        raise ValidationError("reference is required")

    status = data.get("status")
    if status is not None and not isinstance(status, str):
        status = str(status)

    try:
        amount = parse_amount(data.get("amount"))
    except ValidationError:
        current_app.logger.warning("Ignoring unreadable amount in webhook for %s: %r", reference, data.get("amount"))
        amount = None

    try:
        paid_at = parse_iso_datetime(data.get("paidAt"))
    except (TypeError, ValueError):
        current_app.logger.warning("Ignoring unreadable paidAt in webhook for %s: %r", reference, data.get("paidAt"))
        paid_at = None

    return PaymentNotification(reference=reference, reported_status=status, amount=amount, paid_at=paid_at)


def apply_notification(notification: PaymentNotification) -> str:
    """Apply one notification in a single transaction. Exceptions propagate."""
    payment = lock_for_update(
        db.session.query(Payment).filter_by(qrph_reference=notification.reference)
    ).first()

    if payment is None:
        current_app.logger.warning("Payment not found for webhook reference %s", notification.reference)
        return OUTCOME_UNKNOWN_REFERENCE

    next_status = map_payment_status(notification.reported_status)

    if payment.status == PAYMENT_QR_GENERATED:
        payment.status = next_status
        payment.paid_at = notification.paid_at or utcnow()
        if notification.amount is not None:
            payment.amount = notification.amount
        outcome = OUTCOME_APPLIED
    elif payment.status == next_status:
        current_app.logger.info("Repeated %s notification for %s", next_status, notification.reference)
        outcome = OUTCOME_DUPLICATE
    else:
        current_app.logger.warning(
            "Ignoring %s notification for %s: payment is already %s",
            next_status, notification.reference, payment.status,
        )
        db.session.rollback()
        return OUTCOME_IGNORED

    # Re-run on duplicates too, so a cascade that failed earlier still lands
    if notification.reported_status == PAYMENT_PAID and payment.order_id is not None:
        if complete_order_from_payment(payment.order_id):
            current_app.logger.info(
                "Order %s completed by payment %s", payment.order_id, notification.reference
            )

    db.session.commit()
    return outcome


def handle_payment_notification(
    reference: str,
    reported_status: str | None,
    amount: Decimal | None = None,
    paid_at: datetime | None = None,
) -> str:
    """
    Reconcile a PayRex notification. Never raises.

    Returns one of the OUTCOME_* values.
    """
    notification = PaymentNotification(
        reference=reference,
        reported_status=reported_status,
        amount=amount,
        paid_at=paid_at,
    )
    try:
        return run_with_retry(lambda: apply_notification(notification))
    except Exception as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to apply payment webhook for %s", reference)
        try:
            payment_webhook_failed.send(
                current_app._get_current_object(),
                reference=reference,
                error=exc,
            )
        except Exception:
            current_app.logger.exception("payment_webhook_failed receiver raised for %s", reference)
        return OUTCOME_FAILED
