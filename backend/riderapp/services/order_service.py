# Overview: Service-layer operations for rider orders; encapsulates business logic and database work.

"""
Order Lifecycle Service

================================================================================
PURPOSE: Gate every order status change through a fixed forward-only table
================================================================================

STATE MACHINE (rider-requested transitions):
    PENDING -> EN_ROUTE -> ARRIVED -> PAYMENT_PENDING -> COMPLETED
    COMPLETED and CANCELLED are terminal.

SIDE CHANNELS (named operations, NOT routed through the table):
    initiate_qrph_payment:        any non-terminal status -> PAYMENT_PENDING
    complete_order_from_payment:  any status except COMPLETED -> COMPLETED
                                  (driven by the PayRex webhook)

OWNERSHIP: every rider-facing operation filters by (order id, rider id).
An order owned by another rider is reported exactly like a missing one.

CONCURRENCY: request_status_change reads the current status, validates it,
then writes with a conditional UPDATE ... WHERE status = <status read>.
Losing that race re-reads and re-validates instead of clobbering.
================================================================================
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Order, Payment, ProofOfDelivery
from ..models.orders import (
    ORDER_ARRIVED,
    ORDER_CANCELLED,
    ORDER_COMPLETED,
    ORDER_EN_ROUTE,
    ORDER_PAYMENT_PENDING,
    ORDER_PENDING,
    ORDER_STATUSES,
    PAYMENT_METHOD_QRPH,
    PAYMENT_METHODS,
    PAYMENT_QR_GENERATED,
)
from ..validation import ConflictError, ValidationError
from .concurrency import conditional_update, lock_for_update, run_with_retry


# Current status -> statuses a rider may request next
VALID_TRANSITIONS: dict[str, frozenset[str]] = {
    ORDER_PENDING: frozenset({ORDER_EN_ROUTE}),
    ORDER_EN_ROUTE: frozenset({ORDER_ARRIVED}),
    ORDER_ARRIVED: frozenset({ORDER_PAYMENT_PENDING}),
    ORDER_PAYMENT_PENDING: frozenset({ORDER_COMPLETED}),
    ORDER_COMPLETED: frozenset(),
    ORDER_CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset({ORDER_COMPLETED, ORDER_CANCELLED})

STATUS_CHANGE_ATTEMPTS = 3


class OrderNotFoundError(LookupError):
    """Order does not exist or belongs to another rider (404)."""

    def __init__(self, order_id: int):
        self.order_id = order_id
        super().__init__("Order not found")


class InvalidOrderStateError(ValueError):
    """Operation not valid for the order's current state (400)."""


class OrderTransitionError(InvalidOrderStateError):
    """Requested status is not reachable from the current status (400)."""

    def __init__(self, from_status: str, to_status: str):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(f"Invalid status transition from {from_status} to {to_status}")


class OrderConflictError(ConflictError):
    """Concurrent writers kept moving the order; caller may retry (409)."""


def can_transition(from_status: str, to_status: str) -> bool:
    """True if a rider may move an order from from_status to to_status."""
    return to_status in VALID_TRANSITIONS.get(from_status, frozenset())


def payment_reference(order: Order) -> str:
    """Correlation key sent to PayRex and echoed back by its webhook."""
    return f"ORDER-{order.order_number}"


# =============================================================================
# READS
# =============================================================================

def get_owned_order(order_id: int, rider_id: int) -> Order:
    """Fresh read of an order scoped to its rider. Raises OrderNotFoundError."""
    order = (
        db.session.query(Order)
        .filter_by(id=order_id, rider_id=rider_id)
        .populate_existing()
        .first()
    )
    if order is None:
        raise OrderNotFoundError(order_id)
    return order


def list_orders(rider_id: int, status: str | None = None) -> list[Order]:
    """Rider's orders, newest first, optionally filtered by status."""
    query = db.session.query(Order).filter_by(rider_id=rider_id)
    if status:
        query = query.filter(Order.status == status)
    return query.order_by(Order.created_at.desc(), Order.id.desc()).all()


def get_order_detail(order_id: int, rider_id: int) -> dict:
    """
    Order with its payment and latest proof of delivery.

    payment: the payment the order links to, else the newest for the order.
    """
    order = get_owned_order(order_id, rider_id)

    payment = None
    if order.payment_id is not None:
        payment = db.session.get(Payment, order.payment_id)
    if payment is None:
        payment = (
            db.session.query(Payment)
            .filter_by(order_id=order.id)
            .order_by(Payment.created_at.desc(), Payment.id.desc())
            .first()
        )

    proof = (
        db.session.query(ProofOfDelivery)
        .filter_by(order_id=order.id)
        .order_by(ProofOfDelivery.created_at.desc(), ProofOfDelivery.id.desc())
        .first()
    )

    return {
        "order": order.to_dict(),
        "payment": payment.to_dict() if payment else None,
        "proofOfDelivery": proof.to_dict() if proof else None,
    }


def verify_barcode(order_id: int, rider_id: int, scanned_code: str) -> bool:
    """Compare a scanned code with the order's barcode. A mismatch is a normal result."""
    if not scanned_code:
        raise ValidationError("scannedCode is required")
    order = get_owned_order(order_id, rider_id)
    return order.barcode == scanned_code


# =============================================================================
# STATUS TRANSITIONS
# =============================================================================

def compare_and_set_status(order_id: int, rider_id: int, expected_status: str, target_status: str) -> bool:
    """
    Move the order to target_status only if it is still expected_status.

    Returns False when another writer changed the status first. Does not commit.
    """
    query = db.session.query(Order).filter(
        Order.id == order_id,
        Order.rider_id == rider_id,
        Order.status == expected_status,
    )
    return conditional_update(query, {
        Order.status: target_status,
        Order.version_id: Order.version_id + 1,
    })


def request_status_change(
    order_id: int,
    rider_id: int,
    target_status: str | None,
    *,
    attempts: int = STATUS_CHANGE_ATTEMPTS,
) -> Order:
    """
    Rider-requested transition, validated against VALID_TRANSITIONS.

    Raises:
        ValidationError: target_status missing
        OrderNotFoundError: order missing or not owned by rider
        OrderTransitionError: target not reachable from the current status,
            including after losing a race to a concurrent writer
        OrderConflictError: status kept changing for every attempt
    """
    if not target_status:
        raise ValidationError("status is required")

    for attempt in range(attempts):
        order = get_owned_order(order_id, rider_id)
        current_status = order.status

        if not can_transition(current_status, target_status):
            raise OrderTransitionError(current_status, target_status)

        if compare_and_set_status(order_id, rider_id, current_status, target_status):
            db.session.commit()
            return get_owned_order(order_id, rider_id)

        db.session.rollback()
        current_app.logger.warning(
            "Order %s changed while moving %s -> %s (attempt %s/%s)",
            order_id, current_status, target_status, attempt + 1, attempts,
        )

    raise OrderConflictError(f"Order {order_id} is being updated concurrently, retry the request")


def complete_order_from_payment(order_id: int) -> bool:
    """
    Side channel used by payment reconciliation: confirmed payment completes
    the order regardless of VALID_TRANSITIONS.

    Returns False if the order was already COMPLETED (or does not exist).
    Does not commit.
    """
    query = db.session.query(Order).filter(
        Order.id == order_id,
        Order.status != ORDER_COMPLETED,
    )
    return conditional_update(query, {
        Order.status: ORDER_COMPLETED,
        Order.version_id: Order.version_id + 1,
    })


# =============================================================================
# PAYMENT METHOD / QRPH
# =============================================================================

def set_payment_method(order_id: int, rider_id: int, method: str | None) -> Order:
    """Record how the customer pays. Allowed at any status."""
    if method not in PAYMENT_METHODS:
        raise ValidationError("Invalid payment method")

    def _op():
        order = get_owned_order(order_id, rider_id)
        order.payment_method = method
        db.session.commit()
        return order

    return run_with_retry(_op)


def qrph_payload(payment: Payment, currency: str) -> dict:
    return {
        "qrString": payment.qrph_qr_string,
        "amount": float(payment.amount) if payment.amount is not None else None,
        "currency": currency,
        "reference": payment.qrph_reference,
    }


def _link_pending_payment(order_id: int, rider_id: int, payment_id: int) -> bool:
    query = db.session.query(Order).filter(
        Order.id == order_id,
        Order.rider_id == rider_id,
        Order.status.notin_(TERMINAL_STATUSES),
    )
    return conditional_update(query, {
        Order.payment_id: payment_id,
        Order.status: ORDER_PAYMENT_PENDING,
        Order.version_id: Order.version_id + 1,
    })


def initiate_qrph_payment(order_id: int, rider_id: int, *, provider, currency: str) -> Payment:
    """
    Generate a QRPH code for the order's cash-on-delivery amount.

    Side channel: the order goes straight to PAYMENT_PENDING without
    consulting VALID_TRANSITIONS. The Payment row is flushed before the order
    is touched, in the same transaction, so an order never points at a
    payment that failed to persist.

    Reference is ORDER-<order_number> and never changes. Calling again while
    that payment is still QR_GENERATED returns it without a new PayRex call.

    Raises:
        OrderNotFoundError
        InvalidOrderStateError: method is not QRPH, order is terminal,
            nothing to collect, or the reference was already settled
        PaymentProviderError / ConfigurationError: from the provider
    """
    order = get_owned_order(order_id, rider_id)

    if order.payment_method != PAYMENT_METHOD_QRPH:
        raise InvalidOrderStateError("Payment method must be QRPH")
    if order.status in TERMINAL_STATUSES:
        raise InvalidOrderStateError(f"Cannot collect payment for a {order.status} order")

    reference = payment_reference(order)
    existing = db.session.query(Payment).filter_by(qrph_reference=reference).first()
    if existing is not None:
        return _resume_existing_payment(order_id, rider_id, existing)

    amount = Decimal(order.cod_amount or 0)
    if amount <= 0:
        raise InvalidOrderStateError("Order has no amount to collect")

    intent = provider.create_qrph_payment_intent(amount=amount, currency=currency, reference=reference)

    def _op():
        payment = Payment(
            order_id=order_id,
            method=PAYMENT_METHOD_QRPH,
            status=PAYMENT_QR_GENERATED,
            qrph_reference=reference,
            qrph_qr_string=intent.qr_string,
            provider_intent_id=intent.id,
            amount=amount,
        )
        db.session.add(payment)
        db.session.flush()

        if not _link_pending_payment(order_id, rider_id, payment.id):
            db.session.rollback()
            raise InvalidOrderStateError("Order can no longer accept a payment")

        db.session.commit()
        return payment

    try:
        payment = run_with_retry(_op)
    except IntegrityError:
        # A concurrent request created the same reference first
        db.session.rollback()
        existing = db.session.query(Payment).filter_by(qrph_reference=reference).first()
        if existing is None:
            raise
        return _resume_existing_payment(order_id, rider_id, existing)

    current_app.logger.info("QRPH payment %s generated for order %s", reference, order_id)
    return payment


def _resume_existing_payment(order_id: int, rider_id: int, payment: Payment) -> Payment:
    if payment.status != PAYMENT_QR_GENERATED:
        raise InvalidOrderStateError(
            f"Payment {payment.qrph_reference} is already {payment.status}"
        )
    order = get_owned_order(order_id, rider_id)
    if order.payment_id != payment.id or order.status != ORDER_PAYMENT_PENDING:
        if not _link_pending_payment(order_id, rider_id, payment.id):
            db.session.rollback()
            raise InvalidOrderStateError("Order can no longer accept a payment")
        db.session.commit()
    return payment


# =============================================================================
# PROOF OF DELIVERY
# =============================================================================

def attach_proof_of_delivery(
    order_id: int,
    rider_id: int,
    photo_url: str | None,
    customer_name: str | None = None,
    signature_url: str | None = None,
) -> ProofOfDelivery:
    """
    Store handover evidence. Not gated by status and not unique per order.
    """
    if not photo_url:
        raise ValidationError("photoUrl is required")

    order = get_owned_order(order_id, rider_id)
    proof = ProofOfDelivery(
        order_id=order.id,
        photo_url=photo_url,
        customer_name=customer_name,
        signature_url=signature_url,
    )
    db.session.add(proof)
    db.session.commit()
    return proof


# =============================================================================
# INTAKE (CLI / seeding)
# =============================================================================

def create_order(
    rider_id: int,
    order_number: str,
    barcode: str,
    cod_amount=0,
    *,
    status: str = ORDER_PENDING,
    customer_name: str | None = None,
    customer_phone: str | None = None,
    delivery_address: str | None = None,
) -> Order:
    """Assign a new delivery to a rider."""
    if not order_number or not barcode:
        raise ValidationError("order_number and barcode are required")
    if status not in ORDER_STATUSES:
        raise ValidationError(f"Invalid status '{status}'. Must be one of: {', '.join(ORDER_STATUSES)}")

    existing = lock_for_update(db.session.query(Order).filter_by(order_number=order_number)).first()
    if existing:
        raise ConflictError(f"Order number {order_number} already exists")

    order = Order(
        rider_id=rider_id,
        order_number=order_number,
        barcode=barcode,
        cod_amount=Decimal(str(cod_amount)),
        status=status,
        customer_name=customer_name,
        customer_phone=customer_phone,
        delivery_address=delivery_address,
    )
    db.session.add(order)
    db.session.commit()
    return order
