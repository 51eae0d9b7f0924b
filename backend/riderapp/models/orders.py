from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


# Order lifecycle status (see order_service.VALID_TRANSITIONS)
ORDER_PENDING = "PENDING"
ORDER_EN_ROUTE = "EN_ROUTE"
ORDER_ARRIVED = "ARRIVED"
ORDER_PAYMENT_PENDING = "PAYMENT_PENDING"
ORDER_COMPLETED = "COMPLETED"
ORDER_CANCELLED = "CANCELLED"

ORDER_STATUSES = (
    ORDER_PENDING,
    ORDER_EN_ROUTE,
    ORDER_ARRIVED,
    ORDER_PAYMENT_PENDING,
    ORDER_COMPLETED,
    ORDER_CANCELLED,
)

# Collection method chosen at the door
PAYMENT_METHOD_CASH = "CASH"
PAYMENT_METHOD_QRPH = "QRPH"
PAYMENT_METHODS = (PAYMENT_METHOD_CASH, PAYMENT_METHOD_QRPH)

# Payment record status. Moves forward only: QR_GENERATED -> PAID | FAILED
PAYMENT_QR_GENERATED = "QR_GENERATED"
PAYMENT_PAID = "PAID"
PAYMENT_FAILED = "FAILED"
PAYMENT_STATUSES = (PAYMENT_QR_GENERATED, PAYMENT_PAID, PAYMENT_FAILED)


def _money(value):
    return float(value) if value is not None else None


class Order(db.Model):
    """
    Delivery task assigned to a rider.

    The order is the aggregate root: payments and proofs reference it by id
    but are stored and updated independently.

    version_id: optimistic locking for ORM writes. Status transitions use an
    explicit conditional UPDATE instead (see order_service.compare_and_set_status).
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.CheckConstraint(
            "status IN ('PENDING','EN_ROUTE','ARRIVED','PAYMENT_PENDING','COMPLETED','CANCELLED')",
            name="ck_orders_status",
        ),
        db.CheckConstraint(
            "payment_method IS NULL OR payment_method IN ('CASH','QRPH')",
            name="ck_orders_payment_method",
        ),
        db.Index("ix_orders_rider_status_created", "rider_id", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    rider_id = db.Column(db.Integer, db.ForeignKey("riders.id"), nullable=False, index=True)

    # Human-readable number printed on the waybill (e.g. "100234")
    order_number = db.Column(db.String(64), nullable=False, unique=True)
    barcode = db.Column(db.String(128), nullable=False)

    status = db.Column(db.String(20), nullable=False, default=ORDER_PENDING, index=True)
    payment_method = db.Column(db.String(8), nullable=True)
    payment_id = db.Column(db.Integer, db.ForeignKey("payments.id", use_alter=True, name="fk_orders_payment_id_payments"), nullable=True)
    cod_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    customer_name = db.Column(db.String(120), nullable=True)
    customer_phone = db.Column(db.String(32), nullable=True)
    delivery_address = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    rider = db.relationship("Rider", backref=db.backref("orders", lazy=True))

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Order id={self.id} number={self.order_number!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "rider_id": self.rider_id,
            "order_number": self.order_number,
            "barcode": self.barcode,
            "status": self.status,
            "payment_method": self.payment_method,
            "payment_id": self.payment_id,
            "cod_amount": _money(self.cod_amount),
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "delivery_address": self.delivery_address,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class Payment(db.Model):
    """
    Electronic collection attempt for an order.

    Only QRPH collections are persisted; cash is recorded on the order's
    payment_method alone. qrph_reference is the correlation key the PayRex
    webhook reports back, so it is unique and never regenerated.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.CheckConstraint(
            "status IN ('QR_GENERATED','PAID','FAILED')",
            name="ck_payments_status",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)

    method = db.Column(db.String(8), nullable=False, default=PAYMENT_METHOD_QRPH)
    status = db.Column(db.String(16), nullable=False, default=PAYMENT_QR_GENERATED, index=True)

    qrph_reference = db.Column(db.String(128), nullable=False, unique=True)
    qrph_qr_string = db.Column(db.Text, nullable=True)
    provider_intent_id = db.Column(db.String(128), nullable=True)

    amount = db.Column(db.Numeric(12, 2), nullable=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    order = db.relationship("Order", foreign_keys=[order_id], backref=db.backref("payments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "method": self.method,
            "status": self.status,
            "qrph_reference": self.qrph_reference,
            "qrph_qr_string": self.qrph_qr_string,
            "provider_intent_id": self.provider_intent_id,
            "amount": _money(self.amount),
            "paid_at": to_utc_z(self.paid_at),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ProofOfDelivery(db.Model):
    """
    Photo (and optional signature) captured at handover.

    No uniqueness per order: riders may attach an amended proof.
    """
    __tablename__ = "proofs"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    photo_url = db.Column(db.String(1024), nullable=False)
    customer_name = db.Column(db.String(120), nullable=True)
    signature_url = db.Column(db.String(1024), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    order = db.relationship("Order", backref=db.backref("proofs", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "photo_url": self.photo_url,
            "customer_name": self.customer_name,
            "signature_url": self.signature_url,
            "created_at": to_utc_z(self.created_at),
        }
