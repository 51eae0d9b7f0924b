"""
QRPH payment and PayRex webhook tests.

Verifies:
- QR generation is gated on the QRPH method and moves the order to PAYMENT_PENDING
- The payment row is persisted before the order points at it
- Re-generation returns the same reference without a second PayRex call
- Webhook reconciliation is idempotent, forward-only and always acknowledged
"""

import hashlib
import hmac
import json
from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from riderapp.extensions import db
from riderapp.models import Payment
from riderapp.services import order_service, webhook_service
from riderapp.services.order_service import InvalidOrderStateError
from riderapp.services.payrex_client import PaymentProviderError
from riderapp.signals import payment_webhook_failed

from conftest import reload_order, reload_payment


WEBHOOK_URL = "/api/webhooks/payrex/payment"


def qrph_url(order_id):
    return f"/api/rider/orders/{order_id}/payment/qrph"


# =============================================================================
# QRPH INITIATION
# =============================================================================


class TestInitiateQrph:

    def test_generates_qr_and_moves_to_payment_pending(self, client, headers_a, arrived_qrph_order, payment_provider):
        resp = client.post(qrph_url(arrived_qrph_order.id), headers=headers_a)
        assert resp.status_code == 200

        body = resp.json
        assert body["qrphPayload"] == {
            "qrString": "00020101021228QRPHORDER-100500",
            "amount": 1250.5,
            "currency": "PHP",
            "reference": "ORDER-100500",
        }

        order = reload_order(arrived_qrph_order.id)
        assert order.status == "PAYMENT_PENDING"
        assert order.payment_id == body["paymentId"]

        payment = reload_payment(body["paymentId"])
        assert payment.status == "QR_GENERATED"
        assert payment.method == "QRPH"
        assert payment.order_id == order.id
        assert payment.provider_intent_id == "pi_test_1"
        assert payment.amount == Decimal("1250.50")

        assert payment_provider.calls == [
            {"amount": Decimal("1250.50"), "currency": "PHP", "reference": "ORDER-100500"}
        ]

    def test_cash_order_is_rejected_untouched(self, client, headers_a, rider_a, order_a, payment_provider):
        order_service.set_payment_method(order_a.id, rider_a.id, "CASH")

        resp = client.post(qrph_url(order_a.id), headers=headers_a)
        assert resp.status_code == 400
        assert resp.json["error"] == "Payment method must be QRPH"

        order = reload_order(order_a.id)
        assert order.status == "PENDING"
        assert order.payment_id is None
        assert payment_provider.calls == []
        assert db.session.query(Payment).count() == 0

    def test_unset_method_is_rejected(self, client, headers_a, order_a, payment_provider):
        resp = client.post(qrph_url(order_a.id), headers=headers_a)
        assert resp.status_code == 400
        assert payment_provider.calls == []

    def test_bypasses_transition_table(self, rider_a, order_a, payment_provider):
        order_service.set_payment_method(order_a.id, rider_a.id, "QRPH")

        order_service.initiate_qrph_payment(order_a.id, rider_a.id, provider=payment_provider, currency="PHP")

        assert reload_order(order_a.id).status == "PAYMENT_PENDING"

    def test_repeat_returns_same_payment(self, client, headers_a, arrived_qrph_order, pending_payment, payment_provider):
        resp = client.post(qrph_url(arrived_qrph_order.id), headers=headers_a)
        assert resp.status_code == 200
        assert resp.json["paymentId"] == pending_payment.id
        assert resp.json["qrphPayload"]["reference"] == "ORDER-100500"

        assert len(payment_provider.calls) == 1
        assert db.session.query(Payment).count() == 1

    def test_settled_reference_is_not_regenerated(self, client, headers_a, arrived_qrph_order, pending_payment, payment_provider):
        webhook_service.handle_payment_notification("ORDER-100500", "FAILED")

        resp = client.post(qrph_url(arrived_qrph_order.id), headers=headers_a)
        assert resp.status_code == 400
        assert len(payment_provider.calls) == 1

    @pytest.mark.parametrize("status", ["COMPLETED", "CANCELLED"])
    def test_terminal_order_is_rejected(self, client, headers_a, rider_a, payment_provider, status):
        order = order_service.create_order(rider_a.id, "100800", "BC-100800", "50", status=status)
        order_service.set_payment_method(order.id, rider_a.id, "QRPH")

        resp = client.post(qrph_url(order.id), headers=headers_a)
        assert resp.status_code == 400
        assert reload_order(order.id).status == status
        assert payment_provider.calls == []

    def test_zero_amount_is_rejected(self, rider_a, payment_provider):
        order = order_service.create_order(rider_a.id, "100801", "BC-100801", "0", status="ARRIVED")
        order_service.set_payment_method(order.id, rider_a.id, "QRPH")

        with pytest.raises(InvalidOrderStateError):
            order_service.initiate_qrph_payment(order.id, rider_a.id, provider=payment_provider, currency="PHP")
        assert payment_provider.calls == []

    def test_provider_failure_is_502(self, client, headers_a, arrived_qrph_order, payment_provider):
        payment_provider.error = PaymentProviderError("PayRex rejected payment intent (503)")

        resp = client.post(qrph_url(arrived_qrph_order.id), headers=headers_a)
        assert resp.status_code == 502
        assert resp.json["error"] == "Payment provider unavailable"

        order = reload_order(arrived_qrph_order.id)
        assert order.status == "ARRIVED"
        assert order.payment_id is None
        assert db.session.query(Payment).count() == 0

    def test_missing_provider_key_is_500(self, client, headers_a, app, arrived_qrph_order, monkeypatch):
        app.extensions.pop("payment_provider", None)
        monkeypatch.setitem(app.config, "PAYREX_SECRET_API_KEY", None)

        resp = client.post(qrph_url(arrived_qrph_order.id), headers=headers_a)
        assert resp.status_code == 500
        assert resp.json["error"] == "Server configuration error"
        assert reload_order(arrived_qrph_order.id).status == "ARRIVED"

    def test_failed_payment_write_leaves_order_unadvanced(self, rider_a, arrived_qrph_order, payment_provider, monkeypatch):
        def failing_flush(*args, **kwargs):
            raise OperationalError("INSERT INTO payments", {}, Exception("disk I/O error"))

        monkeypatch.setattr(db.session, "flush", failing_flush)

        with pytest.raises(OperationalError):
            order_service.initiate_qrph_payment(
                arrived_qrph_order.id, rider_a.id, provider=payment_provider, currency="PHP"
            )

        monkeypatch.undo()
        order = reload_order(arrived_qrph_order.id)
        assert order.status == "ARRIVED"
        assert order.payment_id is None
        assert db.session.query(Payment).count() == 0


# =============================================================================
# WEBHOOK RECONCILIATION
# =============================================================================


class TestPaymentWebhook:

    def test_paid_completes_order(self, client, arrived_qrph_order, pending_payment):
        resp = client.post(WEBHOOK_URL, json={
            "reference": "ORDER-100500",
            "status": "PAID",
            "amount": 1250.50,
            "paidAt": "2026-10-19T08:00:00Z",
        })
        assert resp.status_code == 200
        assert resp.json == {"received": True}

        payment = reload_payment(pending_payment.id)
        assert payment.status == "PAID"
        assert payment.paid_at.replace(tzinfo=None) == datetime(2026, 10, 19, 8, 0, 0)
        assert reload_order(arrived_qrph_order.id).status == "COMPLETED"

    def test_repeat_is_a_no_op(self, client, arrived_qrph_order, pending_payment):
        body = {"reference": "ORDER-100500", "status": "PAID", "paidAt": "2026-10-19T08:00:00Z"}
        client.post(WEBHOOK_URL, json=body)
        version = reload_order(arrived_qrph_order.id).version_id

        resp = client.post(WEBHOOK_URL, json=dict(body, paidAt="2026-10-19T09:30:00Z"))
        assert resp.status_code == 200

        payment = reload_payment(pending_payment.id)
        assert payment.status == "PAID"
        assert payment.paid_at.replace(tzinfo=None) == datetime(2026, 10, 19, 8, 0, 0)
        order = reload_order(arrived_qrph_order.id)
        assert order.status == "COMPLETED"
        assert order.version_id == version

    def test_unknown_reference_is_acknowledged(self, client, db_session):
        resp = client.post(WEBHOOK_URL, json={"reference": "ORDER-NOPE", "status": "PAID"})
        assert resp.status_code == 200
        assert resp.json == {"received": True}
        assert webhook_service.handle_payment_notification("ORDER-NOPE", "PAID") == "unknown_reference"

    @pytest.mark.parametrize("body", [{}, {"status": "PAID"}, {"reference": ""}, {"reference": 42}])
    def test_missing_reference_is_400(self, client, db_session, body):
        resp = client.post(WEBHOOK_URL, json=body)
        assert resp.status_code == 400
        assert resp.json["error"] == "reference is required"

    @pytest.mark.parametrize("status", ["FAILED", "EXPIRED", "paid", None])
    def test_anything_but_paid_fails_payment(self, client, arrived_qrph_order, pending_payment, status):
        resp = client.post(WEBHOOK_URL, json={"reference": "ORDER-100500", "status": status})
        assert resp.status_code == 200

        payment = reload_payment(pending_payment.id)
        assert payment.status == "FAILED"
        assert payment.paid_at is not None
        assert reload_order(arrived_qrph_order.id).status == "PAYMENT_PENDING"

    def test_absent_amount_keeps_known_amount(self, client, pending_payment):
        client.post(WEBHOOK_URL, json={"reference": "ORDER-100500", "status": "PAID"})
        assert reload_payment(pending_payment.id).amount == Decimal("1250.50")

    def test_reported_amount_replaces_amount(self, client, pending_payment):
        client.post(WEBHOOK_URL, json={"reference": "ORDER-100500", "status": "PAID", "amount": "1200"})
        assert reload_payment(pending_payment.id).amount == Decimal("1200.00")

    def test_unreadable_fields_are_ignored(self, client, arrived_qrph_order, pending_payment):
        resp = client.post(WEBHOOK_URL, json={
            "reference": "ORDER-100500",
            "status": "PAID",
            "amount": "a lot",
            "paidAt": "yesterday",
        })
        assert resp.status_code == 200

        payment = reload_payment(pending_payment.id)
        assert payment.status == "PAID"
        assert payment.amount == Decimal("1250.50")
        assert payment.paid_at is not None
        assert reload_order(arrived_qrph_order.id).status == "COMPLETED"

    def test_paid_after_failed_is_ignored(self, arrived_qrph_order, pending_payment):
        assert webhook_service.handle_payment_notification("ORDER-100500", "FAILED") == "applied"
        assert webhook_service.handle_payment_notification("ORDER-100500", "PAID") == "ignored"

        assert reload_payment(pending_payment.id).status == "FAILED"
        assert reload_order(arrived_qrph_order.id).status == "PAYMENT_PENDING"

    def test_failed_after_paid_is_ignored(self, arrived_qrph_order, pending_payment):
        webhook_service.handle_payment_notification("ORDER-100500", "PAID")
        assert webhook_service.handle_payment_notification("ORDER-100500", "FAILED") == "ignored"
        assert reload_payment(pending_payment.id).status == "PAID"

    def test_repeat_paid_finishes_missed_cascade(self, arrived_qrph_order, pending_payment):
        payment = db.session.get(Payment, pending_payment.id)
        payment.status = "PAID"
        db.session.commit()
        assert reload_order(arrived_qrph_order.id).status == "PAYMENT_PENDING"

        assert webhook_service.handle_payment_notification("ORDER-100500", "PAID") == "duplicate"
        assert reload_order(arrived_qrph_order.id).status == "COMPLETED"

    def test_cascade_ignores_transition_table(self, arrived_qrph_order, pending_payment):
        order = reload_order(arrived_qrph_order.id)
        order.status = "EN_ROUTE"
        db.session.commit()

        webhook_service.handle_payment_notification("ORDER-100500", "PAID")
        assert reload_order(arrived_qrph_order.id).status == "COMPLETED"

    def test_apply_failure_is_acknowledged_and_signalled(self, app, client, arrived_qrph_order, pending_payment, monkeypatch):
        def broken_cascade(order_id):
            raise RuntimeError("orders table locked")

        monkeypatch.setattr(webhook_service, "complete_order_from_payment", broken_cascade)

        failures = []

        def on_failure(sender, **extra):
            failures.append(extra)

        with payment_webhook_failed.connected_to(on_failure, sender=app):
            resp = client.post(WEBHOOK_URL, json={"reference": "ORDER-100500", "status": "PAID"})

        assert resp.status_code == 200
        assert resp.json == {"received": True}

        assert len(failures) == 1
        assert failures[0]["reference"] == "ORDER-100500"
        assert isinstance(failures[0]["error"], RuntimeError)

        # Whole notification rolled back, PayRex can redeliver
        assert reload_payment(pending_payment.id).status == "QR_GENERATED"
        assert reload_order(arrived_qrph_order.id).status == "PAYMENT_PENDING"

    def test_broken_alert_receiver_still_acknowledges(self, app, client, arrived_qrph_order, pending_payment, monkeypatch):
        def broken_apply(notification):
            raise RuntimeError("payments table locked")

        def pager_down(sender, **extra):
            raise RuntimeError("pager down")

        monkeypatch.setattr(webhook_service, "apply_notification", broken_apply)

        with payment_webhook_failed.connected_to(pager_down, sender=app):
            resp = client.post(WEBHOOK_URL, json={"reference": "ORDER-100500", "status": "PAID"})
            outcome = webhook_service.handle_payment_notification("ORDER-100500", "PAID")

        assert resp.status_code == 200
        assert resp.json == {"received": True}
        assert outcome == "failed"
        assert reload_payment(pending_payment.id).status == "QR_GENERATED"


class TestWebhookSignature:

    SECRET = "whsk_test_secret"

    def _signed_post(self, client, body, timestamp="1760860800", secret=None, key="te"):
        payload = json.dumps(body).encode("utf-8")
        signature = hmac.new(
            (secret or self.SECRET).encode("utf-8"),
            timestamp.encode("utf-8") + b"." + payload,
            hashlib.sha256,
        ).hexdigest()
        return client.post(
            WEBHOOK_URL,
            data=payload,
            content_type="application/json",
            headers={"Payrex-Signature": f"t={timestamp},{key}={signature}"},
        )

    @pytest.fixture(autouse=True)
    def webhook_secret(self, app, monkeypatch):
        monkeypatch.setitem(app.config, "PAYREX_WEBHOOK_SECRET", self.SECRET)

    def test_unsigned_call_is_rejected(self, client, pending_payment):
        resp = client.post(WEBHOOK_URL, json={"reference": "ORDER-100500", "status": "PAID"})
        assert resp.status_code == 401
        assert resp.json["error"] == "Invalid signature"
        assert reload_payment(pending_payment.id).status == "QR_GENERATED"

    def test_wrong_secret_is_rejected(self, client, pending_payment):
        resp = self._signed_post(client, {"reference": "ORDER-100500", "status": "PAID"}, secret="other")
        assert resp.status_code == 401

    @pytest.mark.parametrize("key", ["te", "li"])
    def test_signed_call_is_applied(self, client, arrived_qrph_order, pending_payment, key):
        resp = self._signed_post(client, {"reference": "ORDER-100500", "status": "PAID"}, key=key)
        assert resp.status_code == 200
        assert reload_payment(pending_payment.id).status == "PAID"
        assert reload_order(arrived_qrph_order.id).status == "COMPLETED"
