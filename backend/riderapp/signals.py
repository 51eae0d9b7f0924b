# Overview: Application signals operators can subscribe to (alerting, metrics).

from blinker import Namespace

_signals = Namespace()

# Sent when a PayRex notification was acknowledged but could not be applied.
# Receivers get sender=current app, reference=<str>, error=<exception>.
payment_webhook_failed = _signals.signal("payment-webhook-failed")
