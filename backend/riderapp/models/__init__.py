from .riders import Rider, RiderDevice
from .orders import Order, Payment, ProofOfDelivery

__all__ = [
    'Rider', 'RiderDevice',
    'Order', 'Payment', 'ProofOfDelivery',
]
