from .auth import User, UserRole, SessionToken
from .catalog import MilkRate
from .deliveries import Delivery, DeliveryTime
from .payments import Payment, PaymentStatus

__all__ = [
    'User', 'UserRole', 'SessionToken',
    'MilkRate',
    'Delivery', 'DeliveryTime',
    'Payment', 'PaymentStatus',
]
