"""ORM models package."""
from .audit import AuditLog
from .base import Base
from .load import Load
from .payment import TERMINAL_STATUSES, Payment, PaymentStatus
from .rate_tier import RateTier
from .user import User

__all__ = [
    "AuditLog",
    "Base",
    "Load",
    "Payment",
    "PaymentStatus",
    "RateTier",
    "TERMINAL_STATUSES",
    "User",
]
