from .user import User, UserType
from .vetting_application import VettingApplication, VettingStatus
from .performer_profile import PerformerProfile
from .service import Service, PerformerService, RateType
from .booking import Booking
from .booking_status import BookingStatus, BookingPaymentStatus, TERMINAL_STATUSES
from .payment import Payment, PaymentMethod, PaymentStatus, PaymentKind
from .audit_log import AuditLog
from .notification import Notification, NotificationType
from .system_settings import SystemSettings
from .do_not_serve import DoNotServeEntry

__all__ = [
    "User",
    "UserType",
    "VettingApplication",
    "VettingStatus",
    "PerformerProfile",
    "Service",
    "PerformerService",
    "RateType",
    "Booking",
    "BookingStatus",
    "BookingPaymentStatus",
    "TERMINAL_STATUSES",
    "Payment",
    "PaymentMethod",
    "PaymentStatus",
    "PaymentKind",
    "AuditLog",
    "Notification",
    "NotificationType",
    "SystemSettings",
    "DoNotServeEntry",
]
