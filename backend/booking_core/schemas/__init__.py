from .user import UserBase, UserCreate, UserResponse, Token, TokenData
from .quote import QuoteRequest, QuoteResponse
from .booking import (
    BookingBase,
    BookingCreate,
    BookingUpdate,
    BookingStatusUpdate,
    BookingResponse,
    TransitionResponse,
)
from .payment import (
    PaymentCreate,
    PaymentVerify,
    PaymentResolve,
    PaymentResponse,
    PaymentDecisionResponse,
    PaymentConfigResponse,
)
from .vetting import (
    VettingApplicationCreate,
    VettingReview,
    VettingApplicationResponse,
    PerformerProfileResponse,
    VettingDecisionResponse,
)
from .settings import (
    SystemSettingsUpdate,
    SystemSettingsResponse,
    DoNotServeCreate,
    DoNotServeResponse,
)
from .notification import NotificationResponse
from .audit import AuditLogResponse
from .service import (
    ServiceCreate,
    ServiceUpdate,
    ServiceResponse,
    OfferingUpdate,
    OfferingResponse,
    AvailabilityUpdate,
    PerformerResponse,
)
