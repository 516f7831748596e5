# Import all models for easier access
from .booking import Booking, BookingStatus, PaymentStatus  # noqa: F401
from .event import Event  # noqa: F401
from .user import OtpPurpose, User, UserRole  # noqa: F401
