from .db import db
from .user import User, Role, user_roles
from .audit_log import AuditLog
from .session import Session
from .court import Court
from .court_type import AvailableCourtType
from .court_type_settings import CourtTypeSettings
from .booking_rule import BookingRule
from .court_maintenance import CourtMaintenance
from .special_booking import SpecialBooking
from .booking import Booking
from .payment import Payment
from .payment_setting import PaymentGatewaySetting
