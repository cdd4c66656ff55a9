from sqlalchemy import Column, Integer, String, Float, Text, Boolean, DateTime, JSON, Index
from sqlalchemy import Enum as SQLEnum
from enum import Enum as PyEnum
import datetime

from .database import Base


def utcnow() -> datetime.datetime:
    """Naive UTC timestamp, the only kind stored in the database."""
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


# --- Booking enums ---
class BookingStatus(PyEnum):
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    CANCELLED = "Cancelled"


class PaymentStatus(PyEnum):
    UNPAID = "Unpaid"
    PARTIALLY_PAID = "Partially Paid"
    PAID = "Paid"
    REFUNDED = "Refunded"


class BookingType(PyEnum):
    HOTEL = "hotel"
    VEHICLE = "vehicle"
    PACKAGE = "package"


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, index=True, nullable=False)

    # References to the booked service. Checked at creation, not enforced by the DB.
    hotel_id = Column(Integer, index=True, nullable=True)
    vehicle_id = Column(Integer, index=True, nullable=True)
    package_id = Column(Integer, index=True, nullable=True)
    booking_type = Column(SQLEnum(BookingType), nullable=False)
    booking_reference = Column(String(16), unique=True, index=True, nullable=False)

    booking_date = Column(DateTime, default=utcnow, nullable=False)
    start_date = Column(DateTime, index=True, nullable=False)
    end_date = Column(DateTime, index=True, nullable=False)

    status = Column(SQLEnum(BookingStatus), default=BookingStatus.PENDING, nullable=False, index=True)
    payment_status = Column(SQLEnum(PaymentStatus), default=PaymentStatus.UNPAID, nullable=False)

    total_price = Column(Float, nullable=False)
    booking_details = Column(JSON, nullable=True)
    notes = Column(Text, nullable=True)

    cancelled_at = Column(DateTime, nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("ix_bookings_user_status", "user_id", "status"),
    )


# --- Bookable services ---
class Hotel(Base):
    __tablename__ = "hotels"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), index=True, nullable=False)
    description = Column(Text, nullable=True)
    city = Column(String(100), index=True, nullable=False)
    country = Column(String(100), nullable=False)
    rating = Column(Float, default=0)
    created_at = Column(DateTime, default=utcnow, index=True)


class Vehicle(Base):
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, index=True)
    make = Column(String(100), nullable=False)
    model = Column(String(100), nullable=False)
    vehicle_type = Column(String(50), index=True, nullable=False)
    capacity = Column(Integer, nullable=False)
    price_per_day = Column(Float, nullable=False)

    is_available = Column(Boolean, default=True, nullable=False)
    # "Available", "In Service", "Out of Service"
    maintenance_status = Column(String(30), default="Available", nullable=False)
    next_service = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow, index=True)


class TravelPackage(Base):
    __tablename__ = "packages"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), index=True, nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Float, nullable=False)
    duration_days = Column(Integer, nullable=False)
    rating = Column(Float, default=0)
    created_at = Column(DateTime, default=utcnow, index=True)


class Room(Base):
    __tablename__ = "rooms"

    id = Column(Integer, primary_key=True, index=True)
    hotel_id = Column(Integer, index=True, nullable=False)
    room_type = Column(String(50), nullable=False)
    price_per_night = Column(Float, nullable=False)
    capacity = Column(Integer, nullable=False)
    is_available = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, index=True)


# --- Directory entities ---
class Admin(Base):
    __tablename__ = "admins"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String(200), nullable=False)
    email = Column(String(200), unique=True, index=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, index=True)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(200), unique=True, index=True, nullable=False)
    phone = Column(String(30), nullable=True)
    status = Column(String(20), default="active", nullable=False)
    created_at = Column(DateTime, default=utcnow, index=True)


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, index=True, nullable=False)
    invoice_id = Column(String(64), index=True, nullable=False)
    checkout_id = Column(String(64), nullable=True)
    amount = Column(Float, nullable=False)
    # "pending", "completed", "failed", "cancelled"
    status = Column(String(20), default="pending", nullable=False)
    created_at = Column(DateTime, default=utcnow, index=True)


class Destination(Base):
    __tablename__ = "destinations"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), index=True, nullable=False)
    description = Column(Text, nullable=True)
    country = Column(String(100), nullable=False)
    created_at = Column(DateTime, default=utcnow, index=True)


class OutboxEvent(Base):
    __tablename__ = "outbox_events"

    id = Column(Integer, primary_key=True, index=True)

    # Status to track if the event has been sent
    status = Column(String(20), default="PENDING", nullable=False)
    topic = Column(String(255), nullable=False)
    # The full JSON payload to be sent
    payload = Column(Text, nullable=False)

    created_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        Index('ix_outbox_events_status', 'status'),
    )
