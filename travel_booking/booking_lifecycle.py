"""
Booking lifecycle: creation, partial update and cancellation.

A booking starts ``Pending``/``Unpaid``.  ``Pending`` may become
``Confirmed`` or ``Cancelled``; ``Confirmed`` may become ``Cancelled``;
``Cancelled`` is terminal.  Cancelling is refused less than 24 hours
before the booking starts.

Every operation takes the requester's ``user_id`` explicitly and talks
to storage only through a collection (``find_by_id``, ``create``,
``update_by_id``).  Availability is checked at creation but not
reserved: two concurrent requests for the same vehicle can both pass
the check.
"""
import datetime
import logging
import secrets
from dataclasses import dataclass
from typing import Optional

from . import models, schemas
from .availability import ServiceDirectory, VehicleDirectory
from .errors import AuthorizationError, ErrorKind, NotFoundError, StorageError, ValidationError
from .models import BookingStatus, BookingType, PaymentStatus, utcnow

logger = logging.getLogger("travel_booking.bookings")

CANCELLATION_WINDOW_HOURS = 24

ALLOWED_TRANSITIONS = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {BookingStatus.CANCELLED},
    BookingStatus.CANCELLED: set(),
}

REFERENCE_PREFIX = {
    BookingType.HOTEL: "H",
    BookingType.VEHICLE: "V",
    BookingType.PACKAGE: "P",
}


@dataclass
class ServiceDirectories:
    hotels: ServiceDirectory
    vehicles: VehicleDirectory
    packages: ServiceDirectory


def generate_booking_reference(booking_type: BookingType, now: datetime.datetime) -> str:
    """H/V/P + YYMMDD + four random digits, e.g. ``H2506051234``."""
    return f"{REFERENCE_PREFIX[booking_type]}{now:%y%m%d}{secrets.randbelow(10000):04d}"


def _check_date_range(start: datetime.datetime, end: datetime.datetime) -> None:
    if start >= end:
        raise ValidationError(
            "End date must be after start date", ErrorKind.INVALID_DATE_RANGE, ["start_date", "end_date"]
        )


def _check_cancellation_window(start_date: datetime.datetime, now: datetime.datetime) -> None:
    hours_until_start = (start_date - now).total_seconds() / 3600
    if hours_until_start < CANCELLATION_WINDOW_HOURS:
        raise ValidationError(
            f"Bookings can only be cancelled at least {CANCELLATION_WINDOW_HOURS} hours before they start",
            ErrorKind.CANCELLATION_WINDOW_EXPIRED,
            ["start_date"],
        )


def _vehicle_available(vehicles: VehicleDirectory, command: schemas.BookingCreate) -> bool:
    # Fail closed: an availability check that cannot be answered counts as "unavailable".
    try:
        return bool(vehicles.is_available_for_dates(command.vehicle_id, command.start_date, command.end_date))
    except StorageError as e:
        logger.warning(f"Availability check for vehicle {command.vehicle_id} failed: {e}")
        return False


def _get_owned_booking(bookings, user_id: int, booking_id: int) -> models.Booking:
    booking = bookings.find_by_id(booking_id)
    if booking is None:
        raise NotFoundError("Booking", booking_id, ["booking_id"])
    if booking.user_id != user_id:
        logger.warning(f"User {user_id} attempted to access booking {booking_id} owned by {booking.user_id}")
        raise AuthorizationError()
    return booking


def get_booking(bookings, user_id: int, booking_id: int) -> models.Booking:
    return _get_owned_booking(bookings, user_id, booking_id)


def create_booking(
    bookings,
    services: ServiceDirectories,
    user_id: int,
    command: schemas.BookingCreate,
    now: Optional[datetime.datetime] = None,
) -> models.Booking:
    """
    Validates and stores a new booking for ``user_id``.

    Checks run in order and the first failure wins: a service is
    selected, the date range is valid, the hotel exists, the vehicle
    exists and is available, the package exists.
    """
    now = now or utcnow()

    if command.hotel_id is None and command.vehicle_id is None and command.package_id is None:
        raise ValidationError(
            "A hotel, vehicle or package must be selected",
            ErrorKind.MISSING_SERVICE,
            ["hotel_id", "vehicle_id", "package_id"],
        )

    _check_date_range(command.start_date, command.end_date)

    if command.hotel_id is not None and not services.hotels.exists_by_id(command.hotel_id):
        raise NotFoundError("Hotel", command.hotel_id, ["hotel_id"])

    if command.vehicle_id is not None:
        if not services.vehicles.exists_by_id(command.vehicle_id):
            raise NotFoundError("Vehicle", command.vehicle_id, ["vehicle_id"])
        if not _vehicle_available(services.vehicles, command):
            raise ValidationError(
                "Vehicle is not available for the selected dates",
                ErrorKind.VEHICLE_UNAVAILABLE,
                ["vehicle_id"],
            )

    if command.package_id is not None and not services.packages.exists_by_id(command.package_id):
        raise NotFoundError("Package", command.package_id, ["package_id"])

    if command.hotel_id is not None:
        booking_type = BookingType.HOTEL
    elif command.vehicle_id is not None:
        booking_type = BookingType.VEHICLE
    else:
        booking_type = BookingType.PACKAGE

    booking = bookings.create({
        **command.model_dump(),
        "user_id": user_id,
        "booking_type": booking_type,
        "booking_reference": generate_booking_reference(booking_type, now),
        "booking_date": now,
        "status": BookingStatus.PENDING,
        "payment_status": PaymentStatus.UNPAID,
    })
    logger.info(f"Booking {booking.id} ({booking.booking_reference}) created for user {user_id}")
    return booking


def update_booking(
    bookings,
    user_id: int,
    booking_id: int,
    patch: schemas.BookingUpdate,
    now: Optional[datetime.datetime] = None,
) -> models.Booking:
    """
    Applies a partial update owned by ``user_id``.

    When either date is touched, the merged range must still satisfy
    start < end.  Status changes must follow ``ALLOWED_TRANSITIONS``; a
    change to ``Cancelled`` is subject to the cancellation window,
    measured from the start date the booking will have after the patch.
    A cancelled booking accepts no changes at all.
    """
    now = now or utcnow()
    booking = _get_owned_booking(bookings, user_id, booking_id)

    changes = {
        key: value
        for key, value in patch.model_dump(exclude_unset=True).items()
        if value is not None or key == "notes"
    }

    if changes and booking.status is BookingStatus.CANCELLED:
        raise ValidationError(
            "Cancelled bookings cannot be changed", ErrorKind.ALREADY_CANCELLED, ["status"]
        )

    if "start_date" in changes or "end_date" in changes:
        _check_date_range(
            changes.get("start_date", booking.start_date),
            changes.get("end_date", booking.end_date),
        )

    new_status = changes.get("status")
    if new_status is not None and new_status != booking.status:
        if new_status not in ALLOWED_TRANSITIONS[booking.status]:
            raise ValidationError(
                f"Cannot change booking status from {booking.status.value} to {new_status.value}",
                ErrorKind.INVALID_STATUS_TRANSITION,
                ["status"],
            )
        if new_status is BookingStatus.CANCELLED:
            _check_cancellation_window(changes.get("start_date", booking.start_date), now)
            changes["cancelled_at"] = now

    if not changes:
        return booking

    updated = bookings.update_by_id(booking_id, changes)
    if updated is None:
        raise NotFoundError("Booking", booking_id, ["booking_id"])
    logger.info(f"Booking {booking_id} updated by user {user_id}: {sorted(changes)}")
    return updated


def cancel_booking(
    bookings,
    user_id: int,
    booking_id: int,
    reason: Optional[str] = None,
    now: Optional[datetime.datetime] = None,
) -> models.Booking:
    """
    Cancels a booking owned by ``user_id``.

    Payment status is left untouched; refunds are handled by whoever
    consumes the resulting ``BOOKING_CANCELLED`` event.
    """
    now = now or utcnow()
    booking = _get_owned_booking(bookings, user_id, booking_id)

    if booking.status is BookingStatus.CANCELLED:
        raise ValidationError("Booking is already cancelled", ErrorKind.ALREADY_CANCELLED, ["status"])

    _check_cancellation_window(booking.start_date, now)

    updated = bookings.update_by_id(booking_id, {
        "status": BookingStatus.CANCELLED,
        "cancelled_at": now,
        "cancellation_reason": reason,
    })
    if updated is None:
        raise NotFoundError("Booking", booking_id, ["booking_id"])
    logger.info(f"Booking {booking_id} cancelled by user {user_id}")
    return updated
