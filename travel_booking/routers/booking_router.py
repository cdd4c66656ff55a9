import logging
from fastapi import APIRouter, Body, Depends, Request, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from typing import Annotated, Optional

from .. import booking_lifecycle, crud, entities, models, schemas
from ..auth import booking_write_rate_limit, get_current_user_id_from_token
from ..availability import SQLServiceDirectory, SQLVehicleDirectory
from ..booking_lifecycle import ServiceDirectories
from ..crud import SQLCollection
from ..database import get_session_factory
from ..query_engine import execute
from ..search import Condition, EQ, build_spec

logger = logging.getLogger("travel_booking")

router = APIRouter(prefix="/bookings", tags=["Bookings"])

CurrentUser = Annotated[int, Depends(get_current_user_id_from_token)]


def get_booking_collection(session_factory: sessionmaker = Depends(get_session_factory)) -> SQLCollection:
    return SQLCollection(models.Booking, session_factory)


def get_service_directories(session_factory: sessionmaker = Depends(get_session_factory)) -> ServiceDirectories:
    return ServiceDirectories(
        hotels=SQLServiceDirectory(SQLCollection(models.Hotel, session_factory)),
        vehicles=SQLVehicleDirectory(SQLCollection(models.Vehicle, session_factory)),
        packages=SQLServiceDirectory(SQLCollection(models.TravelPackage, session_factory)),
    )


Bookings = Annotated[SQLCollection, Depends(get_booking_collection)]


def publish_booking_event(session_factory: sessionmaker, booking: models.Booking, event: str) -> None:
    # The booking is already stored; a failed outbox write must not turn
    # the request into an error.
    try:
        crud.create_booking_event_in_outbox(session_factory, booking, event)
    except SQLAlchemyError as e:
        logger.error(f"Failed to record {event} event for booking {booking.id}: {e}")


@router.post(
    "/",
    response_model=schemas.BookingRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(booking_write_rate_limit)],
)
def create_booking(
        booking: schemas.BookingCreate,
        user_id: CurrentUser,
        bookings: Bookings,
        services: ServiceDirectories = Depends(get_service_directories),
        session_factory: sessionmaker = Depends(get_session_factory),
):
    """
    Create a new booking for the authenticated user.
    """
    db_booking = booking_lifecycle.create_booking(bookings, services, user_id, booking)
    publish_booking_event(session_factory, db_booking, "BOOKING_CREATED")
    return db_booking


async def search_user_bookings(request: Request, user_id: int, bookings: SQLCollection) -> schemas.Page:
    # Listings never cross owners.
    spec = build_spec(request.query_params, entities.BOOKINGS).where(Condition("user_id", EQ, user_id))
    result = await execute(spec, bookings)
    return schemas.page_of(result, schemas.BookingRead)


@router.get("/me", response_model=schemas.Page[schemas.BookingRead])
async def read_my_bookings(request: Request, user_id: CurrentUser, bookings: Bookings):
    """
    Search the authenticated user's bookings.
    """
    return await search_user_bookings(request, user_id, bookings)


@router.get("/", response_model=schemas.Page[schemas.BookingRead])
async def read_bookings(request: Request, user_id: CurrentUser, bookings: Bookings):
    """
    Search bookings; only the authenticated user's own bookings are listed.
    """
    return await search_user_bookings(request, user_id, bookings)


@router.get("/{booking_id}", response_model=schemas.BookingRead)
def read_booking(booking_id: int, user_id: CurrentUser, bookings: Bookings):
    return booking_lifecycle.get_booking(bookings, user_id, booking_id)


@router.patch(
    "/{booking_id}",
    response_model=schemas.BookingRead,
    dependencies=[Depends(booking_write_rate_limit)],
)
def update_booking(booking_id: int, patch: schemas.BookingUpdate, user_id: CurrentUser, bookings: Bookings):
    return booking_lifecycle.update_booking(bookings, user_id, booking_id, patch)


@router.post(
    "/{booking_id}/cancel",
    response_model=schemas.BookingRead,
    dependencies=[Depends(booking_write_rate_limit)],
)
def cancel_booking(
        booking_id: int,
        user_id: CurrentUser,
        bookings: Bookings,
        body: Optional[schemas.BookingCancel] = Body(default=None),
        session_factory: sessionmaker = Depends(get_session_factory),
):
    """
    Cancel a booking at least 24 hours before it starts.
    """
    reason = body.reason if body else None
    db_booking = booking_lifecycle.cancel_booking(bookings, user_id, booking_id, reason=reason)
    publish_booking_event(session_factory, db_booking, "BOOKING_CANCELLED")
    return db_booking
