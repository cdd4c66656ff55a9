from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, Generic, List, Optional, TypeVar
import datetime

from .models import BookingStatus, BookingType, PaymentStatus

T = TypeVar("T")


def as_naive_utc(value: Optional[datetime.datetime]) -> Optional[datetime.datetime]:
    if value is not None and value.tzinfo is not None:
        return value.astimezone(datetime.timezone.utc).replace(tzinfo=None)
    return value


# --- Bookings ---

class BookingCreate(BaseModel):
    # user_id comes from the JWT token
    hotel_id: Optional[int] = None
    vehicle_id: Optional[int] = None
    package_id: Optional[int] = None
    start_date: datetime.datetime
    end_date: datetime.datetime
    total_price: float = Field(gt=0)
    booking_details: Optional[dict[str, Any]] = None
    notes: Optional[str] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_dates(cls, value):
        return as_naive_utc(value)


class BookingUpdate(BaseModel):
    start_date: Optional[datetime.datetime] = None
    end_date: Optional[datetime.datetime] = None
    status: Optional[BookingStatus] = None
    payment_status: Optional[PaymentStatus] = None
    notes: Optional[str] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_dates(cls, value):
        return as_naive_utc(value)


class BookingCancel(BaseModel):
    reason: Optional[str] = None


class BookingRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    hotel_id: Optional[int] = None
    vehicle_id: Optional[int] = None
    package_id: Optional[int] = None
    booking_type: BookingType
    booking_reference: str
    booking_date: datetime.datetime
    start_date: datetime.datetime
    end_date: datetime.datetime
    status: BookingStatus
    payment_status: PaymentStatus
    total_price: float
    booking_details: Optional[dict[str, Any]] = None
    notes: Optional[str] = None
    cancelled_at: Optional[datetime.datetime] = None
    cancellation_reason: Optional[str] = None
    created_at: datetime.datetime


# --- Catalog and directory listings ---

class HotelRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    city: str
    country: str
    rating: Optional[float] = None
    created_at: datetime.datetime


class VehicleRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    make: str
    model: str
    vehicle_type: str
    capacity: int
    price_per_day: float
    is_available: bool
    maintenance_status: str
    next_service: Optional[datetime.datetime] = None
    created_at: datetime.datetime


class VehicleAvailability(BaseModel):
    vehicle_id: int
    is_available: bool
    days: int
    base_price: Optional[float] = None
    maintenance_status: str


class PackageRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    price: float
    duration_days: int
    rating: Optional[float] = None
    created_at: datetime.datetime


class RoomRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    hotel_id: int
    room_type: str
    price_per_night: float
    capacity: int
    is_available: bool
    created_at: datetime.datetime


class AdminRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    full_name: str
    email: str
    created_at: datetime.datetime


class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    status: str
    created_at: datetime.datetime


class PaymentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    invoice_id: str
    checkout_id: Optional[str] = None
    amount: float
    status: str
    created_at: datetime.datetime


class DestinationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    country: str
    created_at: datetime.datetime


class Page(BaseModel, Generic[T]):
    items: List[T]
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int


def page_of(result, item_schema) -> Page:
    """Serialize a query-engine ``PageResult`` whose items are ORM rows."""
    return Page[item_schema](
        items=[item_schema.model_validate(item) for item in result.items],
        current_page=result.current_page,
        total_pages=result.total_pages,
        total_items=result.total_items,
        items_per_page=result.items_per_page,
    )
