"""Search configuration for every paged list endpoint."""
from . import models
from .models import BookingStatus, BookingType, PaymentStatus
from .search import EntityConfig, FilterField, FilterKind, parse_datetime

ADMINS = EntityConfig(
    name="admins",
    search_fields=("full_name", "email"),
    sortable=("created_at", "full_name", "email"),
)

USERS = EntityConfig(
    name="users",
    search_fields=("first_name", "last_name", "email", "phone"),
    filters={"status": FilterField("status")},
    sortable=("created_at", "first_name", "last_name"),
)

ROOMS = EntityConfig(
    name="rooms",
    search_fields=("room_type",),
    filters={
        "hotel_id": FilterField("hotel_id", type=int),
        "is_available": FilterField("is_available", FilterKind.BOOL),
        "price_range": FilterField("price_per_night", FilterKind.RANGE, float),
        "room_type": FilterField("room_type", FilterKind.ICONTAINS),
        "capacity": FilterField("capacity", FilterKind.MIN, int),
    },
    sortable=("created_at", "price_per_night", "capacity"),
)

PAYMENTS = EntityConfig(
    name="payments",
    search_fields=("invoice_id", "checkout_id"),
    filters={
        "status": FilterField("status"),
        "user_id": FilterField("user_id", type=int),
    },
    sortable=("created_at", "amount"),
)

DESTINATIONS = EntityConfig(
    name="destinations",
    search_fields=("name", "description"),
    filters={"country": FilterField("country")},
    sortable=("created_at", "name"),
)

PACKAGES = EntityConfig(
    name="packages",
    search_fields=("name", "description"),
    filters={"price_range": FilterField("price", FilterKind.RANGE, float)},
    sortable=("created_at", "price", "rating"),
)

HOTELS = EntityConfig(
    name="hotels",
    search_fields=("name", "description", "city"),
    filters={
        "city": FilterField("city"),
        "country": FilterField("country"),
    },
    sortable=("created_at", "name", "rating"),
)

VEHICLES = EntityConfig(
    name="vehicles",
    search_fields=("make", "model"),
    filters={
        "vehicle_type": FilterField("vehicle_type"),
        "price_range": FilterField("price_per_day", FilterKind.RANGE, float),
        "capacity": FilterField("capacity", FilterKind.MIN, int),
    },
    sortable=("created_at", "price_per_day"),
)

BOOKINGS = EntityConfig(
    name="bookings",
    search_fields=("booking_reference", "notes"),
    filters={
        "status": FilterField("status", type=BookingStatus),
        "payment_status": FilterField("payment_status", type=PaymentStatus),
        "booking_type": FilterField("booking_type", type=BookingType),
        "start_date": FilterField("start_date", FilterKind.RANGE, parse_datetime),
        "end_date": FilterField("end_date", FilterKind.RANGE, parse_datetime),
    },
    sortable=("created_at", "start_date", "total_price"),
)

# entity config -> ORM model backing its collection
MODELS = {
    ADMINS.name: models.Admin,
    USERS.name: models.User,
    ROOMS.name: models.Room,
    PAYMENTS.name: models.Payment,
    DESTINATIONS.name: models.Destination,
    PACKAGES.name: models.TravelPackage,
    HOTELS.name: models.Hotel,
    VEHICLES.name: models.Vehicle,
    BOOKINGS.name: models.Booking,
}
