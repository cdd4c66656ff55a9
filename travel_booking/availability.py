"""
Availability collaborators for bookable services.

The booking lifecycle only asks two questions of a service: does it
exist, and (for vehicles) is it free for a date range.  These classes
answer them from the local catalog tables; another implementation (for
example an HTTP client to a separate inventory service) only needs the
same two methods.
"""
import datetime
import math
from typing import Protocol

from . import models
from .crud import SQLCollection


class ServiceDirectory(Protocol):
    def exists_by_id(self, id: int) -> bool: ...


class VehicleDirectory(ServiceDirectory, Protocol):
    def is_available_for_dates(self, id: int, start: datetime.datetime, end: datetime.datetime) -> bool: ...


def vehicle_is_available(vehicle: models.Vehicle, end: datetime.datetime) -> bool:
    # Bookable, not in maintenance, and not due for service before the rental ends.
    return (
        vehicle.is_available
        and vehicle.maintenance_status == "Available"
        and (vehicle.next_service is None or vehicle.next_service > end)
    )


class SQLServiceDirectory:
    def __init__(self, collection: SQLCollection):
        self.collection = collection

    def exists_by_id(self, id: int) -> bool:
        return self.collection.find_by_id(id) is not None


class SQLVehicleDirectory(SQLServiceDirectory):
    def is_available_for_dates(self, id: int, start: datetime.datetime, end: datetime.datetime) -> bool:
        vehicle = self.collection.find_by_id(id)
        if vehicle is None:
            return False
        return vehicle_is_available(vehicle, end)


def rental_days(start: datetime.datetime, end: datetime.datetime) -> int:
    return math.ceil((end - start).total_seconds() / 86400)
