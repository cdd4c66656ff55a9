import datetime
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import sessionmaker

from .. import entities, models, schemas
from ..auth import get_current_user_id_from_token
from ..availability import rental_days, vehicle_is_available
from ..crud import SQLCollection
from ..database import get_session_factory
from ..errors import ErrorKind, NotFoundError, ValidationError
from ..query_engine import execute
from ..search import EntityConfig, build_spec

router = APIRouter(tags=["Catalog"])


def add_list_route(config: EntityConfig, item_schema, authenticated: bool = False) -> None:
    """Register ``GET /<entity>`` as a paged search over the entity's collection."""
    model = entities.MODELS[config.name]

    async def list_items(request: Request, session_factory: sessionmaker = Depends(get_session_factory)):
        spec = build_spec(request.query_params, config)
        result = await execute(spec, SQLCollection(model, session_factory))
        return schemas.page_of(result, item_schema)

    router.add_api_route(
        f"/{config.name}",
        list_items,
        methods=["GET"],
        response_model=schemas.Page[item_schema],
        dependencies=[Depends(get_current_user_id_from_token)] if authenticated else None,
        name=f"list_{config.name}",
        summary=f"Search {config.name}",
    )


# Directory listings need a signed-in caller; catalog listings are public.
add_list_route(entities.ADMINS, schemas.AdminRead, authenticated=True)
add_list_route(entities.USERS, schemas.UserRead, authenticated=True)
add_list_route(entities.PAYMENTS, schemas.PaymentRead, authenticated=True)
add_list_route(entities.ROOMS, schemas.RoomRead)
add_list_route(entities.DESTINATIONS, schemas.DestinationRead)
add_list_route(entities.PACKAGES, schemas.PackageRead)
add_list_route(entities.HOTELS, schemas.HotelRead)
add_list_route(entities.VEHICLES, schemas.VehicleRead)


@router.get("/vehicles/{vehicle_id}/availability", response_model=schemas.VehicleAvailability)
def check_vehicle_availability(
        vehicle_id: int,
        start_date: datetime.datetime,
        end_date: datetime.datetime,
        session_factory: sessionmaker = Depends(get_session_factory),
):
    """
    Check whether a vehicle can be rented for the given dates and quote the base price.
    """
    start_date = schemas.as_naive_utc(start_date)
    end_date = schemas.as_naive_utc(end_date)
    if start_date >= end_date:
        raise ValidationError(
            "Start date must be before end date", ErrorKind.INVALID_DATE_RANGE, ["start_date", "end_date"]
        )

    vehicle = SQLCollection(models.Vehicle, session_factory).find_by_id(vehicle_id)
    if vehicle is None:
        raise NotFoundError("Vehicle", vehicle_id, ["vehicle_id"])

    days = rental_days(start_date, end_date)
    is_available = vehicle_is_available(vehicle, end_date)
    return schemas.VehicleAvailability(
        vehicle_id=vehicle.id,
        is_available=is_available,
        days=days,
        base_price=vehicle.price_per_day * days if is_available else None,
        maintenance_status=vehicle.maintenance_status,
    )
