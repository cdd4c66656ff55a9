import datetime
import pytest

from travel_booking import entities
from travel_booking.errors import ErrorKind, ValidationError
from travel_booking.models import BookingStatus
from travel_booking.search import (
    AnyOf, Condition, CONTAINS_ALL, EQ, GTE, ICONTAINS, LTE, EntityConfig, SearchSpec, build_spec,
)


def test_defaults_when_params_missing():
    spec = build_spec({}, entities.DESTINATIONS)
    assert spec.page == 1
    assert spec.limit == 10
    assert spec.search_term is None
    assert spec.filters == ()
    assert (spec.sort_by, spec.sort_order) == ("created_at", "desc")


def test_non_numeric_values_fall_back_to_defaults():
    spec = build_spec({"page": "abc", "limit": "ten"}, entities.DESTINATIONS)
    assert (spec.page, spec.limit) == (1, 10)


@pytest.mark.parametrize("params, path", [
    ({"page": "0"}, ["page"]),
    ({"page": "-3"}, ["page"]),
    ({"limit": "-1"}, ["limit"]),
    ({"limit": "0"}, ["limit"]),
])
def test_explicit_out_of_range_pagination_is_rejected(params, path):
    with pytest.raises(ValidationError) as exc_info:
        build_spec(params, entities.DESTINATIONS)
    assert exc_info.value.kind is ErrorKind.INVALID_PAGINATION
    assert exc_info.value.path == path


def test_limit_is_capped():
    spec = build_spec({"limit": "5000"}, entities.DESTINATIONS, max_limit=100)
    assert spec.limit == 100


def test_numeric_params_are_parsed():
    spec = build_spec({"page": "3", "limit": "25"}, entities.DESTINATIONS)
    assert (spec.page, spec.limit, spec.skip) == (3, 25, 50)


def test_blank_search_term_is_ignored():
    spec = build_spec({"search_term": "   "}, entities.DESTINATIONS)
    assert spec.search_term is None
    assert spec.criteria() == []


def test_search_term_becomes_or_across_fields_of_all_words():
    spec = build_spec({"search_term": "beach  resort"}, entities.DESTINATIONS)
    assert spec.criteria() == [AnyOf((
        Condition("name", CONTAINS_ALL, ("beach", "resort")),
        Condition("description", CONTAINS_ALL, ("beach", "resort")),
    ))]


def test_filters_and_search_are_combined():
    spec = build_spec(
        {"search_term": "suite", "is_available": "true", "price_range": "50,150", "capacity": "2"},
        entities.ROOMS,
    )
    criteria = spec.criteria()
    assert Condition("is_available", EQ, True) in criteria
    assert Condition("price_per_night", GTE, 50.0) in criteria
    assert Condition("price_per_night", LTE, 150.0) in criteria
    assert Condition("capacity", GTE, 2) in criteria
    assert isinstance(criteria[-1], AnyOf)


def test_open_ended_range():
    spec = build_spec({"price_range": ",200"}, entities.PACKAGES)
    assert spec.filters == (Condition("price", LTE, 200.0),)


def test_icontains_filter():
    spec = build_spec({"room_type": "Deluxe"}, entities.ROOMS)
    assert spec.filters == (Condition("room_type", ICONTAINS, "Deluxe"),)


def test_enum_and_date_filters():
    spec = build_spec(
        {"status": "Confirmed", "start_date": "2025-06-01,2025-06-30"},
        entities.BOOKINGS,
    )
    assert Condition("status", EQ, BookingStatus.CONFIRMED) in spec.filters
    assert Condition("start_date", GTE, datetime.datetime(2025, 6, 1)) in spec.filters
    assert Condition("start_date", LTE, datetime.datetime(2025, 6, 30)) in spec.filters


@pytest.mark.parametrize("params, param", [
    ({"is_available": "maybe"}, "is_available"),
    ({"price_range": "abc,10"}, "price_range"),
    ({"price_range": "300,100"}, "price_range"),
    ({"price_range": "100"}, "price_range"),
    ({"capacity": "two"}, "capacity"),
    ({"capacity": str(10 ** 30)}, "capacity"),
    ({"hotel_id": str(-10 ** 20)}, "hotel_id"),
])
def test_invalid_filter_values(params, param):
    with pytest.raises(ValidationError) as exc_info:
        build_spec(params, entities.ROOMS)
    assert exc_info.value.kind is ErrorKind.INVALID_FILTER
    assert exc_info.value.path == [param]


def test_unknown_status_is_invalid_filter():
    with pytest.raises(ValidationError) as exc_info:
        build_spec({"status": "Archived"}, entities.BOOKINGS)
    assert exc_info.value.kind is ErrorKind.INVALID_FILTER


def test_sorting():
    spec = build_spec({"sort_by": "price", "sort_order": "ASC"}, entities.PACKAGES)
    assert (spec.sort_by, spec.sort_order) == ("price", "asc")


@pytest.mark.parametrize("params", [{"sort_by": "password"}, {"sort_order": "sideways"}])
def test_invalid_sort(params):
    with pytest.raises(ValidationError) as exc_info:
        build_spec(params, entities.PACKAGES)
    assert exc_info.value.kind is ErrorKind.INVALID_SORT


def test_unknown_params_are_ignored():
    spec = build_spec({"foo": "bar", "status": "active"}, entities.DESTINATIONS)
    assert spec.filters == ()


def test_custom_default_sort():
    config = EntityConfig(name="things", sortable=("name",), default_sort=("name", "asc"))
    assert (build_spec({}, config).sort_by, build_spec({}, config).sort_order) == ("name", "asc")


def test_where_narrows_spec_without_mutating():
    spec = SearchSpec()
    scoped = spec.where(Condition("user_id", EQ, 7))
    assert spec.filters == ()
    assert scoped.criteria() == [Condition("user_id", EQ, 7)]


def test_page_with_unstorable_offset_is_out_of_range():
    with pytest.raises(ValidationError) as exc_info:
        build_spec({"page": "10000000000000000000"}, entities.DESTINATIONS)
    assert exc_info.value.kind is ErrorKind.PAGE_OUT_OF_RANGE
    assert exc_info.value.path == ["page"]

    spec = build_spec({"page": str(2 ** 63 // 100), "limit": "100"}, entities.DESTINATIONS)
    assert spec.skip <= 2 ** 63 - 1
