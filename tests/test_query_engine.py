import asyncio
import datetime
import math
import time
import pytest
from unittest.mock import MagicMock

from travel_booking import entities, models
from travel_booking.crud import SQLCollection
from travel_booking.errors import ErrorKind, StorageError, ValidationError
from travel_booking.query_engine import execute
from travel_booking.search import build_spec


def add_destinations(db_session, names, country="Sri Lanka", description=None):
    base = datetime.datetime(2025, 1, 1)
    for i, name in enumerate(names):
        db_session.add(models.Destination(
            name=name,
            description=description,
            country=country,
            created_at=base + datetime.timedelta(minutes=i),
        ))
    db_session.commit()


def run_search(session_factory, params, config=entities.DESTINATIONS, model=models.Destination):
    spec = build_spec(params, config)
    return asyncio.run(execute(spec, SQLCollection(model, session_factory)))


@pytest.mark.parametrize("total", [0, 1, 7, 10, 25])
@pytest.mark.parametrize("limit", [1, 3, 10])
def test_pagination_math(db_session, session_factory, total, limit):
    add_destinations(db_session, [f"Place {i}" for i in range(total)])

    expected_pages = math.ceil(total / limit)
    for page in range(1, max(expected_pages, 1) + 1):
        result = run_search(session_factory, {"page": str(page), "limit": str(limit)})
        assert result.total_items == total
        assert result.total_pages == expected_pages
        assert result.items_per_page == limit
        assert result.current_page == page
        assert len(result.items) == max(0, min(limit, total - (page - 1) * limit))


def test_page_beyond_last_is_rejected(db_session, session_factory):
    add_destinations(db_session, [f"Place {i}" for i in range(25)])

    with pytest.raises(ValidationError) as exc_info:
        run_search(session_factory, {"page": "4", "limit": "10"})
    assert exc_info.value.kind is ErrorKind.PAGE_OUT_OF_RANGE

    result = run_search(session_factory, {"page": "3", "limit": "10"})
    assert len(result.items) == 5
    assert result.total_pages == 3


def test_any_page_of_an_empty_collection_is_empty(session_factory):
    result = run_search(session_factory, {"page": "5"})
    assert result.items == []
    assert result.total_items == 0
    assert result.total_pages == 0


def test_default_sort_is_newest_first(db_session, session_factory):
    add_destinations(db_session, ["Oldest", "Middle", "Newest"])
    result = run_search(session_factory, {})
    assert [d.name for d in result.items] == ["Newest", "Middle", "Oldest"]


def test_explicit_sort(db_session, session_factory):
    add_destinations(db_session, ["Colombo", "Anuradhapura", "Badulla"])
    result = run_search(session_factory, {"sort_by": "name", "sort_order": "asc"})
    assert [d.name for d in result.items] == ["Anuradhapura", "Badulla", "Colombo"]


@pytest.mark.parametrize("term, expected", [
    ("beach resort", {"Beach Resort"}),
    ("resort", {"Beach Resort", "Mountain Resort"}),
    ("beach mountain", set()),
    ("RESORT beach", {"Beach Resort"}),
])
def test_search_term_requires_every_word(db_session, session_factory, term, expected):
    add_destinations(db_session, ["Beach Resort", "Mountain Resort"])
    result = run_search(session_factory, {"search_term": term})
    assert {d.name for d in result.items} == expected
    assert result.total_items == len(expected)


def test_search_matches_any_configured_field(db_session, session_factory):
    add_destinations(db_session, ["Ella"], description="Hill country train rides")
    add_destinations(db_session, ["Galle"], description="Fort by the sea")
    result = run_search(session_factory, {"search_term": "train hill"})
    assert [d.name for d in result.items] == ["Ella"]


def test_search_words_are_matched_literally(db_session, session_factory):
    add_destinations(db_session, ["100% Beach", "1000 Islands"])
    result = run_search(session_factory, {"search_term": "100%"})
    assert [d.name for d in result.items] == ["100% Beach"]


def test_filters_are_anded_with_search(db_session, session_factory):
    add_destinations(db_session, ["Beach Resort"], country="Sri Lanka")
    add_destinations(db_session, ["Beach Resort"], country="Maldives")
    add_destinations(db_session, ["City Hotel"], country="Maldives")

    result = run_search(session_factory, {"search_term": "beach", "country": "Maldives"})
    assert result.total_items == 1
    assert result.items[0].country == "Maldives"


def test_room_filters(db_session, session_factory):
    db_session.add_all([
        models.Room(hotel_id=1, room_type="Deluxe Suite", price_per_night=120, capacity=3, is_available=True),
        models.Room(hotel_id=1, room_type="Standard", price_per_night=60, capacity=2, is_available=True),
        models.Room(hotel_id=2, room_type="Deluxe King", price_per_night=200, capacity=2, is_available=False),
    ])
    db_session.commit()

    result = run_search(
        session_factory,
        {"room_type": "deluxe", "is_available": "true", "price_range": "100,150"},
        config=entities.ROOMS,
        model=models.Room,
    )
    assert [r.room_type for r in result.items] == ["Deluxe Suite"]


def test_storage_errors_are_reported():
    collection = MagicMock()
    collection.find.side_effect = StorageError("Error fetching destinations")
    collection.count.return_value = 0

    with pytest.raises(StorageError) as exc_info:
        asyncio.run(execute(build_spec({}, entities.DESTINATIONS), collection))
    assert exc_info.value.kind is ErrorKind.STORAGE_FAILURE
    collection.find.assert_called_once()


def test_find_and_count_use_the_same_criteria():
    collection = MagicMock()
    collection.find.return_value = []
    collection.count.return_value = 0
    spec = build_spec({"search_term": "beach", "page": "2", "limit": "5"}, entities.DESTINATIONS)

    asyncio.run(execute(spec, collection))

    criteria, sort, skip, limit = collection.find.call_args.args
    assert collection.count.call_args.args == (criteria,)
    assert sort == ("created_at", "desc")
    assert (skip, limit) == (5, 5)


def test_slow_queries_time_out():
    def slow_find(*args):
        time.sleep(0.5)
        return []

    collection = MagicMock()
    collection.find.side_effect = slow_find
    collection.count.return_value = 0

    with pytest.raises(StorageError) as exc_info:
        asyncio.run(execute(build_spec({}, entities.DESTINATIONS), collection, timeout=0.05))
    assert exc_info.value.kind is ErrorKind.TIMEOUT


def test_find_failure_wins_when_both_reads_fail():
    collection = MagicMock()
    collection.find.side_effect = StorageError("Error fetching destinations")
    collection.count.side_effect = StorageError("Error counting destinations")

    with pytest.raises(StorageError) as exc_info:
        asyncio.run(execute(build_spec({}, entities.DESTINATIONS), collection))
    assert exc_info.value.message == "Error fetching destinations"
    collection.count.assert_called_once()


def test_count_failure_is_reported_after_find_succeeds():
    collection = MagicMock()
    collection.find.return_value = []
    collection.count.side_effect = StorageError("Error counting destinations")

    with pytest.raises(StorageError) as exc_info:
        asyncio.run(execute(build_spec({}, entities.DESTINATIONS), collection))
    assert exc_info.value.message == "Error counting destinations"


def test_unstorable_offset_is_a_storage_error(db_session, session_factory):
    add_destinations(db_session, ["Ella"])
    collection = SQLCollection(models.Destination, session_factory)

    with pytest.raises(StorageError):
        collection.find([], ("created_at", "desc"), 2 ** 64, 10)


def test_huge_page_on_a_small_collection_is_out_of_range(db_session, session_factory):
    add_destinations(db_session, ["Ella"])
    with pytest.raises(ValidationError) as exc_info:
        run_search(session_factory, {"page": str(10 ** 19)})
    assert exc_info.value.kind is ErrorKind.PAGE_OUT_OF_RANGE
