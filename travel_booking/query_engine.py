import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Any, Generic, Optional, Protocol, Sequence, TypeVar

from .config import settings
from .errors import ErrorKind, StorageError, ValidationError
from .search import SearchSpec

logger = logging.getLogger("travel_booking.query")

T = TypeVar("T")


class Collection(Protocol[T]):
    """Read side of the storage collaborator used by ``execute``."""

    def find(self, criteria: list, sort: tuple, skip: int, limit: int) -> list[T]: ...

    def count(self, criteria: list) -> int: ...


@dataclass
class PageResult(Generic[T]):
    items: Sequence[T]
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int


def total_pages_for(total_items: int, limit: int) -> int:
    return math.ceil(total_items / limit)


async def execute(spec: SearchSpec, collection: Collection[Any], timeout: Optional[float] = None) -> PageResult:
    """
    Run a paged query and wrap the rows with pagination metadata.

    ``find`` and ``count`` are independent reads against the same
    criteria, so they run concurrently on worker threads.  ``timeout``
    (default: ``QUERY_TIMEOUT_SECONDS``) bounds the pair; a falsy value
    disables it.
    """
    if timeout is None:
        timeout = settings.QUERY_TIMEOUT_SECONDS

    criteria = spec.criteria()
    reads = asyncio.gather(
        asyncio.to_thread(collection.find, criteria, (spec.sort_by, spec.sort_order), spec.skip, spec.limit),
        asyncio.to_thread(collection.count, criteria),
        return_exceptions=True,
    )
    try:
        items, total_items = await asyncio.wait_for(reads, timeout or None)
    except asyncio.TimeoutError:
        logger.error(f"Paged query timed out after {timeout}s (page={spec.page}, limit={spec.limit})")
        raise StorageError(f"Query timed out after {timeout} seconds", ErrorKind.TIMEOUT)

    # Both reads have finished; report the find failure first.
    for outcome in (items, total_items):
        if isinstance(outcome, BaseException):
            raise outcome

    total_pages = total_pages_for(total_items, spec.limit)
    if spec.page > total_pages and total_items > 0:
        logger.info(f"Rejected page {spec.page}: only {total_pages} page(s) available")
        raise ValidationError(
            f"Page should be between 1 and {total_pages}", ErrorKind.PAGE_OUT_OF_RANGE, ["page"]
        )

    return PageResult(
        items=list(items),
        current_page=spec.page,
        total_pages=total_pages,
        total_items=total_items,
        items_per_page=spec.limit,
    )
