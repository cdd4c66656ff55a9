"""
Search specifications for paged list endpoints.

Every list endpoint turns its raw, untrusted query parameters into a
``SearchSpec`` with ``build_spec`` and an ``EntityConfig`` describing
which fields can be searched, filtered and sorted.  The resulting spec
is storage-agnostic: filters are expressed as ``Condition``/``AnyOf``
clauses that a collection compiles into its own query language.

Composition rules:

* every filter clause is ANDed with the others;
* a search term becomes one ``AnyOf`` clause (OR across the configured
  text fields), itself ANDed with the filters;
* within one field, a multi-word term matches only when *every* word
  occurs in that field, in any order, case-insensitively.
"""
import datetime
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Mapping, Optional, Union

from .config import settings
from .errors import ErrorKind, ValidationError

SORT_ORDERS = ("asc", "desc")

# Integers must fit a signed 64-bit column, offsets included.
MAX_STORED_INT = 2 ** 63 - 1

# Condition operators understood by every collection.
EQ = "eq"
GTE = "gte"
LTE = "lte"
ICONTAINS = "icontains"
CONTAINS_ALL = "contains_all"


@dataclass(frozen=True)
class Condition:
    field: str
    op: str
    value: Any


@dataclass(frozen=True)
class AnyOf:
    clauses: tuple


Clause = Union[Condition, AnyOf]


def search_words(term: Optional[str]) -> tuple:
    if not term:
        return ()
    return tuple(term.split())


# --- Filter declarations ---

class FilterKind(str, Enum):
    EXACT = "exact"
    BOOL = "bool"
    RANGE = "range"  # "min,max", either side optional
    MIN = "min"
    ICONTAINS = "icontains"


def parse_bool(raw: str) -> bool:
    value = str(raw).strip().lower()
    if value in {"true", "1", "yes"}:
        return True
    if value in {"false", "0", "no"}:
        return False
    raise ValueError(f"not a boolean: {raw!r}")


def parse_datetime(raw: str) -> datetime.datetime:
    value = datetime.datetime.fromisoformat(str(raw).strip())
    if value.tzinfo is not None:
        value = value.astimezone(datetime.timezone.utc).replace(tzinfo=None)
    return value


@dataclass(frozen=True)
class FilterField:
    """How one query parameter maps onto a stored field."""

    field: str
    kind: FilterKind = FilterKind.EXACT
    type: Callable[[str], Any] = str

    def conditions(self, param: str, raw: Any) -> list:
        try:
            if self.kind is FilterKind.BOOL:
                return [Condition(self.field, EQ, parse_bool(raw))]
            if self.kind is FilterKind.ICONTAINS:
                return [Condition(self.field, ICONTAINS, str(raw))]
            if self.kind is FilterKind.MIN:
                return [Condition(self.field, GTE, self._convert(raw))]
            if self.kind is FilterKind.RANGE:
                return self._range(str(raw))
            return [Condition(self.field, EQ, self._convert(raw))]
        except ValueError as exc:
            raise ValidationError(
                f"Invalid value for '{param}': {exc}", ErrorKind.INVALID_FILTER, [param]
            ) from exc

    def _convert(self, raw: Any) -> Any:
        value = self.type(raw)
        if isinstance(value, int) and not isinstance(value, bool) and abs(value) > MAX_STORED_INT:
            raise ValueError(f"{raw} is out of range")
        return value

    def _range(self, raw: str) -> list:
        if "," not in raw:
            raise ValueError("expected 'min,max'")
        low_raw, high_raw = (part.strip() for part in raw.split(",", 1))
        low = self._convert(low_raw) if low_raw else None
        high = self._convert(high_raw) if high_raw else None
        if low is not None and high is not None and low > high:
            raise ValueError("range minimum is greater than maximum")

        conditions = []
        if low is not None:
            conditions.append(Condition(self.field, GTE, low))
        if high is not None:
            conditions.append(Condition(self.field, LTE, high))
        return conditions


@dataclass(frozen=True)
class EntityConfig:
    """Searchable, filterable and sortable fields of one collection."""

    name: str
    search_fields: tuple = ()
    filters: Mapping[str, FilterField] = field(default_factory=dict)
    sortable: tuple = ("created_at",)
    default_sort: tuple = ("created_at", "desc")


# --- Search spec ---

@dataclass(frozen=True)
class SearchSpec:
    """Normalized page, search, filter and sort parameters.

    Rows with equal sort keys come back in storage-defined order; no
    secondary sort key is applied.
    """

    page: int = 1
    limit: int = 10
    search_term: Optional[str] = None
    search_fields: tuple = ()
    filters: tuple = ()
    sort_by: str = "created_at"
    sort_order: str = "desc"

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit

    def where(self, *conditions: Clause) -> "SearchSpec":
        """Return a copy narrowed by extra AND conditions (e.g. ownership)."""
        return replace(self, filters=self.filters + tuple(conditions))

    def criteria(self) -> list:
        clauses = list(self.filters)
        words = search_words(self.search_term)
        if words and self.search_fields:
            clauses.append(AnyOf(tuple(
                Condition(name, CONTAINS_ALL, words) for name in self.search_fields
            )))
        return clauses


def _parse_page_number(raw: Any, name: str, default: int) -> int:
    # Missing or non-numeric values fall back to the default; explicit
    # values below 1 are rejected.
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return default
    if value < 1:
        raise ValidationError(
            f"{name.capitalize()} must be a positive number, got {value}",
            ErrorKind.INVALID_PAGINATION,
            [name],
        )
    return value


def build_spec(
    raw_params: Mapping[str, Any],
    config: EntityConfig,
    default_limit: Optional[int] = None,
    max_limit: Optional[int] = None,
) -> SearchSpec:
    """Build a ``SearchSpec`` from raw query parameters.

    Raises ``ValidationError`` for explicit page/limit values below 1, an
    unknown sort field or order, and unparsable filter values.  A page
    whose offset cannot be stored is ``PageOutOfRange``.  The first
    problem found is reported.  Limits above ``max_limit`` are capped.
    """
    default_limit = default_limit or settings.DEFAULT_PAGE_LIMIT
    max_limit = max_limit or settings.MAX_PAGE_LIMIT

    page = _parse_page_number(raw_params.get("page"), "page", 1)
    limit = min(_parse_page_number(raw_params.get("limit"), "limit", default_limit), max_limit)
    if (page - 1) * limit > MAX_STORED_INT:
        # No stored collection reaches this offset.
        raise ValidationError(
            f"Page {page} is beyond the last page", ErrorKind.PAGE_OUT_OF_RANGE, ["page"]
        )

    search_term = str(raw_params.get("search_term") or "").strip() or None

    filters = []
    for param, filter_field in config.filters.items():
        raw = raw_params.get(param)
        if raw is None or raw == "":
            continue
        filters.extend(filter_field.conditions(param, raw))

    sort_by, sort_order = config.default_sort
    if raw_params.get("sort_by"):
        sort_by = str(raw_params["sort_by"])
        if sort_by not in config.sortable:
            raise ValidationError(
                f"Cannot sort {config.name} by '{sort_by}'", ErrorKind.INVALID_SORT, ["sort_by"]
            )
    if raw_params.get("sort_order"):
        sort_order = str(raw_params["sort_order"]).lower()
        if sort_order not in SORT_ORDERS:
            raise ValidationError(
                "Sort order must be 'asc' or 'desc'", ErrorKind.INVALID_SORT, ["sort_order"]
            )

    return SearchSpec(
        page=page,
        limit=limit,
        search_term=search_term,
        search_fields=tuple(config.search_fields),
        filters=tuple(filters),
        sort_by=sort_by,
        sort_order=sort_order,
    )
