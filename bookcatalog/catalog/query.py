"""
Translation of list-request query parameters into a query plan.

``translate()`` turns the raw query-string mapping of a list request into
a ``QueryPlan``: a typed filter, a sort order, a field projection and a
pagination window. Nothing is executed at that point; ``run_query()``
hands the plan to the entity store and expands the results.

Query-string conventions
------------------------
* ``page``, ``limit``, ``sort`` and ``fields`` are reserved; every other
  key is a filter field.
* ``price[gte]=9`` (or a nested mapping ``{"price": {"gte": "9"}}``)
  filters with a comparison; ``gt``, ``gte``, ``lt`` and ``lte`` are
  understood. A bare ``author=Harper Lee`` is an equality test.
* ``sort=-price,title`` sorts by price descending, then title. Without
  it results are newest first.
* ``fields=title,price`` keeps only those fields (plus ``_id``). Without
  it every field except ``__v`` is returned.
* ``page`` and ``limit`` are positive integers. A ``page`` whose first
  record lies beyond the matching set is an error, not an empty list.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Protocol, Tuple

from ..errors import OutOfRangeError, ValidationError
from ..storage import EntityStore


logger = logging.getLogger(__name__)

RESERVED_PARAMS = frozenset({"page", "sort", "limit", "fields"})
DEFAULT_SORT_FIELD = "createdAt"
VERSION_FIELD = "__v"

_BRACKET_KEY = re.compile(r"^(?P<field>[^\[\]]+)\[(?P<op>[^\[\]]*)\]$")
_LIST_SEPARATOR = re.compile(r"[,\s]+")


class Operator(str, Enum):
    EQ = "eq"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"

    @property
    def store_operator(self) -> str:
        return f"${self.value}"

    @classmethod
    def from_suffix(cls, suffix: str, field_name: str) -> "Operator":
        try:
            operator = cls(suffix)
        except ValueError:
            operator = None
        # Equality is implied; only comparison suffixes may be spelled out.
        if operator is None or operator is cls.EQ:
            raise ValidationError(
                f"Unsupported operator '{suffix}' on filter field '{field_name}'"
            )
        return operator


@dataclass(frozen=True)
class FilterCondition:
    field: str
    operator: Operator
    value: Any


@dataclass(frozen=True)
class FilterPlan:
    conditions: Tuple[FilterCondition, ...] = ()

    def to_store_filter(self) -> Dict[str, Any]:
        """Render the plan in the entity store's native filter syntax."""
        grouped: Dict[str, Dict[str, Any]] = {}
        for condition in self.conditions:
            grouped.setdefault(condition.field, {})[condition.operator.store_operator] = condition.value
        rendered: Dict[str, Any] = {}
        for field_name, ops in grouped.items():
            if list(ops) == ["$eq"]:
                rendered[field_name] = ops["$eq"]
            else:
                rendered[field_name] = ops
        return rendered


@dataclass(frozen=True)
class SortKey:
    field: str
    descending: bool = False


@dataclass(frozen=True)
class SortPlan:
    keys: Tuple[SortKey, ...] = (SortKey(DEFAULT_SORT_FIELD, descending=True),)

    def to_store_sort(self) -> List[Tuple[str, int]]:
        return [(key.field, -1 if key.descending else 1) for key in self.keys]


@dataclass(frozen=True)
class ProjectionPlan:
    include: Tuple[str, ...] = ()
    exclude: Tuple[str, ...] = (VERSION_FIELD,)

    def to_store_projection(self) -> Dict[str, int]:
        if self.include:
            projection = {name: 1 for name in self.include}
            if "_id" in self.exclude:
                projection["_id"] = 0
            return projection
        return {name: 0 for name in self.exclude}

    def includes(self, field_name: str) -> bool:
        if self.include:
            return field_name in self.include
        return field_name not in self.exclude


@dataclass(frozen=True)
class PaginationPlan:
    page: Optional[int] = None
    limit: Optional[int] = None

    @property
    def skip(self) -> int:
        if self.page is None or self.limit is None:
            return 0
        return (self.page - 1) * self.limit


@dataclass(frozen=True)
class QueryPlan:
    filter: FilterPlan = field(default_factory=FilterPlan)
    sort: SortPlan = field(default_factory=SortPlan)
    projection: ProjectionPlan = field(default_factory=ProjectionPlan)
    pagination: PaginationPlan = field(default_factory=PaginationPlan)


class Expander(Protocol):
    async def expand_many(self, documents: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        ...


def _last(value: Any) -> Any:
    # A repeated query key arrives as a list; the last occurrence wins.
    if isinstance(value, (list, tuple)):
        return value[-1] if value else None
    return value


def _split_list(raw: Any) -> List[str]:
    text = _last(raw)
    if text is None:
        return []
    return [part for part in _LIST_SEPARATOR.split(str(text)) if part]


def _check_field_name(name: str) -> str:
    name = name.strip()
    if not name or name.startswith("$"):
        raise ValidationError(f"Invalid field name '{name}'")
    return name


def _positive_int(name: str, raw: Any) -> Optional[int]:
    value = _last(raw)
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        number = int(str(value).strip())
    except ValueError:
        raise ValidationError(f"'{name}' must be a positive integer, got '{value}'") from None
    if number < 1:
        raise ValidationError(f"'{name}' must be a positive integer, got '{value}'")
    return number


def parse_filter(params: Mapping[str, Any]) -> FilterPlan:
    conditions: List[FilterCondition] = []
    for key, raw in params.items():
        if key in RESERVED_PARAMS:
            continue
        match = _BRACKET_KEY.match(key)
        if match:
            field_name = _check_field_name(match.group("field"))
            if field_name in RESERVED_PARAMS:
                continue
            operator = Operator.from_suffix(match.group("op"), field_name)
            conditions.append(FilterCondition(field_name, operator, _last(raw)))
        elif isinstance(raw, Mapping):
            field_name = _check_field_name(key)
            for suffix, value in raw.items():
                operator = Operator.from_suffix(str(suffix), field_name)
                conditions.append(FilterCondition(field_name, operator, _last(value)))
        else:
            conditions.append(FilterCondition(_check_field_name(key), Operator.EQ, _last(raw)))
    return FilterPlan(tuple(conditions))


def parse_sort(raw: Any) -> SortPlan:
    keys: List[SortKey] = []
    for token in _split_list(raw):
        descending = token.startswith("-")
        keys.append(SortKey(_check_field_name(token.lstrip("-+")), descending))
    return SortPlan(tuple(keys)) if keys else SortPlan()


def parse_fields(raw: Any) -> ProjectionPlan:
    include: List[str] = []
    exclude: List[str] = []
    for token in _split_list(raw):
        if token.startswith("-"):
            exclude.append(_check_field_name(token[1:]))
        else:
            include.append(_check_field_name(token.lstrip("+")))
    if not include and not exclude:
        return ProjectionPlan()
    # Only ``_id`` may be excluded alongside an inclusion list.
    if include and [name for name in exclude if name != "_id"]:
        raise ValidationError("'fields' cannot mix included and excluded fields")
    return ProjectionPlan(include=tuple(include), exclude=tuple(exclude))


def translate(params: Mapping[str, Any]) -> QueryPlan:
    """Build a ``QueryPlan`` from raw list-request query parameters.

    Parameters
    ----------
    params : Mapping[str, Any]
        Query parameters. Values are strings, lists of strings (repeated
        keys) or nested mappings of operator suffix to value.

    Returns
    -------
    QueryPlan
        The plan; no query has been run.

    Raises
    ------
    ValidationError
        On an unknown operator suffix, an invalid field name, a
        non-positive ``page``/``limit`` or a mixed ``fields`` list.
    """
    return QueryPlan(
        filter=parse_filter(params),
        sort=parse_sort(params.get("sort")),
        projection=parse_fields(params.get("fields")),
        pagination=PaginationPlan(
            page=_positive_int("page", params.get("page")),
            limit=_positive_int("limit", params.get("limit")),
        ),
    )


async def run_query(
    store: EntityStore,
    collection: str,
    plan: QueryPlan,
    expander: Optional[Expander] = None,
) -> List[Dict[str, Any]]:
    """Execute ``plan`` against ``collection`` and return the documents.

    When a page is requested the matching records are counted first and
    ``OutOfRangeError`` is raised if the page would start at or past the
    end. ``expander`` (if given) expands references on the results when
    the projection keeps the ``category`` field.
    """
    store_filter = plan.filter.to_store_filter()
    pagination = plan.pagination
    if pagination.page is not None:
        total = await store.count(collection, store_filter)
        if pagination.skip >= total:
            raise OutOfRangeError("This Page does not exist")

    documents = await store.find(
        collection,
        store_filter,
        sort=plan.sort.to_store_sort(),
        projection=plan.projection.to_store_projection(),
        skip=pagination.skip,
        limit=pagination.limit,
    )
    logger.debug("Query on %s returned %d record(s)", collection, len(documents))
    if expander is not None and plan.projection.includes("category"):
        documents = await expander.expand_many(documents)
    return documents
