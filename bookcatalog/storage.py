# bookcatalog/storage.py
"""
In-memory document store backing the catalog.

Documents live in per-collection dicts keyed by their ``_id`` (an
``ObjectId`` hex string). The store speaks a small subset of the Mongo
query dialect so callers can hand it native filter, sort and projection
documents:

* filters: ``{"price": {"$gte": 9.0}, "author": "Harper Lee"}``
* sort: ``[("price", -1), ("title", 1)]``
* projection: ``{"title": 1, "price": 1}`` or ``{"__v": 0}``

Each collection has a pydantic schema (see ``models``). Inserts and
updates are validated against it, and filter values are cast to the
schema field type before comparison, so ``"9"`` compares as ``9.0`` on a
float field. Every operation is a coroutine; none of them awaits
internally, so each runs to completion without interleaving.
"""

from __future__ import annotations

import copy
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Type

from bson import ObjectId
from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from typing_extensions import Annotated

from .errors import StoreUnavailableError, ValidationError
from .models import BookDocument, CategoryDocument, UserDocument


logger = logging.getLogger(__name__)

CATEGORY = "category"
BOOK = "book"
USER = "user"

SCHEMAS: Dict[str, Type[BaseModel]] = {
    CATEGORY: CategoryDocument,
    BOOK: BookDocument,
    USER: UserDocument,
}

UNIQUE_FIELDS: Dict[str, Tuple[str, ...]] = {
    USER: ("email",),
}

# Fields the store owns; callers cannot set them through insert or update.
MANAGED_FIELDS = frozenset({"_id", "__v", "createdAt", "updatedAt"})

Filter = Mapping[str, Any]
Sort = Sequence[Tuple[str, int]]
Projection = Mapping[str, int]

_COMPARATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "$eq": lambda actual, expected: actual == expected,
    "$gt": lambda actual, expected: actual > expected,
    "$gte": lambda actual, expected: actual >= expected,
    "$lt": lambda actual, expected: actual < expected,
    "$lte": lambda actual, expected: actual <= expected,
}


def is_valid_id(value: Any) -> bool:
    return isinstance(value, str) and ObjectId.is_valid(value)


def _pydantic_errors(exc: PydanticValidationError) -> List[Dict[str, Any]]:
    return exc.errors(include_url=False, include_context=False, include_input=False)


def _sort_key(value: Any) -> Tuple:
    # Missing values sort lowest, as in Mongo.
    if value is None:
        return (0,)
    return (1, value)


class EntityStore:
    """Async CRUD over the ``category``, ``book`` and ``user`` collections."""

    def __init__(self, schemas: Optional[Mapping[str, Type[BaseModel]]] = None) -> None:
        self._schemas: Dict[str, Type[BaseModel]] = dict(schemas or SCHEMAS)
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {
            name: {} for name in self._schemas
        }
        self._adapters: Dict[Tuple[str, str], Optional[TypeAdapter]] = {}
        self._last_timestamp: Optional[datetime] = None
        self._open = True

    # ------------------------------------------------------------------
    # lifecycle

    @property
    def is_open(self) -> bool:
        return self._open

    def close(self) -> None:
        """Make every further operation fail with ``StoreUnavailableError``."""
        self._open = False
        logger.info("Entity store closed")

    def reopen(self) -> None:
        self._open = True
        logger.info("Entity store reopened")

    # ------------------------------------------------------------------
    # writes

    async def insert(self, collection: str, record: Mapping[str, Any]) -> Dict[str, Any]:
        docs = self._collection(collection)
        now = self._now()
        candidate = {k: v for k, v in record.items() if k not in MANAGED_FIELDS}
        candidate.update({"_id": str(ObjectId()), "createdAt": now, "updatedAt": now, "__v": 0})
        document = self._validate(collection, candidate)
        self._check_unique(collection, document)
        docs[document["_id"]] = document
        logger.debug("Inserted %s %s", collection, document["_id"])
        return copy.deepcopy(document)

    async def insert_many(
        self, collection: str, records: Iterable[Mapping[str, Any]]
    ) -> List[Dict[str, Any]]:
        return [await self.insert(collection, record) for record in records]

    async def update_by_id(
        self, collection: str, record_id: str, patch: Mapping[str, Any]
    ) -> Optional[Dict[str, Any]]:
        """Merge ``patch`` into the document and re-validate the result.

        Returns
        -------
        Optional[Dict[str, Any]]
            The updated document, or ``None`` when no document has this id.
        """
        docs = self._collection(collection)
        self._check_id(record_id)
        current = docs.get(record_id)
        if current is None:
            return None
        merged = dict(current)
        merged.update({k: v for k, v in patch.items() if k not in MANAGED_FIELDS})
        merged["updatedAt"] = self._now()
        merged["__v"] = current.get("__v", 0) + 1
        document = self._validate(collection, merged)
        self._check_unique(collection, document, ignore_id=record_id)
        docs[record_id] = document
        logger.debug("Updated %s %s", collection, record_id)
        return copy.deepcopy(document)

    async def delete_by_id(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        docs = self._collection(collection)
        self._check_id(record_id)
        document = docs.pop(record_id, None)
        if document is not None:
            logger.debug("Deleted %s %s", collection, record_id)
        return document

    async def delete_many(self, collection: str, filter: Optional[Filter] = None) -> int:
        docs = self._collection(collection)
        matches = self._compile_filter(collection, filter or {})
        doomed = [doc_id for doc_id, doc in docs.items() if matches(doc)]
        for doc_id in doomed:
            del docs[doc_id]
        return len(doomed)

    # ------------------------------------------------------------------
    # reads

    async def find_by_id(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        docs = self._collection(collection)
        self._check_id(record_id)
        document = docs.get(record_id)
        return copy.deepcopy(document) if document is not None else None

    async def find_one(self, collection: str, filter: Filter) -> Optional[Dict[str, Any]]:
        found = await self.find(collection, filter, limit=1)
        return found[0] if found else None

    async def find(
        self,
        collection: str,
        filter: Optional[Filter] = None,
        sort: Optional[Sort] = None,
        projection: Optional[Projection] = None,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Return copies of the matching documents.

        Parameters
        ----------
        collection : str
            Collection name.
        filter : Optional[Mapping[str, Any]]
            Mongo-style filter document; empty or ``None`` matches all.
        sort : Optional[Sequence[Tuple[str, int]]]
            ``(field, direction)`` pairs, ``1`` ascending and ``-1``
            descending. Earlier pairs take precedence.
        projection : Optional[Mapping[str, int]]
            Inclusion (``{"title": 1}``) or exclusion (``{"__v": 0}``)
            document. ``_id`` is kept unless explicitly excluded.
        skip : int
            Number of matching documents to drop from the front.
        limit : Optional[int]
            Maximum number of documents to return.
        """
        docs = self._collection(collection)
        if skip < 0 or (limit is not None and limit < 0):
            raise ValidationError("skip and limit must not be negative")
        matches = self._compile_filter(collection, filter or {})
        results = [doc for doc in docs.values() if matches(doc)]

        for field, direction in reversed(list(sort or [])):
            if direction not in (1, -1):
                raise ValidationError(f"Invalid sort direction {direction!r} for '{field}'")
            try:
                results.sort(key=lambda doc: _sort_key(doc.get(field)), reverse=direction < 0)
            except TypeError as exc:
                raise ValidationError(f"Cannot sort on field '{field}'") from exc

        results = results[skip:]
        if limit:
            results = results[:limit]
        shape = self._compile_projection(projection)
        return [shape(copy.deepcopy(doc)) for doc in results]

    async def count(self, collection: str, filter: Optional[Filter] = None) -> int:
        docs = self._collection(collection)
        matches = self._compile_filter(collection, filter or {})
        return sum(1 for doc in docs.values() if matches(doc))

    # ------------------------------------------------------------------
    # internals

    def _collection(self, name: str) -> Dict[str, Dict[str, Any]]:
        if not self._open:
            raise StoreUnavailableError("The entity store is not available")
        try:
            return self._collections[name]
        except KeyError:
            raise ValidationError(f"Unknown collection '{name}'") from None

    def _check_id(self, record_id: Any) -> None:
        if not is_valid_id(record_id):
            raise ValidationError(f"Cast to ObjectId failed for value '{record_id}'")

    def _now(self) -> datetime:
        now = datetime.now(timezone.utc)
        # Keep creation order recoverable from timestamps.
        if self._last_timestamp is not None and now <= self._last_timestamp:
            now = self._last_timestamp + timedelta(microseconds=1)
        self._last_timestamp = now
        return now

    def _validate(self, collection: str, document: Mapping[str, Any]) -> Dict[str, Any]:
        schema = self._schemas[collection]
        try:
            validated = schema.model_validate(document)
        except PydanticValidationError as exc:
            raise ValidationError(
                f"{collection} validation failed", detail=_pydantic_errors(exc)
            ) from exc
        return validated.model_dump(by_alias=True)

    def _check_unique(
        self, collection: str, document: Mapping[str, Any], ignore_id: Optional[str] = None
    ) -> None:
        for field in UNIQUE_FIELDS.get(collection, ()):
            value = document.get(field)
            for doc_id, other in self._collections[collection].items():
                if doc_id != ignore_id and other.get(field) == value:
                    raise ValidationError(
                        f"Duplicate key: {collection}.{field} '{value}' already exists"
                    )

    def _adapter(self, collection: str, field: str) -> Optional[TypeAdapter]:
        key = (collection, field)
        if key not in self._adapters:
            adapter = None
            for name, info in self._schemas[collection].model_fields.items():
                if (info.alias or name) == field:
                    annotation = info.annotation
                    if info.metadata:
                        # Validators on the field itself (ObjectIdStr on ``_id``) live in metadata.
                        annotation = Annotated[(annotation, *info.metadata)]
                    adapter = TypeAdapter(annotation)
                    break
            self._adapters[key] = adapter
        return self._adapters[key]

    def _cast(self, collection: str, field: str, value: Any) -> Any:
        adapter = self._adapter(collection, field)
        if adapter is None or value is None:
            return value
        try:
            cast = adapter.validate_python(value)
        except PydanticValidationError as exc:
            raise ValidationError(
                f"Cast failed for value {value!r} at path '{field}'",
                detail=_pydantic_errors(exc),
            ) from exc
        if isinstance(cast, datetime) and cast.tzinfo is None:
            # Stored timestamps are UTC.
            cast = cast.replace(tzinfo=timezone.utc)
        return cast

    def _compile_filter(self, collection: str, filter: Filter) -> Callable[[Mapping[str, Any]], bool]:
        checks: List[Tuple[str, str, Any]] = []
        for field, condition in filter.items():
            if not isinstance(field, str) or not field or field.startswith("$"):
                raise ValidationError(f"Unsupported filter key {field!r}")
            if isinstance(condition, Mapping) and any(
                isinstance(k, str) and k.startswith("$") for k in condition
            ):
                for op, expected in condition.items():
                    if op not in _COMPARATORS:
                        raise ValidationError(f"Unsupported operator {op!r} on '{field}'")
                    checks.append((field, op, self._cast(collection, field, expected)))
            else:
                checks.append((field, "$eq", self._cast(collection, field, condition)))

        def matches(document: Mapping[str, Any]) -> bool:
            for field, op, expected in checks:
                actual = document.get(field)
                if actual is None or expected is None:
                    if not (op == "$eq" and actual is expected):
                        return False
                    continue
                try:
                    if not _COMPARATORS[op](actual, expected):
                        return False
                except TypeError as exc:
                    raise ValidationError(
                        f"Cannot compare '{field}' value {actual!r} with {expected!r}"
                    ) from exc
            return True

        return matches

    def _compile_projection(
        self, projection: Optional[Projection]
    ) -> Callable[[Dict[str, Any]], Dict[str, Any]]:
        if not projection:
            return lambda doc: doc
        keep_id = bool(projection.get("_id", 1))
        flags = {field: bool(flag) for field, flag in projection.items() if field != "_id"}
        if not flags:
            if keep_id:
                return lambda doc: doc
            return lambda doc: {k: v for k, v in doc.items() if k != "_id"}
        if len(set(flags.values())) > 1:
            raise ValidationError("Projection cannot mix inclusion and exclusion")
        if next(iter(flags.values())):
            wanted = set(flags)
            if keep_id:
                wanted.add("_id")
            return lambda doc: {k: v for k, v in doc.items() if k in wanted}
        dropped = set(flags)
        if not keep_id:
            dropped.add("_id")
        return lambda doc: {k: v for k, v in doc.items() if k not in dropped}
