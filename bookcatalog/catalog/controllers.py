"""
Resource controllers for Books and Categories.

Each mutating verb runs the same short pipeline: authorize the caller,
validate the target id, prepare the payload, write through the entity
store, then expand references for the response. Reads skip the
authorization step.

Missing records are reported differently depending on the verb: ``get``
returns ``None`` while ``update`` and ``delete`` raise
``NotFoundError``. Existing API clients rely on both behaviours.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Type, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ..auth import AuthorizationGate
from ..errors import InvalidIdError, NotFoundError, ValidationError
from ..models import Book, BookCreate, BookUpdate, Category, CategoryCreate, CategoryUpdate, Record
from ..storage import BOOK, CATEGORY, EntityStore, is_valid_id
from ..utils import slugify
from .query import run_query, translate
from .relations import CategoryResolver


logger = logging.getLogger(__name__)

# Raw JSON request bodies arrive as bytes and are decoded after authorization.
Payload = Union[BaseModel, Mapping[str, Any], bytes, str, None]


def validate_id(record_id: Any) -> str:
    if not is_valid_id(record_id):
        raise InvalidIdError(f"This id is not valid or not found: '{record_id}'")
    return record_id


class ResourceController:
    collection: str = ""
    record_type: Type[Record] = Record
    create_type: Type[BaseModel] = BaseModel
    update_type: Type[BaseModel] = BaseModel

    def __init__(self, store: EntityStore, gate: AuthorizationGate) -> None:
        self.store = store
        self.gate = gate

    # hooks -------------------------------------------------------------

    async def prepare(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return data

    async def expand(self, document: Dict[str, Any]) -> Dict[str, Any]:
        return document

    def expander(self):
        return None

    # helpers -----------------------------------------------------------

    def _parse(self, payload_type: Type[BaseModel], payload: Payload) -> Dict[str, Any]:
        if isinstance(payload, BaseModel):
            return payload.model_dump(exclude_unset=True)
        try:
            if isinstance(payload, (bytes, str)):
                parsed = payload_type.model_validate_json(payload or b"{}")
            else:
                parsed = payload_type.model_validate(payload or {})
        except PydanticValidationError as exc:
            raise ValidationError(
                f"Invalid {self.collection} payload",
                detail=exc.errors(include_url=False, include_context=False, include_input=False),
            ) from exc
        return parsed.model_dump(exclude_unset=True)

    def _record(self, document: Dict[str, Any]) -> Record:
        return self.record_type.model_validate(document)

    # verbs -------------------------------------------------------------

    async def create(self, payload: Payload, credential: Optional[str]) -> Record:
        identity = await self.gate.authorize(credential)
        data = await self.prepare(self._parse(self.create_type, payload))
        document = await self.store.insert(self.collection, data)
        logger.info("%s created %s %s", identity.email, self.collection, document["_id"])
        return self._record(await self.expand(document))

    async def update(self, record_id: Any, payload: Payload, credential: Optional[str]) -> Record:
        identity = await self.gate.authorize(credential)
        record_id = validate_id(record_id)
        patch = await self.prepare(self._parse(self.update_type, payload))
        document = await self.store.update_by_id(self.collection, record_id, patch)
        if document is None:
            raise NotFoundError(f"{self.collection.capitalize()} '{record_id}' not found")
        logger.info("%s updated %s %s", identity.email, self.collection, record_id)
        return self._record(await self.expand(document))

    async def delete(self, record_id: Any, credential: Optional[str]) -> Record:
        identity = await self.gate.authorize(credential)
        record_id = validate_id(record_id)
        document = await self.store.delete_by_id(self.collection, record_id)
        if document is None:
            raise NotFoundError(f"{self.collection.capitalize()} '{record_id}' not found")
        logger.info("%s deleted %s %s", identity.email, self.collection, record_id)
        return self._record(await self.expand(document))

    async def get(self, record_id: Any) -> Optional[Record]:
        record_id = validate_id(record_id)
        document = await self.store.find_by_id(self.collection, record_id)
        if document is None:
            return None
        return self._record(await self.expand(document))

    async def list(self, params: Mapping[str, Any]) -> List[Record]:
        plan = translate(params)
        documents = await run_query(self.store, self.collection, plan, self.expander())
        return [self._record(document) for document in documents]


class CategoryController(ResourceController):
    collection = CATEGORY
    record_type = Category
    create_type = CategoryCreate
    update_type = CategoryUpdate


class BookController(ResourceController):
    collection = BOOK
    record_type = Book
    create_type = BookCreate
    update_type = BookUpdate

    def __init__(
        self, store: EntityStore, gate: AuthorizationGate, resolver: CategoryResolver
    ) -> None:
        super().__init__(store, gate)
        self.resolver = resolver

    async def prepare(self, data: Dict[str, Any]) -> Dict[str, Any]:
        if data.get("title"):
            data["slug"] = slugify(data["title"])
        if data.get("category") is not None:
            await self.resolver.ensure_category_exists(data["category"])
        return data

    async def expand(self, document: Dict[str, Any]) -> Dict[str, Any]:
        return await self.resolver.expand(document)

    def expander(self) -> CategoryResolver:
        return self.resolver
