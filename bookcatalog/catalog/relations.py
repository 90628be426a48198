"""Expansion of a Book's ``category`` reference into the Category record."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ..errors import ValidationError
from ..storage import CATEGORY, EntityStore, is_valid_id


logger = logging.getLogger(__name__)


class CategoryResolver:
    """Resolve ``category`` ids on book documents.

    A reference that is unset, malformed or points at a deleted Category
    resolves to ``None``; reads never fail because of it. With
    ``strict=True`` writes are checked up front by
    ``ensure_category_exists()``.
    """

    field = "category"

    def __init__(self, store: EntityStore, strict: bool = False) -> None:
        self.store = store
        self.strict = strict

    async def _lookup(self, category_id: Any) -> Optional[Dict[str, Any]]:
        if not is_valid_id(category_id):
            return None
        return await self.store.find_by_id(CATEGORY, category_id)

    async def expand(self, document: Dict[str, Any]) -> Dict[str, Any]:
        if self.field not in document:
            return document
        category_id = document[self.field]
        category = await self._lookup(category_id)
        if category is None and category_id is not None:
            logger.debug("Book %s has a dangling category %s", document.get("_id"), category_id)
        document[self.field] = category
        return document

    async def expand_many(self, documents: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        resolved: Dict[Any, Optional[Dict[str, Any]]] = {}
        for document in documents:
            if self.field not in document:
                continue
            category_id = document[self.field]
            if category_id not in resolved:
                resolved[category_id] = await self._lookup(category_id)
            category = resolved[category_id]
            # Each document gets its own copy of a shared category.
            document[self.field] = dict(category) if category is not None else None
        return documents

    async def ensure_category_exists(self, category_id: Optional[str]) -> None:
        if not self.strict or category_id is None:
            return
        if await self._lookup(category_id) is None:
            raise ValidationError(f"Category '{category_id}' does not exist")
