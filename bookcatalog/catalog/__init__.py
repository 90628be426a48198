"""
Catalog package for the book catalog API.

This package holds the list-query translation, the category reference
resolver, the Book and Category controllers and the routes exposing
them under ``/api/book`` and ``/api/category``. Reads are public;
writes go through the authorization gate in ``bookcatalog.auth``.
"""

from .router import router as catalog_router  # noqa: F401
