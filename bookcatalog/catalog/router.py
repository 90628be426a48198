"""
Route definitions for the catalogue API.

Endpoints under /api:
- GET    /book              : list books (filter / sort / fields / page)
- GET    /book/{book_id}    : get one book, ``null`` when absent
- POST   /book              : create a book (bearer token)
- PUT    /book/{book_id}    : update a book (bearer token)
- DELETE /book/{book_id}    : delete a book (bearer token)
- the same five routes under /category

Write routes hand the raw request body to the controllers, which decode
and validate it only after the caller has been authorized.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Header, Request
from starlette.datastructures import QueryParams

from ..models import Book, Category
from .controllers import BookController, CategoryController


router = APIRouter(prefix="/api")


def _json_body(model_name: str) -> Dict[str, Any]:
    return {
        "requestBody": {
            "required": True,
            "content": {
                "application/json": {
                    "schema": {"$ref": f"#/components/schemas/{model_name}"}
                }
            },
        }
    }


def query_mapping(query_params: QueryParams) -> Dict[str, Any]:
    """Collect query parameters, turning repeated keys into lists."""
    params: Dict[str, Any] = {}
    for key, value in query_params.multi_items():
        if key in params:
            previous = params[key]
            params[key] = previous + [value] if isinstance(previous, list) else [previous, value]
        else:
            params[key] = value
    return params


def get_book_controller(request: Request) -> BookController:
    return request.app.state.book_controller


def get_category_controller(request: Request) -> CategoryController:
    return request.app.state.category_controller


# ---------------------------------------------------------------------------
# Books


@router.get(
    "/book",
    response_model=List[Book],
    response_model_exclude_unset=True,
    tags=["book"],
)
async def list_books(
    request: Request,
    controller: BookController = Depends(get_book_controller),
):
    """
    Returns the books matching the query string, as a plain array.

    Examples: ``?price[gte]=9``, ``?sort=-price,title``,
    ``?fields=title,price``, ``?page=2&limit=2``.
    """
    return await controller.list(query_mapping(request.query_params))


@router.get(
    "/book/{book_id}",
    response_model=Optional[Book],
    response_model_exclude_unset=True,
    tags=["book"],
)
async def get_book(book_id: str, controller: BookController = Depends(get_book_controller)):
    return await controller.get(book_id)


@router.post(
    "/book",
    response_model=Book,
    response_model_exclude_unset=True,
    tags=["book"],
    openapi_extra=_json_body("BookCreate"),
)
async def create_book(
    request: Request,
    authorization: Optional[str] = Header(default=None),
    controller: BookController = Depends(get_book_controller),
):
    return await controller.create(await request.body(), authorization)


@router.put(
    "/book/{book_id}",
    response_model=Book,
    response_model_exclude_unset=True,
    tags=["book"],
    openapi_extra=_json_body("BookUpdate"),
)
async def update_book(
    book_id: str,
    request: Request,
    authorization: Optional[str] = Header(default=None),
    controller: BookController = Depends(get_book_controller),
):
    return await controller.update(book_id, await request.body(), authorization)


@router.delete(
    "/book/{book_id}",
    response_model=Book,
    response_model_exclude_unset=True,
    tags=["book"],
)
async def delete_book(
    book_id: str,
    authorization: Optional[str] = Header(default=None),
    controller: BookController = Depends(get_book_controller),
):
    return await controller.delete(book_id, authorization)


# ---------------------------------------------------------------------------
# Categories


@router.get(
    "/category",
    response_model=List[Category],
    response_model_exclude_unset=True,
    tags=["category"],
)
async def list_categories(
    request: Request,
    controller: CategoryController = Depends(get_category_controller),
):
    return await controller.list(query_mapping(request.query_params))


@router.get(
    "/category/{category_id}",
    response_model=Optional[Category],
    response_model_exclude_unset=True,
    tags=["category"],
)
async def get_category(
    category_id: str, controller: CategoryController = Depends(get_category_controller)
):
    return await controller.get(category_id)


@router.post(
    "/category",
    response_model=Category,
    response_model_exclude_unset=True,
    tags=["category"],
    openapi_extra=_json_body("CategoryCreate"),
)
async def create_category(
    request: Request,
    authorization: Optional[str] = Header(default=None),
    controller: CategoryController = Depends(get_category_controller),
):
    return await controller.create(await request.body(), authorization)


@router.put(
    "/category/{category_id}",
    response_model=Category,
    response_model_exclude_unset=True,
    tags=["category"],
    openapi_extra=_json_body("CategoryUpdate"),
)
async def update_category(
    category_id: str,
    request: Request,
    authorization: Optional[str] = Header(default=None),
    controller: CategoryController = Depends(get_category_controller),
):
    return await controller.update(category_id, await request.body(), authorization)


@router.delete(
    "/category/{category_id}",
    response_model=Category,
    response_model_exclude_unset=True,
    tags=["category"],
)
async def delete_category(
    category_id: str,
    authorization: Optional[str] = Header(default=None),
    controller: CategoryController = Depends(get_category_controller),
):
    return await controller.delete(category_id, authorization)
