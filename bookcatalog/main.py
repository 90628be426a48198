# bookcatalog/main.py
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.openapi.utils import get_openapi
from fastapi.responses import JSONResponse

from .auth import AuthenticationService, AuthorizationGate
from .catalog import catalog_router
from .catalog.controllers import BookController, CategoryController
from .catalog.relations import CategoryResolver
from .config import Settings, get_settings
from .errors import register_exception_handlers
from .models import BookCreate, BookUpdate, CategoryCreate, CategoryUpdate
from .seed import SeedResult, seed_data
from .storage import EntityStore
from .users import router as user_router


logger = logging.getLogger(__name__)

TITLE = "Book Catalog API"
DESCRIPTION = (
    "Books grouped into categories. Reads are public; creating, updating "
    "and deleting require a bearer token from /api/user/login."
)
VERSION = "1.0.0"

DOCUMENTED_PAYLOADS = (BookCreate, BookUpdate, CategoryCreate, CategoryUpdate)


def book_example(seed: SeedResult) -> dict:
    return {
        "title": "The Old Man and the Sea",
        "author": "Ernest Hemingway",
        "description": "An aging fisherman's struggle with a giant marlin far out in the Gulf Stream.",
        "price": 9.5,
        "pages": 127,
        "category": seed.categories_by_title.get("Classic Literature"),
        "tags": "classic, sea, struggle",
        "ratings": [
            {
                "star": 5,
                "comment": "Simple and powerful.",
                "postedby": seed.users_by_email.get("john.doe@example.com"),
            }
        ],
        "totalrating": "5.0",
    }


def install_openapi(app: FastAPI) -> None:
    """Generate the schema once, with payload examples built from seeded ids."""

    def custom_openapi() -> dict:
        if app.openapi_schema:
            return app.openapi_schema
        schema = get_openapi(title=TITLE, version=VERSION, description=DESCRIPTION, routes=app.routes)
        components = schema.setdefault("components", {}).setdefault("schemas", {})
        for model in DOCUMENTED_PAYLOADS:
            model_schema = model.model_json_schema(ref_template="#/components/schemas/{model}")
            components.update(model_schema.pop("$defs", {}))
            components[model.__name__] = model_schema
        seed: Optional[SeedResult] = getattr(app.state, "seed", None)
        if seed is not None:
            components["BookCreate"]["example"] = book_example(seed)
        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={
            "message": "Request validation failed",
            "error": "validation",
            "detail": jsonable_encoder(exc.errors()),
        },
    )


def create_app(settings: Optional[Settings] = None, store: Optional[EntityStore] = None) -> FastAPI:
    settings = settings or get_settings()
    store = store if store is not None else EntityStore()
    auth = AuthenticationService(store, token_ttl_seconds=settings.TOKEN_TTL_SECONDS)
    gate = AuthorizationGate(auth)
    resolver = CategoryResolver(store, strict=settings.STRICT_CATEGORY_REFS)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.SEED:
            app.state.seed = await seed_data(store)
            app.openapi_schema = None
        yield

    app = FastAPI(title=TITLE, description=DESCRIPTION, version=VERSION, lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.auth = auth
    app.state.seed = None
    app.state.book_controller = BookController(store, gate, resolver)
    app.state.category_controller = CategoryController(store, gate)

    # 🔹 Base route for a quick liveness check
    @app.get("/")
    def health_check():
        return {"status": "ok", "store": "up" if store.is_open else "down"}

    app.include_router(user_router)
    app.include_router(catalog_router)
    register_exception_handlers(app)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    install_openapi(app)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
