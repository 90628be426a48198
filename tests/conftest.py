"""Shared fixtures for the catalog tests."""
import asyncio

import pytest
from fastapi.testclient import TestClient

from bookcatalog.auth import AuthenticationService, AuthorizationGate
from bookcatalog.catalog.controllers import BookController, CategoryController
from bookcatalog.catalog.relations import CategoryResolver
from bookcatalog.config import Settings
from bookcatalog.main import create_app
from bookcatalog.seed import FIXTURE_PASSWORD, seed_data
from bookcatalog.storage import EntityStore


JOHN = "john.doe@example.com"


@pytest.fixture
def run():
    """Run a coroutine to completion on a fresh event loop."""
    return asyncio.run


@pytest.fixture
def store():
    return EntityStore()


@pytest.fixture
def seeded(store, run):
    return run(seed_data(store))


@pytest.fixture
def auth(store):
    return AuthenticationService(store)


@pytest.fixture
def gate(auth):
    return AuthorizationGate(auth)


@pytest.fixture
def token(auth, seeded, run):
    issued, _ = run(auth.login(JOHN, FIXTURE_PASSWORD))
    return issued


@pytest.fixture
def credential(token):
    return f"Bearer {token}"


@pytest.fixture
def books(store, gate):
    return BookController(store, gate, CategoryResolver(store))


@pytest.fixture
def categories(store, gate):
    return CategoryController(store, gate)


@pytest.fixture
def settings():
    settings = Settings()
    settings.SEED = True
    settings.STRICT_CATEGORY_REFS = False
    return settings


@pytest.fixture
def client(settings):
    app = create_app(settings, EntityStore())
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers(client):
    response = client.post("/api/user/login", json={"email": JOHN, "password": FIXTURE_PASSWORD})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['token']}"}
