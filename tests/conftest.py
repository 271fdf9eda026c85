import mongomock
import pytest
from fastapi.testclient import TestClient

from cart import CartRegistry
from json_store import JsonFileSectionRepository
from main import app, get_carts, get_repository
from mongo_store import MongoSectionRepository


@pytest.fixture
def mongo_repo():
    return MongoSectionRepository(mongomock.MongoClient()["storefront_test"])


@pytest.fixture
def json_repo(tmp_path):
    return JsonFileSectionRepository(tmp_path / "top_viral_products.json")


@pytest.fixture(params=["mongo", "json"])
def repo(request):
    return request.getfixturevalue(f"{request.param}_repo")


@pytest.fixture
def registry():
    return CartRegistry()


@pytest.fixture
def client(repo, registry):
    app.dependency_overrides[get_repository] = lambda: repo
    app.dependency_overrides[get_carts] = lambda: registry
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
