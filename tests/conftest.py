import os
import tempfile

os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="storefront-uploads-"))

import mongomock
import pytest
from fastapi.testclient import TestClient
from pymongo.errors import ServerSelectionTimeoutError

import accounts
import catalog
from database import get_db
from main import app


def _unreachable(*args, **kwargs):
    raise ServerSelectionTimeoutError("localhost:27017: [Errno 111] Connection refused")


class UnreachableCollection:
    def __getattr__(self, name):
        return _unreachable


class UnreachableDatabase:
    """Stands in for a database whose server cannot be selected."""

    name = "storefront_test"

    def __getitem__(self, name):
        return UnreachableCollection()

    def list_collection_names(self):
        _unreachable()


@pytest.fixture
def db():
    return mongomock.MongoClient()["storefront_test"]


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def unreachable_db():
    return UnreachableDatabase()


@pytest.fixture
def down_client(unreachable_db):
    app.dependency_overrides[get_db] = lambda: unreachable_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_product(db):
    def _make(**overrides):
        fields = {
            "name": "Canvas Sneaker",
            "price": 100,
            "category": "women",
            "image": "/uploads/sneaker.jpg",
        }
        fields.update(overrides)
        return catalog.create_product(db, fields)
    return _make


@pytest.fixture
def make_user(db):
    def _make(email="ana@example.com", name="Ana", password="s3cret", role="user"):
        accounts.signup(db, name, email, password, password, role)
        return db["user"].find_one({"email": email})
    return _make
