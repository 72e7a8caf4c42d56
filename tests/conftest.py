import mongomock
import pytest
from fastapi.testclient import TestClient

from auth import get_token_verifier
from database import get_db
from main import app


def fake_verify(token: str) -> dict:
    if not token.startswith("token:"):
        raise ValueError("Invalid ID token")
    email = token.split(":", 1)[1]
    return {"email": email, "name": email.split("@")[0].title()}


@pytest.fixture
def db():
    return mongomock.MongoClient()["krishilink-test"]


@pytest.fixture
def products(db):
    return db["products"]


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_token_verifier] = lambda: fake_verify
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_as():
    def _headers(email):
        return {"Authorization": f"Bearer token:{email}"}
    return _headers


@pytest.fixture
def crop(products):
    """A crop owned by farmer@farm.io with no interests yet."""
    result = products.insert_one({
        "name": "Rice",
        "type": "Grain",
        "owner": {"ownerEmail": "farmer@farm.io", "ownerName": "Farmer"},
        "interests": [],
    })
    return str(result.inserted_id)
