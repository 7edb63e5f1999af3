"""
Shared pytest fixtures: in-memory Mongo, API client, auth headers.
"""
import mongomock
import pytest
from fastapi.testclient import TestClient

from farmrecords.auth import jwt_issue
from farmrecords.mongo import get_db
from server import app

USER_ID = "USRTEST0001"


@pytest.fixture
def db():
    return mongomock.MongoClient().get_database("gap_farm_records_test")


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def user_id():
    return USER_ID


@pytest.fixture
def auth_headers(user_id):
    tokens = jwt_issue({"userId": user_id, "name": "農園 太郎", "email": "taro@example.com"})
    return {"Authorization": f"Bearer {tokens['access_token']}"}
