import os
from datetime import datetime, timedelta, timezone

import pytest

# Must be set before config/api are imported: api builds a module-level app at import time.
os.environ.setdefault("JWT_SECRET", "test-secret")

from fastapi.testclient import TestClient

from api import create_app
from config import Settings
from database import initialize_database
from friends import FriendService
from tokens import TokenService
from users import UserService

TEST_SECRET = "test-secret"


class FakeClock:
    """Controllable UTC clock shared by the token and friend services."""

    def __init__(self, start=None):
        self.now = start or datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def db_file(tmp_path):
    # tmp_path zaten test başına ayrı; dosya adı parametre değerlerinden bağımsız
    path = str(tmp_path / "test.db")
    initialize_database(path)
    yield path
    if os.path.exists(path):
        os.remove(path)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def app_settings(db_file):
    return Settings(database_file=db_file, jwt_secret_key=TEST_SECRET)


@pytest.fixture
def tokens(clock):
    return TokenService(TEST_SECRET, clock=clock)


@pytest.fixture
def users(db_file):
    return UserService(db_file)


@pytest.fixture
def friends(db_file, clock):
    return FriendService(db_file, clock=clock)


@pytest.fixture
def client(app_settings, clock):
    return TestClient(create_app(app_settings, clock=clock))


@pytest.fixture
def alice(users):
    return users.register("Alice Reader", "alice@example.com", "alice-password")


@pytest.fixture
def bob(users):
    return users.register("Bob Reader", "bob@example.com", "bob-password")
