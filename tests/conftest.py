import os
import uuid

# must be set before the application (and its limiter) is imported
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from viking.api import app
from viking.auth import get_caller, get_optional_caller
from viking.database import get_db, init_db
from viking.security import Caller
from viking.stores import RoleStore


@pytest.fixture
def session_local():
    """Provide an isolated in-memory database, with default roles, per test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    init_db(bind=engine)
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    yield TestingSessionLocal
    engine.dispose()


@pytest.fixture
def session(session_local):
    db = session_local()
    yield db
    db.close()


@pytest.fixture
def roles(session):
    store = RoleStore(session)
    return {role.name: role for role in store.list_all()}


@pytest.fixture
def admin_caller():
    return Caller(user_id=uuid.uuid4(), email="root@viking.test", permission="ADMIN")


@pytest.fixture
def make_user_payload():
    """Build a camelCase user payload; keyword overrides use wire names."""
    counter = iter(range(1, 10_000))

    def factory(role_id, **overrides):
        n = next(counter)
        payload = {
            "name": f"Customer {n}",
            "dni": 30_000_000 + n,
            "userType": "individual",
            "address": f"{n} Harbour Street",
            "phoneNumber": "555-0100",
            "secondaryPhoneNumber": "555-0199",
            "email": f"customer{n}@example.com",
            "password": "hunter2",
            "roleId": str(role_id),
        }
        payload.update(overrides)
        return payload

    return factory


@pytest.fixture
def client(session_local, admin_caller):
    def override_get_db():
        db = session_local()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_caller] = lambda: admin_caller
    app.dependency_overrides[get_optional_caller] = lambda: admin_caller
    yield TestClient(app)
    app.dependency_overrides.clear()
