"""
Pytest fixtures for the school inventory test suite.

Provides:
- A fresh SQLite database per test (file under tmp_path)
- A FastAPI TestClient bound to that database
- Users, items and requests builders

Environment is prepared before the package is imported: the module-level
engine points at a throwaway SQLite file and Redis caching is disabled.
"""
import os
import tempfile

_BOOTSTRAP_DIR = tempfile.mkdtemp(prefix="school_inventory_tests_")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_BOOTSTRAP_DIR, 'bootstrap.db')}"
os.environ["REDIS_URL"] = ""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from school_inventory import auth, crud, models, schemas
from school_inventory.database import Base, build_engine, get_db
from school_inventory.main import app


@pytest.fixture
def engine(tmp_path):
    """Engine on an empty SQLite database file."""
    test_engine = build_engine(f"sqlite:///{tmp_path / 'inventory.db'}")
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    """TestClient whose get_db dependency uses the per-test database."""
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    """Create a user directly in the database (no password hashing)."""
    counter = {"n": 0}

    def _make_user(full_name: str, role: str = auth.USER_ROLE, username: str = None) -> models.User:
        counter["n"] += 1
        return crud.create_user(
            db,
            username=username or f"user{counter['n']}",
            full_name=full_name,
            password_hash="not-a-real-hash",
            role=role,
        )

    return _make_user


@pytest.fixture
def admin(make_user):
    return make_user("School Admin", role=auth.ADMIN_ROLE, username="admin")


@pytest.fixture
def student(make_user):
    return make_user("Student One", username="student1")


@pytest.fixture
def make_item(db):
    def _make_item(title: str, quantity: int) -> models.InventoryItem:
        return crud.create_inventory_item(db, schemas.InventoryItemCreate(title=title, quantity=quantity))

    return _make_item


@pytest.fixture
def auth_headers():
    def _auth_headers(user: models.User) -> dict:
        return {"Authorization": f"Bearer {auth.create_token_for_user(user)}"}

    return _auth_headers
