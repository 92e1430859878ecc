"""Shared fixtures: in-memory storage, cart, sqlite database, API client."""
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from automart.api import create_app
from automart.api.routers.dependencies import get_locker_service
from automart.data.catalog import PRODUCTS_BY_ID
from automart.data.database import Base, get_db
from automart.data.models import OrderModel  # noqa: F401
from automart.repos.storage_backends import MemoryBackend
from automart.services.cart_service import CartService
from automart.services.kv_store import KeyValueStore
from automart.services.locker_service import LockerCommandService


@pytest.fixture
def backend():
    return MemoryBackend()


@pytest.fixture
def store(backend):
    s = KeyValueStore(backend, prefix="test_")
    yield s
    s.close()


@pytest.fixture
def cart(store):
    c = CartService(store)
    yield c
    c.close()


@pytest.fixture
def pizza():
    return PRODUCTS_BY_ID["p001"]


@pytest.fixture
def cola():
    return PRODUCTS_BY_ID["p006"]


@pytest.fixture
def mozzarella():
    return PRODUCTS_BY_ID["p003"]


@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def locker_service():
    svc = MagicMock(spec=LockerCommandService)
    svc.publish_open.return_value = True
    return svc


@pytest.fixture
def api(db_session, locker_service):
    app = create_app()

    def override_db():
        yield db_session

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_locker_service] = lambda: locker_service

    with TestClient(app) as client:
        yield client
