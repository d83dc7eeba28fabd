"""
Test configuration and fixtures.

Provides:
- Fresh in-memory SQLite database per test (schema from Base.metadata)
- DataGateway bound to an isolated ChangeFeed
- Actor sessions for each role and JWT header minting
- HTTPX AsyncClient over the ASGI app with dependency overrides
"""
import os
import uuid
from typing import AsyncGenerator, Callable, Generator

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENV", "test")
os.environ.setdefault("JWT_SECRET", "test-secret-key-with-enough-length-32")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session, sessionmaker

from brokerdesk.core.deps import get_gateway
from brokerdesk.core.security import create_session_token
from brokerdesk.db.base import Base
from brokerdesk.db.enums import ClientStatus, Role
from brokerdesk.db.gateway import ChangeFeed, DataGateway
from brokerdesk.db.models import Client
from brokerdesk.db.session import build_engine
from brokerdesk.main import app
from brokerdesk.schemas.auth import ActorSession


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def engine():
    """In-memory SQLite engine; StaticPool keeps one shared connection."""
    engine = build_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    yield session
    session.close()


@pytest.fixture(scope="function")
def feed() -> ChangeFeed:
    return ChangeFeed()


@pytest.fixture(scope="function")
def gateway(db: Session, feed: ChangeFeed) -> DataGateway:
    return DataGateway(db, feed)


# =============================================================================
# Actors
# =============================================================================

@pytest.fixture
def admin() -> ActorSession:
    return ActorSession(actor_id=uuid.uuid4(), role=Role.ADMINISTRATOR)


@pytest.fixture
def developer() -> ActorSession:
    return ActorSession(actor_id=uuid.uuid4(), role=Role.DEVELOPER)


@pytest.fixture
def broker() -> ActorSession:
    return ActorSession(actor_id=uuid.uuid4(), role=Role.BROKER)


@pytest.fixture
def other_broker() -> ActorSession:
    return ActorSession(actor_id=uuid.uuid4(), role=Role.BROKER)


# =============================================================================
# Data helpers
# =============================================================================

@pytest.fixture
def make_client(gateway: DataGateway) -> Callable[..., Client]:
    """Insert a client row directly, bypassing the pipeline rules."""

    def _make(
        broker_id: uuid.UUID | None = None,
        status: ClientStatus | None = None,
        **fields,
    ) -> Client:
        if status is None:
            status = ClientStatus.NEW if broker_id else ClientStatus.PENDING
        record = {
            "name": fields.pop("name", f"Client {uuid.uuid4().hex[:6]}"),
            "status": status.value,
            "broker_id": broker_id,
            **fields,
        }
        return gateway.insert("clients", record)

    return _make


# =============================================================================
# HTTP Fixtures
# =============================================================================

@pytest.fixture
def auth_headers() -> Callable[[ActorSession], dict]:
    """Bearer + CSRF headers for an actor."""

    def _headers(actor: ActorSession, csrf: bool = True) -> dict:
        token = create_session_token(actor.actor_id, actor.role.value)
        headers = {"Authorization": f"Bearer {token}"}
        if csrf:
            headers["X-Requested-With"] = "XMLHttpRequest"
        return headers

    return _headers


@pytest.fixture(scope="function")
async def client(gateway: DataGateway) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient whose requests share the test gateway."""
    app.dependency_overrides[get_gateway] = lambda: gateway

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
