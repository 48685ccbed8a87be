"""
Pytest configuration and shared fixtures for the order service tests.

Provides an in-memory SQLite database, a fake Twilio endpoint built on
httpx.MockTransport, the wired-up service collaborators, and an HTTP client
for the FastAPI app.
"""
import os, sys
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

import json
from datetime import datetime, timezone
from typing import AsyncGenerator
from urllib.parse import parse_qs

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from config import Settings
from database import Base, enable_sqlite_foreign_keys
from services.notification_service import NotificationDispatcher
from services.order_repository import OrderRepository
from services.order_workflow import OrderLineRequest, OrderRequest, OrderSubmissionWorkflow
from services.whatsapp_client import WhatsAppClient

ALGERIAN_PHONE = "0551234567"
ALGERIAN_CANONICAL = "213551234567"
MAURITANIAN_PHONE = "+222 22 34 56 78"
MAURITANIAN_CANONICAL = "22222345678"


# ── Settings ─────────────────────────────────────────────────────────


@pytest.fixture
def test_settings() -> Settings:
    """Settings with Twilio configured and no .env influence."""
    return Settings(
        _env_file=None,
        database_url="sqlite+aiosqlite:///:memory:",
        environment="test",
        twilio_account_sid="AC_test_sid",
        twilio_auth_token="test_token",
        twilio_whatsapp_number="+14155238886",
        twilio_api_base="https://api.twilio.test",
        whatsapp_confirmation_template="",
        business_timezone="UTC",
    )


# ── Database Fixtures ────────────────────────────────────────────────


@pytest_asyncio.fixture(scope="function")
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """
    Session factory bound to a fresh in-memory SQLite database.

    Uses StaticPool so every session sees the same in-memory database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def repository(session_factory) -> OrderRepository:
    return OrderRepository(session_factory)


# ── Fake Twilio ──────────────────────────────────────────────────────


class FakeTwilio:
    """
    Stand-in for the Twilio Messages endpoint.

    mode: "ok" (201 + sid), "reject" (400 + Twilio error), "nosid" (201 without
    a sid), "timeout", "down"
    """

    def __init__(self):
        self.mode = "ok"
        self.requests: list[httpx.Request] = []
        self._counter = 0

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.mode == "timeout":
            raise httpx.ReadTimeout("provider too slow", request=request)
        if self.mode == "down":
            raise httpx.ConnectError("connection refused", request=request)
        if self.mode == "reject":
            return httpx.Response(
                400,
                json={"code": 63016, "message": "Failed to send freeform message outside the allowed window"},
            )
        if self.mode == "nosid":
            return httpx.Response(201, json={"status": "queued"})
        self._counter += 1
        return httpx.Response(201, json={"sid": f"SM{self._counter:032d}", "status": "queued"})

    def form(self, index: int = -1) -> dict:
        """Decoded form body of a recorded request."""
        parsed = parse_qs(self.requests[index].content.decode())
        return {key: values[0] for key, values in parsed.items()}

    def content_variables(self, index: int = -1) -> dict:
        return json.loads(self.form(index)["ContentVariables"])


@pytest.fixture
def fake_twilio() -> FakeTwilio:
    return FakeTwilio()


@pytest_asyncio.fixture
async def twilio_http(fake_twilio) -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient(transport=httpx.MockTransport(fake_twilio.handler)) as client:
        yield client


@pytest.fixture
def whatsapp_client(test_settings, twilio_http) -> WhatsAppClient:
    return WhatsAppClient(test_settings, http_client=twilio_http)


@pytest.fixture
def dispatcher(repository, whatsapp_client, test_settings) -> NotificationDispatcher:
    return NotificationDispatcher(repository, whatsapp_client, test_settings)


@pytest.fixture
def workflow(repository, dispatcher, test_settings) -> OrderSubmissionWorkflow:
    return OrderSubmissionWorkflow(repository, dispatcher, test_settings)


# ── Test Data ────────────────────────────────────────────────────────


def make_line(quantity: int = 2, unit_price: int = 500, menu_item_id: str = "couscous-royal") -> OrderLineRequest:
    return OrderLineRequest(
        menu_item_id=menu_item_id,
        item_name_fr="Couscous royal",
        item_name_ar="كسكس ملكي",
        quantity=quantity,
        unit_price=unit_price,
    )


def make_request(
    phone: str = ALGERIAN_PHONE,
    name: str = "Amina",
    lines: list[OrderLineRequest] | None = None,
    claimed_total: int | None = None,
) -> OrderRequest:
    lines = [make_line()] if lines is None else lines
    if claimed_total is None:
        claimed_total = sum(line.quantity * line.unit_price for line in lines)
    return OrderRequest(
        customer_name=name,
        customer_phone=phone,
        lines=lines,
        claimed_total=claimed_total,
    )


def fixed_clock(moment: datetime):
    """Clock callable for the workflow, always returning `moment` (UTC)."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return lambda: moment


# ── HTTP Client ──────────────────────────────────────────────────────


@pytest_asyncio.fixture(scope="function")
async def client(repository, whatsapp_client, test_settings, session_factory) -> AsyncGenerator[AsyncClient, None]:
    """
    HTTP client for the FastAPI app with every collaborator overridden to
    use the in-memory database and the fake Twilio endpoint.
    """
    from main import app
    from database import get_db
    from deps import get_repository, get_settings, get_whatsapp_client

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_repository] = lambda: repository
    app.dependency_overrides[get_whatsapp_client] = lambda: whatsapp_client

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
