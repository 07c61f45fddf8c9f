import os
from datetime import timedelta
from typing import Any, Iterator, Optional

import httpx
import pytest
import pytest_asyncio
from librouteros.exceptions import TrapError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

from hotspot_billing.core.config import Settings
from hotspot_billing.integrations.mpesa_client import MpesaClient
from hotspot_billing.integrations.routeros_executor import RouterOSCommandExecutor
from hotspot_billing.integrations.routeros_session import RouterOSSessionManager
from hotspot_billing.models import Base, Plan


def _parse_words(words: tuple[str, ...]) -> tuple[dict[str, str], dict[str, str]]:
    attrs: dict[str, str] = {}
    query: dict[str, str] = {}
    for word in words:
        if word.startswith("="):
            key, _, value = word[1:].partition("=")
            attrs[key] = value
        elif word.startswith("?"):
            key, _, value = word[1:].partition("=")
            query[key] = value
    return attrs, query


class FakeRouterOSApi:
    """In-memory stand-in for a librouteros Api object."""

    def __init__(self) -> None:
        self.profiles: dict[str, dict[str, str]] = {}
        self.users: dict[str, dict[str, str]] = {}
        self.calls: list[tuple[str, tuple[str, ...]]] = []
        self.failures: dict[str, Exception] = {}
        self.closed = False

    def commands(self, command: str) -> list[tuple[str, ...]]:
        return [words for cmd, words in self.calls if cmd == command]

    def rawCmd(self, command: str, *words: str) -> Iterator[dict[str, Any]]:
        self.calls.append((command, words))
        if command in self.failures:
            raise self.failures[command]

        attrs, query = _parse_words(words)
        if command == "/ip/hotspot/user/profile/print":
            name = query.get("name")
            found = [p for n, p in self.profiles.items() if name is None or n == name]
            return iter(found)
        if command == "/ip/hotspot/user/profile/add":
            if attrs["name"] in self.profiles:
                raise TrapError("failure: already have user profile with this name")
            self.profiles[attrs["name"]] = attrs
            return iter([{"ret": f"*{len(self.profiles)}"}])
        if command == "/ip/hotspot/user/remove":
            if self.users.pop(query.get("name", ""), None) is None:
                raise TrapError("no such item")
            return iter([])
        if command == "/ip/hotspot/user/add":
            self.users[attrs["name"]] = attrs
            return iter([{"ret": f"*{len(self.users)}"}])
        if command == "/system/identity/print":
            return iter([{"name": "MikroTik"}])
        raise TrapError(f"no such command {command}")

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_api() -> FakeRouterOSApi:
    return FakeRouterOSApi()


@pytest.fixture
def manager(fake_api) -> RouterOSSessionManager:
    return RouterOSSessionManager(connector=lambda: fake_api)


@pytest.fixture
def executor(manager) -> RouterOSCommandExecutor:
    return RouterOSCommandExecutor(manager)


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(bind=engine, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_factory) -> AsyncSession:
    async with session_factory() as session:
        yield session


async def add_plan(
    db: AsyncSession,
    price: int,
    duration: timedelta,
    profile_name: Optional[str],
    rate_limit: Optional[str] = None,
    active: bool = True,
    plan_id: Optional[int] = None,
) -> Plan:
    plan = Plan(
        id=plan_id,
        price=price,
        duration=duration,
        profile_name=profile_name,
        rate_limit=rate_limit,
        active=active,
    )
    db.add(plan)
    await db.commit()
    await db.refresh(plan)
    return plan


def mpesa_settings() -> Settings:
    return Settings(
        _env_file=None,
        DATABASE_URL="sqlite+aiosqlite://",
        MPESA_ENV="sandbox",
        MPESA_CONSUMER_KEY="key",
        MPESA_CONSUMER_SECRET="secret",
        MPESA_SHORTCODE="174379",
        MPESA_PASSKEY="passkey",
        MPESA_CALLBACK_URL="https://portal.example/callback",
    )


class FakeDaraja:
    """httpx.MockTransport handler emulating the Daraja sandbox."""

    def __init__(self, checkout_id: str = "ws_CO_0001", fail_push: bool = False) -> None:
        self.checkout_id = checkout_id
        self.fail_push = fail_push
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/oauth/v1/generate":
            return httpx.Response(200, json={"access_token": "token-123", "expires_in": "3599"})
        if request.url.path == "/mpesa/stkpush/v1/processrequest":
            if self.fail_push:
                return httpx.Response(500, json={"errorMessage": "Internal Server Error"})
            return httpx.Response(
                200,
                json={
                    "MerchantRequestID": "29115-34620561-1",
                    "CheckoutRequestID": self.checkout_id,
                    "ResponseCode": "0",
                    "ResponseDescription": "Success. Request accepted for processing",
                    "CustomerMessage": "Success. Request accepted for processing",
                },
            )
        return httpx.Response(404)


@pytest.fixture
def daraja() -> FakeDaraja:
    return FakeDaraja()


@pytest.fixture
def mpesa_client(daraja) -> MpesaClient:
    return MpesaClient(config=mpesa_settings(), transport=httpx.MockTransport(daraja))


def stk_callback(
    checkout_id: str,
    result_code: int = 0,
    amount: Optional[int] = 50,
    phone: Optional[int] = 254712345678,
    receipt: str = "NLJ7RT61SV",
) -> dict[str, Any]:
    callback: dict[str, Any] = {
        "MerchantRequestID": "29115-34620561-1",
        "CheckoutRequestID": checkout_id,
        "ResultCode": result_code,
        "ResultDesc": "The service request is processed successfully." if result_code == 0 else "Request cancelled by user",
    }
    if result_code == 0:
        items: list[dict[str, Any]] = [
            {"Name": "MpesaReceiptNumber", "Value": receipt},
            {"Name": "TransactionDate", "Value": 20261018101500},
        ]
        if amount is not None:
            items.insert(0, {"Name": "Amount", "Value": amount})
        if phone is not None:
            items.append({"Name": "PhoneNumber", "Value": phone})
        callback["CallbackMetadata"] = {"Item": items}
    return {"Body": {"stkCallback": callback}}


@pytest_asyncio.fixture
async def client(session_factory, manager, executor, mpesa_client):
    from hotspot_billing.api.deps import get_routeros_executor, get_routeros_manager
    from hotspot_billing.core.db import get_db
    from hotspot_billing.integrations.mpesa_client import get_mpesa_client
    from hotspot_billing.main import app

    async def _override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_routeros_manager] = lambda: manager
    app.dependency_overrides[get_routeros_executor] = lambda: executor
    app.dependency_overrides[get_mpesa_client] = lambda: mpesa_client

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http_client:
        yield http_client

    app.dependency_overrides.clear()
