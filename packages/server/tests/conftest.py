"""
Shared fixtures: file-backed SQLite store per test, a recording fake
wallet-watch client, and an HTTP client bound to the ASGI app.
"""

from __future__ import annotations

import asyncio

import pytest
from httpx import ASGITransport, AsyncClient

from app.core.config import Settings
from app.core.database import create_engine, create_session_factory, init_db
from app.main import create_app
from app.services.ingestion import WebhookIngestionGateway
from app.services.onboarding import SubscriptionOrchestrator
from app.services.store import CharityStore
from app.services.wallet_watch import WalletWatchPermanentError, WalletWatchTransientError


class FakeWalletWatchClient:
    """
    Hands out sub-1, sub-2, ... and records every call.

    With ``id_per_address`` it behaves like an idempotent service and returns
    ``sub-<address>`` for every registration of the same address.
    """

    def __init__(self, id_per_address: bool = False):
        self.subscribed: list[tuple[str, str]] = []
        self.cancelled: list[str] = []
        self.fail_subscribe: Exception | None = None
        self.fail_unsubscribe: Exception | None = None
        self.id_per_address = id_per_address
        self._counter = 0

    async def subscribe(self, address: str) -> str:
        await asyncio.sleep(0)
        if self.fail_subscribe:
            raise self.fail_subscribe
        self._counter += 1
        subscription_id = f"sub-{address}" if self.id_per_address else f"sub-{self._counter}"
        self.subscribed.append((address, subscription_id))
        return subscription_id

    async def unsubscribe(self, subscription_id: str) -> None:
        await asyncio.sleep(0)
        if self.fail_unsubscribe:
            raise self.fail_unsubscribe
        self.cancelled.append(subscription_id)

    @property
    def live(self) -> set[str]:
        return {sub for _, sub in self.subscribed} - set(self.cancelled)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'charity_watchdog.db'}",
        store_timeout_seconds=10.0,
        wallet_watch_url="http://wallet-watch.test",
        wallet_watch_max_retries=2,
        wallet_watch_backoff_seconds=0.0,
        log_format="text",
    )


@pytest.fixture
async def engine(settings):
    engine = create_engine(settings)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def store(engine, settings):
    return CharityStore(create_session_factory(engine), timeout=settings.store_timeout_seconds)


@pytest.fixture
def wallet_watch():
    return FakeWalletWatchClient()


@pytest.fixture
def orchestrator(wallet_watch, store):
    return SubscriptionOrchestrator(wallet_watch, store)


@pytest.fixture
def gateway(store):
    return WebhookIngestionGateway(store)


@pytest.fixture
async def client(settings, store, orchestrator, gateway):
    app = create_app(settings)
    app.state.store = store
    app.state.orchestrator = orchestrator
    app.state.gateway = gateway
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def transient_error():
    return WalletWatchTransientError("POST /v1/subscriptions failed after 3 attempts: HTTP 503")


@pytest.fixture
def permanent_error():
    return WalletWatchPermanentError("POST /v1/subscriptions returned HTTP 400", status_code=400)
