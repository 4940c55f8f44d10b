"""Pytest configuration and fixtures."""

import base64
import json
import os
import time
import uuid
from collections.abc import AsyncGenerator, Callable, Generator
from datetime import datetime
from pathlib import Path
from typing import Any
from uuid import UUID

import jwt
import pytest
import pytest_asyncio
import sqlalchemy as sa
from fastapi.testclient import TestClient

TEST_JWT_SECRET = b"storefront-test-signing-secret-0123456789"

# Set test environment variables before importing application modules
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./storefront-test.db")
os.environ.setdefault(
    "JWT_SIGNING_KEY_JWK",
    json.dumps(
        {
            "kty": "oct",
            "alg": "HS256",
            "k": base64.urlsafe_b64encode(TEST_JWT_SECRET).rstrip(b"=").decode(),
        }
    ),
)
os.environ.setdefault("JWT_ALGORITHM", "HS256")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_stripe_secret_key")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_webhook_secret")
os.environ.setdefault("STRIPE_PUBLISHABLE_KEY", "pk_test_stripe_publishable_key")
os.environ.setdefault("ORDER_RATE_LIMIT_REQUESTS", "1000")
os.environ.setdefault("SSE_HEARTBEAT_SECONDS", "0.05")

from storefront.core.cache import TTLCache  # noqa: E402
from storefront.core.database import Database  # noqa: E402
from storefront.models.tables import (  # noqa: E402
    driver_locations,
    drivers,
    metadata,
    order_items,
    orders,
    variants,
)
from storefront.services.notification_hub import (  # noqa: E402
    ConnectionClosedError,
    Connection,
    NotificationHub,
)
from storefront.services.order_state_machine import OrderStateMachine  # noqa: E402


def build_token(
    user_id: UUID | str,
    role: str | None = "customer",
    email: str | None = None,
    expires_in: int = 3600,
) -> str:
    """Sign an access token the test settings will accept."""
    now = int(time.time())
    claims: dict[str, Any] = {"sub": str(user_id), "iat": now, "exp": now + expires_in}
    if role is not None:
        claims["role"] = role
    if email is not None:
        claims["email"] = email
    return jwt.encode(claims, TEST_JWT_SECRET, algorithm="HS256")


def build_auth_headers(user_id: UUID | str, role: str | None = "customer") -> dict[str, str]:
    return {"Authorization": f"Bearer {build_token(user_id, role)}"}


class RecordingTransport:
    """Transport that keeps everything sent to it."""

    def __init__(self, fail: bool = False) -> None:
        self.sent: list[str] = []
        self.fail = fail
        self.closed = False

    async def send(self, data: str) -> None:
        if self.fail or self.closed:
            raise ConnectionClosedError("gone")
        self.sent.append(data)

    async def close(self) -> None:
        self.closed = True

    @property
    def events(self) -> list[dict[str, Any]]:
        return [json.loads(data) for data in self.sent]

    def types(self) -> list[str]:
        return [event["type"] for event in self.events]


class Seeder:
    """Writes fixture rows through a synchronous engine on the test database file."""

    def __init__(self, engine: sa.Engine) -> None:
        self.engine = engine

    def variant(self, name: str = "Widget", price_cents: int = 1000, stock: int = 10) -> UUID:
        variant_id = uuid.uuid4()
        with self.engine.begin() as conn:
            conn.execute(
                sa.insert(variants).values(
                    id=variant_id,
                    name=name,
                    sku=f"SKU-{variant_id.hex[:8]}",
                    price_cents=price_cents,
                    stock=stock,
                )
            )
        return variant_id

    def driver(self, user_id: UUID | None = None, available: bool = True) -> dict[str, UUID]:
        driver_id = uuid.uuid4()
        user_id = user_id or uuid.uuid4()
        with self.engine.begin() as conn:
            conn.execute(
                sa.insert(drivers).values(
                    id=driver_id,
                    user_id=user_id,
                    vehicle_type="bike",
                    available=available,
                )
            )
        return {"id": driver_id, "user_id": user_id}

    def location(self, driver_id: UUID, lat: float, lng: float) -> None:
        with self.engine.begin() as conn:
            conn.execute(sa.insert(driver_locations).values(driver_id=driver_id, lat=lat, lng=lng))

    def order(
        self,
        user_id: UUID,
        status: str = "pending",
        items: list[tuple[UUID, int, int]] | None = None,
        tip_cents: int = 0,
        driver_id: UUID | None = None,
        payment_intent_id: str | None = None,
        delivery_address: str = "1 Main St",
        delivery_fee_cents: int = 0,
        delivered_at: datetime | None = None,
    ) -> UUID:
        """Insert an order directly. Items are (variant_id, quantity, unit_price_cents)."""
        order_id = uuid.uuid4()
        items = items or []
        subtotal = sum(quantity * price for _, quantity, price in items)
        with self.engine.begin() as conn:
            conn.execute(
                sa.insert(orders).values(
                    id=order_id,
                    user_id=user_id,
                    status=status,
                    subtotal_cents=subtotal,
                    tip_cents=tip_cents,
                    tax_cents=0,
                    delivery_fee_cents=delivery_fee_cents,
                    total_cents=subtotal + tip_cents + delivery_fee_cents,
                    delivery_address=delivery_address,
                    driver_id=driver_id,
                    payment_intent_id=payment_intent_id,
                    delivered_at=delivered_at,
                )
            )
            for variant_id, quantity, price in items:
                conn.execute(
                    sa.insert(order_items).values(
                        order_id=order_id,
                        variant_id=variant_id,
                        quantity=quantity,
                        unit_price_cents=price,
                        line_total_cents=quantity * price,
                    )
                )
        return order_id

    def stock(self, variant_id: UUID) -> int:
        with self.engine.connect() as conn:
            return conn.execute(sa.select(variants.c.stock).where(variants.c.id == variant_id)).scalar_one()

    def fetch_order(self, order_id: UUID) -> dict[str, Any]:
        with self.engine.connect() as conn:
            return dict(conn.execute(sa.select(orders).where(orders.c.id == order_id)).mappings().one())

    def count_orders(self) -> int:
        with self.engine.connect() as conn:
            return conn.execute(sa.select(sa.func.count()).select_from(orders)).scalar_one()


@pytest.fixture(scope="session")
def test_settings() -> Generator[Any, None, None]:
    """Provide test settings with cleared cache.

    Yields:
        Settings: Test configuration settings.
    """
    from storefront.core.config import get_settings

    get_settings.cache_clear()
    settings = get_settings()
    yield settings
    get_settings.cache_clear()


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "storefront.db"


@pytest.fixture
def seeder(db_path: Path) -> Generator[Seeder, None, None]:
    """Create the schema in a fresh SQLite file and provide a seeder for it."""
    engine = sa.create_engine(f"sqlite:///{db_path}")
    metadata.create_all(engine)
    yield Seeder(engine)
    engine.dispose()


@pytest_asyncio.fixture
async def database(db_path: Path, seeder: Seeder) -> AsyncGenerator[Database, None]:
    """Async database on the same file the seeder writes to."""
    db = Database(f"sqlite+aiosqlite:///{db_path}")
    yield db
    await db.dispose()


@pytest.fixture
def hub() -> NotificationHub:
    return NotificationHub()


@pytest.fixture
def cache() -> TTLCache:
    return TTLCache()


@pytest.fixture
def state_machine(database: Database, hub: NotificationHub, cache: TTLCache) -> OrderStateMachine:
    return OrderStateMachine(database, hub, cache)


@pytest.fixture
def connect(hub: NotificationHub) -> Callable[..., RecordingTransport]:
    """Register a recording connection on the hub."""

    def _connect(user_id: UUID | None = None, role: str | None = None, fail: bool = False) -> RecordingTransport:
        transport = RecordingTransport(fail=fail)
        hub.subscribe(Connection(transport=transport, user_id=user_id, role=role))
        return transport

    return _connect


@pytest.fixture
def client(
    db_path: Path,
    seeder: Seeder,
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> Generator[TestClient, None, None]:
    """Provide a test client whose lifespan opens the per-test database.

    Yields:
        TestClient: FastAPI test client.
    """
    from storefront.core.config import get_settings
    from storefront.core.rate_limiter import get_rate_limiter
    from storefront.main import app

    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{db_path}")
    monkeypatch.setenv("DELIVERY_PHOTO_DIR", str(tmp_path / "photos"))
    get_settings.cache_clear()
    get_rate_limiter().reset()

    with TestClient(app) as test_client:
        yield test_client

    get_settings.cache_clear()


@pytest.fixture
def make_token() -> Callable[..., str]:
    """Factory for signed access tokens."""
    return build_token


@pytest.fixture
def auth_headers() -> Callable[..., dict[str, str]]:
    """Factory for Authorization headers: ``auth_headers(user_id, role)``."""
    return build_auth_headers
