"""Pytest configuration and fixtures for the test suite.

Provides:
- Environment defaults (a throwaway SQLite database through aiosqlite)
  applied before the application modules are imported
- A fresh schema, session and set of review services per test
- An httpx client bound to the ASGI app
- Factories for products and reviews
"""
import os
import sys
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterable, List, Optional, Tuple, Union

import pytest

_TEST_DB_DIR = tempfile.mkdtemp(prefix="storefront-reviews-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_TEST_DB_DIR}/test.db")
os.environ.setdefault("ADMIN_API_KEY", "test-admin-key")
os.environ.setdefault("AUTO_PUBLISH_REVIEWS", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

# Add project root to Python path so `app` imports without installation
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

import httpx  # noqa: E402

from app.core.config import settings  # noqa: E402
from app.db.database import AsyncSessionLocal, drop_db, init_db  # noqa: E402
from app.main import app  # noqa: E402
from app.models import Product, Review, ReviewStatus  # noqa: E402
from app.services.components import build_components  # noqa: E402
from app.services.invalidation import InMemoryChangeMarkerStore  # noqa: E402

ADMIN_HEADERS = {"X-Admin-Key": "test-admin-key"}

ReviewSeed = Union[int, Tuple[int, ReviewStatus]]


class FakeClock:
    """Manually advanced monotonic clock for TTL tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
async def db_schema():
    """Create all tables before the test and drop them after."""
    await drop_db()
    await init_db()
    yield
    await drop_db()


@pytest.fixture
async def db_session(db_schema):
    async with AsyncSessionLocal() as session:
        yield session


@pytest.fixture
def components():
    """Fresh cache, bus, markers, aggregator and read path."""
    return build_components(settings, markers=InMemoryChangeMarkerStore())


@pytest.fixture
async def client(db_schema, components):
    """httpx client talking to the app in-process."""
    app.state.components = components
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http


@pytest.fixture
def admin_headers():
    return dict(ADMIN_HEADERS)


@pytest.fixture
def auto_publish(monkeypatch):
    monkeypatch.setattr(settings, "AUTO_PUBLISH_REVIEWS", True)


@pytest.fixture
def make_product(db_schema):
    """Factory inserting a product in its own session."""
    counter = {"n": 0}

    async def _make(name: Optional[str] = None, slug: Optional[str] = None, price: float = 999) -> Product:
        counter["n"] += 1
        async with AsyncSessionLocal() as session:
            product = Product(
                name=name or f"Product {counter['n']}",
                slug=slug,
                price=price,
            )
            session.add(product)
            await session.commit()
            await session.refresh(product)
            return product

    return _make


@pytest.fixture
def add_reviews(db_schema):
    """
    Factory inserting reviews directly (bypassing the API and the aggregator).

    Each entry is a rating (approved) or a (rating, status) pair. Creation
    times are spaced one minute apart in list order.
    """

    async def _add(product: Product, entries: Iterable[ReviewSeed]) -> List[Review]:
        base = datetime(2026, 1, 1, tzinfo=timezone.utc)
        created = []
        async with AsyncSessionLocal() as session:
            for i, entry in enumerate(entries):
                rating, status = entry if isinstance(entry, tuple) else (entry, ReviewStatus.APPROVED)
                review = Review(
                    product_id=product.id,
                    rating=rating,
                    comment=f"Review number {i} for {product.name}",
                    status=status,
                    created_at=base + timedelta(minutes=i),
                    updated_at=base + timedelta(minutes=i),
                )
                session.add(review)
                created.append(review)
            await session.commit()
            for review in created:
                await session.refresh(review)
        return created

    return _add
