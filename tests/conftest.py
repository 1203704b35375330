"""
Pytest fixtures for the procurement kernel test suite.

Provides:
- A fresh database per test (SQLite file by default, PostgreSQL when
  DATABASE_URL points at one)
- Seed data: a user, a supplier, products
- A PurchasingService wired to a deterministic clock
- Structured log capture

Environment Variables:
- DATABASE_URL: SQLAlchemy URL.  Tests marked ``postgres`` are skipped
  unless it names a PostgreSQL database.
"""

import json
import logging
import os
from collections.abc import Callable
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO
from typing import Generator
from uuid import UUID

import pytest
from sqlalchemy.orm import Session

from procurement_kernel.config import KernelSettings
from procurement_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    get_session_factory,
    init_engine_from_url,
    is_postgres,
    reset_engine,
)
from procurement_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from procurement_kernel.domain.clock import DeterministicClock
from procurement_kernel.domain.dtos import OrderHeader, OrderLineInput
from procurement_kernel.domain.order_status import OrderStatus
from procurement_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from procurement_kernel.models.product import Product
from procurement_kernel.models.supplier import Supplier
from procurement_kernel.models.user import User
from procurement_kernel.services.purchasing_service import PurchasingService


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture procurement_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, purchasing):
            purchasing.receive(...)
            logs = captured_logs()
            assert any(r["message"] == "receipt_applied" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("procurement_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database fixtures
# =============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "postgres: mark test as requiring PostgreSQL"
    )
    config.addinivalue_line(
        "markers", "slow_locks: mark test as potentially waiting for DB locks"
    )


def get_database_url(tmp_path) -> str:
    return os.environ.get("DATABASE_URL") or f"sqlite+pysqlite:///{tmp_path / 'procurement.db'}"


@pytest.fixture(scope="function")
def db_engine(tmp_path):
    """Engine with freshly created tables and immutability listeners."""
    engine = init_engine_from_url(get_database_url(tmp_path), pool_size=5, max_overflow=5)
    drop_tables()
    create_tables()
    register_immutability_listeners()
    yield engine
    unregister_immutability_listeners()
    drop_tables()
    reset_engine()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    return get_session_factory()


@pytest.fixture(scope="function")
def session(db_engine) -> Generator[Session, None, None]:
    """
    A session that performs real commits.

    PurchasingService owns commit/rollback, so isolation comes from the
    per-test database rather than an outer rollback.
    """
    sess = get_session()
    try:
        yield sess
    finally:
        sess.rollback()
        sess.close()


@pytest.fixture
def require_postgres(db_engine):
    if not is_postgres():
        pytest.skip("requires DATABASE_URL pointing at PostgreSQL")


# =============================================================================
# Kernel fixtures
# =============================================================================


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock(datetime(2024, 3, 15, 9, 30, tzinfo=timezone.utc))


@pytest.fixture
def settings(tmp_path) -> KernelSettings:
    return KernelSettings(database_url=get_database_url(tmp_path))


@pytest.fixture
def purchasing(session, clock, settings) -> PurchasingService:
    return PurchasingService(session, clock=clock, settings=settings)


# =============================================================================
# Seed data
# =============================================================================


@pytest.fixture
def actor(session) -> User:
    user = User(username="jdoe", full_name="Jamie Doe")
    session.add(user)
    session.commit()
    return user


@pytest.fixture
def test_actor_id(actor) -> UUID:
    return actor.id


@pytest.fixture
def supplier(session) -> Supplier:
    row = Supplier(
        supplier_code="SUP-001",
        supplier_name="Acme Wholesale",
        contact_person="Pat Lee",
        phone="555-0100",
        email="orders@acme.test",
    )
    session.add(row)
    session.commit()
    return row


@pytest.fixture
def product_factory(session) -> Callable[..., Product]:
    counter = {"n": 0}

    def _create(
        name: str | None = None,
        stock: Decimal | int = 0,
        unit: str = "pcs",
    ) -> Product:
        counter["n"] += 1
        product = Product(
            product_code=f"P-{counter['n']:04d}",
            product_name=name or f"Product {counter['n']}",
            unit=unit,
            current_stock=Decimal(stock),
        )
        session.add(product)
        session.commit()
        return product

    return _create


@pytest.fixture
def product(product_factory) -> Product:
    return product_factory("Widget")


@pytest.fixture
def order_factory(purchasing, supplier, test_actor_id) -> Callable[..., UUID]:
    """
    Create an order through the facade.

    ``lines`` is a list of (product, quantity, unit_price).
    """

    def _create(
        lines,
        status: OrderStatus = OrderStatus.ORDERED,
        order_date: date = date(2024, 3, 15),
        **header_fields,
    ) -> UUID:
        header = OrderHeader(
            supplier_id=supplier.id,
            order_date=order_date,
            status=status,
            **header_fields,
        )
        items = [
            OrderLineInput(product_id=p.id, quantity=Decimal(q), unit_price=Decimal(price))
            for p, q, price in lines
        ]
        return purchasing.create_order(header, items, actor_id=test_actor_id)

    return _create


@pytest.fixture
def item_ids(purchasing) -> Callable[[UUID], dict[UUID, UUID]]:
    """Map product_id -> item_id for an order."""

    def _lookup(po_id: UUID) -> dict[UUID, UUID]:
        order = purchasing.get_order(po_id)
        return {item.product_id: item.item_id for item in order.items}

    return _lookup
