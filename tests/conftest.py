"""
Pytest fixtures for the yield kernel test suite.

Provides:
- Database sessions with per-test rollback isolation
- The default configuration set seeded into the database
- Deterministic clock and captured structured logs

Environment Variables:
- DATABASE_URL: database connection URL.  If not set, an in-memory SQLite
  database is used.  Point it at PostgreSQL to exercise real row locks.
"""

import json
import logging
import os
from datetime import date, datetime
from decimal import Decimal
from io import StringIO
from typing import Generator

import pytest
from sqlalchemy.orm import Session

from yield_config import get_active_config
from yield_config.seeder import seed_catalog
from yield_kernel.db.engine import (
    create_tables,
    drop_tables,
    init_engine_from_url,
    reset_engine,
)
from yield_kernel.domain.clock import DeterministicClock
from yield_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from yield_kernel.models.catalog import AnimalCategory, Cut, WeightRange
from yield_services.catalog_service import CatalogService
from yield_services.template_store import YieldTemplateStore

DEFAULT_DATABASE_URL = "sqlite://"


def get_database_url() -> str:
    """Get database URL from environment, or use in-memory SQLite."""
    return os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "postgres: mark test as requiring PostgreSQL"
    )


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
    Capture yield_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, learning_service):
            learning_service.record_real_yield(...)
            logs = captured_logs()
            assert any(r["message"] == "template_learning_applied" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("yield_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Session-scoped DB infrastructure (create engine + tables ONCE per suite)
# =============================================================================


@pytest.fixture(scope="session")
def db_engine():
    """Single engine for the entire test session."""
    eng = init_engine_from_url(get_database_url(), echo=False)
    yield eng
    reset_engine()


@pytest.fixture(scope="session")
def db_tables(db_engine):
    """Create all tables once per session, drop once at end."""
    drop_tables()
    create_tables()
    yield
    drop_tables()


@pytest.fixture(scope="function")
def session(db_tables, db_engine) -> Generator[Session, None, None]:
    """Provide a database session for testing.

    The session joins an outer transaction on a dedicated connection; any
    ``session.commit()`` inside the test only releases a savepoint, and the
    outer transaction is rolled back at teardown.
    """
    conn = db_engine.connect()
    trans = conn.begin()
    sess = Session(bind=conn, join_transaction_mode="create_savepoint", expire_on_commit=False)
    yield sess
    try:
        sess.close()
    finally:
        try:
            trans.rollback()
        finally:
            conn.close()


# =============================================================================
# Domain fixtures
# =============================================================================


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock(datetime(2026, 3, 2, 9, 0, 0))


@pytest.fixture(scope="session")
def shop_config():
    return get_active_config()


@pytest.fixture
def settings(shop_config):
    return shop_config.settings


@pytest.fixture
def seeded(session, shop_config):
    """The default catalog written to the database."""
    return seed_catalog(session, shop_config)


@pytest.fixture
def catalog(session) -> CatalogService:
    return CatalogService(session)


@pytest.fixture
def template_store(session, settings) -> YieldTemplateStore:
    return YieldTemplateStore(session, settings)


@pytest.fixture
def cuts_by_name(session, seeded) -> dict[str, Cut]:
    return {cut.name: cut for cut in CatalogService(session).list_cuts()}


@pytest.fixture
def vaquillona(session, seeded) -> AnimalCategory:
    return CatalogService(session).get_category_by_name("Vaquillona")


@pytest.fixture
def novillo(session, seeded) -> AnimalCategory:
    return CatalogService(session).get_category_by_name("Novillo")


@pytest.fixture
def light_range(session, seeded) -> WeightRange:
    """The 80-105 kg bracket."""
    return CatalogService(session).resolve_range(Decimal("100"))


@pytest.fixture
def three_cut_setup(session, settings):
    """
    A small isolated catalog: one category, one bracket, three cuts and an
    active template Hueso 16 / Asado 24 / Lomo 60.

    Returns a dict with category, weight_range, template and cuts by name.
    """
    catalog = CatalogService(session)
    category = catalog.create_category("Ternera")
    weight_range = catalog.create_weight_range(Decimal("95"), Decimal("105"), "95-105 kg")
    hueso = catalog.create_cut("Hueso T", "subproducto", "bone", display_order=3)
    asado = catalog.create_cut("Asado T", "parrilla", "sellable", display_order=2)
    lomo = catalog.create_cut("Lomo T", "premium", "sellable", display_order=1)
    template = YieldTemplateStore(session, settings).create_template(
        category_id=category.id,
        range_id=weight_range.id,
        items={hueso.id: Decimal("16"), asado.id: Decimal("24"), lomo.id: Decimal("60")},
        name="Ternera estándar",
    )
    return {
        "category": category,
        "weight_range": weight_range,
        "template": template,
        "cuts": {"Hueso": hueso, "Asado": asado, "Lomo": lomo},
    }


@pytest.fixture
def entry_day() -> date:
    return date(2026, 3, 2)
