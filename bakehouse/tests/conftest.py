"""Pytest configuration and fixtures for service layer tests."""

from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy.orm import sessionmaker, scoped_session

from bakehouse.models import Base, Batch, QcStatus
from bakehouse.services.database import create_database_engine
from bakehouse.utils.datetime_utils import utc_now


@pytest.fixture(scope="function")
def test_db():
    """Provide a clean test database for each test function.

    This fixture:
    1. Creates an in-memory SQLite database
    2. Creates all tables
    3. Points the service layer's session factory at it
    4. Drops all tables after the test completes
    """
    engine = create_database_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    session_factory = sessionmaker(bind=engine, expire_on_commit=False)
    Session = scoped_session(session_factory)

    # Monkey-patch the global session factory for tests
    import bakehouse.services.database as db_module

    original_get_session = db_module.get_session_factory
    db_module.get_session_factory = lambda: Session

    yield Session

    Session.remove()
    Base.metadata.drop_all(engine)
    engine.dispose()

    db_module.get_session_factory = original_get_session


@pytest.fixture(scope="function")
def sample_supplier(test_db):
    """Provide a sample supplier for tests."""
    from bakehouse.services import supplier_service

    return supplier_service.create_supplier(name="Mill & Co", contact="orders@mill.example")


@pytest.fixture(scope="function")
def flour(test_db):
    """Provide a flour raw material."""
    from bakehouse.services import raw_material_service

    return raw_material_service.create_raw_material(
        name="Flour", sku="RM-FLOUR", unit="kg", min_stock=20
    )


@pytest.fixture(scope="function")
def sugar(test_db):
    """Provide a sugar raw material."""
    from bakehouse.services import raw_material_service

    return raw_material_service.create_raw_material(
        name="Sugar", sku="RM-SUGAR", unit="kg", min_stock=5
    )


@pytest.fixture(scope="function")
def bread(test_db):
    """Provide a finished product with a two day shelf life."""
    from bakehouse.services import finished_product_service

    return finished_product_service.create_finished_product(
        name="Sourdough Loaf", sku="FP-SOURDOUGH", unit="loaf", shelf_life_days=2
    )


@pytest.fixture(scope="function")
def bread_bom(test_db, bread, flour, sugar):
    """Provide a BOM: 2 kg flour and 0.5 kg sugar per loaf."""
    from bakehouse.services import bom_service

    bom = bom_service.create_bom(bread["id"], "Sourdough v1")
    bom_service.add_ingredient(bom["id"], flour["id"], 2)
    bom_service.add_ingredient(bom["id"], sugar["id"], "0.5")
    return bom


@pytest.fixture(scope="function")
def make_batch(test_db):
    """Factory fixture creating batches directly in the store.

    Expiry and receipt are given in days relative to now, so ``expires_in=1``
    is "day 1" and ``expires_in=-1`` is already expired.

    Returns:
        Callable returning the new batch id
    """
    counter = {"n": 0}

    def _make(
        material_id,
        quantity,
        expires_in=10,
        qc_status=QcStatus.RELEASE.value,
        received_days_ago=5,
        supplier_id=None,
    ):
        counter["n"] += 1
        now = utc_now()
        session = test_db()
        batch = Batch(
            material_id=material_id,
            supplier_id=supplier_id,
            batch_number=f"LOT-{counter['n']:03d}",
            quantity=Decimal(str(quantity)),
            expiry_date=now + timedelta(days=expires_in),
            received_date=now - timedelta(days=received_days_ago),
            qc_status=qc_status,
        )
        session.add(batch)
        session.commit()
        return batch.id

    return _make


@pytest.fixture(scope="function")
def get_batch_row(test_db):
    """Return a fresh Batch row by id (None once deleted)."""

    def _get(batch_id):
        session = test_db()
        session.expire_all()
        return session.get(Batch, batch_id)

    return _get
