"""Tests for finished-goods lots and FEFO deduction."""

from datetime import timedelta
from decimal import Decimal

import pytest

from bakehouse.models import ProductStock
from bakehouse.services import product_stock_service, transaction_log_service
from bakehouse.services.exceptions import (
    FinishedProductNotFound,
    InsufficientStock,
    ValidationError,
)
from bakehouse.utils.datetime_utils import utc_now


@pytest.fixture
def make_lot(test_db):
    """Factory creating finished-goods lots; expiry in days from now."""

    def _make(product_id, quantity, expires_in):
        now = utc_now()
        session = test_db()
        lot = ProductStock(
            product_id=product_id,
            quantity=Decimal(str(quantity)),
            expiry_date=now + timedelta(days=expires_in),
            produced_date=now - timedelta(days=1),
        )
        session.add(lot)
        session.commit()
        return lot.id

    return _make


class TestDeductStock:
    """Tests for deduct_stock()."""

    def test_earliest_expiry_first(self, bread, make_lot):
        later = make_lot(bread["id"], 6, expires_in=3)
        sooner = make_lot(bread["id"], 4, expires_in=1)

        result = product_stock_service.deduct_stock(bread["id"], 7)

        assert result == [
            {"entry_id": sooner, "quantity": Decimal("4")},
            {"entry_id": later, "quantity": Decimal("3")},
        ]
        remaining = product_stock_service.get_stock_entries(bread["id"])
        assert [(e["id"], Decimal(e["quantity"])) for e in remaining] == [(later, Decimal("3"))]

    def test_expired_lots_are_still_deducted(self, bread, make_lot):
        stale = make_lot(bread["id"], 2, expires_in=-1)
        make_lot(bread["id"], 2, expires_in=2)

        result = product_stock_service.deduct_stock(bread["id"], 1)

        assert result == [{"entry_id": stale, "quantity": Decimal("1")}]

    def test_shortage_changes_nothing(self, bread, make_lot):
        make_lot(bread["id"], 2, expires_in=1)
        make_lot(bread["id"], 3, expires_in=2)

        with pytest.raises(InsufficientStock) as exc_info:
            product_stock_service.deduct_stock(bread["id"], 6)

        assert exc_info.value.item_name == "Sourdough Loaf"
        assert product_stock_service.get_total_stock(bread["id"]) == Decimal("5")

    def test_not_written_to_transaction_log(self, bread, make_lot):
        make_lot(bread["id"], 2, expires_in=1)
        product_stock_service.deduct_stock(bread["id"], 2)
        assert transaction_log_service.list_logs() == []

    def test_non_positive_quantity(self, bread, make_lot):
        make_lot(bread["id"], 2, expires_in=1)
        with pytest.raises(ValidationError):
            product_stock_service.deduct_stock(bread["id"], 0)

    def test_unknown_product(self, test_db):
        with pytest.raises(FinishedProductNotFound):
            product_stock_service.deduct_stock(3, 1)


class TestStockQueries:
    def test_total_stock(self, bread, make_lot):
        make_lot(bread["id"], "2.5", expires_in=1)
        make_lot(bread["id"], 3, expires_in=2)
        assert product_stock_service.get_total_stock(bread["id"]) == Decimal("5.5")

    def test_all_entries_flag_expiry(self, bread, make_lot):
        make_lot(bread["id"], 1, expires_in=-1)
        make_lot(bread["id"], 1, expires_in=1)

        entries = product_stock_service.get_all_stock_entries()

        assert sorted(e["is_expired"] for e in entries) == [False, True]
