"""Tests for raw-material receipt, disposal and batch listings."""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from bakehouse.models import TransactionType
from bakehouse.services import batch_service, transaction_log_service, waste_record_service
from bakehouse.services.exceptions import (
    BatchNotFound,
    RawMaterialNotFound,
    SupplierNotFound,
    ValidationError,
)
from bakehouse.utils.datetime_utils import utc_now


# =============================================================================
# Receipt
# =============================================================================


class TestReceiveStock:
    """Tests for receive_stock()."""

    def test_creates_pending_batch(self, flour, sample_supplier):
        expiry = utc_now() + timedelta(days=60)

        batch = batch_service.receive_stock(
            flour["id"], "MILL-2201", "25.5", expiry, supplier_id=sample_supplier["id"]
        )

        assert batch["qc_status"] == "pending"
        assert Decimal(batch["quantity"]) == Decimal("25.5")
        assert batch["material_id"] == flour["id"]
        assert batch["supplier_id"] == sample_supplier["id"]

        stored = batch_service.get_batch(batch["id"])
        assert stored["material_name"] == "Flour"
        assert stored["supplier_name"] == "Mill & Co"
        assert stored["is_expired"] is False

    def test_writes_batch_received_entry(self, flour):
        batch = batch_service.receive_stock(
            flour["id"], "MILL-2202", 10, utc_now() + timedelta(days=5), user_id="receiver"
        )

        entries = transaction_log_service.list_logs(TransactionType.BATCH_RECEIVED)

        assert len(entries) == 1
        assert entries[0]["batch_id"] == batch["id"]
        assert entries[0]["batch_number"] == "MILL-2202"
        assert entries[0]["user_id"] == "receiver"
        assert Decimal(entries[0]["quantity"]) == Decimal("10")

    def test_past_expiry_is_accepted(self, flour):
        batch = batch_service.receive_stock(flour["id"], "OLD-1", 3, utc_now() - timedelta(days=1))
        assert batch_service.get_batch(batch["id"])["is_expired"] is True

    def test_naive_expiry_is_treated_as_utc(self, flour):
        batch = batch_service.receive_stock(flour["id"], "N-1", 3, datetime(2099, 1, 1))
        assert batch_service.get_batch(batch["id"])["expiry_date"].startswith("2099-01-01")

    def test_duplicate_batch_numbers_allowed(self, flour):
        expiry = utc_now() + timedelta(days=5)
        batch_service.receive_stock(flour["id"], "SAME", 1, expiry)
        batch_service.receive_stock(flour["id"], "SAME", 2, expiry)
        assert len(batch_service.list_batches_by_material(flour["id"])) == 2

    @pytest.mark.parametrize("quantity", [0, -5])
    def test_non_positive_quantity_rejected(self, flour, quantity):
        with pytest.raises(ValidationError):
            batch_service.receive_stock(flour["id"], "X", quantity, utc_now())
        assert batch_service.list_all_batches() == []

    def test_sub_precision_quantity_rejected(self, flour):
        with pytest.raises(ValidationError, match="decimal places"):
            batch_service.receive_stock(flour["id"], "X", "0.00004", utc_now() + timedelta(days=5))
        assert batch_service.list_all_batches() == []
        assert transaction_log_service.list_logs() == []

    def test_blank_batch_number_rejected(self, flour):
        with pytest.raises(ValidationError):
            batch_service.receive_stock(flour["id"], "  ", 1, utc_now())

    def test_expiry_must_be_datetime(self, flour):
        with pytest.raises(ValidationError):
            batch_service.receive_stock(flour["id"], "X", 1, "2026-01-01")

    def test_unknown_material(self, test_db):
        with pytest.raises(RawMaterialNotFound):
            batch_service.receive_stock(42, "X", 1, utc_now())

    def test_unknown_supplier(self, flour):
        with pytest.raises(SupplierNotFound):
            batch_service.receive_stock(flour["id"], "X", 1, utc_now(), supplier_id=42)
        assert transaction_log_service.list_logs() == []


# =============================================================================
# Disposal
# =============================================================================


class TestApproveExpiredDisposal:
    """Tests for approve_expired_disposal()."""

    def test_moves_batch_into_waste_ledger(self, flour, make_batch, get_batch_row):
        batch_id = make_batch(flour["id"], 7, expires_in=-3, qc_status="expired")

        waste = batch_service.approve_expired_disposal(batch_id, "manager-1", notes="Mould")

        assert get_batch_row(batch_id) is None
        assert Decimal(waste["quantity"]) == Decimal("7")
        assert waste["original_batch_id"] == batch_id
        assert waste["disposed_by"] == "manager-1"
        assert waste["notes"] == "Mould"

        records = waste_record_service.list_waste_records()
        assert len(records) == 1
        assert records[0]["material_name"] == "Flour"

        entries = transaction_log_service.list_logs(TransactionType.BATCH_EXPIRED_DISPOSED)
        assert len(entries) == 1
        assert entries[0]["batch_id"] == batch_id
        assert Decimal(entries[0]["quantity"]) == Decimal("7")
        assert entries[0]["user_id"] == "manager-1"

    def test_unexpired_batch_can_be_disposed(self, flour, make_batch, get_batch_row):
        batch_id = make_batch(flour["id"], 2, expires_in=10)
        batch_service.approve_expired_disposal(batch_id, "manager-1")
        assert get_batch_row(batch_id) is None

    def test_requires_approver(self, flour, make_batch, get_batch_row):
        batch_id = make_batch(flour["id"], 2, expires_in=-1)

        with pytest.raises(ValidationError):
            batch_service.approve_expired_disposal(batch_id, "")

        assert get_batch_row(batch_id) is not None
        assert waste_record_service.list_waste_records() == []

    def test_missing_batch(self, test_db):
        with pytest.raises(BatchNotFound):
            batch_service.approve_expired_disposal(99, "manager-1")
        assert waste_record_service.list_waste_records() == []


class TestDeleteBatch:
    def test_delete_leaves_no_audit_trail(self, flour, make_batch, get_batch_row):
        batch_id = make_batch(flour["id"], 2)
        batch_service.delete_batch(batch_id)
        assert get_batch_row(batch_id) is None
        assert waste_record_service.list_waste_records() == []

    def test_missing_batch(self, test_db):
        with pytest.raises(BatchNotFound):
            batch_service.delete_batch(5)


# =============================================================================
# Queries
# =============================================================================


class TestBatchQueries:
    """Listings used by the inventory and QC screens."""

    def test_list_by_material_in_fefo_order(self, flour, sugar, make_batch):
        late = make_batch(flour["id"], 1, expires_in=9)
        early = make_batch(flour["id"], 1, expires_in=2)
        make_batch(sugar["id"], 1, expires_in=1)

        batches = batch_service.list_batches_by_material(flour["id"])

        assert [b["id"] for b in batches] == [early, late]
        assert all(b["material_name"] == "Flour" for b in batches)

    def test_list_all_batches(self, flour, sugar, make_batch):
        make_batch(flour["id"], 1)
        make_batch(sugar["id"], 1)
        assert len(batch_service.list_all_batches()) == 2

    def test_expired_batches_include_live_and_persisted(self, flour, make_batch):
        past_due = make_batch(flour["id"], 1, expires_in=-2, qc_status="hold")
        marked = make_batch(flour["id"], 1, expires_in=5, qc_status="expired")
        make_batch(flour["id"], 1, expires_in=5)

        expired = batch_service.get_expired_batches()

        assert [b["id"] for b in expired] == [past_due, marked]

    def test_pending_qc(self, flour, make_batch):
        pending = make_batch(flour["id"], 1, qc_status="pending")
        make_batch(flour["id"], 1, qc_status="hold")

        assert [b["id"] for b in batch_service.list_pending_qc()] == [pending]

    def test_get_missing_batch(self, test_db):
        with pytest.raises(BatchNotFound):
            batch_service.get_batch(1)
