"""Tests for raw materials, finished products, suppliers and BOMs."""

from decimal import Decimal

import pytest

from bakehouse.services import (
    bom_service,
    finished_product_service,
    production_service,
    raw_material_service,
    supplier_service,
)
from bakehouse.services.exceptions import (
    BomItemNotFound,
    BomNotFound,
    EntityInUse,
    FinishedProductNotFound,
    RawMaterialNotFound,
    SkuAlreadyExists,
    SupplierNotFound,
    ValidationError,
)


class TestRawMaterials:
    """Tests for raw_material_service."""

    def test_create_and_get(self, test_db):
        created = raw_material_service.create_raw_material(
            " Rye Flour ", "RM-RYE", "kg", min_stock="12.5", price="1.20"
        )

        fetched = raw_material_service.get_raw_material(created["id"])

        assert fetched["name"] == "Rye Flour"
        assert Decimal(fetched["min_stock"]) == Decimal("12.5")
        assert Decimal(fetched["price"]) == Decimal("1.20")

    def test_duplicate_sku(self, flour):
        with pytest.raises(SkuAlreadyExists):
            raw_material_service.create_raw_material("Other", "RM-FLOUR", "kg")

    def test_validation_collects_errors(self, test_db):
        with pytest.raises(ValidationError) as exc_info:
            raw_material_service.create_raw_material("", "", "kg", min_stock=-1)
        assert len(exc_info.value.errors) == 3

    def test_update(self, flour):
        updated = raw_material_service.update_raw_material(
            flour["id"], "Bread Flour", "RM-FLOUR", "kg", min_stock=40
        )
        assert updated["name"] == "Bread Flour"
        assert Decimal(updated["min_stock"]) == Decimal("40")

    def test_update_to_taken_sku(self, flour, sugar):
        with pytest.raises(SkuAlreadyExists):
            raw_material_service.update_raw_material(flour["id"], "Flour", "RM-SUGAR", "kg")

    def test_list_reports_available_stock(self, flour, make_batch):
        make_batch(flour["id"], 15)
        make_batch(flour["id"], 10, qc_status="pending")

        listed = {m["sku"]: m for m in raw_material_service.list_raw_materials()}

        assert Decimal(listed["RM-FLOUR"]["total_stock"]) == Decimal("25")
        assert Decimal(listed["RM-FLOUR"]["available_stock"]) == Decimal("15")
        assert listed["RM-FLOUR"]["is_low_stock"] is True

    def test_delete_removes_batches(self, flour, make_batch, get_batch_row):
        batch_id = make_batch(flour["id"], 1)

        raw_material_service.delete_raw_material(flour["id"])

        assert get_batch_row(batch_id) is None
        with pytest.raises(RawMaterialNotFound):
            raw_material_service.get_raw_material(flour["id"])

    def test_delete_blocked_by_bom(self, bread_bom, flour):
        with pytest.raises(EntityInUse):
            raw_material_service.delete_raw_material(flour["id"])


class TestFinishedProducts:
    """Tests for finished_product_service."""

    def test_effective_shelf_life(self, bread):
        rolls = finished_product_service.create_finished_product("Rolls", "FP-ROLLS", "pc")

        assert finished_product_service.get_finished_product(bread["id"])["effective_shelf_life_days"] == 2
        assert finished_product_service.get_finished_product(rolls["id"])["effective_shelf_life_days"] == 3

    def test_shelf_life_must_be_positive(self, test_db):
        with pytest.raises(ValidationError):
            finished_product_service.create_finished_product("Rolls", "FP-ROLLS", "pc", shelf_life_days=0)

    def test_duplicate_sku(self, bread):
        with pytest.raises(SkuAlreadyExists):
            finished_product_service.create_finished_product("Copy", "FP-SOURDOUGH", "loaf")

    def test_update(self, bread):
        updated = finished_product_service.update_finished_product(
            bread["id"], "Sourdough", "FP-SOURDOUGH", "loaf", shelf_life_days=4
        )
        assert updated["shelf_life_days"] == 4

    def test_list_with_stock(self, bread):
        listed = finished_product_service.list_finished_products()
        assert listed[0]["total_stock"] == "0"
        assert listed[0]["is_low_stock"] is False

    def test_delete_blocked_by_bom(self, bread_bom, bread):
        with pytest.raises(EntityInUse):
            finished_product_service.delete_finished_product(bread["id"])

    def test_delete(self, bread):
        finished_product_service.delete_finished_product(bread["id"])
        with pytest.raises(FinishedProductNotFound):
            finished_product_service.get_finished_product(bread["id"])


class TestSuppliers:
    def test_create_get_list(self, sample_supplier):
        fetched = supplier_service.get_supplier(sample_supplier["id"])
        assert fetched["contact"] == "orders@mill.example"
        assert [s["name"] for s in supplier_service.list_suppliers()] == ["Mill & Co"]

    def test_name_required(self, test_db):
        with pytest.raises(ValidationError):
            supplier_service.create_supplier("  ")

    def test_missing(self, test_db):
        with pytest.raises(SupplierNotFound):
            supplier_service.get_supplier(8)


class TestBoms:
    """Tests for bom_service."""

    def test_get_enriches_ingredients(self, bread_bom):
        bom = bom_service.get_bom(bread_bom["id"])

        assert bom["product_name"] == "Sourdough Loaf"
        assert [i["material_name"] for i in bom["ingredients"]] == ["Flour", "Sugar"]
        assert bom["ingredients"][0]["material_unit"] == "kg"
        assert Decimal(bom["ingredients"][1]["quantity"]) == Decimal("0.5")

    def test_list_counts_ingredients(self, bread_bom):
        assert bom_service.list_boms()[0]["ingredient_count"] == 2

    def test_create_for_unknown_product(self, test_db):
        with pytest.raises(FinishedProductNotFound):
            bom_service.create_bom(5, "Ghost")

    def test_add_ingredient_validation(self, bread_bom, flour):
        with pytest.raises(ValidationError):
            bom_service.add_ingredient(bread_bom["id"], flour["id"], 0)
        with pytest.raises(RawMaterialNotFound):
            bom_service.add_ingredient(bread_bom["id"], 999, 1)
        with pytest.raises(BomNotFound):
            bom_service.add_ingredient(999, flour["id"], 1)

    def test_remove_ingredient(self, bread_bom):
        items = bom_service.get_bom_items(bread_bom["id"])

        bom_service.remove_ingredient(items[1]["bom_item_id"])

        assert [i["material_id"] for i in bom_service.get_bom_items(bread_bom["id"])] == [
            items[0]["material_id"]
        ]
        with pytest.raises(BomItemNotFound):
            bom_service.remove_ingredient(items[1]["bom_item_id"])

    def test_delete_bom_with_items(self, bread_bom):
        bom_service.delete_bom(bread_bom["id"])
        with pytest.raises(BomNotFound):
            bom_service.get_bom(bread_bom["id"])

    def test_delete_blocked_by_runs(self, bread_bom):
        production_service.plan_production(bread_bom["id"], 1)
        with pytest.raises(EntityInUse):
            bom_service.delete_bom(bread_bom["id"])
