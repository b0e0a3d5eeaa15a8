"""
Product service tests.

Verifies:
- current_stock is seeded from initial_stock and never writable afterwards
- barcodes are unique
- referenced products cannot be deleted
- bulk import validates every row and skips known barcodes
"""

import pytest

from shopledger.errors import ConflictError, NotFoundError, ValidationError
from shopledger.extensions import db
from shopledger.models import Product
from shopledger.services import inventory_service, products_service
from shopledger.services.ledger_service import verify_product_ledger


class TestCreateUpdate:

    def test_create_seeds_stock_without_movement(self, db_session):
        p = products_service.create_product(payload={
            "name": "Rice 5kg", "selling_price_cents": 4500, "cost_price_cents": 3800,
            "initial_stock": 12, "barcode": "600100", "category": "Grains",
        })

        assert p.current_stock == 12
        assert p.initial_stock == 12
        assert p.stock_movements.count() == 0
        assert verify_product_ledger(p.id)["ok"] is True

    @pytest.mark.parametrize("payload", [
        {"selling_price_cents": 100},
        {"name": "X"},
        {"name": "X", "selling_price_cents": -1},
        {"name": "X", "selling_price_cents": 1_000_000_000},
        {"name": "X", "selling_price_cents": 10.5},
        {"name": "X", "selling_price_cents": 100, "current_stock": 5},
        {"name": "X", "selling_price_cents": 100, "initial_stock": -1},
        {"name": "X", "selling_price_cents": 100, "colour": "red"},
    ])
    def test_create_validation(self, db_session, payload):
        with pytest.raises(ValidationError):
            products_service.create_product(payload=payload)
        assert db.session.query(Product).count() == 0

    def test_duplicate_barcode(self, db_session):
        products_service.create_product(payload={"name": "A", "selling_price_cents": 1, "barcode": "111"})
        with pytest.raises(ConflictError):
            products_service.create_product(payload={"name": "B", "selling_price_cents": 1, "barcode": "111"})

    def test_blank_barcodes_do_not_collide(self, db_session):
        products_service.create_product(payload={"name": "A", "selling_price_cents": 1, "barcode": ""})
        products_service.create_product(payload={"name": "B", "selling_price_cents": 1, "barcode": ""})
        assert db.session.query(Product).filter(Product.barcode.is_(None)).count() == 2

    def test_update_rejects_stock_fields(self, product):
        for field in ("current_stock", "initial_stock"):
            with pytest.raises(ValidationError):
                products_service.update_product(product_id=product.id, payload={field: 99})

        updated = products_service.update_product(product_id=product.id, payload={"name": "Renamed", "reorder_level": 3})
        assert updated.name == "Renamed"
        assert updated.current_stock == 10

    def test_update_barcode_conflict(self, make_product):
        make_product(1, barcode="AAA")
        b = make_product(1, barcode="BBB")
        with pytest.raises(ConflictError):
            products_service.update_product(product_id=b.id, payload={"barcode": "AAA"})
        with pytest.raises(NotFoundError):
            products_service.update_product(product_id=999, payload={"name": "x"})


class TestDelete:

    def test_delete_unreferenced(self, product):
        products_service.delete_product(product_id=product.id)
        assert db.session.query(Product).count() == 0

    def test_delete_with_history_conflicts(self, product):
        inventory_service.adjust_stock(product_id=product.id, movement_type="IN", quantity=1)
        with pytest.raises(ConflictError) as exc:
            products_service.delete_product(product_id=product.id)
        assert exc.value.details == {"stock_movements": 1}
        assert db.session.query(Product).count() == 1

    def test_delete_missing(self, db_session):
        with pytest.raises(NotFoundError):
            products_service.delete_product(product_id=1)


class TestQueries:

    def test_get_product_with_recent_movements(self, product):
        inventory_service.adjust_stock(product_id=product.id, movement_type="IN", quantity=2)
        data = products_service.get_product(product.id)
        assert data["current_stock"] == 12
        assert [m["quantity"] for m in data["recent_movements"]] == [2]

    def test_list_search_category_low_stock(self, make_product):
        make_product(1, name="Blue Pen", category="Stationery", reorder_level=5, barcode="PEN-1")
        make_product(50, name="Red Pen", category="Stationery", reorder_level=5)
        make_product(0, name="Soap", category="Hygiene")

        assert products_service.list_products(search="pen")["pagination"]["total"] == 2
        assert products_service.list_products(search="PEN-1")["items"][0]["name"] == "Blue Pen"
        assert products_service.list_products(category="Hygiene")["items"][0]["name"] == "Soap"
        low = products_service.list_products(low_stock=True)
        assert [p["name"] for p in low["items"]] == ["Blue Pen", "Soap"]

        assert products_service.list_categories() == ["Hygiene", "Stationery"]
        assert [p["name"] for p in products_service.list_low_stock()] == ["Soap", "Blue Pen"]

    def test_pagination_caps_per_page(self, make_product):
        for _ in range(3):
            make_product(1)
        page = products_service.list_products(page=2, per_page=2)
        assert page["count"] == 1
        assert page["pagination"] == {
            "page": 2, "per_page": 2, "total": 3, "total_pages": 2, "has_next": False, "has_prev": True,
        }
        assert products_service.list_products(per_page=1000)["pagination"]["per_page"] == 100


class TestBulkImport:

    def test_import_skips_known_barcodes(self, make_product):
        make_product(1, barcode="EXIST")
        result = products_service.bulk_import(rows=[
            {"name": "New A", "selling_price_cents": 100, "barcode": "NEW-A", "initial_stock": 4},
            {"name": "Dup", "selling_price_cents": 100, "barcode": "EXIST"},
            {"name": "New A again", "selling_price_cents": 100, "barcode": "NEW-A"},
            {"name": "No barcode", "selling_price_cents": 100},
        ])

        assert result["imported"] == 2
        assert result["skipped"] == 2
        assert result["skipped_barcodes"] == ["EXIST", "NEW-A"]
        imported = db.session.get(Product, result["product_ids"][0])
        assert imported.current_stock == 4

    def test_one_bad_row_rejects_all(self, db_session):
        with pytest.raises(ValidationError) as exc:
            products_service.bulk_import(rows=[
                {"name": "Fine", "selling_price_cents": 100},
                {"name": "Broken", "selling_price_cents": "lots"},
            ])
        assert exc.value.details == {"row": 2}
        assert db.session.query(Product).count() == 0

    def test_empty(self, db_session):
        with pytest.raises(ValidationError):
            products_service.bulk_import(rows=[])
