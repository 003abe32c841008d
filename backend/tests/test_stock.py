"""
Stock replenishment and purchase tests.
"""

from decimal import Decimal

import pytest

from barledger.errors import NotFoundError, ValidationError
from barledger.models import Transaction
from barledger.models.ledger import EXPENSE_CATEGORY_SUPPLIES, TX_EXPENSE
from barledger.services import stock_service


class TestReceiveStock:

    def test_units(self, ctx, db_session, make_product):
        p = make_product(stock=5)
        stock_service.receive_stock(ctx, p.id, 12)
        db_session.refresh(p)
        assert p.stock == 17
        assert db_session.query(Transaction).count() == 0

    def test_dose_product_scales_to_sub_units(self, ctx, db_session, make_product):
        gin = make_product(name="Gin", sale_type="dose", base_unit_size=Decimal("750"), stock=0)
        stock_service.receive_stock(ctx, gin.id, 2)
        db_session.refresh(gin)
        assert gin.stock == 1500

    def test_cost_books_expense(self, ctx, db_session, make_product, make_supplier):
        p = make_product(stock=0)
        s = make_supplier()
        stock_service.receive_stock(ctx, p.id, 24, total_cost_cents=4800, supplier_id=s.id, unit_cost_cents=200)

        db_session.refresh(p)
        assert p.stock == 24
        assert p.cost_price_cents == 200

        expense = db_session.query(Transaction).one()
        assert expense.type == TX_EXPENSE
        assert expense.total_cents == 4800
        assert expense.supplier_id == s.id
        assert expense.expense_category == EXPENSE_CATEGORY_SUPPLIES
        assert expense.lines[0].product_id == p.id

    @pytest.mark.parametrize("quantity", [0, -3, None, "x"])
    def test_quantity_must_be_positive(self, ctx, make_product, quantity):
        p = make_product()
        with pytest.raises(ValidationError):
            stock_service.receive_stock(ctx, p.id, quantity)

    def test_service_has_no_stock(self, ctx, make_product):
        cover = make_product(name="Couvert", sale_type="service", stock=0)
        with pytest.raises(ValidationError):
            stock_service.receive_stock(ctx, cover.id, 1)

    def test_unknown_supplier_writes_nothing(self, ctx, db_session, make_product):
        p = make_product(stock=5)
        with pytest.raises(NotFoundError):
            stock_service.receive_stock(ctx, p.id, 5, total_cost_cents=100, supplier_id=999)
        db_session.refresh(p)
        assert p.stock == 5
        assert db_session.query(Transaction).count() == 0


class TestRecordPurchase:

    def test_multi_item_purchase(self, ctx, db_session, make_product, make_supplier):
        beer = make_product(name="Cerveja", stock=10, cost_price_cents=200)
        gin = make_product(name="Gin", sale_type="dose", base_unit_size=Decimal("750"), stock=0)
        s = make_supplier()

        expense = stock_service.record_purchase(ctx, s.id, [
            {"product_id": beer.id, "quantity": 24, "unit_cost_cents": 250},
            {"product_id": gin.id, "quantity": 2, "unit_cost_cents": 6000},
        ])

        assert expense.total_cents == 24 * 250 + 2 * 6000
        assert expense.description == f"Purchase: {s.name}"
        assert expense.expense_category == EXPENSE_CATEGORY_SUPPLIES
        assert len(expense.lines) == 2

        db_session.refresh(beer)
        db_session.refresh(gin)
        assert beer.stock == 34
        assert beer.cost_price_cents == 250
        assert gin.stock == 1500

    def test_bad_item_aborts_whole_purchase(self, ctx, db_session, make_product, make_supplier):
        beer = make_product(stock=10)
        s = make_supplier()
        with pytest.raises(NotFoundError):
            stock_service.record_purchase(ctx, s.id, [
                {"product_id": beer.id, "quantity": 24, "unit_cost_cents": 250},
                {"product_id": 999, "quantity": 1, "unit_cost_cents": 100},
            ])
        db_session.refresh(beer)
        assert beer.stock == 10
        assert db_session.query(Transaction).count() == 0

    def test_requires_items(self, ctx, make_supplier):
        s = make_supplier()
        with pytest.raises(ValidationError):
            stock_service.record_purchase(ctx, s.id, [])

    def test_requires_existing_supplier(self, ctx, make_product):
        p = make_product()
        with pytest.raises(NotFoundError):
            stock_service.record_purchase(ctx, 999, [{"product_id": p.id, "quantity": 1, "unit_cost_cents": 1}])
