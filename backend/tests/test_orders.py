"""
Open tab tests.

Verifies:
- Tabs open empty and their total always equals the sum of their items
- Invalid item lists are rejected without touching the tab
- Opening a tab for a new customer is all-or-nothing
- Discarding only removes open tabs
"""

from decimal import Decimal

import pytest

from barledger.errors import InvalidStateError, NotFoundError, ValidationError
from barledger.models import Customer, Order
from barledger.models.orders import ORDER_STATUS_CLOSED, ORDER_STATUS_OPEN
from barledger.services import order_service


# =============================================================================
# CREATE
# =============================================================================


class TestCreateOrder:

    def test_new_tab_is_open_and_empty(self, ctx):
        order = order_service.create_order(ctx, "Mesa 4")
        assert order.status == ORDER_STATUS_OPEN
        assert order.items == []
        assert order.total_cents == 0
        assert order.closed_at is None

    def test_display_name_is_trimmed(self, ctx):
        order = order_service.create_order(ctx, "  Balcao  ")
        assert order.display_name == "Balcao"

    def test_blank_display_name_rejected(self, ctx, db_session):
        with pytest.raises(ValidationError):
            order_service.create_order(ctx, "   ")
        assert db_session.query(Order).count() == 0

    def test_unknown_customer_rejected(self, ctx, db_session):
        with pytest.raises(NotFoundError):
            order_service.create_order(ctx, "Mesa 1", customer_id=999)
        assert db_session.query(Order).count() == 0

    def test_linked_to_existing_customer(self, ctx, make_customer):
        customer = make_customer(name="Maria")
        order = order_service.create_order(ctx, "Maria", customer_id=customer.id)
        assert order.customer_id == customer.id

    def test_list_open_orders_excludes_closed(self, ctx, db_session):
        a = order_service.create_order(ctx, "A")
        b = order_service.create_order(ctx, "B")
        b.status = ORDER_STATUS_CLOSED
        db_session.commit()

        assert [o.id for o in order_service.list_open_orders(ctx)] == [a.id]


# =============================================================================
# ITEMS & TOTAL
# =============================================================================


class TestUpdateItems:

    def test_total_tracks_every_replacement(self, ctx, make_product):
        beer = make_product(name="Cerveja", unit_price_cents=500)
        snack = make_product(name="Porcao", unit_price_cents=2450)
        order = order_service.create_order(ctx, "Mesa 2")

        sequences = [
            [{"product_id": beer.id, "quantity": 1, "unit_price_cents": 500}],
            [
                {"product_id": beer.id, "quantity": 3, "unit_price_cents": 500},
                {"product_id": snack.id, "quantity": 1, "unit_price_cents": 2450},
            ],
            [{"product_id": snack.id, "quantity": "0.5", "unit_price_cents": 2450}],
            [],
        ]
        for items in sequences:
            order = order_service.update_order_items(ctx, order.id, items)
            expected = sum(int(Decimal(str(i["quantity"])) * i["unit_price_cents"]) for i in items)
            assert order.total_cents == expected
            assert order.total_cents == sum(item.line_total_cents for item in order.items)

    def test_item_name_defaults_to_product_name(self, ctx, make_product):
        beer = make_product(name="Cerveja Long Neck")
        order = order_service.create_order(ctx, "Mesa 3")
        order = order_service.update_order_items(
            ctx, order.id, [{"product_id": beer.id, "quantity": 2, "unit_price_cents": 700}],
        )
        assert order.items[0].name == "Cerveja Long Neck"

    def test_dose_item_keeps_size(self, ctx, make_product):
        whisky = make_product(name="Whisky", sale_type="dose", base_unit_size=Decimal("1000"), stock=2000)
        order = order_service.create_order(ctx, "Mesa 5")
        order = order_service.update_order_items(ctx, order.id, [{
            "product_id": whisky.id, "quantity": 2, "unit_price_cents": 1800,
            "size": 50, "dose_name": "Dose 50ml",
        }])
        item = order.items[0]
        assert item.size == Decimal("50")
        assert item.dose_name == "Dose 50ml"
        assert order.total_cents == 3600

    @pytest.mark.parametrize("bad", [
        {"quantity": 0, "unit_price_cents": 500},
        {"quantity": -1, "unit_price_cents": 500},
        {"quantity": 1, "unit_price_cents": -1},
        {"quantity": "abc", "unit_price_cents": 500},
    ])
    def test_invalid_items_rejected(self, ctx, make_product, bad):
        beer = make_product()
        order = order_service.create_order(ctx, "Mesa 6")
        order_service.update_order_items(
            ctx, order.id, [{"product_id": beer.id, "quantity": 1, "unit_price_cents": 500}],
        )

        with pytest.raises(ValidationError) as exc:
            order_service.update_order_items(ctx, order.id, [
                {"product_id": beer.id, "quantity": 1, "unit_price_cents": 500},
                {"product_id": beer.id, **bad},
            ])
        assert exc.value.details == {"index": 1}

        order = order_service.get_order(ctx, order.id)
        assert len(order.items) == 1
        assert order.total_cents == 500

    def test_unknown_product_rejected(self, ctx):
        order = order_service.create_order(ctx, "Mesa 7")
        with pytest.raises(ValidationError):
            order_service.update_order_items(
                ctx, order.id, [{"product_id": 12345, "quantity": 1, "unit_price_cents": 100}],
            )

    def test_missing_order(self, ctx):
        with pytest.raises(NotFoundError):
            order_service.update_order_items(ctx, 999, [])

    def test_closed_order_is_immutable(self, ctx, db_session, make_product):
        beer = make_product()
        order = order_service.create_order(ctx, "Mesa 8")
        order.status = ORDER_STATUS_CLOSED
        db_session.commit()

        with pytest.raises(InvalidStateError):
            order_service.update_order_items(
                ctx, order.id, [{"product_id": beer.id, "quantity": 1, "unit_price_cents": 500}],
            )


# =============================================================================
# CUSTOMER LINKING
# =============================================================================


class TestReassignCustomer:

    def test_items_and_total_untouched(self, ctx, make_product, make_customer):
        beer = make_product()
        customer = make_customer(name="Pedro")
        order = order_service.create_order(ctx, "Mesa 9")
        order_service.update_order_items(
            ctx, order.id, [{"product_id": beer.id, "quantity": 2, "unit_price_cents": 500}],
        )

        order = order_service.reassign_customer(ctx, order.id, customer.id, "Pedro")
        assert order.customer_id == customer.id
        assert order.display_name == "Pedro"
        assert order.total_cents == 1000
        assert len(order.items) == 1

    def test_unknown_customer(self, ctx):
        order = order_service.create_order(ctx, "Mesa 10")
        with pytest.raises(NotFoundError):
            order_service.reassign_customer(ctx, order.id, 999, "Ghost")


class _FailingSession:
    """Delegates to the real session but raises on the n-th call of one method."""

    def __init__(self, session, method, nth=1):
        self._session = session
        self._method = method
        self._nth = nth
        self._calls = 0

    def __getattr__(self, name):
        attr = getattr(self._session, name)
        if name != self._method:
            return attr

        def _wrapped(*args, **kwargs):
            self._calls += 1
            if self._calls == self._nth:
                raise RuntimeError(f"injected failure in {name} #{self._nth}")
            return attr(*args, **kwargs)
        return _wrapped


class TestCreateOrderForNewCustomer:

    def test_creates_both(self, ctx, db_session):
        order = order_service.create_order_for_new_customer(ctx, "Ana")
        customer = db_session.get(Customer, order.customer_id)
        assert customer is not None
        assert customer.name == "Ana"
        assert customer.balance_cents == 0
        assert customer.credit_limit_cents is None
        assert order.display_name == "Ana"

    @pytest.mark.parametrize("method,nth", [
        ("flush", 1),   # customer insert
        ("flush", 2),   # order insert
        ("commit", 1),  # final commit
    ])
    def test_injected_failure_leaves_neither(self, ctx, db_session, method, nth):
        ctx.session = _FailingSession(db_session, method, nth)
        with pytest.raises(RuntimeError):
            order_service.create_order_for_new_customer(ctx, "Ana")

        assert db_session.query(Customer).count() == 0
        assert db_session.query(Order).count() == 0

    def test_failure_building_order_leaves_no_customer(self, ctx, db_session, monkeypatch):
        def _boom(*args, **kwargs):
            raise RuntimeError("order construction failed")
        monkeypatch.setattr(order_service, "_build_order", _boom)

        with pytest.raises(RuntimeError):
            order_service.create_order_for_new_customer(ctx, "Ana")
        assert db_session.query(Customer).count() == 0

    def test_every_order_references_existing_customer(self, ctx, db_session):
        for name in ("Ana", "Bia", "Caio"):
            order_service.create_order_for_new_customer(ctx, name)
        for order in db_session.query(Order).all():
            assert db_session.get(Customer, order.customer_id) is not None
        for customer in db_session.query(Customer).all():
            assert db_session.query(Order).filter_by(customer_id=customer.id).count() == 1


# =============================================================================
# DISCARD
# =============================================================================


class TestDiscardOrder:

    def test_discard_open(self, ctx, db_session, make_product):
        beer = make_product(stock=10)
        order = order_service.create_order(ctx, "Mesa 11")
        order_service.update_order_items(
            ctx, order.id, [{"product_id": beer.id, "quantity": 3, "unit_price_cents": 500}],
        )
        order_id = order.id

        order_service.discard_order(ctx, order_id)
        assert db_session.get(Order, order_id) is None
        db_session.refresh(beer)
        assert beer.stock == 10

    def test_discard_missing(self, ctx):
        with pytest.raises(NotFoundError):
            order_service.discard_order(ctx, 999)

    def test_discard_closed(self, ctx, db_session):
        order = order_service.create_order(ctx, "Mesa 12")
        order.status = ORDER_STATUS_CLOSED
        db_session.commit()
        with pytest.raises(NotFoundError):
            order_service.discard_order(ctx, order.id)
        assert db_session.get(Order, order.id) is not None
