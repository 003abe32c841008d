"""
Live collection view tests.
"""

import logging

import pytest

from barledger.services import catalog_service, order_service, payment_service
from barledger.services.subscriptions import CUSTOMERS, OPEN_ORDERS, PRODUCTS, TRANSACTIONS


class TestSubscriptions:

    def test_snapshot_delivered_on_subscribe(self, ctx, make_product):
        make_product(name="Cerveja")
        received = []
        ctx.hub.subscribe(ctx.session, PRODUCTS, received.append)

        assert len(received) == 1
        assert [p["name"] for p in received[0]] == ["Cerveja"]

    def test_write_pushes_new_snapshot(self, ctx):
        received = []
        ctx.hub.subscribe(ctx.session, OPEN_ORDERS, received.append)
        order = order_service.create_order(ctx, "Mesa 1")

        assert received[0] == []
        assert [o["id"] for o in received[-1]] == [order.id]

    def test_only_touched_collections_are_pushed(self, ctx, make_customer):
        c = make_customer(balance_cents=1000)
        customers, products, transactions = [], [], []
        ctx.hub.subscribe(ctx.session, CUSTOMERS, customers.append)
        ctx.hub.subscribe(ctx.session, PRODUCTS, products.append)
        ctx.hub.subscribe(ctx.session, TRANSACTIONS, transactions.append)

        payment_service.receive_payment(ctx, c.id, 400, "Pix")

        assert len(customers) == 2
        assert customers[-1][0]["balance_cents"] == 600
        assert len(transactions) == 2
        assert len(products) == 1

    def test_snapshots_are_detached_copies(self, ctx, make_product):
        p = make_product(name="Cerveja", stock=10)
        received = []
        ctx.hub.subscribe(ctx.session, PRODUCTS, received.append)
        received[0][0]["stock"] = 999

        assert catalog_service.get_product(ctx, p.id).stock == 10

    def test_cancel_stops_delivery(self, ctx):
        received = []
        sub = ctx.hub.subscribe(ctx.session, OPEN_ORDERS, received.append)
        sub.cancel()
        order_service.create_order(ctx, "Mesa 2")

        assert len(received) == 1
        assert ctx.hub.listener_count(OPEN_ORDERS) == 0

    def test_context_manager_cancels(self, ctx):
        received = []
        with ctx.hub.subscribe(ctx.session, OPEN_ORDERS, received.append):
            order_service.create_order(ctx, "Mesa 3")
        order_service.create_order(ctx, "Mesa 4")

        assert len(received) == 2

    def test_failing_listener_does_not_break_writes(self, ctx, caplog):
        def _broken(snapshot):
            raise RuntimeError("listener crashed")

        good = []
        ctx.hub.subscribe(ctx.session, OPEN_ORDERS, good.append)
        with caplog.at_level(logging.ERROR):
            ctx.hub.subscribe(ctx.session, OPEN_ORDERS, _broken)
            order = order_service.create_order(ctx, "Mesa 5")

        assert order.id is not None
        assert [o["id"] for o in good[-1]] == [order.id]
        assert "listener crashed" in caplog.text

    def test_unknown_collection(self, ctx):
        with pytest.raises(KeyError):
            ctx.hub.subscribe(ctx.session, "invoices", lambda snapshot: None)
