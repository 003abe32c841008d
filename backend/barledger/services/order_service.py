# Overview: Service-layer operations for open tabs; encapsulates business logic and database work.

"""
Order/Tab Manager

WHY: A tab accumulates items while customers drink; nothing outside the
order row changes until settlement. Discarding an open tab therefore never
needs a compensating write.

- total_cents is recomputed from the items on every replacement
- item lists are replaced whole (last writer wins)
- only settlement moves an order to closed
"""

from __future__ import annotations

import logging

from ..errors import InvalidStateError, NotFoundError, ValidationError
from ..models import Customer, Order, OrderItem, Product
from ..models.orders import ORDER_STATUS_OPEN
from ..validation import parse_order_items
from .concurrency import lock_for_update, run_with_retry
from .subscriptions import CUSTOMERS, OPEN_ORDERS

logger = logging.getLogger(__name__)


def _clean_display_name(display_name) -> str:
    name = str(display_name or "").strip()
    if not name:
        raise ValidationError("display_name is required")
    if len(name) > 255:
        raise ValidationError("display_name exceeds max length 255")
    return name


def _require_customer(session, customer_id: int) -> Customer:
    customer = session.get(Customer, customer_id)
    if not customer:
        raise NotFoundError(f"Customer {customer_id} not found")
    return customer


def _build_order(display_name: str, customer_id: int | None, user_id: int | None) -> Order:
    order = Order(
        display_name=display_name,
        customer_id=customer_id,
        status=ORDER_STATUS_OPEN,
        total_cents=0,
        created_by_user_id=user_id,
    )
    order.items = []
    return order


def _load_open_order(session, order_id: int, *, lock: bool = True) -> Order:
    query = session.query(Order).filter_by(id=order_id)
    if lock:
        query = lock_for_update(query)
    order = query.first()
    if not order:
        raise NotFoundError(f"Order {order_id} not found")
    if not order.is_open:
        raise InvalidStateError(f"Order {order_id} is already closed", details={"status": order.status})
    return order


def get_order(ctx, order_id: int) -> Order:
    order = ctx.session.get(Order, order_id)
    if not order:
        raise NotFoundError(f"Order {order_id} not found")
    return order


def list_open_orders(ctx) -> list[Order]:
    return (
        ctx.session.query(Order)
        .filter_by(status=ORDER_STATUS_OPEN)
        .order_by(Order.created_at.asc(), Order.id.asc())
        .all()
    )


def create_order(ctx, display_name: str, customer_id: int | None = None, user_id: int | None = None) -> Order:
    """Open an empty tab, optionally linked to an existing customer."""
    name = _clean_display_name(display_name)

    def _op():
        if customer_id is not None:
            _require_customer(ctx.session, customer_id)
        order = _build_order(name, customer_id, user_id)
        ctx.session.add(order)
        ctx.session.commit()
        return order

    order = run_with_retry(ctx, _op)
    logger.info("Opened tab %s (%s)", order.id, order.display_name)
    ctx.publish(OPEN_ORDERS)
    return order


def create_order_for_new_customer(ctx, name: str, user_id: int | None = None) -> Order:
    """
    Register a walk-in customer and open their tab in one transaction.

    Either both rows exist afterwards or neither does: no tab pointing at a
    missing customer, no customer created without the tab that caused it.
    """
    customer_name = _clean_display_name(name)

    def _op():
        customer = Customer(name=customer_name, contact="", balance_cents=0, credit_limit_cents=None)
        ctx.session.add(customer)
        ctx.session.flush()

        order = _build_order(customer_name, customer.id, user_id)
        ctx.session.add(order)
        ctx.session.flush()

        ctx.session.commit()
        return order

    order = run_with_retry(ctx, _op)
    logger.info("Opened tab %s for new customer %s", order.id, order.customer_id)
    ctx.publish(OPEN_ORDERS, CUSTOMERS)
    return order


def update_order_items(ctx, order_id: int, items) -> Order:
    """
    Replace the item list of an open tab and recompute its total.

    Raises ValidationError for quantity <= 0, unit price < 0 or an unknown
    product; nothing is written in that case.
    """
    parsed = parse_order_items(items)

    def _op():
        order = _load_open_order(ctx.session, order_id)

        product_ids = {item.product_id for item in parsed}
        products = {}
        if product_ids:
            products = {
                p.id: p for p in ctx.session.query(Product).filter(Product.id.in_(product_ids)).all()
            }
        missing = sorted(product_ids - set(products))
        if missing:
            raise ValidationError("Unknown products in order items", details={"product_ids": missing})

        order.items = [
            OrderItem(
                position=i,
                product_id=item.product_id,
                name=item.name or products[item.product_id].name,
                quantity=item.quantity,
                unit_price_cents=item.unit_price_cents,
                size=item.size,
                dose_name=item.dose_name,
            )
            for i, item in enumerate(parsed)
        ]
        order.recompute_total()
        ctx.session.commit()
        return order

    order = run_with_retry(ctx, _op)
    ctx.publish(OPEN_ORDERS)
    return order


def reassign_customer(ctx, order_id: int, customer_id: int, display_name: str) -> Order:
    """Point an open tab at another customer; items and total are untouched."""
    name = _clean_display_name(display_name)

    def _op():
        order = _load_open_order(ctx.session, order_id)
        _require_customer(ctx.session, customer_id)
        order.customer_id = customer_id
        order.display_name = name
        ctx.session.commit()
        return order

    order = run_with_retry(ctx, _op)
    ctx.publish(OPEN_ORDERS)
    return order


def discard_order(ctx, order_id: int) -> None:
    """
    Delete an open tab that will never be settled.

    Closed or missing orders raise NotFoundError: settled tabs are history.
    """
    def _op():
        order = lock_for_update(ctx.session.query(Order).filter_by(id=order_id)).first()
        if not order or not order.is_open:
            raise NotFoundError(f"Open order {order_id} not found")
        ctx.session.delete(order)
        ctx.session.commit()

    run_with_retry(ctx, _op)
    logger.info("Discarded tab %s", order_id)
    ctx.publish(OPEN_ORDERS)
