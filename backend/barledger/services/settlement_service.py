# Overview: Service-layer operations for settlement; encapsulates business logic and database work.

"""
Settlement Engine

Closing a tab touches three kinds of rows: the order, every product on it
and (for credit sales) the customer. All checks run before the first write
and the whole settlement commits as one transaction, so a failure leaves no
stock decrement, no balance change, no ledger entry and an open order.

STOCK UNITS:
- unit products: quantity
- dose items carrying a pour size: quantity x size (sub-units)
- dose products sold whole: quantity x base_unit_size
- service products: not tracked
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

from ..errors import (
    CreditLimitExceededError,
    InsufficientStockError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from ..models import Customer, Order, Product, Transaction, TransactionLine
from ..models.catalog import SALE_TYPE_DOSE
from ..models.ledger import TX_SALE
from ..models.orders import ORDER_STATUS_CLOSED
from ..money import ZERO, line_total_cents, quantity_to_json, round_cents, to_decimal
from ..time_utils import to_utc_naive, utcnow
from .concurrency import lock_for_update, run_with_retry
from .subscriptions import CUSTOMERS, OPEN_ORDERS, PRODUCTS, TRANSACTIONS

logger = logging.getLogger(__name__)

# Clock skew tolerated on backdated sale dates
SALE_DATE_TOLERANCE = timedelta(minutes=5)


@dataclass
class SettlementResult:
    order: Order
    transaction: Transaction
    change_cents: int = 0

    def to_dict(self) -> dict:
        return {
            "order": self.order.to_dict(),
            "transaction": self.transaction.to_dict(),
            "change_cents": self.change_cents,
        }


def stock_units_for(product: Product, quantity, size=None) -> Decimal:
    """Sub-units removed from stock when ``quantity`` of ``product`` is sold."""
    if not product.tracks_stock:
        return ZERO
    qty = to_decimal(quantity)
    if size is not None:
        return qty * to_decimal(size)
    if product.sale_type == SALE_TYPE_DOSE and product.base_unit_size:
        return qty * to_decimal(product.base_unit_size)
    return qty


def unit_cost_for(product: Product, size=None) -> int:
    """Cost of one sold unit; pours are prorated from the bottle cost."""
    cost = product.cost_price_cents or 0
    if size is not None and product.base_unit_size:
        return round_cents(to_decimal(cost) * to_decimal(size) / to_decimal(product.base_unit_size))
    return cost


def _validate_inputs(ctx, payment_method: str, discount_cents, tendered_cents, sale_date):
    if payment_method not in ctx.settings.payment_methods:
        raise ValidationError(
            f"Invalid payment method: {payment_method}",
            details={"allowed": list(ctx.settings.payment_methods)},
        )
    if isinstance(discount_cents, bool) or not isinstance(discount_cents, int) or discount_cents < 0:
        raise ValidationError("discount_cents must be a non-negative integer")
    if tendered_cents is not None and (
        isinstance(tendered_cents, bool) or not isinstance(tendered_cents, int) or tendered_cents <= 0
    ):
        raise ValidationError("tendered_cents must be a positive integer")
    if sale_date is not None:
        if not isinstance(sale_date, datetime):
            raise ValidationError("sale_date must be a datetime")
        if sale_date > utcnow() + SALE_DATE_TOLERANCE:
            raise ValidationError("sale_date cannot be in the future")


def _stock_requirements(order: Order, products: dict[int, Product]) -> dict[int, Decimal]:
    required: dict[int, Decimal] = {}
    for item in order.items:
        product = products[item.product_id]
        units = stock_units_for(product, item.quantity, item.size)
        if units:
            required[product.id] = required.get(product.id, ZERO) + units
    return required


def _check_stock(products: dict[int, Product], required: dict[int, Decimal]) -> None:
    shortages = []
    for product_id in sorted(required):
        product = products[product_id]
        on_hand = to_decimal(product.stock)
        if on_hand - required[product_id] < ZERO:
            shortages.append({
                "product_id": product_id,
                "name": product.name,
                "requested": quantity_to_json(required[product_id]),
                "on_hand": quantity_to_json(on_hand),
            })
    if shortages:
        raise InsufficientStockError("Insufficient stock to settle order", details={"items": shortages})


def settle(
    ctx,
    order_id: int,
    payment_method: str,
    *,
    customer_id: int | None = None,
    tendered_cents: int | None = None,
    discount_cents: int = 0,
    sale_date: datetime | None = None,
    user_id: int | None = None,
) -> SettlementResult:
    """
    Close an open tab into a sale.

    Args:
        order_id: Tab being settled
        payment_method: One of the configured payment methods; credit methods
            ("Fiado") charge the customer's running balance
        customer_id: Customer to attribute the sale to (defaults to the tab's)
        tendered_cents: Cash handed over; change is computed for cash methods
        discount_cents: Subtracted from the tab total, must leave a positive total
        sale_date: Business time for retroactive entries (defaults to now);
            aware values are converted to UTC
        user_id: Cashier, for attribution

    Raises:
        NotFoundError: order, customer or a product is missing
        InvalidStateError: the order is already closed
        ValidationError: empty tab, bad amounts, credit sale without customer
        InsufficientStockError: any product would go below zero
        CreditLimitExceededError: the credit sale would pass the customer's limit
    """
    if isinstance(sale_date, datetime):
        sale_date = to_utc_naive(sale_date)
    _validate_inputs(ctx, payment_method, discount_cents, tendered_cents, sale_date)
    is_credit = ctx.settings.is_credit(payment_method)

    def _op():
        session = ctx.session
        order = lock_for_update(session.query(Order).filter_by(id=order_id)).first()
        if not order:
            raise NotFoundError(f"Order {order_id} not found")
        if not order.is_open:
            raise InvalidStateError(f"Order {order_id} is already closed", details={"status": order.status})
        if not order.items:
            raise ValidationError("Cannot settle an order with no items")

        gross_total = sum(line_total_cents(i.quantity, i.unit_price_cents) for i in order.items)
        final_total = gross_total - discount_cents
        if final_total <= 0:
            raise ValidationError(
                "Discount must leave a positive total",
                details={"total_cents": gross_total, "discount_cents": discount_cents},
            )

        effective_customer_id = customer_id if customer_id is not None else order.customer_id
        customer = None
        if effective_customer_id is not None:
            customer = lock_for_update(session.query(Customer).filter_by(id=effective_customer_id)).first()
            if not customer:
                raise NotFoundError(f"Customer {effective_customer_id} not found")
        if is_credit and customer is None:
            raise ValidationError("Credit sales require a customer")

        change_cents = 0
        if tendered_cents is not None:
            if tendered_cents < final_total:
                raise ValidationError(
                    "Tendered amount is less than the total due",
                    details={"total_cents": final_total, "tendered_cents": tendered_cents},
                )
            if tendered_cents > final_total and not ctx.settings.is_cash(payment_method):
                raise ValidationError("Non-cash tender cannot exceed the total due")
            change_cents = tendered_cents - final_total

        product_ids = sorted({item.product_id for item in order.items})
        products = {
            p.id: p
            for p in lock_for_update(
                session.query(Product).filter(Product.id.in_(product_ids)).order_by(Product.id)
            ).all()
        }
        missing = [pid for pid in product_ids if pid not in products]
        if missing:
            raise NotFoundError("Products on this order no longer exist", details={"product_ids": missing})

        required = _stock_requirements(order, products)
        _check_stock(products, required)

        if is_credit:
            new_balance = customer.balance_cents + final_total
            if customer.credit_limit_cents is not None and new_balance > customer.credit_limit_cents:
                raise CreditLimitExceededError(
                    "Credit limit exceeded",
                    details={
                        "customer_id": customer.id,
                        "balance_cents": customer.balance_cents,
                        "credit_limit_cents": customer.credit_limit_cents,
                        "total_cents": final_total,
                    },
                )

        # All checks passed; apply writes
        for product_id, units in required.items():
            products[product_id].stock = to_decimal(products[product_id].stock) - units

        if is_credit:
            customer.balance_cents = customer.balance_cents + final_total

        now = utcnow()
        sale = Transaction(
            type=TX_SALE,
            total_cents=final_total,
            occurred_at=sale_date or now,
            description=f"Sale {order.display_name}",
            payment_method=payment_method,
            discount_cents=discount_cents,
            tab_name=order.display_name,
            customer_id=customer.id if customer else None,
            order_id=order.id,
            user_id=user_id,
            lines=[
                TransactionLine(
                    position=i,
                    product_id=item.product_id,
                    name=item.name,
                    quantity=item.quantity,
                    unit_price_cents=item.unit_price_cents,
                    unit_cost_cents=unit_cost_for(products[item.product_id], item.size),
                    size=item.size,
                )
                for i, item in enumerate(order.items)
            ],
        )
        session.add(sale)

        order.customer_id = customer.id if customer else order.customer_id
        order.total_cents = gross_total
        order.status = ORDER_STATUS_CLOSED
        order.closed_at = now

        session.commit()
        return SettlementResult(order=order, transaction=sale, change_cents=change_cents)

    result = run_with_retry(ctx, _op)
    logger.info(
        "Settled tab %s: %s cents via %s (transaction %s)",
        result.order.id, result.transaction.total_cents, payment_method, result.transaction.id,
    )
    collections = [OPEN_ORDERS, PRODUCTS, TRANSACTIONS]
    if is_credit:
        collections.append(CUSTOMERS)
    ctx.publish(*collections)
    return result
