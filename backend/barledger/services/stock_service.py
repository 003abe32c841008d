# Overview: Service-layer operations for stock replenishment; encapsulates business logic and database work.

"""
Stock Replenishment

Receiving goods is the only way stock goes up. Quantities arrive in whole
units (bottles for dose products) and are converted to the product's stock
unit. When the receipt has a cost it is booked as an expense in the same
transaction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from ..errors import NotFoundError, ValidationError
from ..models import Product, Supplier, Transaction, TransactionLine
from ..models.catalog import SALE_TYPE_DOSE
from ..models.ledger import EXPENSE_CATEGORY_SUPPLIES, TX_EXPENSE
from ..money import line_total_cents, round_cents, to_decimal
from ..time_utils import utcnow
from ..validation import parse_cents, parse_optional_cents, parse_quantity
from .concurrency import lock_for_update, run_with_retry
from .subscriptions import PRODUCTS, TRANSACTIONS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PurchaseItem:
    product_id: int
    quantity: Decimal
    unit_cost_cents: int


def stock_increment_for(product: Product, quantity: Decimal) -> Decimal:
    """Received whole units expressed in the product's stock unit."""
    if product.sale_type == SALE_TYPE_DOSE and product.base_unit_size:
        return quantity * to_decimal(product.base_unit_size)
    return quantity


def _require_supplier(session, supplier_id: int | None) -> Supplier | None:
    if supplier_id is None:
        return None
    supplier = session.get(Supplier, supplier_id)
    if not supplier:
        raise NotFoundError(f"Supplier {supplier_id} not found")
    return supplier


def _lock_product(session, product_id: int) -> Product:
    product = lock_for_update(session.query(Product).filter_by(id=product_id)).first()
    if not product:
        raise NotFoundError(f"Product {product_id} not found")
    if not product.tracks_stock:
        raise ValidationError(f"{product.name} is a service and has no stock")
    return product


def receive_stock(
    ctx,
    product_id: int,
    quantity,
    total_cost_cents: int | None = None,
    supplier_id: int | None = None,
    unit_cost_cents: int | None = None,
    user_id: int | None = None,
) -> Product:
    """
    Add received units to a product's stock.

    unit_cost_cents, when given, becomes the product's new cost price.
    total_cost_cents > 0 appends an expense linked to the supplier.
    """
    qty = parse_quantity(quantity, "quantity")
    total_cost = parse_optional_cents(total_cost_cents, "total_cost_cents")
    unit_cost = parse_optional_cents(unit_cost_cents, "unit_cost_cents")

    def _op():
        supplier = _require_supplier(ctx.session, supplier_id)
        product = _lock_product(ctx.session, product_id)

        product.stock = to_decimal(product.stock) + stock_increment_for(product, qty)
        if unit_cost is not None:
            product.cost_price_cents = unit_cost

        if total_cost:
            ctx.session.add(Transaction(
                type=TX_EXPENSE,
                total_cents=total_cost,
                occurred_at=utcnow(),
                description=f"Stock receipt: {product.name}" + (f" ({supplier.name})" if supplier else ""),
                expense_category=EXPENSE_CATEGORY_SUPPLIES,
                supplier_id=supplier.id if supplier else None,
                user_id=user_id,
                lines=[TransactionLine(
                    position=0,
                    product_id=product.id,
                    name=product.name,
                    quantity=qty,
                    unit_price_cents=unit_cost if unit_cost is not None else round_cents(to_decimal(total_cost) / qty),
                )],
            ))

        ctx.session.commit()
        return product

    product = run_with_retry(ctx, _op)
    logger.info("Received %s of product %s", qty, product_id)
    ctx.publish(*((PRODUCTS, TRANSACTIONS) if total_cost else (PRODUCTS,)))
    return product


def parse_purchase_items(raw) -> list[PurchaseItem]:
    if not isinstance(raw, list) or not raw:
        raise ValidationError("items must be a non-empty list")
    items = []
    for i, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise ValidationError("Each item must be an object", details={"index": i})
        try:
            items.append(PurchaseItem(
                product_id=int(entry.get("product_id")),
                quantity=parse_quantity(entry.get("quantity"), "quantity"),
                unit_cost_cents=parse_cents(entry.get("unit_cost_cents"), "unit_cost_cents", allow_zero=True),
            ))
        except (TypeError, ValueError) as exc:
            raise ValidationError("product_id must be an integer", details={"index": i}) from exc
        except ValidationError as exc:
            raise ValidationError(exc.message, details={"index": i}) from exc
    return items


def record_purchase(ctx, supplier_id: int, items, user_id: int | None = None) -> Transaction:
    """
    Book a supplier purchase: every item restocks its product and updates
    its cost price; one expense carries all lines and the total cost.
    """
    parsed = items if items and all(isinstance(i, PurchaseItem) for i in items) else parse_purchase_items(items)

    def _op():
        supplier = _require_supplier(ctx.session, supplier_id)
        if supplier is None:
            raise ValidationError("supplier_id is required")

        lines = []
        total_cost = 0
        for i, item in enumerate(parsed):
            product = _lock_product(ctx.session, item.product_id)
            product.stock = to_decimal(product.stock) + stock_increment_for(product, item.quantity)
            product.cost_price_cents = item.unit_cost_cents
            total_cost += line_total_cents(item.quantity, item.unit_cost_cents)
            lines.append(TransactionLine(
                position=i,
                product_id=product.id,
                name=product.name,
                quantity=item.quantity,
                unit_price_cents=item.unit_cost_cents,
            ))

        if total_cost <= 0:
            raise ValidationError("Purchase total must be positive")

        expense = Transaction(
            type=TX_EXPENSE,
            total_cents=total_cost,
            occurred_at=utcnow(),
            description=f"Purchase: {supplier.name}",
            expense_category=EXPENSE_CATEGORY_SUPPLIES,
            supplier_id=supplier.id,
            user_id=user_id,
            lines=lines,
        )
        ctx.session.add(expense)
        ctx.session.commit()
        return expense

    expense = run_with_retry(ctx, _op)
    logger.info("Recorded purchase %s from supplier %s: %s cents", expense.id, supplier_id, expense.total_cents)
    ctx.publish(PRODUCTS, TRANSACTIONS)
    return expense
