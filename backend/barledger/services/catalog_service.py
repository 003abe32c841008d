# Overview: Service-layer operations for products, customers and suppliers; encapsulates business logic and database work.

"""
Catalog maintenance.

stock and balance_cents are shared counters owned by settlement, payments
and stock receipts, so neither is writable here: validation policies leave
them out and new rows always start at zero.
"""

from __future__ import annotations

from ..errors import InvalidStateError, NotFoundError
from ..models import Customer, Order, Product, Supplier, Transaction
from ..models.orders import ORDER_STATUS_OPEN
from ..money import ZERO
from ..validation import (
    CUSTOMER_POLICY,
    PRODUCT_POLICY,
    SUPPLIER_POLICY,
    enforce_rules_customer,
    enforce_rules_product,
    validate_payload,
)
from .concurrency import run_with_retry
from .subscriptions import CUSTOMERS, PRODUCTS, SUPPLIERS


def _apply_patch(row, patch: dict) -> None:
    for k, v in patch.items():
        setattr(row, k, v)


# =============================================================================
# PRODUCTS
# =============================================================================

def list_products(ctx, *, include_inactive: bool = False, category: str | None = None) -> list[Product]:
    query = ctx.session.query(Product)
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    if category:
        query = query.filter(Product.category == category)
    return query.order_by(Product.name.asc(), Product.id.asc()).all()


def get_product(ctx, product_id: int) -> Product:
    product = ctx.session.get(Product, product_id)
    if not product:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def create_product(ctx, payload: dict) -> Product:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(patch)

    def _op():
        product = Product(stock=ZERO)
        _apply_patch(product, patch)
        ctx.session.add(product)
        ctx.session.commit()
        return product

    product = run_with_retry(ctx, _op)
    ctx.publish(PRODUCTS)
    return product


def update_product(ctx, product_id: int, payload: dict) -> Product:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)

    def _op():
        product = get_product(ctx, product_id)
        enforce_rules_product(patch, existing=product)
        _apply_patch(product, patch)
        ctx.session.commit()
        return product

    product = run_with_retry(ctx, _op)
    ctx.publish(PRODUCTS)
    return product


def deactivate_product(ctx, product_id: int) -> Product:
    """Products are never hard-deleted: sales history points at them."""
    def _op():
        product = get_product(ctx, product_id)
        product.is_active = False
        ctx.session.commit()
        return product

    product = run_with_retry(ctx, _op)
    ctx.publish(PRODUCTS)
    return product


# =============================================================================
# CUSTOMERS
# =============================================================================

def list_customers(ctx, *, debtors_only: bool = False) -> list[Customer]:
    query = ctx.session.query(Customer)
    if debtors_only:
        query = query.filter(Customer.balance_cents > 0)
    return query.order_by(Customer.name.asc(), Customer.id.asc()).all()


def get_customer(ctx, customer_id: int) -> Customer:
    customer = ctx.session.get(Customer, customer_id)
    if not customer:
        raise NotFoundError(f"Customer {customer_id} not found")
    return customer


def create_customer(ctx, payload: dict) -> Customer:
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
    enforce_rules_customer(patch)

    def _op():
        customer = Customer(balance_cents=0)
        _apply_patch(customer, patch)
        ctx.session.add(customer)
        ctx.session.commit()
        return customer

    customer = run_with_retry(ctx, _op)
    ctx.publish(CUSTOMERS)
    return customer


def update_customer(ctx, customer_id: int, payload: dict) -> Customer:
    """
    Edit contact data or the credit limit.

    Lowering the limit below the current debt is allowed; it only blocks
    further credit sales.
    """
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
    enforce_rules_customer(patch)

    def _op():
        customer = get_customer(ctx, customer_id)
        _apply_patch(customer, patch)
        ctx.session.commit()
        return customer

    customer = run_with_retry(ctx, _op)
    ctx.publish(CUSTOMERS)
    return customer


def delete_customer(ctx, customer_id: int) -> None:
    """Only customers without balance, tabs or ledger history can be removed."""
    def _op():
        customer = get_customer(ctx, customer_id)
        if customer.balance_cents != 0:
            raise InvalidStateError(
                "Customer has an outstanding balance",
                details={"balance_cents": customer.balance_cents},
            )
        has_orders = ctx.session.query(Order.id).filter_by(customer_id=customer_id).first() is not None
        has_history = ctx.session.query(Transaction.id).filter_by(customer_id=customer_id).first() is not None
        if has_orders or has_history:
            open_tab = ctx.session.query(Order.id).filter_by(customer_id=customer_id, status=ORDER_STATUS_OPEN).first()
            raise InvalidStateError(
                "Customer has an open tab" if open_tab else "Customer has sales history",
            )
        ctx.session.delete(customer)
        ctx.session.commit()

    run_with_retry(ctx, _op)
    ctx.publish(CUSTOMERS)


# =============================================================================
# SUPPLIERS
# =============================================================================

def list_suppliers(ctx) -> list[Supplier]:
    return ctx.session.query(Supplier).order_by(Supplier.name.asc(), Supplier.id.asc()).all()


def get_supplier(ctx, supplier_id: int) -> Supplier:
    supplier = ctx.session.get(Supplier, supplier_id)
    if not supplier:
        raise NotFoundError(f"Supplier {supplier_id} not found")
    return supplier


def create_supplier(ctx, payload: dict) -> Supplier:
    patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=False)

    def _op():
        supplier = Supplier()
        _apply_patch(supplier, patch)
        ctx.session.add(supplier)
        ctx.session.commit()
        return supplier

    supplier = run_with_retry(ctx, _op)
    ctx.publish(SUPPLIERS)
    return supplier


def update_supplier(ctx, supplier_id: int, payload: dict) -> Supplier:
    patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=True)

    def _op():
        supplier = get_supplier(ctx, supplier_id)
        _apply_patch(supplier, patch)
        ctx.session.commit()
        return supplier

    supplier = run_with_retry(ctx, _op)
    ctx.publish(SUPPLIERS)
    return supplier


def delete_supplier(ctx, supplier_id: int) -> None:
    def _op():
        supplier = get_supplier(ctx, supplier_id)
        if ctx.session.query(Transaction.id).filter_by(supplier_id=supplier_id).first() is not None:
            raise InvalidStateError("Supplier has purchase history")
        ctx.session.delete(supplier)
        ctx.session.commit()

    run_with_retry(ctx, _op)
    ctx.publish(SUPPLIERS)
