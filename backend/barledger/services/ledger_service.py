# Overview: Read-side queries over the append-only transaction ledger.

"""
Ledger invariants (authoritative)

- Transactions are append-only; the ORM rejects updates and deletes.
- Every write that moves money appends its transaction inside the same DB
  transaction as the stock/balance change it records.
- occurred_at is business time; created_at is system time (DB default).
- Range filters are inclusive on both ends.
"""

from __future__ import annotations

from datetime import datetime

from ..errors import NotFoundError, ValidationError
from ..models import Transaction
from ..models.ledger import TRANSACTION_TYPES


def get_transaction(ctx, transaction_id: int) -> Transaction:
    tx = ctx.session.get(Transaction, transaction_id)
    if not tx:
        raise NotFoundError(f"Transaction {transaction_id} not found")
    return tx


def list_transactions(
    ctx,
    *,
    type: str | None = None,
    customer_id: int | None = None,
    supplier_id: int | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int | None = None,
) -> list[Transaction]:
    if type is not None and type not in TRANSACTION_TYPES:
        raise ValidationError(f"type must be one of {', '.join(TRANSACTION_TYPES)}")

    query = ctx.session.query(Transaction)
    if type is not None:
        query = query.filter(Transaction.type == type)
    if customer_id is not None:
        query = query.filter(Transaction.customer_id == customer_id)
    if supplier_id is not None:
        query = query.filter(Transaction.supplier_id == supplier_id)
    if start is not None:
        query = query.filter(Transaction.occurred_at >= start)
    if end is not None:
        query = query.filter(Transaction.occurred_at <= end)

    query = query.order_by(Transaction.occurred_at.desc(), Transaction.id.desc())
    if limit is not None:
        query = query.limit(max(1, min(limit, 1000)))
    return query.all()


def customer_history(ctx, customer_id: int) -> list[Transaction]:
    """Sales and payments of one customer, newest first."""
    return list_transactions(ctx, customer_id=customer_id)


def supplier_history(ctx, supplier_id: int) -> list[Transaction]:
    """Purchases and stock receipts from one supplier, newest first."""
    return list_transactions(ctx, supplier_id=supplier_id)
