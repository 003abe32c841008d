# Overview: Service-layer operations for operating expenses; encapsulates business logic and database work.

from __future__ import annotations

import logging
from datetime import datetime

from ..errors import ValidationError
from ..models import Transaction
from ..models.ledger import TX_EXPENSE
from ..time_utils import add_months, to_utc_naive
from ..validation import parse_cents
from .concurrency import run_with_retry
from .subscriptions import TRANSACTIONS

logger = logging.getLogger(__name__)

MAX_REPLICATE_MONTHS = 24


def add_expense(
    ctx,
    description: str,
    amount_cents: int,
    category: str,
    date: datetime,
    replicate_months: int = 0,
    user_id: int | None = None,
) -> list[Transaction]:
    """
    Book an expense, optionally repeated monthly.

    replicate_months=N books N further copies on the same day of the
    following months; copies are labelled "<description> - MM/YY".
    """
    text = str(description or "").strip()
    if not text:
        raise ValidationError("description is required")
    amount = parse_cents(amount_cents, "amount_cents")
    category = str(category or "").strip() or "Geral"
    if not isinstance(date, datetime):
        raise ValidationError("date must be a datetime")
    date = to_utc_naive(date)
    if isinstance(replicate_months, bool) or not isinstance(replicate_months, int):
        raise ValidationError("replicate_months must be an integer")
    if not 0 <= replicate_months <= MAX_REPLICATE_MONTHS:
        raise ValidationError(f"replicate_months must be between 0 and {MAX_REPLICATE_MONTHS}")

    def _op():
        expenses = []
        for i in range(replicate_months + 1):
            occurred_at = add_months(date, i)
            expenses.append(Transaction(
                type=TX_EXPENSE,
                total_cents=amount,
                occurred_at=occurred_at,
                description=text if i == 0 else f"{text} - {occurred_at:%m/%y}",
                expense_category=category,
                user_id=user_id,
                lines=[],
            ))
        ctx.session.add_all(expenses)
        ctx.session.commit()
        return expenses

    expenses = run_with_retry(ctx, _op)
    logger.info("Booked %d expense(s) '%s' of %s cents", len(expenses), text, amount)
    ctx.publish(TRANSACTIONS)
    return expenses
