# Overview: Service-layer operations for customer payments; encapsulates business logic and database work.

"""
Payment Application (debt collection)

WHY: Customers on "fiado" settle their debt later, in one or more payments.
A payment only offsets existing debt: it can never push the balance below
zero, and the balance change and its ledger entry commit together.
"""

from __future__ import annotations

import logging

from ..errors import NotFoundError, ValidationError
from ..models import Customer, Transaction
from ..models.ledger import TX_PAYMENT
from ..time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .subscriptions import CUSTOMERS, TRANSACTIONS

logger = logging.getLogger(__name__)


def receive_payment(ctx, customer_id: int, amount_cents: int, method: str, user_id: int | None = None) -> Transaction:
    """
    Record money received against a customer's balance.

    Raises:
        ValidationError: amount <= 0, amount above the current balance, or an
            unknown / credit payment method
        NotFoundError: customer does not exist
    """
    if isinstance(amount_cents, bool) or not isinstance(amount_cents, int) or amount_cents <= 0:
        raise ValidationError("Payment amount must be positive")
    if method not in ctx.settings.payment_methods or ctx.settings.is_credit(method):
        raise ValidationError(f"Invalid payment method: {method}")

    def _op():
        customer = lock_for_update(ctx.session.query(Customer).filter_by(id=customer_id)).first()
        if not customer:
            raise NotFoundError(f"Customer {customer_id} not found")

        if amount_cents > customer.balance_cents:
            raise ValidationError(
                "Payment exceeds the customer's outstanding balance",
                details={"balance_cents": customer.balance_cents, "amount_cents": amount_cents},
            )

        customer.balance_cents = customer.balance_cents - amount_cents
        payment = Transaction(
            type=TX_PAYMENT,
            total_cents=amount_cents,
            occurred_at=utcnow(),
            description=f"Payment received: {customer.name}",
            payment_method=method,
            customer_id=customer.id,
            user_id=user_id,
            lines=[],
        )
        ctx.session.add(payment)
        ctx.session.commit()
        return payment

    payment = run_with_retry(ctx, _op)
    logger.info("Customer %s paid %s cents via %s", customer_id, amount_cents, method)
    ctx.publish(CUSTOMERS, TRANSACTIONS)
    return payment
