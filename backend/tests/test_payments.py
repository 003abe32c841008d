"""
Debt payment tests.

Verifies:
- Payments reduce the balance and append a payment transaction together
- Payments never push a balance below zero
"""

import pytest

from barledger.errors import NotFoundError, ValidationError
from barledger.models import Transaction
from barledger.models.ledger import TX_PAYMENT
from barledger.services import payment_service


class TestReceivePayment:

    def test_partial_payment(self, ctx, db_session, make_customer):
        c = make_customer(balance_cents=5000)
        payment = payment_service.receive_payment(ctx, c.id, 2000, "Pix")

        db_session.refresh(c)
        assert c.balance_cents == 3000
        assert payment.type == TX_PAYMENT
        assert payment.total_cents == 2000
        assert payment.customer_id == c.id
        assert payment.payment_method == "Pix"

    def test_full_payment_clears_debt(self, ctx, db_session, make_customer):
        c = make_customer(balance_cents=5000)
        payment_service.receive_payment(ctx, c.id, 5000, "Dinheiro")
        db_session.refresh(c)
        assert c.balance_cents == 0

    def test_overpayment_rejected(self, ctx, db_session, make_customer):
        c = make_customer(balance_cents=50)

        with pytest.raises(ValidationError) as exc:
            payment_service.receive_payment(ctx, c.id, 60, "Dinheiro")

        assert exc.value.details == {"balance_cents": 50, "amount_cents": 60}
        db_session.refresh(c)
        assert c.balance_cents == 50
        assert db_session.query(Transaction).count() == 0

    def test_no_debt_no_payment(self, ctx, make_customer):
        c = make_customer(balance_cents=0)
        with pytest.raises(ValidationError):
            payment_service.receive_payment(ctx, c.id, 1, "Dinheiro")

    @pytest.mark.parametrize("amount", [0, -100, "100", 10.5, True])
    def test_amount_must_be_positive_integer(self, ctx, make_customer, amount):
        c = make_customer(balance_cents=5000)
        with pytest.raises(ValidationError):
            payment_service.receive_payment(ctx, c.id, amount, "Dinheiro")

    def test_credit_method_rejected(self, ctx, make_customer):
        c = make_customer(balance_cents=5000)
        with pytest.raises(ValidationError):
            payment_service.receive_payment(ctx, c.id, 1000, "Fiado")

    def test_unknown_customer(self, ctx):
        with pytest.raises(NotFoundError):
            payment_service.receive_payment(ctx, 999, 1000, "Dinheiro")

    def test_sequence_never_goes_negative(self, ctx, db_session, make_customer):
        c = make_customer(balance_cents=1000)
        for amount in (400, 400, 400, 200):
            try:
                payment_service.receive_payment(ctx, c.id, amount, "Pix")
            except ValidationError:
                pass
            db_session.refresh(c)
            assert c.balance_cents >= 0
        assert c.balance_cents == 0
