from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from ..money import line_total_cents, quantity_to_json
from ..time_utils import to_utc_z

TX_SALE = "sale"
TX_EXPENSE = "expense"
TX_PAYMENT = "payment"
TRANSACTION_TYPES = (TX_SALE, TX_EXPENSE, TX_PAYMENT)

EXPENSE_CATEGORY_SUPPLIES = "Insumos"


class Transaction(db.Model):
    """
    Append-only financial ledger entry.

    TRANSACTION TYPES:
    - sale: a settled tab (total after discount)
    - expense: purchases, stock receipts with cost, operating expenses
    - payment: money received against a customer's debt

    IMMUTABLE: Records are never updated or deleted. All financial
    reporting is derived from this table.

    occurred_at is business time (may be backdated for a retroactive sale);
    created_at is system time (DB default).
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.Index("ix_transactions_type_occurred", "type", "occurred_at"),
        db.Index("ix_transactions_customer_occurred", "customer_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.String(16), nullable=False, index=True)
    total_cents = db.Column(db.Integer, nullable=False)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    description = db.Column(db.String(255), nullable=True)
    payment_method = db.Column(db.String(32), nullable=True, index=True)
    expense_category = db.Column(db.String(64), nullable=True, index=True)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    tab_name = db.Column(db.String(255), nullable=True)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, unique=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    lines = db.relationship(
        "TransactionLine",
        order_by="TransactionLine.position",
        cascade="all",
        lazy="selectin",
        backref="transaction",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "total_cents": self.total_cents,
            "occurred_at": to_utc_z(self.occurred_at),
            "created_at": to_utc_z(self.created_at),
            "description": self.description,
            "payment_method": self.payment_method,
            "expense_category": self.expense_category,
            "discount_cents": self.discount_cents,
            "tab_name": self.tab_name,
            "customer_id": self.customer_id,
            "supplier_id": self.supplier_id,
            "order_id": self.order_id,
            "user_id": self.user_id,
            "lines": [line.to_dict() for line in self.lines],
        }


class TransactionLine(db.Model):
    """
    Item snapshot on a transaction.

    unit_cost_cents is the cost of one sold unit at the time of the
    transaction (already prorated for dose pours), so profit reports do not
    drift when product cost prices change later.
    """
    __tablename__ = "transaction_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)
    name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Numeric(12, 3), nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    unit_cost_cents = db.Column(db.Integer, nullable=True)
    size = db.Column(db.Numeric(12, 3), nullable=True)

    @property
    def line_total_cents(self) -> int:
        return line_total_cents(self.quantity, self.unit_price_cents)

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "name": self.name,
            "quantity": quantity_to_json(self.quantity),
            "unit_price_cents": self.unit_price_cents,
            "unit_cost_cents": self.unit_cost_cents,
            "line_total_cents": self.line_total_cents,
            "size": quantity_to_json(self.size),
        }


class ImmutableLedgerError(RuntimeError):
    """Raised when code attempts to rewrite ledger history."""


@event.listens_for(Transaction, "before_update")
@event.listens_for(TransactionLine, "before_update")
def _reject_ledger_update(mapper, connection, target):
    raise ImmutableLedgerError(f"{mapper.class_.__name__} rows are append-only")


@event.listens_for(Transaction, "before_delete")
@event.listens_for(TransactionLine, "before_delete")
def _reject_ledger_delete(mapper, connection, target):
    raise ImmutableLedgerError(f"{mapper.class_.__name__} rows are append-only")
