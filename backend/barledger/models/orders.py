from __future__ import annotations

from ..extensions import db
from ..money import line_total_cents, quantity_to_json
from ..time_utils import to_utc_z

ORDER_STATUS_OPEN = "open"
ORDER_STATUS_CLOSED = "closed"


class Order(db.Model):
    """
    Open tab ("comanda").

    LIFECYCLE: created empty and open, items replaced while open, closed
    exactly once by settlement. Closed orders are kept as immutable history.

    total_cents is derived: it is recomputed from the items every time they
    change and is never written on its own.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    display_name = db.Column(db.String(255), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    total_cents = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, default=ORDER_STATUS_OPEN, index=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("orders", lazy=True))
    items = db.relationship(
        "OrderItem",
        order_by="OrderItem.position",
        cascade="all, delete-orphan",
        lazy="selectin",
        backref="order",
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_open(self) -> bool:
        return self.status == ORDER_STATUS_OPEN

    def recompute_total(self) -> int:
        self.total_cents = sum(line_total_cents(i.quantity, i.unit_price_cents) for i in self.items)
        return self.total_cents

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "display_name": self.display_name,
            "customer_id": self.customer_id,
            "items": [item.to_dict() for item in self.items],
            "total_cents": self.total_cents,
            "status": self.status,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "closed_at": to_utc_z(self.closed_at) if self.closed_at else None,
            "version_id": self.version_id,
        }


class OrderItem(db.Model):
    """Line on an open tab. size is the pour in sub-units for dose items."""
    __tablename__ = "order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Numeric(12, 3), nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)

    size = db.Column(db.Numeric(12, 3), nullable=True)
    dose_name = db.Column(db.String(64), nullable=True)

    product = db.relationship("Product")

    @property
    def line_total_cents(self) -> int:
        return line_total_cents(self.quantity, self.unit_price_cents)

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "name": self.name,
            "quantity": quantity_to_json(self.quantity),
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
            "size": quantity_to_json(self.size),
            "dose_name": self.dose_name,
        }
