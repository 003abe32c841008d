from __future__ import annotations

from ..extensions import db
from ..money import ZERO, quantity_to_json
from ..time_utils import to_utc_z

SALE_TYPE_UNIT = "unit"
SALE_TYPE_DOSE = "dose"
SALE_TYPE_SERVICE = "service"
SALE_TYPES = (SALE_TYPE_UNIT, SALE_TYPE_DOSE, SALE_TYPE_SERVICE)


class Product(db.Model):
    """
    Product master data.

    STOCK UNITS:
    - unit products count whole items
    - dose products count base sub-units (ml); base_unit_size is the number
      of sub-units in one bottle and cost_price_cents is per bottle
    - service products are never stock tracked

    stock is a shared counter. It is written only by settlement and stock
    replenishment, never by catalog edits.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_category_name", "category", "name"),
        db.Index("ix_products_active", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(64), nullable=False, default="Geral")
    subcategory = db.Column(db.String(64), nullable=True)
    description = db.Column(db.Text, nullable=True)

    cost_price_cents = db.Column(db.Integer, nullable=False, default=0)
    unit_price_cents = db.Column(db.Integer, nullable=False, default=0)

    stock = db.Column(db.Numeric(12, 3), nullable=False, default=ZERO)
    sale_type = db.Column(db.String(16), nullable=False, default=SALE_TYPE_UNIT)
    base_unit_size = db.Column(db.Numeric(12, 3), nullable=True)
    low_stock_threshold = db.Column(db.Numeric(12, 3), nullable=True)

    # [{"name": "Dose 50ml", "size": 50, "price_cents": 1200, "enabled": true}]
    dose_options = db.Column(db.JSON, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def tracks_stock(self) -> bool:
        return self.sale_type != SALE_TYPE_SERVICE

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} stock={self.stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "subcategory": self.subcategory,
            "description": self.description,
            "cost_price_cents": self.cost_price_cents,
            "unit_price_cents": self.unit_price_cents,
            "stock": quantity_to_json(self.stock),
            "sale_type": self.sale_type,
            "base_unit_size": quantity_to_json(self.base_unit_size),
            "low_stock_threshold": quantity_to_json(self.low_stock_threshold),
            "dose_options": self.dose_options or [],
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
