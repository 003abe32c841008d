from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Customer(db.Model):
    """
    Customer with a running credit balance.

    balance_cents > 0 means the customer owes the bar ("fiado"); a negative
    balance is store credit. credit_limit_cents NULL means unlimited.
    Only settlement and payment application change the balance.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    contact = db.Column(db.String(255), nullable=True)

    balance_cents = db.Column(db.Integer, nullable=False, default=0)
    credit_limit_cents = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def available_credit_cents(self) -> int | None:
        if self.credit_limit_cents is None:
            return None
        return self.credit_limit_cents - self.balance_cents

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "contact": self.contact,
            "balance_cents": self.balance_cents,
            "credit_limit_cents": self.credit_limit_cents,
            "available_credit_cents": self.available_credit_cents,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class Supplier(db.Model):
    __tablename__ = "suppliers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    contact_person = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    cnpj = db.Column(db.String(32), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "contact_person": self.contact_person,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "cnpj": self.cnpj,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
