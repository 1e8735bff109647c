from __future__ import annotations

import enum

from ..extensions import db
from stockledger.time_utils import to_utc_z, utcnow


class DebtType(str, enum.Enum):
    BORROW = "BORROW"
    PAYMENT = "PAYMENT"


class Customer(db.Model):
    """
    Credit customer with a running debt balance.

    RECONCILIATION: balance_cents == SUM(BORROW) - SUM(PAYMENT) over the
    customer's DebtTransactions. balance_cents never goes negative; payments
    larger than the balance are rejected.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.CheckConstraint("balance_cents >= 0", name="ck_customers_balance_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False, unique=True)
    phone = db.Column(db.String(32), nullable=True)

    balance_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    @property
    def is_debtor(self) -> bool:
        return self.balance_cents > 0

    def __repr__(self) -> str:
        return f"<Customer id={self.id} name={self.name!r} balance_cents={self.balance_cents}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "balance_cents": self.balance_cents,
            "is_debtor": self.is_debtor,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class DebtTransaction(db.Model):
    """Append-only BORROW / PAYMENT event against a customer."""
    __tablename__ = "debt_transactions"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_debt_tx_amount_positive"),
        db.Index("ix_debt_tx_customer_created", "customer_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    type = db.Column(
        db.Enum(DebtType, native_enum=False, length=16, validate_strings=True),
        nullable=False,
        index=True,
    )
    amount_cents = db.Column(db.Integer, nullable=False)

    # BORROW rows created by a credit sale point back to the product and sale request
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True)
    quantity = db.Column(db.Integer, nullable=True)
    sale_request_id = db.Column(db.String(36), nullable=True, index=True)

    note = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    customer = db.relationship("Customer", backref=db.backref("debt_transactions", lazy=True))

    @property
    def signed_amount_cents(self) -> int:
        return self.amount_cents if self.type == DebtType.BORROW else -self.amount_cents

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "type": self.type.value,
            "amount_cents": self.amount_cents,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "sale_request_id": self.sale_request_id,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
        }
