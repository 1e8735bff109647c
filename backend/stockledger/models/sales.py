from __future__ import annotations

from ..extensions import db
from stockledger.time_utils import to_utc_z, utcnow


class Sale(db.Model):
    """
    One allocation of a sell request against one batch.

    A sell request that spans two batches produces two rows sharing the same
    request_id. Ledger fields (quantity, unit cost/price, total) are frozen at
    creation; revenue, cost and profit are aggregates over these rows.

    balance_cents / is_paid change only through SalePayment rows (credit
    settlement). batch_id is NULL for WEIGHTED_AVERAGE products.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.CheckConstraint("balance_cents >= 0", name="ck_sales_balance_non_negative"),
        db.Index("ix_sales_product_sold", "product_id", "sold_at"),
        db.Index("ix_sales_customer_paid", "customer_id", "is_paid"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    request_id = db.Column(db.String(36), nullable=False, index=True)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    batch_id = db.Column(db.Integer, db.ForeignKey("stock_batches.id"), nullable=True, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    quantity_sold = db.Column(db.Integer, nullable=False)
    unit_cost_cents = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    total_price_cents = db.Column(db.Integer, nullable=False)

    balance_cents = db.Column(db.Integer, nullable=False, default=0)
    is_paid = db.Column(db.Boolean, nullable=False, default=True)

    sold_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    product = db.relationship("Product")
    batch = db.relationship("StockBatch")
    customer = db.relationship("Customer", backref=db.backref("sales", lazy=True))

    @property
    def total_cost_cents(self) -> int:
        return self.quantity_sold * self.unit_cost_cents

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "request_id": self.request_id,
            "product_id": self.product_id,
            "batch_id": self.batch_id,
            "customer_id": self.customer_id,
            "quantity_sold": self.quantity_sold,
            "unit_cost_cents": self.unit_cost_cents,
            "unit_price_cents": self.unit_price_cents,
            "total_price_cents": self.total_price_cents,
            "balance_cents": self.balance_cents,
            "is_paid": self.is_paid,
            "sold_at": to_utc_z(self.sold_at),
        }


class SalePayment(db.Model):
    """
    Portion of a customer PAYMENT applied to one credit sale.

    SUM(amount_cents) over a payment's rows equals the PAYMENT
    DebtTransaction amount.
    """
    __tablename__ = "sale_payments"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_sale_payments_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    debt_transaction_id = db.Column(
        db.Integer, db.ForeignKey("debt_transactions.id"), nullable=False, index=True
    )

    amount_cents = db.Column(db.Integer, nullable=False)
    paid_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    sale = db.relationship("Sale", backref=db.backref("payments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "customer_id": self.customer_id,
            "debt_transaction_id": self.debt_transaction_id,
            "amount_cents": self.amount_cents,
            "paid_at": to_utc_z(self.paid_at),
        }
