from __future__ import annotations

import enum

from ..extensions import db
from stockledger.time_utils import to_utc_z, utcnow


class CostingMethod(str, enum.Enum):
    """How a product's stock is valued and consumed."""
    FIFO = "FIFO"
    WEIGHTED_AVERAGE = "WEIGHTED_AVERAGE"


class BatchStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    SOLD_OUT = "SOLD_OUT"


class BatchSource(str, enum.Enum):
    REPLENISHMENT = "REPLENISHMENT"
    MOVEMENT = "MOVEMENT"


class MovementAction(str, enum.Enum):
    ADD = "ADD"
    REMOVE = "REMOVE"
    SET = "SET"
    RESERVE = "RESERVE"
    RELEASE = "RELEASE"
    SOLD = "SOLD"
    RETURN = "RETURN"


class AlertType(str, enum.Enum):
    LOW_STOCK = "LOW_STOCK"
    OUT_OF_STOCK = "OUT_OF_STOCK"
    REPLENISH_READY = "REPLENISH_READY"


def _enum_column(enum_cls, **kwargs):
    return db.Column(
        db.Enum(enum_cls, native_enum=False, length=32, validate_strings=True),
        **kwargs,
    )


class Product(db.Model):
    """
    Product master data plus the denormalized on-hand quantity.

    INVARIANTS:
    - quantity >= 0 (CHECK constraint; every decrement is a conditional update)
    - FIFO products: quantity == SUM(quantity_remaining) over ACTIVE batches
    - WEIGHTED_AVERAGE products: quantity is the single pool and
      cost_price_cents is its running weighted-average unit cost

    quantity is never assigned directly by services outside the ledger; it moves
    only through batch activation, allocation and stock movements.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_products_quantity_non_negative"),
        db.Index("ix_products_active_quantity", "is_active", "quantity"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sku = db.Column(db.String(64), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)

    quantity = db.Column(db.Integer, nullable=False, default=0)

    # Authoritative storage in cents
    cost_price_cents = db.Column(db.Integer, nullable=False, default=0)
    price_cents = db.Column(db.Integer, nullable=False, default=0)

    # NULL -> LOW_STOCK_THRESHOLD from config
    low_stock_threshold = db.Column(db.Integer, nullable=True)

    costing_method = _enum_column(CostingMethod, nullable=False, default=CostingMethod.FIFO)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} quantity={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "quantity": self.quantity,
            "cost_price_cents": self.cost_price_cents,
            "price_cents": self.price_cents,
            "low_stock_threshold": self.low_stock_threshold,
            "costing_method": self.costing_method.value,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockBatch(db.Model):
    """
    One lot of stock received at a single replenishment event.

    LIFECYCLE (see batch_service.BATCH_TRANSITIONS):
        PENDING -> ACTIVE     only when the product's active stock is exhausted
        ACTIVE  -> SOLD_OUT   when quantity_remaining reaches 0

    PENDING stock is excluded from Product.quantity until activation.
    FIFO order is (replenished_at, id); id breaks ties on identical timestamps.
    """
    __tablename__ = "stock_batches"
    __table_args__ = (
        db.CheckConstraint("quantity_remaining >= 0", name="ck_batches_remaining_non_negative"),
        db.Index("ix_batches_product_status_replenished", "product_id", "status", "replenished_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity_received = db.Column(db.Integer, nullable=False)
    quantity_remaining = db.Column(db.Integer, nullable=False)

    unit_cost_cents = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)

    status = _enum_column(BatchStatus, nullable=False, default=BatchStatus.PENDING, index=True)
    source = _enum_column(BatchSource, nullable=False, default=BatchSource.REPLENISHMENT)

    replenished_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    activated_at = db.Column(db.DateTime, nullable=True)
    sold_out_at = db.Column(db.DateTime, nullable=True)

    product = db.relationship("Product", backref=db.backref("batches", lazy=True))

    def __repr__(self) -> str:
        return (
            f"<StockBatch id={self.id} product_id={self.product_id} "
            f"remaining={self.quantity_remaining} status={self.status.value}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "quantity_received": self.quantity_received,
            "quantity_remaining": self.quantity_remaining,
            "unit_cost_cents": self.unit_cost_cents,
            "unit_price_cents": self.unit_price_cents,
            "status": self.status.value,
            "source": self.source.value,
            "replenished_at": to_utc_z(self.replenished_at),
            "activated_at": to_utc_z(self.activated_at),
            "sold_out_at": to_utc_z(self.sold_out_at),
        }


class StockMovement(db.Model):
    """
    Append-only audit row for every change to Product.quantity.

    For any product, SUM(quantity_changed) over its movements equals
    Product.quantity. Rows are never updated or deleted.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_movements_product_created", "product_id", "created_at"),
        db.Index("ix_movements_product_action", "product_id", "action"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    batch_id = db.Column(db.Integer, db.ForeignKey("stock_batches.id"), nullable=True, index=True)

    action = _enum_column(MovementAction, nullable=False, index=True)

    previous_quantity = db.Column(db.Integer, nullable=False)
    new_quantity = db.Column(db.Integer, nullable=False)
    quantity_changed = db.Column(db.Integer, nullable=False)

    unit_cost_cents = db.Column(db.Integer, nullable=False, default=0)
    total_value_cents = db.Column(db.Integer, nullable=False, default=0)

    reference = db.Column(db.String(128), nullable=True, index=True)
    notes = db.Column(db.String(255), nullable=True)
    actor = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    product = db.relationship("Product", backref=db.backref("movements", lazy=True))
    batch = db.relationship("StockBatch")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "batch_id": self.batch_id,
            "action": self.action.value,
            "previous_quantity": self.previous_quantity,
            "new_quantity": self.new_quantity,
            "quantity_changed": self.quantity_changed,
            "unit_cost_cents": self.unit_cost_cents,
            "total_value_cents": self.total_value_cents,
            "reference": self.reference,
            "notes": self.notes,
            "actor": self.actor,
            "created_at": to_utc_z(self.created_at),
        }


class InventoryAlert(db.Model):
    """
    Stock-level alert raised by the alert state machine.

    Outstanding LOW_STOCK / OUT_OF_STOCK alerts are soft-resolved (superseded)
    once new stock becomes ACTIVE; REPLENISH_READY alerts link the batch that
    was activated.
    """
    __tablename__ = "inventory_alerts"
    __table_args__ = (
        db.Index("ix_alerts_product_type_triggered", "product_id", "alert_type", "triggered_at"),
        db.Index("ix_alerts_resolved", "resolved"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    batch_id = db.Column(db.Integer, db.ForeignKey("stock_batches.id"), nullable=True)

    alert_type = _enum_column(AlertType, nullable=False)
    severity = db.Column(db.Integer, nullable=False, default=4)
    message = db.Column(db.String(255), nullable=True)
    quantity_at_trigger = db.Column(db.Integer, nullable=False, default=0)

    is_notified = db.Column(db.Boolean, nullable=False, default=False)

    resolved = db.Column(db.Boolean, nullable=False, default=False)
    resolved_at = db.Column(db.DateTime, nullable=True)
    resolved_by = db.Column(db.String(64), nullable=True)
    resolution_notes = db.Column(db.String(255), nullable=True)

    triggered_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    product = db.relationship("Product", backref=db.backref("alerts", lazy=True))
    batch = db.relationship("StockBatch")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "batch_id": self.batch_id,
            "alert_type": self.alert_type.value,
            "severity": self.severity,
            "message": self.message,
            "quantity_at_trigger": self.quantity_at_trigger,
            "is_notified": self.is_notified,
            "resolved": self.resolved,
            "resolved_at": to_utc_z(self.resolved_at),
            "resolved_by": self.resolved_by,
            "resolution_notes": self.resolution_notes,
            "triggered_at": to_utc_z(self.triggered_at),
        }
