from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z
from .base import Quantity, Money, dec


# Movement types. Every quantity change on Stock is explained by exactly one
# movement row of one of these types.
MOVEMENT_PURCHASE = "PURCHASE"
MOVEMENT_ORDER = "ORDER"
MOVEMENT_SALE_RETURN = "SALE_RETURN"
MOVEMENT_ADJUSTMENT = "ADJUSTMENT"
MOVEMENT_TRANSFER = "TRANSFER"
MOVEMENT_REQUEST = "REQUEST"
MOVEMENT_RETURN = "RETURN"
MOVEMENT_QUOTE_TO_INVOICE = "QUOTE_TO_INVOICE"

MOVEMENT_TYPES = {
    MOVEMENT_PURCHASE,
    MOVEMENT_ORDER,
    MOVEMENT_SALE_RETURN,
    MOVEMENT_ADJUSTMENT,
    MOVEMENT_TRANSFER,
    MOVEMENT_REQUEST,
    MOVEMENT_RETURN,
    MOVEMENT_QUOTE_TO_INVOICE,
}

# Outbound movements that a sale return may reverse.
SOLD_MOVEMENT_TYPES = (MOVEMENT_ORDER, MOVEMENT_QUOTE_TO_INVOICE)

# Inbound movements that open a FIFO lot (remaining_qty = unsold part).
LOT_MOVEMENT_TYPES = (
    MOVEMENT_PURCHASE,
    MOVEMENT_ADJUSTMENT,
    MOVEMENT_RETURN,
    MOVEMENT_TRANSFER,
    MOVEMENT_SALE_RETURN,
)

MOVEMENT_STATUS_PENDING = "PENDING"
MOVEMENT_STATUS_APPROVED = "APPROVED"


class Stock(db.Model):
    """
    Current quantity per (product variant, branch).

    Authoritative running balance. Only document workflows write here, and
    always together with a StockMovement row inside the same transaction, so
    quantity == SUM(stock_movements.quantity) for the same key.
    """
    __tablename__ = "stocks"
    __table_args__ = (
        db.UniqueConstraint("product_variant_id", "branch_id", name="uq_stocks_variant_branch"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=False, index=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)

    quantity = db.Column(Quantity, nullable=False, default=0)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    variant = db.relationship("ProductVariant")
    branch = db.relationship("Branch")

    def __repr__(self) -> str:
        return (
            f"<Stock variant_id={self.product_variant_id} branch_id={self.branch_id} "
            f"quantity={self.quantity}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_variant_id": self.product_variant_id,
            "branch_id": self.branch_id,
            "quantity": dec(self.quantity),
            "barcode": self.variant.barcode if self.variant else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockMovement(db.Model):
    """
    Append-only audit row for one signed quantity change.

    quantity > 0 is stock in, quantity < 0 is stock out.

    remaining_qty:
    - inbound lot types: part of the lot not yet consumed by a sale (FIFO)
    - sold types: part of the sale not yet restored by a sale return
    It is the only column rewritten after insert, apart from the approval pair.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_variant_branch", "product_variant_id", "branch_id"),
        db.Index("ix_stock_movements_order_item", "order_item_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=False)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)

    type = db.Column(db.String(32), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default=MOVEMENT_STATUS_APPROVED)

    quantity = db.Column(Quantity, nullable=False)
    unit_cost = db.Column(Money, nullable=True)

    source_movement_id = db.Column(db.Integer, db.ForeignKey("stock_movements.id"), nullable=True, index=True)
    remaining_qty = db.Column(Quantity, nullable=True)

    order_item_id = db.Column(db.Integer, db.ForeignKey("order_items.id"), nullable=True)
    sale_return_item_id = db.Column(db.Integer, db.ForeignKey("sale_return_items.id"), nullable=True, index=True)

    note = db.Column(db.Text, nullable=True)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    approved_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)

    source_movement = db.relationship("StockMovement", remote_side=[id])

    def __repr__(self) -> str:
        return (
            f"<StockMovement id={self.id} type={self.type} variant_id={self.product_variant_id} "
            f"branch_id={self.branch_id} quantity={self.quantity}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_variant_id": self.product_variant_id,
            "branch_id": self.branch_id,
            "type": self.type,
            "status": self.status,
            "quantity": dec(self.quantity),
            "unit_cost": dec(self.unit_cost),
            "source_movement_id": self.source_movement_id,
            "remaining_qty": dec(self.remaining_qty),
            "order_item_id": self.order_item_id,
            "sale_return_item_id": self.sale_return_item_id,
            "note": self.note,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "approved_by": self.approved_by,
            "approved_at": to_utc_z(self.approved_at),
        }
