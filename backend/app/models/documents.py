from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z, to_iso_date
from .base import AuditMixin, Quantity, Money, dec


class DocumentSequence(db.Model):
    """
    Atomic per-branch document sequences.

    WHY: Prevent two concurrent creators from computing the same ref by
    reading the latest document and incrementing in application code.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("branch_id", "document_type", name="uq_doc_sequences_branch_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    document_type = db.Column(db.String(32), nullable=False, index=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branch_id": self.branch_id,
            "document_type": self.document_type,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }


def _stock_line_dict(line) -> dict:
    return {
        "id": line.id,
        "product_id": line.product_id,
        "product_variant_id": line.product_variant_id,
        "quantity": dec(line.quantity),
        "barcode": line.variant.barcode if line.variant else None,
        "name": line.variant.name if line.variant else None,
    }


# =============================================================================
# STOCK ADJUSTMENT
# =============================================================================

ADJUSTMENT_POSITIVE = "POSITIVE"
ADJUSTMENT_NEGATIVE = "NEGATIVE"
ADJUSTMENT_TYPES = {ADJUSTMENT_POSITIVE, ADJUSTMENT_NEGATIVE}


class StockAdjustment(AuditMixin, db.Model):
    """
    Manual correction of on-hand stock (damage, count variance, opening stock).

    POSITIVE adds every line's quantity at the branch, NEGATIVE removes it.
    """
    __tablename__ = "stock_adjustments"
    __table_args__ = (
        db.UniqueConstraint("branch_id", "ref", name="uq_stock_adjustments_branch_ref"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    ref = db.Column(db.String(32), nullable=False)
    adjustment_type = db.Column(db.String(16), nullable=False, default=ADJUSTMENT_POSITIVE)
    status = db.Column(db.String(16), nullable=False, default="PENDING", index=True)
    adjust_date = db.Column(db.Date, nullable=False)
    note = db.Column(db.Text, nullable=True)

    details = db.relationship(
        "StockAdjustmentDetail",
        backref="adjustment",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="StockAdjustmentDetail.id",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branch_id": self.branch_id,
            "ref": self.ref,
            "adjustment_type": self.adjustment_type,
            "status": self.status,
            "adjust_date": to_iso_date(self.adjust_date),
            "note": self.note,
            **self.audit_dict(),
            "details": [_stock_line_dict(d) for d in self.details],
        }


class StockAdjustmentDetail(db.Model):
    __tablename__ = "stock_adjustment_details"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    adjustment_id = db.Column(db.Integer, db.ForeignKey("stock_adjustments.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    product_variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=False)
    quantity = db.Column(Quantity, nullable=False)

    variant = db.relationship("ProductVariant")


# =============================================================================
# STOCK REQUEST
# =============================================================================

class StockRequest(AuditMixin, db.Model):
    """
    Branch requisition. Approval deducts the requested quantities at the
    branch without checking availability.
    """
    __tablename__ = "stock_requests"
    __table_args__ = (
        db.UniqueConstraint("branch_id", "ref", name="uq_stock_requests_branch_ref"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    ref = db.Column(db.String(32), nullable=False)
    request_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    status = db.Column(db.String(16), nullable=False, default="PENDING", index=True)
    request_date = db.Column(db.Date, nullable=False)
    note = db.Column(db.Text, nullable=True)

    details = db.relationship(
        "StockRequestDetail",
        backref="request",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="StockRequestDetail.id",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branch_id": self.branch_id,
            "ref": self.ref,
            "request_by": self.request_by,
            "status": self.status,
            "request_date": to_iso_date(self.request_date),
            "note": self.note,
            **self.audit_dict(),
            "details": [_stock_line_dict(d) for d in self.details],
        }


class StockRequestDetail(db.Model):
    __tablename__ = "stock_request_details"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    request_id = db.Column(db.Integer, db.ForeignKey("stock_requests.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    product_variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=False)
    quantity = db.Column(Quantity, nullable=False)

    variant = db.relationship("ProductVariant")


# =============================================================================
# STOCK RETURN
# =============================================================================

class StockReturn(AuditMixin, db.Model):
    """Goods coming back into a branch. Approval adds the quantities."""
    __tablename__ = "stock_returns"
    __table_args__ = (
        db.UniqueConstraint("branch_id", "ref", name="uq_stock_returns_branch_ref"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    ref = db.Column(db.String(32), nullable=False)
    return_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    status = db.Column(db.String(16), nullable=False, default="PENDING", index=True)
    return_date = db.Column(db.Date, nullable=False)
    note = db.Column(db.Text, nullable=True)

    details = db.relationship(
        "StockReturnDetail",
        backref="stock_return",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="StockReturnDetail.id",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branch_id": self.branch_id,
            "ref": self.ref,
            "return_by": self.return_by,
            "status": self.status,
            "return_date": to_iso_date(self.return_date),
            "note": self.note,
            **self.audit_dict(),
            "details": [_stock_line_dict(d) for d in self.details],
        }


class StockReturnDetail(db.Model):
    __tablename__ = "stock_return_details"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    return_id = db.Column(db.Integer, db.ForeignKey("stock_returns.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    product_variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=False)
    quantity = db.Column(Quantity, nullable=False)

    variant = db.relationship("ProductVariant")


# =============================================================================
# STOCK TRANSFER
# =============================================================================

class StockTransfer(AuditMixin, db.Model):
    """
    Inter-branch transfer.

    Approval moves every line in one step: a negative TRANSFER movement at
    branch_id and a positive one at to_branch_id. Refs are sequenced per
    source branch.
    """
    __tablename__ = "stock_transfers"
    __table_args__ = (
        db.UniqueConstraint("branch_id", "ref", name="uq_stock_transfers_branch_ref"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    to_branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    ref = db.Column(db.String(32), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="PENDING", index=True)
    transfer_date = db.Column(db.Date, nullable=False)
    note = db.Column(db.Text, nullable=True)

    details = db.relationship(
        "StockTransferDetail",
        backref="transfer",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="StockTransferDetail.id",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branch_id": self.branch_id,
            "to_branch_id": self.to_branch_id,
            "ref": self.ref,
            "status": self.status,
            "transfer_date": to_iso_date(self.transfer_date),
            "note": self.note,
            **self.audit_dict(),
            "details": [_stock_line_dict(d) for d in self.details],
        }


class StockTransferDetail(db.Model):
    __tablename__ = "stock_transfer_details"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    transfer_id = db.Column(db.Integer, db.ForeignKey("stock_transfers.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    product_variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=False)
    quantity = db.Column(Quantity, nullable=False)

    variant = db.relationship("ProductVariant")


# =============================================================================
# PURCHASE
# =============================================================================

class Purchase(AuditMixin, db.Model):
    """
    Supplier purchase. Receiving it books every line into stock as a
    PURCHASE lot carrying the line cost.
    """
    __tablename__ = "purchases"
    __table_args__ = (
        db.UniqueConstraint("branch_id", "ref", name="uq_purchases_branch_ref"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    supplier_id = db.Column(db.Integer, nullable=True)
    ref = db.Column(db.String(32), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="PENDING", index=True)
    purchase_date = db.Column(db.Date, nullable=False)

    tax_rate = db.Column(Money, nullable=False, default=0)
    tax_net = db.Column(Money, nullable=False, default=0)
    discount = db.Column(Money, nullable=False, default=0)
    shipping = db.Column(Money, nullable=False, default=0)
    grand_total = db.Column(Money, nullable=False, default=0)
    paid_amount = db.Column(Money, nullable=False, default=0)

    note = db.Column(db.Text, nullable=True)
    received_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    received_at = db.Column(db.DateTime(timezone=True), nullable=True)

    details = db.relationship(
        "PurchaseDetail",
        backref="purchase",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="PurchaseDetail.id",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branch_id": self.branch_id,
            "supplier_id": self.supplier_id,
            "ref": self.ref,
            "status": self.status,
            "purchase_date": to_iso_date(self.purchase_date),
            "tax_rate": dec(self.tax_rate),
            "tax_net": dec(self.tax_net),
            "discount": dec(self.discount),
            "shipping": dec(self.shipping),
            "grand_total": dec(self.grand_total),
            "paid_amount": dec(self.paid_amount),
            "note": self.note,
            "received_by": self.received_by,
            "received_at": to_utc_z(self.received_at),
            **self.audit_dict(),
            "details": [d.to_dict() for d in self.details],
        }


class PurchaseDetail(db.Model):
    __tablename__ = "purchase_details"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True)
    product_variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=False)
    quantity = db.Column(Quantity, nullable=False)
    cost = db.Column(Money, nullable=False)
    discount = db.Column(Money, nullable=False, default=0)
    discount_method = db.Column(db.String(16), nullable=False, default="FIXED")
    tax_net = db.Column(Money, nullable=False, default=0)
    tax_method = db.Column(db.String(16), nullable=True)
    total = db.Column(Money, nullable=False, default=0)

    variant = db.relationship("ProductVariant")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_variant_id": self.product_variant_id,
            "quantity": dec(self.quantity),
            "cost": dec(self.cost),
            "discount": dec(self.discount),
            "discount_method": self.discount_method,
            "tax_net": dec(self.tax_net),
            "tax_method": self.tax_method,
            "total": dec(self.total),
        }
