from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z, to_iso_date
from .base import AuditMixin, Quantity, Money, dec


PAYMENT_STATUS_PAID = "PAID"
PAYMENT_STATUS_REFUND = "REFUND"


def _priced_line_dict(line) -> dict:
    return {
        "id": line.id,
        "item_type": line.item_type,
        "product_id": line.product_id,
        "product_variant_id": line.product_variant_id,
        "service_id": line.service_id,
        "quantity": dec(line.quantity),
        "price": dec(line.price),
        "discount": dec(line.discount),
        "discount_method": line.discount_method,
        "tax_net": dec(line.tax_net),
        "tax_method": line.tax_method,
        "total": dec(line.total),
    }


# =============================================================================
# ORDER (INVOICE)
# =============================================================================

class Order(AuditMixin, db.Model):
    """
    Sales invoice.

    Approval cuts stock for every PRODUCT item (sufficiency checked, FIFO
    lots). total_amount is reduced by every sale return booked against it.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("branch_id", "ref", name="uq_orders_branch_ref"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, nullable=True)
    ref = db.Column(db.String(32), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="PENDING", index=True)
    order_date = db.Column(db.Date, nullable=False)
    sale_type = db.Column(db.String(16), nullable=True)

    tax_rate = db.Column(Money, nullable=False, default=0)
    tax_net = db.Column(Money, nullable=False, default=0)
    discount = db.Column(Money, nullable=False, default=0)
    shipping = db.Column(Money, nullable=False, default=0)
    total_amount = db.Column(Money, nullable=False, default=0)
    paid_amount = db.Column(Money, nullable=False, default=0)

    # 1 once any sale return has been booked against this order
    return_status = db.Column(db.Integer, nullable=False, default=0)

    note = db.Column(db.Text, nullable=True)

    items = db.relationship(
        "OrderItem",
        backref="order",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )
    payments = db.relationship(
        "OrderPayment",
        backref="order",
        lazy=True,
        order_by="OrderPayment.id",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branch_id": self.branch_id,
            "customer_id": self.customer_id,
            "ref": self.ref,
            "status": self.status,
            "order_date": to_iso_date(self.order_date),
            "sale_type": self.sale_type,
            "tax_rate": dec(self.tax_rate),
            "tax_net": dec(self.tax_net),
            "discount": dec(self.discount),
            "shipping": dec(self.shipping),
            "total_amount": dec(self.total_amount),
            "paid_amount": dec(self.paid_amount),
            "return_status": self.return_status,
            "note": self.note,
            **self.audit_dict(),
            "items": [_priced_line_dict(i) for i in self.items],
        }


class OrderItem(db.Model):
    __tablename__ = "order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    item_type = db.Column(db.String(16), nullable=False, default="PRODUCT")
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True)
    product_variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=True)
    service_id = db.Column(db.Integer, nullable=True)
    quantity = db.Column(Quantity, nullable=False)
    price = db.Column(Money, nullable=False)
    discount = db.Column(Money, nullable=False, default=0)
    discount_method = db.Column(db.String(16), nullable=False, default="FIXED")
    tax_net = db.Column(Money, nullable=False, default=0)
    tax_method = db.Column(db.String(16), nullable=True)
    total = db.Column(Money, nullable=False, default=0)

    variant = db.relationship("ProductVariant")

    def to_dict(self) -> dict:
        return _priced_line_dict(self)


class OrderPayment(db.Model):
    """
    Payment received against an order.

    Append-only: a refund is a new row with negated amounts and status
    REFUND, never an edit of the original.
    """
    __tablename__ = "order_payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    payment_method_id = db.Column(db.Integer, nullable=True)
    payment_date = db.Column(db.DateTime(timezone=True), nullable=False)
    total_paid = db.Column(Money, nullable=False)
    receive_usd = db.Column(Money, nullable=True)
    receive_khr = db.Column(Money, nullable=True)
    exchange_rate = db.Column(Money, nullable=True)
    status = db.Column(db.String(16), nullable=False, default=PAYMENT_STATUS_PAID)
    # REFUND rows point at the payment they reverse and the return that caused it
    reversed_payment_id = db.Column(db.Integer, db.ForeignKey("order_payments.id"), nullable=True, index=True)
    sale_return_id = db.Column(db.Integer, db.ForeignKey("sale_returns.id"), nullable=True)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branch_id": self.branch_id,
            "order_id": self.order_id,
            "payment_method_id": self.payment_method_id,
            "payment_date": to_utc_z(self.payment_date),
            "total_paid": dec(self.total_paid),
            "receive_usd": dec(self.receive_usd),
            "receive_khr": dec(self.receive_khr),
            "exchange_rate": dec(self.exchange_rate),
            "status": self.status,
            "reversed_payment_id": self.reversed_payment_id,
            "sale_return_id": self.sale_return_id,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }


# =============================================================================
# QUOTATION
# =============================================================================

class Quotation(AuditMixin, db.Model):
    """
    Price quote. Converting it creates an APPROVED order and cuts stock in
    the same transaction; a quotation converts at most once.
    """
    __tablename__ = "quotations"
    __table_args__ = (
        db.UniqueConstraint("branch_id", "ref", name="uq_quotations_branch_ref"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, nullable=True)
    ref = db.Column(db.String(32), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="PENDING", index=True)
    quotation_date = db.Column(db.Date, nullable=False)
    sale_type = db.Column(db.String(16), nullable=True)

    tax_rate = db.Column(Money, nullable=False, default=0)
    tax_net = db.Column(Money, nullable=False, default=0)
    discount = db.Column(Money, nullable=False, default=0)
    shipping = db.Column(Money, nullable=False, default=0)
    grand_total = db.Column(Money, nullable=False, default=0)

    note = db.Column(db.Text, nullable=True)

    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True)
    invoiced_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    invoiced_at = db.Column(db.DateTime(timezone=True), nullable=True)

    details = db.relationship(
        "QuotationDetail",
        backref="quotation",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="QuotationDetail.id",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branch_id": self.branch_id,
            "customer_id": self.customer_id,
            "ref": self.ref,
            "status": self.status,
            "quotation_date": to_iso_date(self.quotation_date),
            "sale_type": self.sale_type,
            "tax_rate": dec(self.tax_rate),
            "tax_net": dec(self.tax_net),
            "discount": dec(self.discount),
            "shipping": dec(self.shipping),
            "grand_total": dec(self.grand_total),
            "note": self.note,
            "order_id": self.order_id,
            "invoiced_by": self.invoiced_by,
            "invoiced_at": to_utc_z(self.invoiced_at),
            **self.audit_dict(),
            "details": [_priced_line_dict(d) for d in self.details],
        }


class QuotationDetail(db.Model):
    __tablename__ = "quotation_details"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    quotation_id = db.Column(db.Integer, db.ForeignKey("quotations.id"), nullable=False, index=True)
    item_type = db.Column(db.String(16), nullable=False, default="PRODUCT")
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True)
    product_variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=True)
    service_id = db.Column(db.Integer, nullable=True)
    quantity = db.Column(Quantity, nullable=False)
    price = db.Column(Money, nullable=False)
    discount = db.Column(Money, nullable=False, default=0)
    discount_method = db.Column(db.String(16), nullable=False, default="FIXED")
    tax_net = db.Column(Money, nullable=False, default=0)
    tax_method = db.Column(db.String(16), nullable=True)
    total = db.Column(Money, nullable=False, default=0)

    variant = db.relationship("ProductVariant")


# =============================================================================
# SALE RETURN
# =============================================================================

class SaleReturn(db.Model):
    """
    Customer return against an order. Immutable once created.

    discount / tax_net are the prorated share of the order's discount and tax,
    capped so that all returns of one order never exceed the order's own.
    """
    __tablename__ = "sale_returns"
    __table_args__ = (
        db.UniqueConstraint("branch_id", "ref", name="uq_sale_returns_branch_ref"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, nullable=True)
    ref = db.Column(db.String(32), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="APPROVED")

    discount = db.Column(Money, nullable=False, default=0)
    tax_rate = db.Column(Money, nullable=False, default=0)
    tax_net = db.Column(Money, nullable=False, default=0)
    shipping = db.Column(Money, nullable=False, default=0)
    total_amount = db.Column(Money, nullable=False, default=0)

    note = db.Column(db.Text, nullable=True)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    order = db.relationship("Order", backref=db.backref("sale_returns", lazy=True))
    items = db.relationship(
        "SaleReturnItem",
        backref="sale_return",
        lazy=True,
        order_by="SaleReturnItem.id",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "branch_id": self.branch_id,
            "customer_id": self.customer_id,
            "ref": self.ref,
            "status": self.status,
            "discount": dec(self.discount),
            "tax_rate": dec(self.tax_rate),
            "tax_net": dec(self.tax_net),
            "shipping": dec(self.shipping),
            "total_amount": dec(self.total_amount),
            "note": self.note,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "items": [i.to_dict() for i in self.items],
        }


class SaleReturnItem(db.Model):
    __tablename__ = "sale_return_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_return_id = db.Column(db.Integer, db.ForeignKey("sale_returns.id"), nullable=False, index=True)
    order_item_id = db.Column(db.Integer, db.ForeignKey("order_items.id"), nullable=False, index=True)
    item_type = db.Column(db.String(16), nullable=False, default="PRODUCT")
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True)
    product_variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=True)
    service_id = db.Column(db.Integer, nullable=True)
    quantity = db.Column(Quantity, nullable=False)
    price = db.Column(Money, nullable=False)
    discount = db.Column(Money, nullable=False, default=0)
    discount_method = db.Column(db.String(16), nullable=False, default="FIXED")
    tax_net = db.Column(Money, nullable=False, default=0)
    tax_method = db.Column(db.String(16), nullable=True)
    total = db.Column(Money, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            **_priced_line_dict(self),
            "order_item_id": self.order_item_id,
        }
