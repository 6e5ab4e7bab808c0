"""Payload builders and ledger lookups shared by the test modules."""

from decimal import Decimal

from app.extensions import db
from app.models import Stock, StockMovement
from app.services import stock_document_service


def line(variant, quantity) -> dict:
    """Stock document detail row."""
    return {"product_id": variant.product_id, "product_variant_id": variant.id, "quantity": quantity}


def item(variant, quantity, price, **extra) -> dict:
    """Invoice / quotation PRODUCT item."""
    return {
        "item_type": "PRODUCT",
        "product_id": variant.product_id,
        "product_variant_id": variant.id,
        "quantity": quantity,
        "price": price,
        **extra,
    }


def stock_up(variant, branch, quantity, user):
    """Approved POSITIVE adjustment: one inbound lot of `quantity`."""
    return stock_document_service.create_adjustment(
        branch.id,
        user.id,
        [line(variant, quantity)],
        adjustment_type="POSITIVE",
        approve=True,
    )


def quantity_of(variant, branch) -> Decimal:
    row = db.session.query(Stock).filter_by(product_variant_id=variant.id, branch_id=branch.id).first()
    return Decimal(row.quantity) if row else Decimal("0")


def movements_of(variant, branch, movement_type=None) -> list:
    query = db.session.query(StockMovement).filter_by(product_variant_id=variant.id, branch_id=branch.id)
    if movement_type:
        query = query.filter_by(type=movement_type)
    return query.order_by(StockMovement.id.asc()).all()
