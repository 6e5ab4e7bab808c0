# backend/app/services/return_service.py
"""
Sale returns: proration of order discount/tax, FIFO stock restore, payment
reversal.

FLOW (one transaction):
1. Order must exist and be APPROVED; every returned item must belong to it.
2. Return ref "SR-00001", sequenced per branch.
3. Proration (prorate_return):
       ratio         = returned items subtotal / order items subtotal
       raw discount  = order.discount * ratio
       taxable       = items subtotal - raw discount
       raw tax       = taxable * tax_rate / 100
       max order tax = (order items subtotal - order.discount) * tax_rate / 100
       discount      = min(raw discount, order.discount - prior returns' discount)
       tax           = min(raw tax, max order tax - prior returns' tax)
       total         = taxable - (raw discount - discount) + tax
   so that across all returns of one order the discount never exceeds the
   order's and the tax never exceeds the maximum order tax.
4. Per PRODUCT line: prior returned + requested <= ordered. The sold
   movements of the order item are walked oldest first; each restores
   min(remaining_qty, still to restore) with a SALE_RETURN movement pointing
   at it (source_movement_id, same unit_cost). Stock += returned quantity.
5. Every PAID payment not yet reversed gets a REFUND counter-entry.
6. order.total_amount -= return total; order.return_status = 1.
"""
from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal

from flask import current_app
from sqlalchemy import func

from app.extensions import db
from app.models import Order, OrderPayment, SaleReturn, SaleReturnItem
from app.models.inventory import MOVEMENT_SALE_RETURN
from app.models.sales import PAYMENT_STATUS_PAID, PAYMENT_STATUS_REFUND
from app.services import lifecycle_service
from app.services.concurrency import transaction
from app.services.document_service import next_ref, prefix_for
from app.services.inventory_service import apply_delta
from app.services.ledger_service import append_movement, sold_movements_for_item
from app.services.stock_document_service import load_for_update
from app.time_utils import utcnow
from app.validation import (
    ITEM_TYPE_PRODUCT,
    ConflictError,
    NotFoundError,
    ValidationError,
    net_unit_price,
    parse_decimal,
    parse_int,
    require_non_empty,
)


LABEL = "Sale return"
DOCUMENT_TYPE = "SALE_RETURN"
ZERO = Decimal("0")
HUNDRED = Decimal("100")


class ReturnError(ConflictError):
    """Raised when a sale return violates an order's sold quantities."""
    pass


# =============================================================================
# Proration
# =============================================================================

@dataclass(frozen=True)
class ReturnProration:
    items_subtotal: Decimal
    invoice_subtotal: Decimal
    ratio: Decimal
    raw_discount: Decimal
    taxable: Decimal
    raw_tax: Decimal
    max_order_tax: Decimal
    discount: Decimal
    tax_net: Decimal
    total: Decimal


def prorate_return(
    *,
    items_subtotal: Decimal,
    invoice_subtotal: Decimal,
    order_discount: Decimal,
    tax_rate: Decimal,
    prior_discount: Decimal = ZERO,
    prior_tax: Decimal = ZERO,
) -> ReturnProration:
    """
    Pure proration of an order's discount and tax onto one return.

    Example: items 30 of an order subtotal 100, order discount 10, tax 10%
    -> ratio 0.3, discount 3, taxable 27, tax 2.7, total 29.7.
    """
    if items_subtotal <= 0:
        raise ValidationError("Return items subtotal must be greater than zero")
    if invoice_subtotal <= 0:
        raise ConflictError("Invoice subtotal must be greater than zero")

    ratio = items_subtotal / invoice_subtotal
    raw_discount = order_discount * ratio
    taxable = items_subtotal - raw_discount
    raw_tax = taxable * tax_rate / HUNDRED
    max_order_tax = (invoice_subtotal - order_discount) * tax_rate / HUNDRED

    discount = max(ZERO, min(raw_discount, order_discount - prior_discount))
    tax_net = max(ZERO, min(raw_tax, max_order_tax - prior_tax))
    total = taxable - (raw_discount - discount) + tax_net

    return ReturnProration(
        items_subtotal=items_subtotal,
        invoice_subtotal=invoice_subtotal,
        ratio=ratio,
        raw_discount=raw_discount,
        taxable=taxable,
        raw_tax=raw_tax,
        max_order_tax=max_order_tax,
        discount=discount,
        tax_net=tax_net,
        total=total,
    )


# =============================================================================
# Helpers
# =============================================================================

def _parse_items(raw_items) -> list[tuple[int, Decimal]]:
    parsed = []
    for raw in require_non_empty(raw_items, "Sale return items"):
        if not isinstance(raw, dict):
            raise ValidationError("Sale return items must be objects")
        parsed.append(
            (
                parse_int(raw.get("order_item_id"), "order_item_id"),
                parse_decimal(raw.get("quantity"), "quantity", positive=True),
            )
        )
    return parsed


def _prior_totals(session, order_id: int) -> tuple[Decimal, Decimal]:
    discount, tax_net = (
        session.query(
            func.coalesce(func.sum(SaleReturn.discount), 0),
            func.coalesce(func.sum(SaleReturn.tax_net), 0),
        )
        .filter(SaleReturn.order_id == order_id)
        .one()
    )
    return Decimal(discount), Decimal(tax_net)


def _returned_quantity(session, order_item_id: int) -> Decimal:
    total = (
        session.query(func.coalesce(func.sum(SaleReturnItem.quantity), 0))
        .filter(SaleReturnItem.order_item_id == order_item_id)
        .scalar()
    )
    return Decimal(total)


def _restore_fifo(session, *, item, return_item, branch_id: int, quantity: Decimal, actor_id, at, note) -> list:
    """Re-credit the oldest still-open sold movements of one order item."""
    to_restore = quantity
    restored = []
    for sold in sold_movements_for_item(session, item.id, item.product_variant_id, branch_id):
        if to_restore <= 0:
            break
        open_qty = Decimal(sold.remaining_qty or 0)
        if open_qty <= 0:
            continue
        take = min(open_qty, to_restore)
        sold.remaining_qty = open_qty - take
        restored.append(
            append_movement(
                session,
                variant_id=item.product_variant_id,
                branch_id=branch_id,
                movement_type=MOVEMENT_SALE_RETURN,
                quantity=take,
                actor_id=actor_id,
                at=at,
                unit_cost=sold.unit_cost,
                source_movement_id=sold.id,
                remaining_qty=take,
                order_item_id=item.id,
                sale_return_item_id=return_item.id,
                note=note,
            )
        )
        to_restore -= take

    if to_restore > 0:
        raise ReturnError("FIFO restore quantity mismatch")
    return restored


def _reverse_payments(session, order: Order, sale_return: SaleReturn, actor_id, at) -> list[OrderPayment]:
    """REFUND counter-entry for every PAID payment that has none yet."""
    reversed_ids = {
        row[0]
        for row in session.query(OrderPayment.reversed_payment_id)
        .filter(OrderPayment.order_id == order.id, OrderPayment.reversed_payment_id.isnot(None))
        .all()
    }
    originals = (
        session.query(OrderPayment)
        .filter(
            OrderPayment.order_id == order.id,
            OrderPayment.status == PAYMENT_STATUS_PAID,
            OrderPayment.total_paid > 0,
        )
        .order_by(OrderPayment.id.asc())
        .all()
    )

    refunds = []
    for payment in originals:
        if payment.id in reversed_ids:
            continue
        refund = OrderPayment(
            branch_id=payment.branch_id,
            order_id=order.id,
            payment_method_id=payment.payment_method_id,
            payment_date=at,
            total_paid=-Decimal(payment.total_paid),
            receive_usd=-Decimal(payment.receive_usd) if payment.receive_usd is not None else None,
            receive_khr=-Decimal(payment.receive_khr) if payment.receive_khr is not None else None,
            exchange_rate=payment.exchange_rate,
            status=PAYMENT_STATUS_REFUND,
            reversed_payment_id=payment.id,
            sale_return_id=sale_return.id,
            created_by=actor_id,
        )
        session.add(refund)
        order.paid_amount = Decimal(order.paid_amount) - Decimal(payment.total_paid)
        refunds.append(refund)
    session.flush()
    return refunds


# =============================================================================
# Workflow
# =============================================================================

def create_sale_return(actor_id: int | None, payload: dict) -> SaleReturn:
    """
    Book a sale return against an approved invoice.

    Request payload:
    {
        "order_id": 12,
        "items": [{"order_item_id": 40, "quantity": 3}],
        "note": "damaged box",     (optional)
        "shipping": 0              (optional, recorded only)
    }

    Price, discount and tax of each returned line are taken from the
    original order item.

    Raises:
        ValidationError: empty items / non-positive quantities or subtotal
        NotFoundError: unknown order or order item
        ConflictError: order not approved, quantity above what was sold,
            FIFO restore mismatch
    """
    order_id = parse_int(payload.get("order_id"), "order_id")
    requested = _parse_items(payload.get("items"))
    shipping = parse_decimal(payload.get("shipping"), "shipping", required=False, default=ZERO)

    with transaction() as session:
        order = load_for_update(session, Order, order_id, "Invoice")
        if order.status != lifecycle_service.STATUS_APPROVED:
            raise ConflictError(f"Invoice {order.ref} is not approved")

        items_by_id = {item.id: item for item in order.items}
        lines = []
        for order_item_id, quantity in requested:
            item = items_by_id.get(order_item_id)
            if item is None:
                raise NotFoundError(f"Order item {order_item_id} not found on invoice {order.ref}")
            lines.append((item, quantity))

        items_subtotal = sum(
            (net_unit_price(Decimal(i.price), Decimal(i.discount), i.discount_method) * q for i, q in lines),
            ZERO,
        )
        invoice_subtotal = sum((Decimal(i.total) for i in order.items), ZERO)
        prior_discount, prior_tax = _prior_totals(session, order.id)

        proration = prorate_return(
            items_subtotal=items_subtotal,
            invoice_subtotal=invoice_subtotal,
            order_discount=Decimal(order.discount),
            tax_rate=Decimal(order.tax_rate),
            prior_discount=prior_discount,
            prior_tax=prior_tax,
        )

        at = utcnow()
        sale_return = SaleReturn(
            order_id=order.id,
            branch_id=order.branch_id,
            customer_id=order.customer_id,
            ref=next_ref(session, prefix_for(DOCUMENT_TYPE), order.branch_id, DOCUMENT_TYPE),
            status=lifecycle_service.STATUS_APPROVED,
            discount=proration.discount,
            tax_rate=order.tax_rate,
            tax_net=proration.tax_net,
            shipping=shipping,
            total_amount=proration.total,
            note=payload.get("note"),
            created_by=actor_id,
            created_at=at,
        )
        session.add(sale_return)
        session.flush()

        # same order item may appear twice in one request
        requested_so_far = defaultdict(lambda: ZERO)
        for item, quantity in lines:
            already = _returned_quantity(session, item.id) + requested_so_far[item.id]
            if already + quantity > Decimal(item.quantity):
                raise ReturnError(
                    f"Return quantity {quantity} exceeds sold quantity for order item {item.id} "
                    f"(ordered {Decimal(item.quantity)}, already returned {already})"
                )
            requested_so_far[item.id] += quantity

            return_item = SaleReturnItem(
                sale_return_id=sale_return.id,
                order_item_id=item.id,
                item_type=item.item_type,
                product_id=item.product_id,
                product_variant_id=item.product_variant_id,
                service_id=item.service_id,
                quantity=quantity,
                price=item.price,
                discount=item.discount,
                discount_method=item.discount_method,
                tax_net=Decimal(item.tax_net) * quantity / Decimal(item.quantity),
                tax_method=item.tax_method,
                total=net_unit_price(Decimal(item.price), Decimal(item.discount), item.discount_method) * quantity,
            )
            session.add(return_item)
            session.flush()

            if item.item_type != ITEM_TYPE_PRODUCT:
                continue
            _restore_fifo(
                session,
                item=item,
                return_item=return_item,
                branch_id=order.branch_id,
                quantity=quantity,
                actor_id=actor_id,
                at=at,
                note=sale_return.ref,
            )
            apply_delta(session, item.product_variant_id, order.branch_id, quantity, actor_id, at)

        _reverse_payments(session, order, sale_return, actor_id, at)

        order.total_amount = Decimal(order.total_amount) - proration.total
        order.return_status = 1
        order.updated_by = actor_id
        order.updated_at = at
        session.flush()
        current_app.logger.info(
            "%s %s booked against invoice %s by user %s (total %s)",
            LABEL, sale_return.ref, order.ref, actor_id, proration.total,
        )

    return sale_return


def get_sale_return(sale_return_id: int) -> SaleReturn:
    sale_return = db.session.get(SaleReturn, sale_return_id)
    if sale_return is None:
        raise NotFoundError(f"{LABEL} {sale_return_id} not found")
    return sale_return


def list_sale_returns_for_order(order_id: int) -> list[SaleReturn]:
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFoundError(f"Invoice {order_id} not found")
    return (
        db.session.query(SaleReturn)
        .filter(SaleReturn.order_id == order_id)
        .order_by(SaleReturn.id.asc())
        .all()
    )
