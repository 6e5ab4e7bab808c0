# backend/app/services/invoice_service.py
"""
Invoice (order) workflow and payments.

Approval is the sufficiency-checked path: for every PRODUCT item the branch
must hold at least the invoiced quantity, otherwise the whole approval fails
with "Insufficient stock for barcode: X" and nothing is written. Stock is cut
FIFO from the oldest open lots; each consumed slice is its own ORDER movement
carrying the lot's unit cost.

SERVICE items never touch stock.

Payments are append-only. paid_amount on the order is the running sum,
never above total_amount.
"""
from __future__ import annotations

from decimal import Decimal

from flask import current_app

from app.extensions import db
from app.models import Order, OrderItem, OrderPayment
from app.models.inventory import MOVEMENT_ORDER
from app.models.sales import PAYMENT_STATUS_PAID
from app.services import lifecycle_service
from app.services.concurrency import transaction
from app.services.document_service import next_ref, prefix_for
from app.services.inventory_service import get_variant, sell
from app.services.stock_document_service import load_for_update, require_branch
from app.time_utils import utcnow, parse_iso_datetime
from app.validation import (
    ITEM_TYPE_PRODUCT,
    ConflictError,
    NotFoundError,
    ValidationError,
    parse_date,
    parse_decimal,
    parse_int,
    parse_priced_lines,
)


LABEL = "Invoice"
DOCUMENT_TYPE = "INVOICE"
ZERO = Decimal("0")
HUNDRED = Decimal("100")


def build_items(session, lines, item_model, **extra) -> list:
    """Priced rows for orders and quotations; PRODUCT variants must exist."""
    rows = []
    for line in lines:
        product_id = line.product_id
        variant_id = None
        if line.item_type == ITEM_TYPE_PRODUCT:
            variant = get_variant(session, line.product_variant_id)
            variant_id = variant.id
            product_id = product_id or variant.product_id
        rows.append(
            item_model(
                item_type=line.item_type,
                product_id=product_id,
                product_variant_id=variant_id,
                service_id=line.service_id,
                quantity=line.quantity,
                price=line.price,
                discount=line.discount,
                discount_method=line.discount_method,
                tax_net=line.tax_net,
                tax_method=line.tax_method,
                total=line.total,
                **extra,
            )
        )
    return rows


def parse_amounts(payload: dict) -> dict:
    return {
        "tax_rate": parse_decimal(payload.get("tax_rate"), "tax_rate", required=False, default=ZERO),
        "tax_net": parse_decimal(payload.get("tax_net"), "tax_net", required=False),
        "discount": parse_decimal(payload.get("discount"), "discount", required=False, default=ZERO),
        "shipping": parse_decimal(payload.get("shipping"), "shipping", required=False, default=ZERO),
        "grand_total": parse_decimal(payload.get("grand_total"), "grand_total", required=False),
    }


def apply_amounts(doc, rows, amounts: dict) -> Decimal:
    """
    Stamp discount/tax/shipping on a header and return its grand total.

    Missing tax_net is derived as (subtotal - discount) * tax_rate / 100.
    """
    subtotal = sum((Decimal(r.total) for r in rows), ZERO)
    tax_net = amounts["tax_net"]
    if tax_net is None:
        tax_net = (subtotal - amounts["discount"]) * amounts["tax_rate"] / HUNDRED

    doc.tax_rate = amounts["tax_rate"]
    doc.tax_net = tax_net
    doc.discount = amounts["discount"]
    doc.shipping = amounts["shipping"]

    if amounts["grand_total"] is not None:
        return amounts["grand_total"]
    return subtotal - amounts["discount"] + tax_net + amounts["shipping"]


def cut_stock_for_items(session, *, items, branch_id: int, movement_type: str, actor_id, at, note: str) -> None:
    for item in items:
        if item.item_type != ITEM_TYPE_PRODUCT:
            continue
        variant = get_variant(session, item.product_variant_id)
        sell(
            session,
            variant=variant,
            branch_id=branch_id,
            quantity=Decimal(item.quantity),
            movement_type=movement_type,
            actor_id=actor_id,
            at=at,
            order_item_id=item.id,
            note=note,
        )


def _approve_in_session(session, order: Order, actor_id: int | None) -> None:
    lifecycle_service.require_transition(order, lifecycle_service.STATUS_APPROVED, LABEL)

    at = utcnow()
    cut_stock_for_items(
        session,
        items=order.items,
        branch_id=order.branch_id,
        movement_type=MOVEMENT_ORDER,
        actor_id=actor_id,
        at=at,
        note=order.ref,
    )
    lifecycle_service.mark_approved(order, actor_id, at)
    session.flush()
    current_app.logger.info("%s %s approved by user %s", LABEL, order.ref, actor_id)


def create_invoice(branch_id: int, actor_id: int | None, payload: dict, *, approve: bool = False) -> Order:
    """
    Create a PENDING invoice; approve=True also cuts stock in the same
    transaction.
    """
    lines = parse_priced_lines(payload.get("items"), "Invoice items")
    amounts = parse_amounts(payload)
    order_date = parse_date(payload.get("order_date"), "order_date")

    with transaction() as session:
        require_branch(session, branch_id)
        ref = next_ref(session, prefix_for(DOCUMENT_TYPE), branch_id, DOCUMENT_TYPE)

        order = Order(
            branch_id=branch_id,
            customer_id=payload.get("customer_id"),
            ref=ref,
            status=lifecycle_service.STATUS_PENDING,
            order_date=order_date,
            sale_type=payload.get("sale_type"),
            note=payload.get("note"),
            paid_amount=ZERO,
            return_status=0,
            created_by=actor_id,
        )
        order.items = build_items(session, lines, OrderItem)
        order.total_amount = apply_amounts(order, order.items, amounts)
        session.add(order)
        session.flush()

        if approve:
            _approve_in_session(session, order, actor_id)

    return order


def update_invoice(order_id: int, actor_id: int | None, payload: dict, *, approve: bool = False) -> Order:
    lines = parse_priced_lines(payload.get("items"), "Invoice items")
    amounts = parse_amounts(payload)

    with transaction() as session:
        order = load_for_update(session, Order, order_id, LABEL)
        lifecycle_service.require_editable(order, LABEL)

        if payload.get("order_date") is not None:
            order.order_date = parse_date(payload["order_date"], "order_date")
        if "customer_id" in payload:
            order.customer_id = payload["customer_id"]
        if payload.get("sale_type") is not None:
            order.sale_type = payload["sale_type"]
        if payload.get("note") is not None:
            order.note = payload["note"]

        order.items.clear()
        session.flush()
        order.items = build_items(session, lines, OrderItem)
        order.total_amount = apply_amounts(order, order.items, amounts)
        order.updated_by = actor_id
        order.updated_at = utcnow()
        session.flush()

        if approve:
            _approve_in_session(session, order, actor_id)

    return order


def approve_invoice(order_id: int, actor_id: int | None) -> Order:
    with transaction() as session:
        order = load_for_update(session, Order, order_id, LABEL)
        _approve_in_session(session, order, actor_id)
    return order


def cancel_invoice(order_id: int, actor_id: int | None, reason: str | None = None) -> Order:
    with transaction() as session:
        order = load_for_update(session, Order, order_id, LABEL)
        lifecycle_service.require_transition(order, lifecycle_service.STATUS_CANCELLED, LABEL)
        lifecycle_service.mark_cancelled(order, actor_id, reason)
    return order


def get_invoice(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFoundError(f"{LABEL} {order_id} not found")
    return order


# =============================================================================
# Payments
# =============================================================================

def record_payment(order_id: int, actor_id: int | None, payload: dict) -> OrderPayment:
    """
    Append a PAID payment and raise the order's paid_amount.

    Raises:
        ValidationError: non-positive amount
        ConflictError: cancelled order or payment above the open balance
    """
    total_paid = parse_decimal(payload.get("total_paid"), "total_paid", positive=True)
    receive_usd = parse_decimal(payload.get("receive_usd"), "receive_usd", required=False)
    receive_khr = parse_decimal(payload.get("receive_khr"), "receive_khr", required=False)
    exchange_rate = parse_decimal(payload.get("exchange_rate"), "exchange_rate", required=False)
    payment_method_id = parse_int(payload.get("payment_method_id"), "payment_method_id", required=False)
    try:
        payment_date = parse_iso_datetime(payload.get("payment_date")) or utcnow()
    except ValueError:
        raise ValidationError("payment_date must be an ISO-8601 datetime")

    with transaction() as session:
        order = load_for_update(session, Order, order_id, LABEL)
        if order.status == lifecycle_service.STATUS_CANCELLED:
            raise ConflictError(f"{LABEL} {order.ref} is cancelled")

        balance = Decimal(order.total_amount) - Decimal(order.paid_amount)
        if total_paid > balance:
            raise ConflictError(f"Payment exceeds the open balance of {LABEL} {order.ref}")

        payment = OrderPayment(
            branch_id=order.branch_id,
            order_id=order.id,
            payment_method_id=payment_method_id,
            payment_date=payment_date,
            total_paid=total_paid,
            receive_usd=receive_usd,
            receive_khr=receive_khr,
            exchange_rate=exchange_rate,
            status=PAYMENT_STATUS_PAID,
            created_by=actor_id,
        )
        session.add(payment)
        order.paid_amount = Decimal(order.paid_amount) + total_paid
        session.flush()

    return payment
