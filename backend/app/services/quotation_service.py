# backend/app/services/quotation_service.py
"""
Quotations and quotation-to-invoice conversion.

A quotation never touches stock while PENDING. Converting it creates an
APPROVED invoice with the quotation's lines copied over and cuts stock for
every PRODUCT line (sufficiency-checked, FIFO, QUOTE_TO_INVOICE movements),
all in one transaction. The quotation is then APPROVED with the invoice link,
so a second conversion is rejected.
"""
from __future__ import annotations

from flask import current_app

from app.extensions import db
from app.models import Order, OrderItem, Quotation, QuotationDetail
from app.models.inventory import MOVEMENT_QUOTE_TO_INVOICE
from app.services import lifecycle_service
from app.services.concurrency import transaction
from app.services.document_service import next_ref, prefix_for
from app.services.invoice_service import apply_amounts, build_items, cut_stock_for_items, parse_amounts
from app.services.stock_document_service import load_for_update, require_branch
from app.time_utils import utcnow
from app.validation import ConflictError, NotFoundError, parse_date, parse_priced_lines


LABEL = "Quotation"
DOCUMENT_TYPE = "QUOTATION"


def create_quotation(branch_id: int, actor_id: int | None, payload: dict) -> Quotation:
    lines = parse_priced_lines(payload.get("details"), "Quotation details")
    amounts = parse_amounts(payload)
    quotation_date = parse_date(payload.get("quotation_date"), "quotation_date")

    with transaction() as session:
        require_branch(session, branch_id)
        ref = next_ref(session, prefix_for(DOCUMENT_TYPE), branch_id, DOCUMENT_TYPE)

        quotation = Quotation(
            branch_id=branch_id,
            customer_id=payload.get("customer_id"),
            ref=ref,
            status=lifecycle_service.STATUS_PENDING,
            quotation_date=quotation_date,
            sale_type=payload.get("sale_type"),
            note=payload.get("note"),
            created_by=actor_id,
        )
        quotation.details = build_items(session, lines, QuotationDetail)
        quotation.grand_total = apply_amounts(quotation, quotation.details, amounts)
        session.add(quotation)
        session.flush()

    return quotation


def update_quotation(quotation_id: int, actor_id: int | None, payload: dict) -> Quotation:
    lines = parse_priced_lines(payload.get("details"), "Quotation details")
    amounts = parse_amounts(payload)

    with transaction() as session:
        quotation = load_for_update(session, Quotation, quotation_id, LABEL)
        lifecycle_service.require_editable(quotation, LABEL)

        if payload.get("quotation_date") is not None:
            quotation.quotation_date = parse_date(payload["quotation_date"], "quotation_date")
        if "customer_id" in payload:
            quotation.customer_id = payload["customer_id"]
        if payload.get("sale_type") is not None:
            quotation.sale_type = payload["sale_type"]
        if payload.get("note") is not None:
            quotation.note = payload["note"]

        quotation.details.clear()
        session.flush()
        quotation.details = build_items(session, lines, QuotationDetail)
        quotation.grand_total = apply_amounts(quotation, quotation.details, amounts)
        quotation.updated_by = actor_id
        quotation.updated_at = utcnow()
        session.flush()

    return quotation


def convert_quotation(quotation_id: int, actor_id: int | None) -> Order:
    """
    Turn a PENDING quotation into an APPROVED invoice and cut stock.

    Raises:
        ConflictError: already converted, cancelled, or insufficient stock
    """
    with transaction() as session:
        quotation = load_for_update(session, Quotation, quotation_id, LABEL)
        if quotation.order_id is not None:
            raise ConflictError(f"{LABEL} {quotation.ref} has already been converted to an invoice")
        lifecycle_service.require_transition(quotation, lifecycle_service.STATUS_APPROVED, LABEL)

        at = utcnow()
        ref = next_ref(session, prefix_for("INVOICE"), quotation.branch_id, "INVOICE")
        order = Order(
            branch_id=quotation.branch_id,
            customer_id=quotation.customer_id,
            ref=ref,
            status=lifecycle_service.STATUS_PENDING,
            order_date=at.date(),
            sale_type=quotation.sale_type,
            tax_rate=quotation.tax_rate,
            tax_net=quotation.tax_net,
            discount=quotation.discount,
            shipping=quotation.shipping,
            total_amount=quotation.grand_total,
            paid_amount=0,
            return_status=0,
            note=quotation.note,
            created_by=actor_id,
        )
        order.items = [
            OrderItem(
                item_type=d.item_type,
                product_id=d.product_id,
                product_variant_id=d.product_variant_id,
                service_id=d.service_id,
                quantity=d.quantity,
                price=d.price,
                discount=d.discount,
                discount_method=d.discount_method,
                tax_net=d.tax_net,
                tax_method=d.tax_method,
                total=d.total,
            )
            for d in quotation.details
        ]
        session.add(order)
        session.flush()

        cut_stock_for_items(
            session,
            items=order.items,
            branch_id=order.branch_id,
            movement_type=MOVEMENT_QUOTE_TO_INVOICE,
            actor_id=actor_id,
            at=at,
            note=f"{quotation.ref} -> {order.ref}",
        )
        lifecycle_service.mark_approved(order, actor_id, at)

        lifecycle_service.mark_approved(quotation, actor_id, at)
        quotation.order_id = order.id
        quotation.invoiced_by = actor_id
        quotation.invoiced_at = at
        session.flush()
        current_app.logger.info(
            "%s %s converted to %s by user %s", LABEL, quotation.ref, order.ref, actor_id
        )

    return order


def cancel_quotation(quotation_id: int, actor_id: int | None, reason: str | None = None) -> Quotation:
    with transaction() as session:
        quotation = load_for_update(session, Quotation, quotation_id, LABEL)
        lifecycle_service.require_transition(quotation, lifecycle_service.STATUS_CANCELLED, LABEL)
        lifecycle_service.mark_cancelled(quotation, actor_id, reason)
    return quotation


def get_quotation(quotation_id: int) -> Quotation:
    quotation = db.session.get(Quotation, quotation_id)
    if quotation is None:
        raise NotFoundError(f"{LABEL} {quotation_id} not found")
    return quotation
