# backend/app/services/purchase_service.py
"""
Supplier purchases.

A purchase is entered as PENDING and booked into stock by receiving it.
Receiving writes one PURCHASE movement per line carrying the line's unit
cost; those movements are the FIFO lots later consumed by invoices.

Refs:
- The client may supply its own ref (supplier invoice number). A duplicate
  for the same branch is rejected with "Purchase # already exists!".
- Otherwise a "PR-00001" style ref is generated.
"""
from __future__ import annotations

from decimal import Decimal

from flask import current_app

from app.extensions import db
from app.models import Purchase, PurchaseDetail
from app.models.inventory import MOVEMENT_PURCHASE
from app.services import lifecycle_service
from app.services.concurrency import transaction
from app.services.document_service import next_ref, prefix_for, ref_exists
from app.services.inventory_service import get_variant
from app.services.stock_document_service import book_line, load_for_update, require_branch
from app.time_utils import utcnow
from app.validation import (
    ConflictError,
    NotFoundError,
    parse_date,
    parse_decimal,
    parse_priced_lines,
)


LABEL = "Purchase"
DOCUMENT_TYPE = "PURCHASE"
ZERO = Decimal("0")


def _build_details(session, lines) -> list[PurchaseDetail]:
    rows = []
    for line in lines:
        variant = get_variant(session, line.product_variant_id)
        rows.append(
            PurchaseDetail(
                product_id=line.product_id or variant.product_id,
                product_variant_id=variant.id,
                quantity=line.quantity,
                cost=line.price,
                discount=line.discount,
                discount_method=line.discount_method,
                tax_net=line.tax_net,
                tax_method=line.tax_method,
                total=line.total,
            )
        )
    return rows


def _amounts(payload: dict) -> dict:
    return {
        "tax_rate": parse_decimal(payload.get("tax_rate"), "tax_rate", required=False, default=ZERO),
        "tax_net": parse_decimal(payload.get("tax_net"), "tax_net", required=False, default=ZERO),
        "discount": parse_decimal(payload.get("discount"), "discount", required=False, default=ZERO),
        "shipping": parse_decimal(payload.get("shipping"), "shipping", required=False, default=ZERO),
        "grand_total": parse_decimal(payload.get("grand_total"), "grand_total", required=False),
    }


def _grand_total(details, amounts: dict) -> Decimal:
    if amounts["grand_total"] is not None:
        return amounts["grand_total"]
    subtotal = sum((Decimal(d.total) for d in details), ZERO)
    return subtotal - amounts["discount"] + amounts["tax_net"] + amounts["shipping"]


def _allocate_ref(session, branch_id: int) -> str:
    """Generated ref that does not collide with a client-supplied one."""
    while True:
        ref = next_ref(session, prefix_for(DOCUMENT_TYPE), branch_id, DOCUMENT_TYPE)
        if not ref_exists(session, branch_id, DOCUMENT_TYPE, ref):
            return ref


def _receive_in_session(session, purchase: Purchase, actor_id: int | None) -> None:
    lifecycle_service.require_transition(purchase, lifecycle_service.STATUS_APPROVED, LABEL)

    at = utcnow()
    for line in purchase.details:
        book_line(
            session,
            variant_id=line.product_variant_id,
            branch_id=purchase.branch_id,
            delta=Decimal(line.quantity),
            movement_type=MOVEMENT_PURCHASE,
            actor_id=actor_id,
            at=at,
            unit_cost=line.cost,
            note=purchase.ref,
        )

    lifecycle_service.mark_approved(purchase, actor_id, at)
    purchase.received_by = actor_id
    purchase.received_at = at
    session.flush()
    current_app.logger.info("%s %s received by user %s", LABEL, purchase.ref, actor_id)


def create_purchase(branch_id: int, actor_id: int | None, payload: dict, *, approve: bool = False) -> Purchase:
    """
    Create a PENDING purchase. With approve=True it is received in the same
    transaction.

    Raises:
        ValidationError: empty details / malformed amounts
        ConflictError: client ref already used on this branch
    """
    lines = parse_priced_lines(payload.get("details"), "Purchase details", price_key="cost")
    amounts = _amounts(payload)
    purchase_date = parse_date(payload.get("purchase_date"), "purchase_date")
    client_ref = (payload.get("ref") or "").strip() or None

    with transaction() as session:
        require_branch(session, branch_id)
        if client_ref is not None:
            if ref_exists(session, branch_id, DOCUMENT_TYPE, client_ref):
                raise ConflictError("Purchase # already exists!")
            ref = client_ref
        else:
            ref = _allocate_ref(session, branch_id)

        purchase = Purchase(
            branch_id=branch_id,
            supplier_id=payload.get("supplier_id"),
            ref=ref,
            status=lifecycle_service.STATUS_PENDING,
            purchase_date=purchase_date,
            tax_rate=amounts["tax_rate"],
            tax_net=amounts["tax_net"],
            discount=amounts["discount"],
            shipping=amounts["shipping"],
            note=payload.get("note"),
            created_by=actor_id,
        )
        purchase.details = _build_details(session, lines)
        purchase.grand_total = _grand_total(purchase.details, amounts)
        session.add(purchase)
        session.flush()

        if approve:
            _receive_in_session(session, purchase, actor_id)

    return purchase


def update_purchase(purchase_id: int, actor_id: int | None, payload: dict, *, approve: bool = False) -> Purchase:
    lines = parse_priced_lines(payload.get("details"), "Purchase details", price_key="cost")
    amounts = _amounts(payload)

    with transaction() as session:
        purchase = load_for_update(session, Purchase, purchase_id, LABEL)
        lifecycle_service.require_editable(purchase, LABEL)

        new_ref = (payload.get("ref") or "").strip() or None
        if new_ref is not None and new_ref != purchase.ref:
            if ref_exists(session, purchase.branch_id, DOCUMENT_TYPE, new_ref):
                raise ConflictError("Purchase # already exists!")
            purchase.ref = new_ref

        if payload.get("purchase_date") is not None:
            purchase.purchase_date = parse_date(payload["purchase_date"], "purchase_date")
        if "supplier_id" in payload:
            purchase.supplier_id = payload["supplier_id"]
        if payload.get("note") is not None:
            purchase.note = payload["note"]
        purchase.tax_rate = amounts["tax_rate"]
        purchase.tax_net = amounts["tax_net"]
        purchase.discount = amounts["discount"]
        purchase.shipping = amounts["shipping"]

        purchase.details.clear()
        session.flush()
        purchase.details = _build_details(session, lines)
        purchase.grand_total = _grand_total(purchase.details, amounts)
        purchase.updated_by = actor_id
        purchase.updated_at = utcnow()
        session.flush()

        if approve:
            _receive_in_session(session, purchase, actor_id)

    return purchase


def receive_purchase(purchase_id: int, actor_id: int | None) -> Purchase:
    with transaction() as session:
        purchase = load_for_update(session, Purchase, purchase_id, LABEL)
        _receive_in_session(session, purchase, actor_id)
    return purchase


def cancel_purchase(purchase_id: int, actor_id: int | None, reason: str | None = None) -> Purchase:
    with transaction() as session:
        purchase = load_for_update(session, Purchase, purchase_id, LABEL)
        lifecycle_service.require_transition(purchase, lifecycle_service.STATUS_CANCELLED, LABEL)
        lifecycle_service.mark_cancelled(purchase, actor_id, reason)
    return purchase


def get_purchase(purchase_id: int) -> Purchase:
    purchase = db.session.get(Purchase, purchase_id)
    if purchase is None:
        raise NotFoundError(f"{LABEL} {purchase_id} not found")
    return purchase
