# backend/app/services/stock_document_service.py
"""
Stock adjustment, stock request and stock return workflows.

The three documents share one shape (header + product lines) and one
approval protocol; they differ only in movement type and in the sign of the
delta each line applies:

    ADJUSTMENT  +q if adjustment_type is POSITIVE else -q
    REQUEST     -q at the requesting branch
    RETURN      +q

None of them checks availability. A request or negative adjustment may
drive stock below zero; invoices and quotation conversions are the only
sufficiency-checked paths.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Callable

from flask import current_app

from app.extensions import db
from app.models import (
    Branch,
    StockAdjustment,
    StockAdjustmentDetail,
    StockRequest,
    StockRequestDetail,
    StockReturn,
    StockReturnDetail,
)
from app.models.documents import ADJUSTMENT_POSITIVE, ADJUSTMENT_TYPES
from app.models.inventory import MOVEMENT_ADJUSTMENT, MOVEMENT_REQUEST, MOVEMENT_RETURN
from app.services import lifecycle_service
from app.services.concurrency import lock_for_update, transaction
from app.services.document_service import next_ref, prefix_for
from app.services.inventory_service import apply_delta, ensure_sufficient, get_variant
from app.services.ledger_service import append_movement
from app.time_utils import utcnow
from app.validation import (
    NotFoundError,
    parse_choice,
    parse_date,
    parse_stock_lines,
)


@dataclass(frozen=True)
class StockDocumentKind:
    """Per-workflow configuration for the shared approval protocol."""
    document_type: str
    label: str
    header: type
    detail: type
    date_field: str
    movement_type: str
    sign: Callable[[object], int]
    requires_sufficiency: bool = False
    actor_field: str | None = None


ADJUSTMENT = StockDocumentKind(
    document_type="ADJUSTMENT",
    label="Stock adjustment",
    header=StockAdjustment,
    detail=StockAdjustmentDetail,
    date_field="adjust_date",
    movement_type=MOVEMENT_ADJUSTMENT,
    sign=lambda doc: 1 if doc.adjustment_type == ADJUSTMENT_POSITIVE else -1,
)

REQUEST = StockDocumentKind(
    document_type="REQUEST",
    label="Stock request",
    header=StockRequest,
    detail=StockRequestDetail,
    date_field="request_date",
    movement_type=MOVEMENT_REQUEST,
    sign=lambda doc: -1,
    actor_field="request_by",
)

STOCK_RETURN = StockDocumentKind(
    document_type="STOCK_RETURN",
    label="Stock return",
    header=StockReturn,
    detail=StockReturnDetail,
    date_field="return_date",
    movement_type=MOVEMENT_RETURN,
    sign=lambda doc: 1,
    actor_field="return_by",
)


# =============================================================================
# Shared helpers (also used by transfers and purchases)
# =============================================================================

def require_branch(session, branch_id: int) -> Branch:
    branch = session.get(Branch, branch_id)
    if branch is None:
        raise NotFoundError(f"Branch {branch_id} not found")
    return branch


def load_for_update(session, model, doc_id: int, label: str):
    doc = lock_for_update(session.query(model).filter_by(id=doc_id)).first()
    if doc is None:
        raise NotFoundError(f"{label} {doc_id} not found")
    return doc


def build_stock_lines(session, detail_model, lines) -> list:
    """Detail rows for a stock document; every variant must exist."""
    rows = []
    for line in lines:
        variant = get_variant(session, line.product_variant_id)
        rows.append(
            detail_model(
                product_id=line.product_id or variant.product_id,
                product_variant_id=variant.id,
                quantity=line.quantity,
            )
        )
    return rows


def book_line(
    session,
    *,
    variant_id: int,
    branch_id: int,
    delta: Decimal,
    movement_type: str,
    actor_id: int | None,
    at,
    unit_cost: Decimal | None = None,
    note: str | None = None,
):
    """
    Apply one signed delta to the ledger together with its movement row.

    Positive deltas open a FIFO lot (remaining_qty = delta).
    """
    apply_delta(session, variant_id, branch_id, delta, actor_id, at)
    return append_movement(
        session,
        variant_id=variant_id,
        branch_id=branch_id,
        movement_type=movement_type,
        quantity=delta,
        actor_id=actor_id,
        at=at,
        unit_cost=unit_cost,
        remaining_qty=delta if delta > 0 else None,
        note=note,
    )


# =============================================================================
# Generic protocol
# =============================================================================

def _approve_in_session(session, kind: StockDocumentKind, doc, actor_id: int | None) -> None:
    lifecycle_service.require_transition(doc, lifecycle_service.STATUS_APPROVED, kind.label)

    at = utcnow()
    sign = kind.sign(doc)
    for line in doc.details:
        delta = Decimal(line.quantity) * sign
        if kind.requires_sufficiency and delta < 0:
            ensure_sufficient(session, line.variant, doc.branch_id, -delta)
        book_line(
            session,
            variant_id=line.product_variant_id,
            branch_id=doc.branch_id,
            delta=delta,
            movement_type=kind.movement_type,
            actor_id=actor_id,
            at=at,
            note=doc.ref,
        )

    lifecycle_service.mark_approved(doc, actor_id, at)
    session.flush()
    current_app.logger.info("%s %s approved by user %s", kind.label, doc.ref, actor_id)


def create_document(
    kind: StockDocumentKind,
    *,
    branch_id: int,
    actor_id: int | None,
    details,
    document_date=None,
    note: str | None = None,
    approve: bool = False,
    **header_fields,
):
    """
    Create a PENDING document with a fresh per-branch ref.

    With approve=True the document is approved in the same transaction.
    """
    lines = parse_stock_lines(details, f"{kind.label} details")
    doc_date = parse_date(document_date, kind.date_field)

    with transaction() as session:
        require_branch(session, branch_id)
        ref = next_ref(session, prefix_for(kind.document_type), branch_id, kind.document_type)

        doc = kind.header(
            branch_id=branch_id,
            ref=ref,
            status=lifecycle_service.STATUS_PENDING,
            note=note,
            created_by=actor_id,
            **{kind.date_field: doc_date},
            **header_fields,
        )
        if kind.actor_field and getattr(doc, kind.actor_field) is None:
            setattr(doc, kind.actor_field, actor_id)
        doc.details = build_stock_lines(session, kind.detail, lines)
        session.add(doc)
        session.flush()

        if approve:
            _approve_in_session(session, kind, doc, actor_id)

    return doc


def update_document(
    kind: StockDocumentKind,
    doc_id: int,
    *,
    actor_id: int | None,
    details,
    document_date=None,
    note: str | None = None,
    approve: bool = False,
    **header_fields,
):
    """Replace header fields and all detail rows of a PENDING document."""
    lines = parse_stock_lines(details, f"{kind.label} details")
    doc_date = parse_date(document_date, kind.date_field) if document_date is not None else None

    with transaction() as session:
        doc = load_for_update(session, kind.header, doc_id, kind.label)
        lifecycle_service.require_editable(doc, kind.label)

        if doc_date is not None:
            setattr(doc, kind.date_field, doc_date)
        if note is not None:
            doc.note = note
        for field, value in header_fields.items():
            if value is not None:
                setattr(doc, field, value)

        # delete-then-recreate
        doc.details.clear()
        session.flush()
        doc.details = build_stock_lines(session, kind.detail, lines)
        doc.updated_by = actor_id
        doc.updated_at = utcnow()
        session.flush()

        if approve:
            _approve_in_session(session, kind, doc, actor_id)

    return doc


def approve_document(kind: StockDocumentKind, doc_id: int, *, actor_id: int | None):
    with transaction() as session:
        doc = load_for_update(session, kind.header, doc_id, kind.label)
        _approve_in_session(session, kind, doc, actor_id)
    return doc


def cancel_document(kind: StockDocumentKind, doc_id: int, *, actor_id: int | None, reason: str | None = None):
    """Soft delete. Only PENDING documents can be cancelled."""
    with transaction() as session:
        doc = load_for_update(session, kind.header, doc_id, kind.label)
        lifecycle_service.require_transition(doc, lifecycle_service.STATUS_CANCELLED, kind.label)
        lifecycle_service.mark_cancelled(doc, actor_id, reason)
    return doc


def get_document(kind: StockDocumentKind, doc_id: int):
    doc = db.session.get(kind.header, doc_id)
    if doc is None:
        raise NotFoundError(f"{kind.label} {doc_id} not found")
    return doc


# =============================================================================
# Stock adjustments
# =============================================================================

def create_adjustment(
    branch_id: int,
    actor_id: int | None,
    details,
    *,
    adjustment_type: str | None = None,
    adjust_date=None,
    note: str | None = None,
    approve: bool = False,
) -> StockAdjustment:
    adjustment_type = parse_choice(adjustment_type, "adjustment_type", ADJUSTMENT_TYPES, default=ADJUSTMENT_POSITIVE)
    return create_document(
        ADJUSTMENT,
        branch_id=branch_id,
        actor_id=actor_id,
        details=details,
        document_date=adjust_date,
        note=note,
        approve=approve,
        adjustment_type=adjustment_type,
    )


def update_adjustment(
    adjustment_id: int,
    actor_id: int | None,
    details,
    *,
    adjustment_type: str | None = None,
    adjust_date=None,
    note: str | None = None,
    approve: bool = False,
) -> StockAdjustment:
    if adjustment_type is not None:
        adjustment_type = parse_choice(adjustment_type, "adjustment_type", ADJUSTMENT_TYPES)
    return update_document(
        ADJUSTMENT,
        adjustment_id,
        actor_id=actor_id,
        details=details,
        document_date=adjust_date,
        note=note,
        approve=approve,
        adjustment_type=adjustment_type,
    )


def approve_adjustment(adjustment_id: int, actor_id: int | None) -> StockAdjustment:
    return approve_document(ADJUSTMENT, adjustment_id, actor_id=actor_id)


def cancel_adjustment(adjustment_id: int, actor_id: int | None, reason: str | None = None) -> StockAdjustment:
    return cancel_document(ADJUSTMENT, adjustment_id, actor_id=actor_id, reason=reason)


def get_adjustment(adjustment_id: int) -> StockAdjustment:
    return get_document(ADJUSTMENT, adjustment_id)


# =============================================================================
# Stock requests
# =============================================================================

def create_request(
    branch_id: int,
    actor_id: int | None,
    details,
    *,
    request_by: int | None = None,
    request_date=None,
    note: str | None = None,
    approve: bool = False,
) -> StockRequest:
    return create_document(
        REQUEST,
        branch_id=branch_id,
        actor_id=actor_id,
        details=details,
        document_date=request_date,
        note=note,
        approve=approve,
        request_by=request_by,
    )


def update_request(
    request_id: int,
    actor_id: int | None,
    details,
    *,
    request_by: int | None = None,
    request_date=None,
    note: str | None = None,
    approve: bool = False,
) -> StockRequest:
    return update_document(
        REQUEST,
        request_id,
        actor_id=actor_id,
        details=details,
        document_date=request_date,
        note=note,
        approve=approve,
        request_by=request_by,
    )


def approve_request(request_id: int, actor_id: int | None) -> StockRequest:
    return approve_document(REQUEST, request_id, actor_id=actor_id)


def cancel_request(request_id: int, actor_id: int | None, reason: str | None = None) -> StockRequest:
    return cancel_document(REQUEST, request_id, actor_id=actor_id, reason=reason)


def get_request(request_id: int) -> StockRequest:
    return get_document(REQUEST, request_id)


# =============================================================================
# Stock returns
# =============================================================================

def create_stock_return(
    branch_id: int,
    actor_id: int | None,
    details,
    *,
    return_by: int | None = None,
    return_date=None,
    note: str | None = None,
    approve: bool = False,
) -> StockReturn:
    return create_document(
        STOCK_RETURN,
        branch_id=branch_id,
        actor_id=actor_id,
        details=details,
        document_date=return_date,
        note=note,
        approve=approve,
        return_by=return_by,
    )


def update_stock_return(
    return_id: int,
    actor_id: int | None,
    details,
    *,
    return_by: int | None = None,
    return_date=None,
    note: str | None = None,
    approve: bool = False,
) -> StockReturn:
    return update_document(
        STOCK_RETURN,
        return_id,
        actor_id=actor_id,
        details=details,
        document_date=return_date,
        note=note,
        approve=approve,
        return_by=return_by,
    )


def approve_stock_return(return_id: int, actor_id: int | None) -> StockReturn:
    return approve_document(STOCK_RETURN, return_id, actor_id=actor_id)


def cancel_stock_return(return_id: int, actor_id: int | None, reason: str | None = None) -> StockReturn:
    return cancel_document(STOCK_RETURN, return_id, actor_id=actor_id, reason=reason)


def get_stock_return(return_id: int) -> StockReturn:
    return get_document(STOCK_RETURN, return_id)
