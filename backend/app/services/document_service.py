# Overview: Service-layer operations for document refs; per-branch atomic sequences.

from __future__ import annotations

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..models import (
    DocumentSequence,
    StockAdjustment,
    StockRequest,
    StockReturn,
    StockTransfer,
    Purchase,
    Order,
    Quotation,
    SaleReturn,
)
from ..validation import ValidationError


# document_type -> (header model, ref prefix)
DOCUMENT_TYPES = {
    "ADJUSTMENT": (StockAdjustment, "SAJM"),
    "REQUEST": (StockRequest, "SRQ"),
    "STOCK_RETURN": (StockReturn, "SRT"),
    "TRANSFER": (StockTransfer, "STF"),
    "PURCHASE": (Purchase, "PR"),
    "INVOICE": (Order, "INV"),
    "QUOTATION": (Quotation, "QR"),
    "SALE_RETURN": (SaleReturn, "SR"),
}

DEFAULT_REF_PAD = 5


def prefix_for(document_type: str) -> str:
    return DOCUMENT_TYPES[document_type][1]


def parse_ref_number(ref: str | None) -> int:
    """Numeric suffix after the last '-', or 0 when there is none."""
    if not ref or "-" not in ref:
        return 0
    try:
        return int(ref.rsplit("-", 1)[1])
    except ValueError:
        return 0


def _latest_number(session, branch_id: int, document_type: str) -> int:
    """
    Number of the newest existing document of this type for the branch
    (by id desc). Seeds a fresh sequence so refs written before the
    sequence existed are continued, not repeated.
    """
    model = DOCUMENT_TYPES[document_type][0]
    latest_ref = (
        session.query(model.ref)
        .filter(model.branch_id == branch_id)
        .order_by(model.id.desc())
        .limit(1)
        .scalar()
    )
    return parse_ref_number(latest_ref)


def _increment(session, branch_id: int, document_type: str) -> int | None:
    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.branch_id == branch_id,
            DocumentSequence.document_type == document_type,
        )
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )
    result = session.execute(stmt)
    if not result.rowcount:
        return None
    current = (
        session.query(DocumentSequence.next_number)
        .filter_by(branch_id=branch_id, document_type=document_type)
        .scalar()
    )
    return current - 1


def next_document_number(session, *, branch_id: int, document_type: str) -> int:
    """
    Atomically allocate the next number for a (branch, document type).

    The UPDATE ... SET next_number = next_number + 1 takes the row lock, so two
    concurrent creators can never be handed the same number. The very first
    allocation inserts the row inside a savepoint; losing that insert race
    falls back to the increment path.
    """
    if not branch_id:
        raise ValidationError("branch_id is required")
    if document_type not in DOCUMENT_TYPES:
        raise ValidationError(f"Unknown document type: {document_type}")

    number = _increment(session, branch_id, document_type)
    if number is not None:
        return number

    number = _latest_number(session, branch_id, document_type) + 1
    try:
        with session.begin_nested():
            session.add(
                DocumentSequence(
                    branch_id=branch_id,
                    document_type=document_type,
                    next_number=number + 1,
                )
            )
    except IntegrityError:
        number = _increment(session, branch_id, document_type)
        if number is None:
            raise
    return number


def format_ref(prefix: str, number: int, pad: int | None = None) -> str:
    if pad is None:
        pad = current_app.config.get("REF_PAD", DEFAULT_REF_PAD)
    return f"{prefix}-{number:0{pad}d}"


def next_ref(session, prefix: str, branch_id: int, document_type: str) -> str:
    """
    Next human-readable ref for a branch, e.g. "SAJM-00007".

    Sequences are independent per branch and per document type.
    """
    number = next_document_number(session, branch_id=branch_id, document_type=document_type)
    return format_ref(prefix, number)


def ref_exists(session, branch_id: int, document_type: str, ref: str) -> bool:
    model = DOCUMENT_TYPES[document_type][0]
    return (
        session.query(model.id)
        .filter(model.branch_id == branch_id, model.ref == ref)
        .first()
        is not None
    )
