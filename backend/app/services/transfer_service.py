# backend/app/services/transfer_service.py
"""
Inter-branch transfer service.

WHY: Move stock between branches with one approval. Approval writes two
TRANSFER movements per line inside one transaction: -q at the source branch
and +q at the destination branch.

LIFECYCLE:
1. PENDING: Transfer created, details editable
2. APPROVED: Stock moved (terminal)
3. CANCELLED: Soft-deleted before approval (terminal)

Availability at the source branch is NOT checked; a transfer may drive the
source below zero, same as a stock request.
"""
from __future__ import annotations

from decimal import Decimal

from flask import current_app

from app.extensions import db
from app.models import StockTransfer, StockTransferDetail
from app.models.inventory import MOVEMENT_TRANSFER
from app.services import lifecycle_service
from app.services.concurrency import transaction
from app.services.document_service import next_ref, prefix_for
from app.services.stock_document_service import (
    book_line,
    build_stock_lines,
    load_for_update,
    require_branch,
)
from app.time_utils import utcnow
from app.validation import NotFoundError, ValidationError, parse_date, parse_int, parse_stock_lines


LABEL = "Stock transfer"
DOCUMENT_TYPE = "TRANSFER"


def _require_distinct(branch_id: int, to_branch_id: int) -> None:
    if branch_id == to_branch_id:
        raise ValidationError("Cannot transfer to the same branch")


def _approve_in_session(session, transfer: StockTransfer, actor_id: int | None) -> None:
    lifecycle_service.require_transition(transfer, lifecycle_service.STATUS_APPROVED, LABEL)

    at = utcnow()
    for line in transfer.details:
        quantity = Decimal(line.quantity)
        book_line(
            session,
            variant_id=line.product_variant_id,
            branch_id=transfer.branch_id,
            delta=-quantity,
            movement_type=MOVEMENT_TRANSFER,
            actor_id=actor_id,
            at=at,
            note=f"{transfer.ref} to branch {transfer.to_branch_id}",
        )
        book_line(
            session,
            variant_id=line.product_variant_id,
            branch_id=transfer.to_branch_id,
            delta=quantity,
            movement_type=MOVEMENT_TRANSFER,
            actor_id=actor_id,
            at=at,
            note=f"{transfer.ref} from branch {transfer.branch_id}",
        )

    lifecycle_service.mark_approved(transfer, actor_id, at)
    session.flush()
    current_app.logger.info(
        "%s %s approved by user %s (%s -> %s)",
        LABEL, transfer.ref, actor_id, transfer.branch_id, transfer.to_branch_id,
    )


def create_transfer(
    branch_id: int,
    to_branch_id,
    actor_id: int | None,
    details,
    *,
    transfer_date=None,
    note: str | None = None,
    approve: bool = False,
) -> StockTransfer:
    """
    Create a PENDING transfer (ref sequenced on the source branch).

    Raises:
        ValidationError: empty details or same source and destination
        NotFoundError: unknown branch or variant
    """
    to_branch_id = parse_int(to_branch_id, "to_branch_id")
    _require_distinct(branch_id, to_branch_id)
    lines = parse_stock_lines(details, f"{LABEL} details")
    doc_date = parse_date(transfer_date, "transfer_date")

    with transaction() as session:
        require_branch(session, branch_id)
        require_branch(session, to_branch_id)
        ref = next_ref(session, prefix_for(DOCUMENT_TYPE), branch_id, DOCUMENT_TYPE)

        transfer = StockTransfer(
            branch_id=branch_id,
            to_branch_id=to_branch_id,
            ref=ref,
            status=lifecycle_service.STATUS_PENDING,
            transfer_date=doc_date,
            note=note,
            created_by=actor_id,
        )
        transfer.details = build_stock_lines(session, StockTransferDetail, lines)
        session.add(transfer)
        session.flush()

        if approve:
            _approve_in_session(session, transfer, actor_id)

    return transfer


def update_transfer(
    transfer_id: int,
    actor_id: int | None,
    details,
    *,
    to_branch_id=None,
    transfer_date=None,
    note: str | None = None,
    approve: bool = False,
) -> StockTransfer:
    lines = parse_stock_lines(details, f"{LABEL} details")
    if to_branch_id is not None:
        to_branch_id = parse_int(to_branch_id, "to_branch_id")

    with transaction() as session:
        transfer = load_for_update(session, StockTransfer, transfer_id, LABEL)
        lifecycle_service.require_editable(transfer, LABEL)

        if to_branch_id is not None:
            _require_distinct(transfer.branch_id, to_branch_id)
            require_branch(session, to_branch_id)
            transfer.to_branch_id = to_branch_id
        if transfer_date is not None:
            transfer.transfer_date = parse_date(transfer_date, "transfer_date")
        if note is not None:
            transfer.note = note

        transfer.details.clear()
        session.flush()
        transfer.details = build_stock_lines(session, StockTransferDetail, lines)
        transfer.updated_by = actor_id
        transfer.updated_at = utcnow()
        session.flush()

        if approve:
            _approve_in_session(session, transfer, actor_id)

    return transfer


def approve_transfer(transfer_id: int, actor_id: int | None) -> StockTransfer:
    with transaction() as session:
        transfer = load_for_update(session, StockTransfer, transfer_id, LABEL)
        _approve_in_session(session, transfer, actor_id)
    return transfer


def cancel_transfer(transfer_id: int, actor_id: int | None, reason: str | None = None) -> StockTransfer:
    with transaction() as session:
        transfer = load_for_update(session, StockTransfer, transfer_id, LABEL)
        lifecycle_service.require_transition(transfer, lifecycle_service.STATUS_CANCELLED, LABEL)
        lifecycle_service.mark_cancelled(transfer, actor_id, reason)
    return transfer


def get_transfer(transfer_id: int) -> StockTransfer:
    transfer = db.session.get(StockTransfer, transfer_id)
    if transfer is None:
        raise NotFoundError(f"{LABEL} {transfer_id} not found")
    return transfer
