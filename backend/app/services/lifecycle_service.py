# Overview: Service-layer operations for lifecycle; one status machine for every document type.

"""
Document Lifecycle

================================================================================
PURPOSE: One explicit transition table shared by adjustments, requests, stock
returns, transfers, purchases, invoices and quotations.
================================================================================

STATE MACHINE:
    PENDING -> APPROVED
    PENDING -> CANCELLED

    PENDING:   Data entry, details may be replaced, does NOT affect stock
    APPROVED:  Stock has been moved. Terminal and immutable.
    CANCELLED: Soft-deleted with a reason. Terminal.

RULES:
1. A document is approved at most once. A second approval is a ConflictError
   and must be raised before any stock is touched.
2. Only PENDING documents can be edited or cancelled.
================================================================================
"""

from __future__ import annotations
from datetime import datetime
from typing import Literal

from app.time_utils import utcnow
from ..validation import ConflictError


STATUS_PENDING = "PENDING"
STATUS_APPROVED = "APPROVED"
STATUS_CANCELLED = "CANCELLED"

VALID_STATUSES = {STATUS_PENDING, STATUS_APPROVED, STATUS_CANCELLED}
DocumentStatus = Literal["PENDING", "APPROVED", "CANCELLED"]

TRANSITIONS = {
    (STATUS_PENDING, STATUS_APPROVED),
    (STATUS_PENDING, STATUS_CANCELLED),
}

TERMINAL_STATUSES = {STATUS_APPROVED, STATUS_CANCELLED}


class LifecycleError(ConflictError):
    """Raised when an invalid lifecycle transition is attempted."""
    pass


def validate_status(status: str) -> None:
    if status not in VALID_STATUSES:
        raise LifecycleError(
            f"Invalid status '{status}'. Must be one of: {', '.join(sorted(VALID_STATUSES))}"
        )


def can_transition(from_status: str, to_status: str) -> bool:
    validate_status(from_status)
    validate_status(to_status)
    return (from_status, to_status) in TRANSITIONS


def require_transition(doc, to_status: str, label: str) -> None:
    """
    Raise a ConflictError naming the document when `doc` cannot move to
    `to_status`.

    Messages: "<label> <ref> is already approved", "<label> <ref> is cancelled".
    """
    if can_transition(doc.status, to_status):
        return
    name = f"{label} {doc.ref}" if getattr(doc, "ref", None) else label
    if doc.status == STATUS_APPROVED:
        raise LifecycleError(f"{name} is already approved")
    if doc.status == STATUS_CANCELLED:
        raise LifecycleError(f"{name} is cancelled")
    raise LifecycleError(f"Cannot move {name} from {doc.status} to {to_status}")


def can_edit(doc) -> bool:
    return doc.status == STATUS_PENDING


def require_editable(doc, label: str) -> None:
    if not can_edit(doc):
        name = f"{label} {doc.ref}" if getattr(doc, "ref", None) else label
        raise LifecycleError(f"{name} cannot be edited once {doc.status.lower()}")


def mark_approved(doc, actor_id: int | None, at: datetime | None = None) -> None:
    doc.status = STATUS_APPROVED
    doc.approved_by = actor_id
    doc.approved_at = at or utcnow()


def mark_cancelled(doc, actor_id: int | None, reason: str | None, at: datetime | None = None) -> None:
    doc.status = STATUS_CANCELLED
    doc.deleted_by = actor_id
    doc.deleted_at = at or utcnow()
    doc.del_reason = reason
