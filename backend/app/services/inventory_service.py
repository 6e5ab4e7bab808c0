# Overview: Service-layer operations for inventory; the per-(variant, branch) stock ledger.

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from ..extensions import db
from ..models import Stock, ProductVariant
from ..models.base import dec
from .concurrency import lock_for_update
from .ledger_service import append_movement, open_lots
from ..validation import ConflictError, NotFoundError
"""
Stock Ledger Invariants (authoritative)

Inventory model:
- Stock.quantity is the authoritative running balance per (variant, branch).
- A Stock row is created on the first delta into a pair and never deleted.
- apply_delta never validates non-negativity. Workflows that must not go
  negative (invoice approval, quotation conversion) call ensure_sufficient
  first, inside the same transaction and with the row locked.

Audit:
- Every apply_delta is paired by its caller with exactly one StockMovement of
  the same signed quantity.

FIFO cost:
- Selling workflows consume inbound lots oldest-first through consume_lots;
  each consumed slice becomes its own sold movement carrying the lot's
  unit_cost and source_movement_id.
"""


ZERO = Decimal("0")


def _stock_row(session, variant_id: int, branch_id: int) -> Stock | None:
    return lock_for_update(
        session.query(Stock).filter_by(product_variant_id=variant_id, branch_id=branch_id)
    ).first()


def get_quantity(session, variant_id: int, branch_id: int) -> Decimal:
    """Current quantity; 0 when the pair has never been stocked."""
    row = _stock_row(session, variant_id, branch_id)
    if row is None:
        return ZERO
    return Decimal(row.quantity)


def apply_delta(
    session,
    variant_id: int,
    branch_id: int,
    delta: Decimal,
    actor_id: int | None,
    at: datetime,
) -> Stock:
    """
    Create-or-increment the Stock row for (variant, branch) by a signed delta.

    Must run inside the caller's transaction.
    """
    row = _stock_row(session, variant_id, branch_id)
    if row is None:
        row = Stock(
            product_variant_id=variant_id,
            branch_id=branch_id,
            quantity=delta,
            created_by=actor_id,
            created_at=at,
        )
        session.add(row)
    else:
        row.quantity = Decimal(row.quantity) + delta
        row.updated_by = actor_id
        row.updated_at = at
    session.flush()
    return row


def get_variant(session, variant_id: int) -> ProductVariant:
    variant = session.get(ProductVariant, variant_id)
    if variant is None:
        raise NotFoundError(f"Product variant {variant_id} not found")
    return variant


def ensure_sufficient(session, variant: ProductVariant, branch_id: int, quantity: Decimal) -> Decimal:
    """
    Read-then-check under the row lock. Returns the quantity on hand.

    Raises:
        ConflictError: "Insufficient stock for barcode: X"
    """
    on_hand = get_quantity(session, variant.id, branch_id)
    if on_hand < quantity:
        raise ConflictError(f"Insufficient stock for barcode: {variant.barcode or variant.id}")
    return on_hand


def consume_lots(
    session,
    *,
    variant_id: int,
    branch_id: int,
    quantity: Decimal,
    movement_type: str,
    actor_id: int | None,
    at: datetime,
    order_item_id: int | None = None,
    note: str | None = None,
) -> list:
    """
    Cut `quantity` out of the oldest open lots and write one sold movement
    per consumed slice (negative quantity, remaining_qty = slice size so a
    later sale return can restore it).

    Raises:
        ConflictError: when the open lots cannot cover the quantity.
    """
    to_consume = quantity
    sold = []
    for lot in open_lots(session, variant_id, branch_id):
        if to_consume <= 0:
            break
        take = min(Decimal(lot.remaining_qty), to_consume)
        lot.remaining_qty = Decimal(lot.remaining_qty) - take
        sold.append(
            append_movement(
                session,
                variant_id=variant_id,
                branch_id=branch_id,
                movement_type=movement_type,
                quantity=-take,
                actor_id=actor_id,
                at=at,
                unit_cost=lot.unit_cost,
                source_movement_id=lot.id,
                remaining_qty=take,
                order_item_id=order_item_id,
                note=note,
            )
        )
        to_consume -= take

    if to_consume > 0:
        raise ConflictError(f"Not enough FIFO stock for product variant {variant_id}")
    return sold


def sell(
    session,
    *,
    variant: ProductVariant,
    branch_id: int,
    quantity: Decimal,
    movement_type: str,
    actor_id: int | None,
    at: datetime,
    order_item_id: int | None = None,
    note: str | None = None,
) -> list:
    """
    Sufficiency-checked stock cut for one sold line.

    check -> consume lots -> one ledger delta per sold movement, all under
    the same row lock and transaction.
    """
    ensure_sufficient(session, variant, branch_id, quantity)
    sold = consume_lots(
        session,
        variant_id=variant.id,
        branch_id=branch_id,
        quantity=quantity,
        movement_type=movement_type,
        actor_id=actor_id,
        at=at,
        order_item_id=order_item_id,
        note=note,
    )
    for movement in sold:
        apply_delta(session, variant.id, branch_id, Decimal(movement.quantity), actor_id, at)
    return sold


def get_stock_summary(branch_id: int | None = None, variant_id: int | None = None) -> dict:
    """Stock levels for the read API, with the total across listed branches."""
    query = db.session.query(Stock)
    if branch_id is not None:
        query = query.filter(Stock.branch_id == branch_id)
    if variant_id is not None:
        query = query.filter(Stock.product_variant_id == variant_id)

    rows = query.order_by(Stock.branch_id.asc(), Stock.product_variant_id.asc()).all()
    total = sum((Decimal(r.quantity) for r in rows), ZERO)
    return {
        "items": [r.to_dict() for r in rows],
        "total_quantity": dec(total),
    }
