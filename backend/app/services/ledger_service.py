# Overview: Service-layer operations for the stock movement log; append and ordered reads.

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from ..models import StockMovement
from ..models.inventory import (
    MOVEMENT_TYPES,
    MOVEMENT_STATUS_APPROVED,
    SOLD_MOVEMENT_TYPES,
    LOT_MOVEMENT_TYPES,
)
from app.time_utils import utcnow
"""
Stock Movement Log Invariants (authoritative)

- One row per quantity change, written in the same DB transaction as the
  Stock delta it explains. SUM(quantity) per (variant, branch) == Stock.quantity.
- Rows are never deleted. The only post-insert write is remaining_qty, which
  tracks the unconsumed part of a lot (inbound) or the unrestored part of a
  sale (ORDER / QUOTE_TO_INVOICE).
- "Oldest first" always means ORDER BY created_at, id.
"""


def append_movement(
    session,
    *,
    variant_id: int,
    branch_id: int,
    movement_type: str,
    quantity: Decimal,
    actor_id: int | None,
    at: Optional[datetime] = None,
    unit_cost: Decimal | None = None,
    source_movement_id: int | None = None,
    remaining_qty: Decimal | None = None,
    order_item_id: int | None = None,
    sale_return_item_id: int | None = None,
    status: str = MOVEMENT_STATUS_APPROVED,
    note: str | None = None,
) -> StockMovement:
    """
    Pure insert of one signed movement.

    APPROVED movements are stamped approved_by / approved_at with the same
    actor and time as creation.
    """
    if movement_type not in MOVEMENT_TYPES:
        raise ValueError(f"Unknown movement type: {movement_type}")

    at = at or utcnow()
    movement = StockMovement(
        product_variant_id=variant_id,
        branch_id=branch_id,
        type=movement_type,
        status=status,
        quantity=quantity,
        unit_cost=unit_cost,
        source_movement_id=source_movement_id,
        remaining_qty=remaining_qty,
        order_item_id=order_item_id,
        sale_return_item_id=sale_return_item_id,
        note=note,
        created_by=actor_id,
        created_at=at,
    )
    if status == MOVEMENT_STATUS_APPROVED:
        movement.approved_by = actor_id
        movement.approved_at = at

    session.add(movement)
    session.flush()
    return movement


def sold_movements_for_item(session, order_item_id: int, variant_id: int, branch_id: int) -> list[StockMovement]:
    """Sold-type movements of one order item, oldest first. Source of truth for FIFO restore."""
    return (
        session.query(StockMovement)
        .filter(
            StockMovement.order_item_id == order_item_id,
            StockMovement.product_variant_id == variant_id,
            StockMovement.branch_id == branch_id,
            StockMovement.type.in_(SOLD_MOVEMENT_TYPES),
        )
        .order_by(StockMovement.created_at.asc(), StockMovement.id.asc())
        .with_for_update()
        .all()
    )


def open_lots(session, variant_id: int, branch_id: int) -> list[StockMovement]:
    """Inbound movements with unsold quantity left, oldest first."""
    return (
        session.query(StockMovement)
        .filter(
            StockMovement.product_variant_id == variant_id,
            StockMovement.branch_id == branch_id,
            StockMovement.type.in_(LOT_MOVEMENT_TYPES),
            StockMovement.quantity > 0,
            StockMovement.remaining_qty > 0,
        )
        .order_by(StockMovement.created_at.asc(), StockMovement.id.asc())
        .with_for_update()
        .all()
    )


def movements_query(
    session,
    *,
    branch_id: int | None = None,
    variant_id: int | None = None,
    movement_type: str | None = None,
):
    """Filtered movement history; the HTTP layer paginates it."""
    query = session.query(StockMovement)
    if branch_id is not None:
        query = query.filter(StockMovement.branch_id == branch_id)
    if variant_id is not None:
        query = query.filter(StockMovement.product_variant_id == variant_id)
    if movement_type is not None:
        query = query.filter(StockMovement.type == movement_type)
    return query


def list_movements(
    session,
    *,
    branch_id: int | None = None,
    variant_id: int | None = None,
    movement_type: str | None = None,
) -> list[StockMovement]:
    return (
        movements_query(session, branch_id=branch_id, variant_id=variant_id, movement_type=movement_type)
        .order_by(StockMovement.created_at.asc(), StockMovement.id.asc())
        .all()
    )
