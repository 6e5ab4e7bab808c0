# Overview: Service-layer report comparing stock levels with their movement sums.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import func

from ..extensions import db
from ..models import Stock, StockMovement
from ..models.base import dec


@dataclass(frozen=True)
class Discrepancy:
    product_variant_id: int
    branch_id: int
    stock_quantity: Decimal
    movement_sum: Decimal

    @property
    def difference(self) -> Decimal:
        return self.stock_quantity - self.movement_sum

    def to_dict(self) -> dict:
        return {
            "product_variant_id": self.product_variant_id,
            "branch_id": self.branch_id,
            "stock_quantity": dec(self.stock_quantity),
            "movement_sum": dec(self.movement_sum),
            "difference": dec(self.difference),
        }


def find_discrepancies(branch_id: int | None = None) -> list[Discrepancy]:
    """
    Every (variant, branch) where Stock.quantity != SUM(StockMovement.quantity).

    Pairs that only exist on one side count as 0 on the other.
    """
    stock_q = db.session.query(Stock.product_variant_id, Stock.branch_id, Stock.quantity)
    movement_q = db.session.query(
        StockMovement.product_variant_id,
        StockMovement.branch_id,
        func.sum(StockMovement.quantity),
    ).group_by(StockMovement.product_variant_id, StockMovement.branch_id)
    if branch_id is not None:
        stock_q = stock_q.filter(Stock.branch_id == branch_id)
        movement_q = movement_q.filter(StockMovement.branch_id == branch_id)

    stocks = {(v, b): Decimal(q or 0) for v, b, q in stock_q.all()}
    sums = {(v, b): Decimal(s or 0) for v, b, s in movement_q.all()}

    found = []
    for key in sorted(set(stocks) | set(sums), key=lambda k: (k[1], k[0])):
        stock_quantity = stocks.get(key, Decimal("0"))
        movement_sum = sums.get(key, Decimal("0"))
        if stock_quantity != movement_sum:
            found.append(
                Discrepancy(
                    product_variant_id=key[0],
                    branch_id=key[1],
                    stock_quantity=stock_quantity,
                    movement_sum=movement_sum,
                )
            )
    return found
