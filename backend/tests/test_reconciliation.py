"""Stock vs movement-log reconciliation tests."""

from decimal import Decimal

from app.models import Stock, StockMovement
from app.services.reconciliation_service import find_discrepancies
from helpers import stock_up


def test_clean_ledger_has_no_discrepancies(db_session, branch, branch_two, user, variant):
    stock_up(variant, branch, 4, user)
    stock_up(variant, branch_two, 6, user)

    assert find_discrepancies() == []


def test_drifted_stock_row_is_reported(db_session, branch, user, variant):
    stock_up(variant, branch, 4, user)
    row = db_session.query(Stock).filter_by(product_variant_id=variant.id, branch_id=branch.id).one()
    row.quantity = Decimal("7")
    db_session.commit()

    found = find_discrepancies()

    assert len(found) == 1
    assert found[0].product_variant_id == variant.id
    assert found[0].stock_quantity == Decimal("7")
    assert found[0].movement_sum == Decimal("4")
    assert found[0].difference == Decimal("3")
    assert found[0].to_dict()["difference"] == "3"


def test_movement_without_stock_row_is_reported(db_session, branch, branch_two, user, variant):
    stock_up(variant, branch, 4, user)
    db_session.add(StockMovement(
        product_variant_id=variant.id, branch_id=branch_two.id, type="ADJUSTMENT", quantity=Decimal("2"),
    ))
    db_session.commit()

    found = find_discrepancies()
    assert [(d.branch_id, d.stock_quantity, d.movement_sum) for d in found] == [
        (branch_two.id, Decimal("0"), Decimal("2"))
    ]
    assert find_discrepancies(branch.id) == []
