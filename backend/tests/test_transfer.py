"""Inter-branch transfer tests."""

from decimal import Decimal

import pytest

from app.services import transfer_service
from app.services.reconciliation_service import find_discrepancies
from app.validation import ConflictError, NotFoundError, ValidationError
from helpers import line, movements_of, quantity_of, stock_up


class TestTransfers:

    def test_approval_moves_stock_between_branches(self, db_session, branch, branch_two, user, variant):
        stock_up(variant, branch, 10, user)

        transfer = transfer_service.create_transfer(
            branch.id, branch_two.id, user.id, [line(variant, 4)], approve=True
        )

        assert transfer.ref == "STF-00001"
        assert transfer.status == "APPROVED"
        assert quantity_of(variant, branch) == Decimal("6")
        assert quantity_of(variant, branch_two) == Decimal("4")

        out = movements_of(variant, branch, "TRANSFER")
        into = movements_of(variant, branch_two, "TRANSFER")
        assert [m.quantity for m in out] == [Decimal("-4")]
        assert [m.quantity for m in into] == [Decimal("4")]
        # the destination side opens a FIFO lot
        assert into[0].remaining_qty == Decimal("4")
        assert find_discrepancies() == []

    def test_same_branch_rejected(self, db_session, branch, user, variant):
        with pytest.raises(ValidationError, match="Cannot transfer to the same branch"):
            transfer_service.create_transfer(branch.id, branch.id, user.id, [line(variant, 1)])

    def test_unknown_destination(self, db_session, branch, user, variant):
        with pytest.raises(NotFoundError):
            transfer_service.create_transfer(branch.id, branch.id + 999, user.id, [line(variant, 1)])

    def test_source_may_go_negative(self, db_session, branch, branch_two, user, variant):
        transfer_service.create_transfer(branch.id, branch_two.id, user.id, [line(variant, 3)], approve=True)

        assert quantity_of(variant, branch) == Decimal("-3")
        assert quantity_of(variant, branch_two) == Decimal("3")

    def test_double_approval_rejected(self, db_session, branch, branch_two, user, variant):
        transfer = transfer_service.create_transfer(branch.id, branch_two.id, user.id, [line(variant, 2)])
        transfer_service.approve_transfer(transfer.id, user.id)

        with pytest.raises(ConflictError, match="already approved"):
            transfer_service.approve_transfer(transfer.id, user.id)

        assert quantity_of(variant, branch_two) == Decimal("2")
        assert len(movements_of(variant, branch_two)) == 1

    def test_update_can_redirect_pending_transfer(self, db_session, branch, branch_two, user, variant):
        transfer = transfer_service.create_transfer(branch.id, branch_two.id, user.id, [line(variant, 2)])

        with pytest.raises(ValidationError):
            transfer_service.update_transfer(transfer.id, user.id, [line(variant, 2)], to_branch_id=branch.id)

        updated = transfer_service.update_transfer(transfer.id, user.id, [line(variant, 5)], note="full case")
        assert updated.details[0].quantity == Decimal("5")
        assert updated.note == "full case"

    def test_cancel(self, db_session, branch, branch_two, user, variant):
        transfer = transfer_service.create_transfer(branch.id, branch_two.id, user.id, [line(variant, 2)])

        transfer_service.cancel_transfer(transfer.id, user.id, "wrong branch")

        assert transfer_service.get_transfer(transfer.id).status == "CANCELLED"
        assert quantity_of(variant, branch) == Decimal("0")
