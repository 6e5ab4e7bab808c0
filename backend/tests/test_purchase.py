"""Purchase entry and receiving tests."""

from decimal import Decimal

import pytest

from app.services import purchase_service
from app.validation import ConflictError
from helpers import movements_of, quantity_of


def _payload(variant, quantity=10, cost="2.50", **extra):
    return {
        "supplier_id": 3,
        "details": [
            {
                "product_id": variant.product_id,
                "product_variant_id": variant.id,
                "quantity": quantity,
                "cost": cost,
            }
        ],
        **extra,
    }


class TestPurchases:

    def test_receive_books_purchase_lots_at_cost(self, db_session, branch, user, variant):
        purchase = purchase_service.create_purchase(branch.id, user.id, _payload(variant, shipping="5"))

        assert purchase.ref == "PR-00001"
        assert purchase.status == "PENDING"
        assert purchase.grand_total == Decimal("30")
        assert quantity_of(variant, branch) == Decimal("0")

        received = purchase_service.receive_purchase(purchase.id, user.id)

        assert received.status == "APPROVED"
        assert received.received_by == user.id
        assert quantity_of(variant, branch) == Decimal("10")
        lot = movements_of(variant, branch, "PURCHASE")[0]
        assert lot.quantity == Decimal("10")
        assert lot.unit_cost == Decimal("2.5")
        assert lot.remaining_qty == Decimal("10")

    def test_duplicate_client_ref_rejected(self, db_session, branch, user, variant):
        purchase_service.create_purchase(branch.id, user.id, _payload(variant, ref="SUP-7781"))

        with pytest.raises(ConflictError, match="Purchase # already exists!"):
            purchase_service.create_purchase(branch.id, user.id, _payload(variant, ref="SUP-7781"))

    def test_same_client_ref_on_another_branch(self, db_session, branch, branch_two, user, variant):
        purchase_service.create_purchase(branch.id, user.id, _payload(variant, ref="SUP-7781"))
        other = purchase_service.create_purchase(branch_two.id, user.id, _payload(variant, ref="SUP-7781"))

        assert other.ref == "SUP-7781"

    def test_generated_ref_skips_client_refs(self, db_session, branch, user, variant):
        first = purchase_service.create_purchase(branch.id, user.id, _payload(variant))
        purchase_service.create_purchase(branch.id, user.id, _payload(variant, ref="PR-00002"))
        third = purchase_service.create_purchase(branch.id, user.id, _payload(variant))

        assert first.ref == "PR-00001"
        assert third.ref == "PR-00003"

    def test_receive_twice_rejected(self, db_session, branch, user, variant):
        purchase = purchase_service.create_purchase(branch.id, user.id, _payload(variant), approve=True)

        with pytest.raises(ConflictError, match="already approved"):
            purchase_service.receive_purchase(purchase.id, user.id)
        assert quantity_of(variant, branch) == Decimal("10")

    def test_update_pending_purchase(self, db_session, branch, user, variant):
        purchase = purchase_service.create_purchase(branch.id, user.id, _payload(variant))

        updated = purchase_service.update_purchase(
            purchase.id, user.id, _payload(variant, quantity=4, cost="3", ref="SUP-1")
        )

        assert updated.ref == "SUP-1"
        assert updated.details[0].quantity == Decimal("4")
        assert updated.grand_total == Decimal("12")

    def test_cancelled_purchase_cannot_be_received(self, db_session, branch, user, variant):
        purchase = purchase_service.create_purchase(branch.id, user.id, _payload(variant))
        purchase_service.cancel_purchase(purchase.id, user.id)

        with pytest.raises(ConflictError, match="is cancelled"):
            purchase_service.receive_purchase(purchase.id, user.id)
