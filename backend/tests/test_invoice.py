"""
Invoice approval and payment tests.

Verifies:
- Approval is sufficiency-checked and all-or-nothing
- Stock is cut FIFO, one ORDER movement per consumed lot slice
- SERVICE items never touch stock
- Payments never push paid_amount above total_amount
"""

from decimal import Decimal

import pytest

from app.models import Order
from app.services import invoice_service, purchase_service
from app.services.reconciliation_service import find_discrepancies
from app.validation import ConflictError, ValidationError
from helpers import item, movements_of, quantity_of, stock_up


def _purchase(branch, user, variant, quantity, cost):
    return purchase_service.create_purchase(
        branch.id,
        user.id,
        {"details": [{"product_variant_id": variant.id, "product_id": variant.product_id,
                      "quantity": quantity, "cost": cost}]},
        approve=True,
    )


class TestInvoiceTotals:

    def test_tax_derived_from_rate(self, db_session, branch, user, variant):
        order = invoice_service.create_invoice(
            branch.id, user.id,
            {"items": [item(variant, 5, "10")], "discount": "10", "tax_rate": "10", "shipping": "1"},
        )

        assert order.ref == "INV-00001"
        assert order.status == "PENDING"
        assert order.tax_net == Decimal("4")
        assert order.total_amount == Decimal("45")
        assert order.paid_amount == Decimal("0")

    def test_percent_line_discount(self, db_session, branch, user, variant):
        order = invoice_service.create_invoice(
            branch.id, user.id,
            {"items": [item(variant, 2, "50", discount="10", discount_method="PERCENT")]},
        )

        assert order.items[0].total == Decimal("90")
        assert order.total_amount == Decimal("90")

    def test_empty_items_rejected(self, db_session, branch, user):
        with pytest.raises(ValidationError, match="Invoice items cannot be empty"):
            invoice_service.create_invoice(branch.id, user.id, {"items": []})


class TestInvoiceApproval:

    def test_insufficient_stock_is_atomic(self, db_session, branch, user, variant, variant_two):
        stock_up(variant, branch, 10, user)
        stock_up(variant_two, branch, 3, user)
        order = invoice_service.create_invoice(
            branch.id, user.id, {"items": [item(variant, 4, "1"), item(variant_two, 5, "1")]}
        )

        with pytest.raises(ConflictError, match="Insufficient stock for barcode: 885000000002"):
            invoice_service.approve_invoice(order.id, user.id)

        # the first line's cut was rolled back with the second
        assert quantity_of(variant, branch) == Decimal("10")
        assert quantity_of(variant_two, branch) == Decimal("3")
        assert movements_of(variant, branch, "ORDER") == []
        assert db_session.get(Order, order.id).status == "PENDING"

    def test_fifo_cut_spans_lots(self, db_session, branch, user, variant):
        _purchase(branch, user, variant, 5, "2")
        _purchase(branch, user, variant, 5, "3")

        order = invoice_service.create_invoice(branch.id, user.id, {"items": [item(variant, 7, "9")]}, approve=True)

        assert order.status == "APPROVED"
        assert quantity_of(variant, branch) == Decimal("3")

        lots = movements_of(variant, branch, "PURCHASE")
        sold = movements_of(variant, branch, "ORDER")
        assert [m.quantity for m in sold] == [Decimal("-5"), Decimal("-2")]
        assert [m.unit_cost for m in sold] == [Decimal("2"), Decimal("3")]
        assert [m.source_movement_id for m in sold] == [lots[0].id, lots[1].id]
        assert all(m.order_item_id == order.items[0].id for m in sold)
        assert [m.remaining_qty for m in lots] == [Decimal("0"), Decimal("3")]
        assert find_discrepancies() == []

    def test_service_items_skip_stock(self, db_session, branch, user, variant):
        order = invoice_service.create_invoice(
            branch.id, user.id,
            {"items": [{"item_type": "SERVICE", "service_id": 4, "quantity": 1, "price": "15"}]},
            approve=True,
        )

        assert order.status == "APPROVED"
        assert movements_of(variant, branch) == []

    def test_double_approval_rejected(self, db_session, branch, user, variant):
        stock_up(variant, branch, 10, user)
        order = invoice_service.create_invoice(branch.id, user.id, {"items": [item(variant, 2, "1")]}, approve=True)

        with pytest.raises(ConflictError, match="already approved"):
            invoice_service.approve_invoice(order.id, user.id)
        assert quantity_of(variant, branch) == Decimal("8")

    def test_update_pending_invoice(self, db_session, branch, user, variant):
        order = invoice_service.create_invoice(branch.id, user.id, {"items": [item(variant, 2, "1")]})

        updated = invoice_service.update_invoice(order.id, user.id, {"items": [item(variant, 3, "4")]})

        assert len(updated.items) == 1
        assert updated.total_amount == Decimal("12")


class TestPayments:

    def test_payments_accumulate(self, db_session, branch, user, variant):
        order = invoice_service.create_invoice(branch.id, user.id, {"items": [item(variant, 1, "100")]})

        invoice_service.record_payment(order.id, user.id, {"total_paid": "60"})
        invoice_service.record_payment(order.id, user.id, {"total_paid": "40"})

        assert db_session.get(Order, order.id).paid_amount == Decimal("100")

    def test_overpayment_rejected(self, db_session, branch, user, variant):
        order = invoice_service.create_invoice(branch.id, user.id, {"items": [item(variant, 1, "100")]})
        invoice_service.record_payment(order.id, user.id, {"total_paid": "60"})

        with pytest.raises(ConflictError, match="exceeds the open balance"):
            invoice_service.record_payment(order.id, user.id, {"total_paid": "40.01"})
        assert db_session.get(Order, order.id).paid_amount == Decimal("60")

    @pytest.mark.parametrize("amount", ["0", "-5", "abc", None])
    def test_invalid_amount_rejected(self, db_session, branch, user, variant, amount):
        order = invoice_service.create_invoice(branch.id, user.id, {"items": [item(variant, 1, "100")]})

        with pytest.raises(ValidationError):
            invoice_service.record_payment(order.id, user.id, {"total_paid": amount})

    def test_cancelled_invoice_takes_no_payment(self, db_session, branch, user, variant):
        order = invoice_service.create_invoice(branch.id, user.id, {"items": [item(variant, 1, "100")]})
        invoice_service.cancel_invoice(order.id, user.id)

        with pytest.raises(ConflictError, match="is cancelled"):
            invoice_service.record_payment(order.id, user.id, {"total_paid": "1"})
