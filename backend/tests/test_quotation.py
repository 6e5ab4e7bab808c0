"""Quotation and quotation-to-invoice conversion tests."""

from decimal import Decimal

import pytest

from app.models import Order, Quotation
from app.services import quotation_service
from app.validation import ConflictError
from helpers import item, movements_of, quantity_of, stock_up


class TestQuotations:

    def test_pending_quotation_does_not_touch_stock(self, db_session, branch, user, variant):
        quotation = quotation_service.create_quotation(
            branch.id, user.id, {"details": [item(variant, 2, "10")], "tax_rate": "10"}
        )

        assert quotation.ref == "QR-00001"
        assert quotation.grand_total == Decimal("22")
        assert movements_of(variant, branch) == []

    def test_convert_creates_approved_invoice(self, db_session, branch, user, variant):
        stock_up(variant, branch, 10, user)
        quotation = quotation_service.create_quotation(
            branch.id, user.id, {"details": [item(variant, 4, "10")], "discount": "5"}
        )

        order = quotation_service.convert_quotation(quotation.id, user.id)

        assert order.ref == "INV-00001"
        assert order.status == "APPROVED"
        assert order.total_amount == Decimal("35")
        assert len(order.items) == 1
        assert quantity_of(variant, branch) == Decimal("6")

        sold = movements_of(variant, branch, "QUOTE_TO_INVOICE")
        assert [m.quantity for m in sold] == [Decimal("-4")]
        assert sold[0].order_item_id == order.items[0].id

        converted = db_session.get(Quotation, quotation.id)
        assert converted.status == "APPROVED"
        assert converted.order_id == order.id
        assert converted.invoiced_by == user.id
        assert converted.invoiced_at is not None

    def test_second_conversion_rejected(self, db_session, branch, user, variant):
        stock_up(variant, branch, 10, user)
        quotation = quotation_service.create_quotation(branch.id, user.id, {"details": [item(variant, 4, "10")]})
        quotation_service.convert_quotation(quotation.id, user.id)

        with pytest.raises(ConflictError, match="already been converted"):
            quotation_service.convert_quotation(quotation.id, user.id)

        assert db_session.query(Order).count() == 1
        assert quantity_of(variant, branch) == Decimal("6")

    def test_insufficient_stock_leaves_quotation_pending(self, db_session, branch, user, variant):
        stock_up(variant, branch, 1, user)
        quotation = quotation_service.create_quotation(branch.id, user.id, {"details": [item(variant, 4, "10")]})

        with pytest.raises(ConflictError, match="Insufficient stock for barcode"):
            quotation_service.convert_quotation(quotation.id, user.id)

        assert db_session.get(Quotation, quotation.id).status == "PENDING"
        assert db_session.query(Order).count() == 0
        assert quantity_of(variant, branch) == Decimal("1")

    def test_cancelled_quotation_cannot_convert(self, db_session, branch, user, variant):
        quotation = quotation_service.create_quotation(branch.id, user.id, {"details": [item(variant, 1, "10")]})
        quotation_service.cancel_quotation(quotation.id, user.id, "customer declined")

        with pytest.raises(ConflictError, match="is cancelled"):
            quotation_service.convert_quotation(quotation.id, user.id)

    def test_update_pending_quotation(self, db_session, branch, user, variant, variant_two):
        quotation = quotation_service.create_quotation(branch.id, user.id, {"details": [item(variant, 1, "10")]})

        updated = quotation_service.update_quotation(
            quotation.id, user.id, {"details": [item(variant_two, 3, "2")], "note": "revised"}
        )

        assert [d.product_variant_id for d in updated.details] == [variant_two.id]
        assert updated.grand_total == Decimal("6")
        assert updated.note == "revised"
