"""
Sale return tests.

Verifies:
- Discount and tax are prorated from the order and capped across returns
- Stock is restored FIFO against the order item's sold movements
- Returned quantity never exceeds what was sold
- Every payment is refunded at most once
"""

from decimal import Decimal

import pytest

from app.models import Order, OrderPayment, SaleReturn
from app.services import invoice_service, return_service
from app.services.reconciliation_service import find_discrepancies
from app.services.return_service import ReturnError, prorate_return
from app.validation import ConflictError, NotFoundError, ValidationError
from helpers import item, movements_of, quantity_of, stock_up


def _approved_order(branch, user, items, **amounts):
    return invoice_service.create_invoice(branch.id, user.id, {"items": items, **amounts}, approve=True)


class TestProration:

    def test_basic_proration(self):
        result = prorate_return(
            items_subtotal=Decimal("30"),
            invoice_subtotal=Decimal("100"),
            order_discount=Decimal("10"),
            tax_rate=Decimal("10"),
        )

        assert result.ratio == Decimal("0.3")
        assert result.discount == Decimal("3")
        assert result.taxable == Decimal("27")
        assert result.tax_net == Decimal("2.7")
        assert result.max_order_tax == Decimal("9")
        assert result.total == Decimal("29.7")

    def test_caps_against_prior_returns(self):
        result = prorate_return(
            items_subtotal=Decimal("30"),
            invoice_subtotal=Decimal("100"),
            order_discount=Decimal("10"),
            tax_rate=Decimal("10"),
            prior_discount=Decimal("9"),
            prior_tax=Decimal("8"),
        )

        assert result.raw_discount == Decimal("3")
        assert result.discount == Decimal("1")
        assert result.tax_net == Decimal("1")
        # 27 - (3 - 1) + 1
        assert result.total == Decimal("26")

    def test_exhausted_headroom_clamps_at_zero(self):
        result = prorate_return(
            items_subtotal=Decimal("10"),
            invoice_subtotal=Decimal("100"),
            order_discount=Decimal("10"),
            tax_rate=Decimal("10"),
            prior_discount=Decimal("12"),
            prior_tax=Decimal("20"),
        )

        assert result.discount == Decimal("0")
        assert result.tax_net == Decimal("0")

    def test_zero_subtotals_rejected(self):
        with pytest.raises(ValidationError):
            prorate_return(items_subtotal=Decimal("0"), invoice_subtotal=Decimal("100"),
                           order_discount=Decimal("0"), tax_rate=Decimal("0"))
        with pytest.raises(ConflictError):
            prorate_return(items_subtotal=Decimal("5"), invoice_subtotal=Decimal("0"),
                           order_discount=Decimal("0"), tax_rate=Decimal("0"))


class TestSaleReturnWorkflow:

    def test_return_prorates_and_restores_stock(self, db_session, branch, user, variant, variant_two):
        stock_up(variant, branch, 10, user)
        stock_up(variant_two, branch, 10, user)
        order = _approved_order(
            branch, user, [item(variant, 5, "10"), item(variant_two, 1, "50")], discount="10", tax_rate="10"
        )
        assert order.total_amount == Decimal("99")

        sale_return = return_service.create_sale_return(
            user.id, {"order_id": order.id, "items": [{"order_item_id": order.items[0].id, "quantity": 3}]}
        )

        assert sale_return.ref == "SR-00001"
        assert sale_return.status == "APPROVED"
        assert sale_return.discount == Decimal("3")
        assert sale_return.tax_net == Decimal("2.7")
        assert sale_return.total_amount == Decimal("29.7")
        assert sale_return.items[0].quantity == Decimal("3")
        assert sale_return.items[0].price == Decimal("10")

        refreshed = db_session.get(Order, order.id)
        assert refreshed.total_amount == Decimal("69.3")
        assert refreshed.return_status == 1
        assert quantity_of(variant, branch) == Decimal("8")
        assert find_discrepancies() == []

    def test_discount_and_tax_capped_across_returns(self, db_session, branch, user, variant, variant_two):
        stock_up(variant, branch, 10, user)
        stock_up(variant_two, branch, 10, user)
        # line total entered below price * quantity inflates later return ratios
        order = _approved_order(
            branch, user,
            [item(variant, 5, "10", total="40"), item(variant_two, 1, "50")],
            discount="9", tax_rate="10",
        )
        first_item, second_item = order.items

        return_service.create_sale_return(
            user.id, {"order_id": order.id, "items": [{"order_item_id": first_item.id, "quantity": 5}]}
        )
        second = return_service.create_sale_return(
            user.id, {"order_id": order.id, "items": [{"order_item_id": second_item.id, "quantity": 1}]}
        )

        assert second.discount == Decimal("4")
        assert second.tax_net == Decimal("3.6")
        assert second.total_amount == Decimal("47.6")

        returns = return_service.list_sale_returns_for_order(order.id)
        assert sum(Decimal(r.discount) for r in returns) <= Decimal("9")
        assert sum(Decimal(r.tax_net) for r in returns) <= Decimal("8.1")

    def test_fifo_restore_walks_sold_slices_oldest_first(self, db_session, branch, user, variant):
        stock_up(variant, branch, 5, user)
        stock_up(variant, branch, 5, user)
        order = _approved_order(branch, user, [item(variant, 10, "1")])
        sold = movements_of(variant, branch, "ORDER")
        assert [m.quantity for m in sold] == [Decimal("-5"), Decimal("-5")]

        return_service.create_sale_return(
            user.id, {"order_id": order.id, "items": [{"order_item_id": order.items[0].id, "quantity": 7}]}
        )

        restored = movements_of(variant, branch, "SALE_RETURN")
        assert [m.quantity for m in restored] == [Decimal("5"), Decimal("2")]
        assert [m.source_movement_id for m in restored] == [sold[0].id, sold[1].id]
        assert [m.remaining_qty for m in movements_of(variant, branch, "ORDER")] == [Decimal("0"), Decimal("3")]
        assert quantity_of(variant, branch) == Decimal("7")
        assert find_discrepancies() == []

    def test_return_exceeding_sold_rejected(self, db_session, branch, user, variant):
        stock_up(variant, branch, 10, user)
        order = _approved_order(branch, user, [item(variant, 4, "1")])
        order_item_id = order.items[0].id

        return_service.create_sale_return(
            user.id, {"order_id": order.id, "items": [{"order_item_id": order_item_id, "quantity": 3}]}
        )
        with pytest.raises(ReturnError, match="exceeds sold quantity"):
            return_service.create_sale_return(
                user.id, {"order_id": order.id, "items": [{"order_item_id": order_item_id, "quantity": 2}]}
            )

        assert db_session.query(SaleReturn).count() == 1
        assert quantity_of(variant, branch) == Decimal("9")

    def test_same_item_twice_in_one_request_counts_together(self, db_session, branch, user, variant):
        stock_up(variant, branch, 10, user)
        order = _approved_order(branch, user, [item(variant, 4, "1")])
        order_item_id = order.items[0].id

        with pytest.raises(ReturnError):
            return_service.create_sale_return(
                user.id,
                {"order_id": order.id, "items": [
                    {"order_item_id": order_item_id, "quantity": 3},
                    {"order_item_id": order_item_id, "quantity": 2},
                ]},
            )

    def test_payments_refunded_once(self, db_session, branch, user, variant):
        stock_up(variant, branch, 10, user)
        order = _approved_order(branch, user, [item(variant, 4, "10")])
        invoice_service.record_payment(order.id, user.id, {"total_paid": "40"})
        order_item_id = order.items[0].id

        first = return_service.create_sale_return(
            user.id, {"order_id": order.id, "items": [{"order_item_id": order_item_id, "quantity": 1}]}
        )
        return_service.create_sale_return(
            user.id, {"order_id": order.id, "items": [{"order_item_id": order_item_id, "quantity": 1}]}
        )

        refunds = db_session.query(OrderPayment).filter_by(order_id=order.id, status="REFUND").all()
        assert len(refunds) == 1
        assert refunds[0].total_paid == Decimal("-40")
        assert refunds[0].sale_return_id == first.id
        assert db_session.get(Order, order.id).paid_amount == Decimal("0")

    def test_pending_order_rejected(self, db_session, branch, user, variant):
        order = invoice_service.create_invoice(branch.id, user.id, {"items": [item(variant, 1, "1")]})

        with pytest.raises(ConflictError, match="is not approved"):
            return_service.create_sale_return(
                user.id, {"order_id": order.id, "items": [{"order_item_id": order.items[0].id, "quantity": 1}]}
            )

    def test_foreign_order_item_rejected(self, db_session, branch, user, variant):
        stock_up(variant, branch, 10, user)
        order = _approved_order(branch, user, [item(variant, 1, "1")])
        other = _approved_order(branch, user, [item(variant, 1, "1")])

        with pytest.raises(NotFoundError):
            return_service.create_sale_return(
                user.id, {"order_id": order.id, "items": [{"order_item_id": other.items[0].id, "quantity": 1}]}
            )

    def test_empty_items_rejected(self, db_session, branch, user, variant):
        stock_up(variant, branch, 10, user)
        order = _approved_order(branch, user, [item(variant, 1, "1")])

        with pytest.raises(ValidationError):
            return_service.create_sale_return(user.id, {"order_id": order.id, "items": []})
