"""List query tests: whitelisted sorting, bound search, capped paging."""

import pytest

from app.models import StockAdjustment
from app.services import stock_document_service
from app.services.query_service import document_sortable, paginate
from app.validation import ValidationError
from helpers import line


@pytest.fixture
def adjustments(db_session, branch, user, variant):
    return [
        stock_document_service.create_adjustment(branch.id, user.id, [line(variant, 1)], note=f"shelf {n}")
        for n in range(3)
    ]


class TestPaginate:

    def test_default_sort_is_newest_first(self, adjustments, db_session):
        page = paginate(db_session.query(StockAdjustment), StockAdjustment)

        assert page.total == 3
        assert [a.ref for a in page.items] == ["SAJM-00003", "SAJM-00002", "SAJM-00001"]

    def test_sort_by_whitelisted_field(self, adjustments, db_session):
        page = paginate(
            db_session.query(StockAdjustment),
            StockAdjustment,
            sort_field="ref",
            sort_order="asc",
            sortable=document_sortable(StockAdjustment),
        )
        assert [a.ref for a in page.items] == ["SAJM-00001", "SAJM-00002", "SAJM-00003"]

    @pytest.mark.parametrize("field", ["note", "id; DROP TABLE stock_adjustments", "branch_id"])
    def test_unknown_sort_field_rejected(self, adjustments, db_session, field):
        with pytest.raises(ValidationError, match="Cannot sort by"):
            paginate(
                db_session.query(StockAdjustment),
                StockAdjustment,
                sort_field=field,
                sortable=document_sortable(StockAdjustment),
            )

    def test_bad_sort_order_rejected(self, adjustments, db_session):
        with pytest.raises(ValidationError):
            paginate(db_session.query(StockAdjustment), StockAdjustment, sort_order="sideways")

    def test_search_is_bound(self, adjustments, db_session):
        page = paginate(
            db_session.query(StockAdjustment),
            StockAdjustment,
            search="shelf 1",
            search_columns=(StockAdjustment.note,),
        )
        assert [a.note for a in page.items] == ["shelf 1"]

        page = paginate(
            db_session.query(StockAdjustment),
            StockAdjustment,
            search="' OR 1=1 --",
            search_columns=(StockAdjustment.note,),
        )
        assert page.total == 0

    def test_page_size_is_capped(self, adjustments, db_session, app):
        app.config["MAX_PAGE_SIZE"] = 2
        try:
            page = paginate(db_session.query(StockAdjustment), StockAdjustment, page_size=50)
        finally:
            app.config["MAX_PAGE_SIZE"] = 100
        assert page.page_size == 2
        assert len(page.items) == 2
        assert page.total == 3

    def test_second_page(self, adjustments, db_session):
        page = paginate(db_session.query(StockAdjustment), StockAdjustment, page=2, page_size=2)
        assert [a.ref for a in page.items] == ["SAJM-00001"]

    def test_page_must_be_positive(self, adjustments, db_session):
        with pytest.raises(ValidationError):
            paginate(db_session.query(StockAdjustment), StockAdjustment, page=-1)
