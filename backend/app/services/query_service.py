# Overview: Service-layer helper for list endpoints; whitelisted sort, column-bound search, capped pages.

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from sqlalchemy import or_

from ..validation import ValidationError, parse_int


SORT_ASC = "asc"
SORT_DESC = "desc"


@dataclass
class Page:
    items: list
    total: int
    page: int
    page_size: int

    def to_dict(self, serialize=None) -> dict:
        serialize = serialize or (lambda obj: obj.to_dict())
        return {
            "items": [serialize(item) for item in self.items],
            "total": self.total,
            "page": self.page,
            "page_size": self.page_size,
        }


def _page_size(value) -> int:
    default = current_app.config.get("DEFAULT_PAGE_SIZE", 10)
    maximum = current_app.config.get("MAX_PAGE_SIZE", 100)
    size = parse_int(value, "page_size", required=False) or default
    if size < 1:
        raise ValidationError("page_size must be positive")
    return min(size, maximum)


def paginate(
    query,
    model,
    *,
    sort_field: str | None = None,
    sort_order: str | None = None,
    page=None,
    page_size=None,
    search: str | None = None,
    search_columns: tuple = (),
    sortable: dict | None = None,
) -> Page:
    """
    Sort, search and page a query.

    sort_field is looked up in `sortable` (public name -> column); anything
    else is a ValidationError, so no client string ever reaches SQL. search
    is a case-insensitive LIKE over `search_columns`, bound as a parameter.
    """
    sortable = sortable or {"id": model.id}
    sort_field = sort_field or "id"
    if sort_field not in sortable:
        raise ValidationError(
            f"Cannot sort by '{sort_field}'. Allowed: {', '.join(sorted(sortable))}"
        )

    order = (sort_order or SORT_DESC).lower()
    if order not in (SORT_ASC, SORT_DESC):
        raise ValidationError("sort_order must be 'asc' or 'desc'")

    if search and search_columns:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(*[column.ilike(pattern) for column in search_columns]))

    column = sortable[sort_field]
    query = query.order_by(column.asc() if order == SORT_ASC else column.desc(), model.id.desc())

    page = parse_int(page, "page", required=False) or 1
    if page < 1:
        raise ValidationError("page must be positive")
    size = _page_size(page_size)

    total = query.order_by(None).count()
    items = query.offset((page - 1) * size).limit(size).all()
    return Page(items=items, total=total, page=page, page_size=size)


def document_sortable(model) -> dict:
    """Sort whitelist shared by document headers."""
    allowed = {"id": model.id, "ref": model.ref, "status": model.status, "created_at": model.created_at}
    for name in ("adjust_date", "request_date", "return_date", "transfer_date", "purchase_date",
                 "order_date", "quotation_date", "grand_total", "total_amount"):
        if hasattr(model, name):
            allowed[name] = getattr(model, name)
    return allowed
