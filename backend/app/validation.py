from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from app.time_utils import parse_document_date


class LedgerError(Exception):
    """Base class for business errors surfaced to API callers."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(LedgerError):
    """400-level input problem (missing/empty/ill-typed fields)."""

    status_code = 400


class NotFoundError(LedgerError):
    """404-level: document, order or variant does not exist."""

    status_code = 404


class ConflictError(LedgerError):
    """
    Business rule conflict: already approved, duplicate ref, insufficient
    stock, FIFO mismatch, return exceeding sold quantity.
    """

    status_code = 400


class InternalError(LedgerError):
    """Unexpected storage failure."""

    status_code = 500


ITEM_TYPE_PRODUCT = "PRODUCT"
ITEM_TYPE_SERVICE = "SERVICE"
ITEM_TYPES = {ITEM_TYPE_PRODUCT, ITEM_TYPE_SERVICE}

DISCOUNT_FIXED = "FIXED"
DISCOUNT_PERCENT = "PERCENT"
DISCOUNT_METHODS = {DISCOUNT_FIXED, DISCOUNT_PERCENT}


# =============================================================================
# SCALAR COERCION
# =============================================================================

def parse_int(value: Any, field: str, *, required: bool = True) -> int | None:
    """
    Strict integer coercion for ids.

    Rejects booleans, floats with a fractional part and blank strings.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f"Missing required field: {field}")
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f"{field} must be an integer, not a decimal")
        return int(value)
    if isinstance(value, str):
        stripped = value.strip()
        if "e" in stripped.lower() or "." in stripped:
            raise ValidationError(f"{field} must be a plain integer")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    raise ValidationError(f"{field} must be an integer")


def parse_decimal(
    value: Any,
    field: str,
    *,
    required: bool = True,
    default: Decimal | None = None,
    positive: bool = False,
) -> Decimal | None:
    """
    Decimal coercion for quantities and money.

    Floats are routed through str() so 0.1 stays 0.1.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f"Missing required field: {field}")
        return default
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        if isinstance(value, Decimal):
            result = value
        elif isinstance(value, (int, str)):
            result = Decimal(str(value).strip())
        elif isinstance(value, float):
            result = Decimal(str(value))
        else:
            raise ValidationError(f"{field} must be a number")
    except InvalidOperation:
        raise ValidationError(f"{field} must be a number")
    if not result.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    if positive and result <= 0:
        raise ValidationError(f"{field} must be positive")
    return result


def parse_choice(value: Any, field: str, choices: set[str], *, default: str | None = None) -> str:
    if value is None or value == "":
        if default is None:
            raise ValidationError(f"Missing required field: {field}")
        return default
    normalized = str(value).strip().upper()
    if normalized not in choices:
        raise ValidationError(f"{field} must be one of: {', '.join(sorted(choices))}")
    return normalized


def require_non_empty(lines: Any, label: str) -> list:
    if not lines or not isinstance(lines, list):
        raise ValidationError(f"{label} cannot be empty")
    return lines


# =============================================================================
# DETAIL LINES
# =============================================================================

@dataclass(frozen=True)
class StockLineInput:
    product_id: int
    product_variant_id: int
    quantity: Decimal


@dataclass(frozen=True)
class PricedLineInput:
    item_type: str
    product_id: int | None
    product_variant_id: int | None
    service_id: int | None
    quantity: Decimal
    price: Decimal
    discount: Decimal
    discount_method: str
    tax_net: Decimal
    tax_method: str | None
    total: Decimal
    order_item_id: int | None = None


def parse_stock_lines(lines: Any, label: str) -> list[StockLineInput]:
    """Detail rows for adjustments, requests, stock returns and transfers."""
    parsed = []
    for raw in require_non_empty(lines, label):
        if not isinstance(raw, dict):
            raise ValidationError(f"{label} must be objects")
        parsed.append(
            StockLineInput(
                product_id=parse_int(raw.get("product_id"), "product_id"),
                product_variant_id=parse_int(raw.get("product_variant_id"), "product_variant_id"),
                quantity=parse_decimal(raw.get("quantity"), "quantity", positive=True),
            )
        )
    return parsed


def parse_priced_line(raw: Any, *, price_key: str = "price", with_order_item: bool = False) -> PricedLineInput:
    """
    One priced detail row (invoice item, quotation detail, purchase detail,
    sale-return item).

    PRODUCT rows need a variant; SERVICE rows need a service id.
    """
    if not isinstance(raw, dict):
        raise ValidationError("line items must be objects")

    item_type = parse_choice(raw.get("item_type"), "item_type", ITEM_TYPES, default=ITEM_TYPE_PRODUCT)
    product_id = parse_int(raw.get("product_id"), "product_id", required=False)
    variant_id = parse_int(raw.get("product_variant_id"), "product_variant_id", required=False)
    service_id = parse_int(raw.get("service_id"), "service_id", required=False)

    if item_type == ITEM_TYPE_PRODUCT and variant_id is None:
        raise ValidationError("Product lines require product_variant_id")
    if item_type == ITEM_TYPE_SERVICE and service_id is None:
        raise ValidationError("Service lines require service_id")

    quantity = parse_decimal(raw.get("quantity"), "quantity", positive=True)
    price = parse_decimal(raw.get(price_key), price_key)
    discount = parse_decimal(raw.get("discount"), "discount", required=False, default=Decimal("0"))
    discount_method = parse_choice(
        raw.get("discount_method"), "discount_method", DISCOUNT_METHODS, default=DISCOUNT_FIXED
    )
    tax_net = parse_decimal(raw.get("tax_net"), "tax_net", required=False, default=Decimal("0"))
    total = parse_decimal(raw.get("total"), "total", required=False)
    if total is None:
        total = net_unit_price(price, discount, discount_method) * quantity

    order_item_id = None
    if with_order_item:
        order_item_id = parse_int(raw.get("order_item_id"), "order_item_id")

    return PricedLineInput(
        item_type=item_type,
        product_id=product_id,
        product_variant_id=variant_id,
        service_id=service_id,
        quantity=quantity,
        price=price,
        discount=discount,
        discount_method=discount_method,
        tax_net=tax_net,
        tax_method=raw.get("tax_method"),
        total=total,
        order_item_id=order_item_id,
    )


def parse_priced_lines(lines: Any, label: str, **kwargs) -> list[PricedLineInput]:
    return [parse_priced_line(raw, **kwargs) for raw in require_non_empty(lines, label)]


def net_unit_price(price: Decimal, discount: Decimal, discount_method: str) -> Decimal:
    """FIXED subtracts the discount from the unit price; PERCENT scales it."""
    if discount_method == DISCOUNT_FIXED:
        return price - discount
    return price * ((Decimal("100") - discount) / Decimal("100"))


def parse_date(value: Any, field: str):
    """Document calendar date; today (UTC) when omitted."""
    try:
        return parse_document_date(value)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 date")
