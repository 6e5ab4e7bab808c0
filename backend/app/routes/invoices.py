# Overview: Flask API routes for invoices and their payments; parses input and returns JSON responses.

# backend/app/routes/invoices.py
"""
Invoice API Routes

DESIGN:
- Invoices are entered PENDING; approval cuts stock (sufficiency-checked)
- Payments are append-only rows against the invoice
- Sale returns booked against an invoice are listed here
"""

from flask import Blueprint, jsonify, g, current_app

from ..extensions import db
from ..models import Order
from ..services import invoice_service, return_service
from ..decorators import require_actor
from ..validation import LedgerError, parse_int
from .common import json_body, error_response, flag, list_documents


invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


@invoices_bp.post("")
@require_actor
def create_invoice_route():
    """
    Create an invoice (status: PENDING).

    Request body:
    {
        "branch_id": 1,
        "customer_id": 9,  (optional)
        "order_date": "2026-01-31",  (optional)
        "discount": 10, "tax_rate": 10, "shipping": 0,  (optional)
        "tax_net": 9,  (optional, derived from tax_rate when omitted)
        "approve": false,  (optional)
        "items": [
            {"item_type": "PRODUCT", "product_variant_id": 3, "quantity": 2,
             "price": 25, "discount": 0, "discount_method": "FIXED"},
            {"item_type": "SERVICE", "service_id": 1, "quantity": 1, "price": 5}
        ]
    }

    Returns:
        201: Invoice created
        400: Invalid input / insufficient stock (when approve=true)
        404: Branch or variant not found
    """
    try:
        data = json_body()
        order = invoice_service.create_invoice(
            parse_int(data.get("branch_id"), "branch_id"),
            g.actor_id,
            data,
            approve=flag(data),
        )
        return jsonify(order.to_dict()), 201

    except LedgerError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create invoice")
        return jsonify({"message": "Internal server error"}), 500


@invoices_bp.get("")
def list_invoices_route():
    try:
        return list_documents(Order)
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list invoices")
        return jsonify({"message": "Internal server error"}), 500


@invoices_bp.get("/<int:order_id>")
def get_invoice_route(order_id: int):
    try:
        order = invoice_service.get_invoice(order_id)
        payload = order.to_dict()
        payload["payments"] = [p.to_dict() for p in order.payments]
        return jsonify(payload), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load invoice")
        return jsonify({"message": "Internal server error"}), 500


@invoices_bp.put("/<int:order_id>")
@require_actor
def update_invoice_route(order_id: int):
    try:
        data = json_body()
        order = invoice_service.update_invoice(order_id, g.actor_id, data, approve=flag(data))
        return jsonify(order.to_dict()), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update invoice")
        return jsonify({"message": "Internal server error"}), 500


@invoices_bp.post("/<int:order_id>/approve")
@require_actor
def approve_invoice_route(order_id: int):
    """
    Approve an invoice and cut stock for its PRODUCT items.

    Returns:
        200: Approved
        400: Already approved / cancelled / "Insufficient stock for barcode: X"
        404: Invoice not found
    """
    try:
        order = invoice_service.approve_invoice(order_id, g.actor_id)
        return jsonify(order.to_dict()), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to approve invoice")
        return jsonify({"message": "Internal server error"}), 500


@invoices_bp.post("/<int:order_id>/cancel")
@require_actor
def cancel_invoice_route(order_id: int):
    try:
        data = json_body()
        order = invoice_service.cancel_invoice(order_id, g.actor_id, data.get("reason"))
        return jsonify(order.to_dict()), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to cancel invoice")
        return jsonify({"message": "Internal server error"}), 500


# =============================================================================
# PAYMENTS
# =============================================================================

@invoices_bp.post("/<int:order_id>/payments")
@require_actor
def record_payment_route(order_id: int):
    """
    Record a payment against an invoice.

    Request body:
    {
        "total_paid": 50,
        "payment_method_id": 1,  (optional)
        "payment_date": "2026-01-31T10:00:00Z",  (optional)
        "receive_usd": 50, "receive_khr": 0, "exchange_rate": 4100  (optional)
    }
    """
    try:
        payment = invoice_service.record_payment(order_id, g.actor_id, json_body())
        return jsonify(payment.to_dict()), 201

    except LedgerError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to record payment")
        return jsonify({"message": "Internal server error"}), 500


@invoices_bp.get("/<int:order_id>/sale-returns")
def list_invoice_sale_returns_route(order_id: int):
    try:
        returns = return_service.list_sale_returns_for_order(order_id)
        return jsonify({"items": [r.to_dict() for r in returns]}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list sale returns")
        return jsonify({"message": "Internal server error"}), 500
