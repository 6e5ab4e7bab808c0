# Overview: Flask API routes for supplier purchases; parses input and returns JSON responses.

# backend/app/routes/purchases.py
"""
Purchase API Routes

DESIGN:
- Purchases are entered PENDING and booked into stock by /receive
- Receiving writes PURCHASE movements carrying the line cost (FIFO lots)
- A client-supplied ref must be unique per branch
"""

from flask import Blueprint, jsonify, g, current_app

from ..extensions import db
from ..models import Purchase
from ..services import purchase_service
from ..decorators import require_actor
from ..validation import LedgerError, parse_int
from .common import json_body, error_response, flag, list_documents


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


@purchases_bp.post("")
@require_actor
def create_purchase_route():
    """
    Create a purchase (status: PENDING).

    Request body:
    {
        "branch_id": 1,
        "supplier_id": 7,  (optional)
        "ref": "INV-7781",  (optional, generated as PR-00001 when omitted)
        "purchase_date": "2026-01-31",  (optional)
        "tax_rate": 10, "tax_net": 5, "discount": 0, "shipping": 0,  (optional)
        "grand_total": 55,  (optional, derived when omitted)
        "approve": false,  (optional, receive in the same transaction)
        "details": [{"product_variant_id": 3, "quantity": 5, "cost": 10}]
    }

    Returns:
        201: Purchase created
        400: Invalid input / duplicate ref
        404: Branch or variant not found
    """
    try:
        data = json_body()
        purchase = purchase_service.create_purchase(
            parse_int(data.get("branch_id"), "branch_id"),
            g.actor_id,
            data,
            approve=flag(data),
        )
        return jsonify(purchase.to_dict()), 201

    except LedgerError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create purchase")
        return jsonify({"message": "Internal server error"}), 500


@purchases_bp.get("")
def list_purchases_route():
    try:
        return list_documents(Purchase)
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list purchases")
        return jsonify({"message": "Internal server error"}), 500


@purchases_bp.get("/<int:purchase_id>")
def get_purchase_route(purchase_id: int):
    try:
        return jsonify(purchase_service.get_purchase(purchase_id).to_dict()), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load purchase")
        return jsonify({"message": "Internal server error"}), 500


@purchases_bp.put("/<int:purchase_id>")
@require_actor
def update_purchase_route(purchase_id: int):
    try:
        data = json_body()
        purchase = purchase_service.update_purchase(purchase_id, g.actor_id, data, approve=flag(data))
        return jsonify(purchase.to_dict()), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update purchase")
        return jsonify({"message": "Internal server error"}), 500


@purchases_bp.post("/<int:purchase_id>/receive")
@require_actor
def receive_purchase_route(purchase_id: int):
    """
    Receive a purchase into stock.

    Returns:
        200: Received
        400: Already received / cancelled
        404: Purchase not found
    """
    try:
        purchase = purchase_service.receive_purchase(purchase_id, g.actor_id)
        return jsonify(purchase.to_dict()), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to receive purchase")
        return jsonify({"message": "Internal server error"}), 500


@purchases_bp.post("/<int:purchase_id>/cancel")
@require_actor
def cancel_purchase_route(purchase_id: int):
    try:
        data = json_body()
        purchase = purchase_service.cancel_purchase(purchase_id, g.actor_id, data.get("reason"))
        return jsonify(purchase.to_dict()), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to cancel purchase")
        return jsonify({"message": "Internal server error"}), 500
