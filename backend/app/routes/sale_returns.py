# Overview: Flask API routes for sale returns; parses input and returns JSON responses.

# backend/app/routes/sale_returns.py
"""
Sale Return API Routes

A sale return is booked in one call and is immutable afterwards: stock is
restored FIFO, the order's discount and tax are prorated and capped, and the
order's payments are reversed.
"""

from flask import Blueprint, jsonify, g, current_app

from ..extensions import db
from ..models import SaleReturn
from ..services import return_service
from ..decorators import require_actor
from ..validation import LedgerError
from .common import json_body, error_response, list_documents


sale_returns_bp = Blueprint("sale_returns", __name__, url_prefix="/api/sale-returns")


@sale_returns_bp.post("")
@require_actor
def create_sale_return_route():
    """
    Book a sale return against an approved invoice.

    Request body:
    {
        "order_id": 12,
        "items": [{"order_item_id": 40, "quantity": 3}],
        "note": "...",  (optional)
    }

    Returns:
        201: Sale return created
        400: Invalid input / quantity exceeds sold / FIFO restore mismatch
        404: Invoice or order item not found
    """
    try:
        sale_return = return_service.create_sale_return(g.actor_id, json_body())
        return jsonify(sale_return.to_dict()), 201

    except LedgerError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create sale return")
        return jsonify({"message": "Internal server error"}), 500


@sale_returns_bp.get("")
def list_sale_returns_route():
    try:
        return list_documents(SaleReturn)
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list sale returns")
        return jsonify({"message": "Internal server error"}), 500


@sale_returns_bp.get("/<int:sale_return_id>")
def get_sale_return_route(sale_return_id: int):
    try:
        return jsonify(return_service.get_sale_return(sale_return_id).to_dict()), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load sale return")
        return jsonify({"message": "Internal server error"}), 500
