# Overview: Flask API routes for quotations; parses input and returns JSON responses.

# backend/app/routes/quotations.py
"""
Quotation API Routes

A quotation does not touch stock until it is converted into an invoice.
"""

from flask import Blueprint, jsonify, g, current_app

from ..extensions import db
from ..models import Quotation
from ..services import quotation_service
from ..decorators import require_actor
from ..validation import LedgerError, parse_int
from .common import json_body, error_response, list_documents


quotations_bp = Blueprint("quotations", __name__, url_prefix="/api/quotations")


@quotations_bp.post("")
@require_actor
def create_quotation_route():
    """
    Create a quotation (status: PENDING).

    Request body: same shape as an invoice, with "details" instead of
    "items" and "quotation_date" instead of "order_date".
    """
    try:
        data = json_body()
        quotation = quotation_service.create_quotation(
            parse_int(data.get("branch_id"), "branch_id"),
            g.actor_id,
            data,
        )
        return jsonify(quotation.to_dict()), 201

    except LedgerError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create quotation")
        return jsonify({"message": "Internal server error"}), 500


@quotations_bp.get("")
def list_quotations_route():
    try:
        return list_documents(Quotation)
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list quotations")
        return jsonify({"message": "Internal server error"}), 500


@quotations_bp.get("/<int:quotation_id>")
def get_quotation_route(quotation_id: int):
    try:
        return jsonify(quotation_service.get_quotation(quotation_id).to_dict()), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load quotation")
        return jsonify({"message": "Internal server error"}), 500


@quotations_bp.put("/<int:quotation_id>")
@require_actor
def update_quotation_route(quotation_id: int):
    try:
        quotation = quotation_service.update_quotation(quotation_id, g.actor_id, json_body())
        return jsonify(quotation.to_dict()), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update quotation")
        return jsonify({"message": "Internal server error"}), 500


@quotations_bp.post("/<int:quotation_id>/convert")
@require_actor
def convert_quotation_route(quotation_id: int):
    """
    Convert a quotation into an approved invoice and cut stock.

    Returns:
        201: {"invoice": {...}, "quotation": {...}}
        400: Already converted / cancelled / insufficient stock
        404: Quotation not found
    """
    try:
        order = quotation_service.convert_quotation(quotation_id, g.actor_id)
        quotation = quotation_service.get_quotation(quotation_id)
        return jsonify({"invoice": order.to_dict(), "quotation": quotation.to_dict()}), 201

    except LedgerError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to convert quotation")
        return jsonify({"message": "Internal server error"}), 500


@quotations_bp.post("/<int:quotation_id>/cancel")
@require_actor
def cancel_quotation_route(quotation_id: int):
    try:
        data = json_body()
        quotation = quotation_service.cancel_quotation(quotation_id, g.actor_id, data.get("reason"))
        return jsonify(quotation.to_dict()), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to cancel quotation")
        return jsonify({"message": "Internal server error"}), 500
