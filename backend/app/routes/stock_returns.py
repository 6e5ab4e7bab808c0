# Overview: Flask API routes for stock returns; parses input and returns JSON responses.

# backend/app/routes/stock_returns.py
"""
Stock Return API Routes

Approving a stock return adds its quantities back at the branch.
"""

from flask import Blueprint, jsonify, g, current_app

from ..extensions import db
from ..models import StockReturn
from ..services import stock_document_service
from ..decorators import require_actor
from ..validation import LedgerError, parse_int
from .common import json_body, error_response, flag, list_documents


stock_returns_bp = Blueprint("stock_returns", __name__, url_prefix="/api/stock-returns")


@stock_returns_bp.post("")
@require_actor
def create_stock_return_route():
    """
    Create a stock return (status: PENDING).

    Request body:
    {
        "branch_id": 1,
        "return_by": 4,  (optional)
        "return_date": "2026-01-31",  (optional)
        "note": "...",  (optional)
        "approve": false,  (optional)
        "details": [{"product_id": 1, "product_variant_id": 3, "quantity": 2}]
    }
    """
    try:
        data = json_body()
        stock_return = stock_document_service.create_stock_return(
            parse_int(data.get("branch_id"), "branch_id"),
            g.actor_id,
            data.get("details"),
            return_by=parse_int(data.get("return_by"), "return_by", required=False),
            return_date=data.get("return_date"),
            note=data.get("note"),
            approve=flag(data),
        )
        return jsonify(stock_return.to_dict()), 201

    except LedgerError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create stock return")
        return jsonify({"message": "Internal server error"}), 500


@stock_returns_bp.get("")
def list_stock_returns_route():
    try:
        return list_documents(StockReturn)
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list stock returns")
        return jsonify({"message": "Internal server error"}), 500


@stock_returns_bp.get("/<int:return_id>")
def get_stock_return_route(return_id: int):
    try:
        return jsonify(stock_document_service.get_stock_return(return_id).to_dict()), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load stock return")
        return jsonify({"message": "Internal server error"}), 500


@stock_returns_bp.put("/<int:return_id>")
@require_actor
def update_stock_return_route(return_id: int):
    try:
        data = json_body()
        stock_return = stock_document_service.update_stock_return(
            return_id,
            g.actor_id,
            data.get("details"),
            return_by=parse_int(data.get("return_by"), "return_by", required=False),
            return_date=data.get("return_date"),
            note=data.get("note"),
            approve=flag(data),
        )
        return jsonify(stock_return.to_dict()), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update stock return")
        return jsonify({"message": "Internal server error"}), 500


@stock_returns_bp.post("/<int:return_id>/approve")
@require_actor
def approve_stock_return_route(return_id: int):
    try:
        stock_return = stock_document_service.approve_stock_return(return_id, g.actor_id)
        return jsonify(stock_return.to_dict()), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to approve stock return")
        return jsonify({"message": "Internal server error"}), 500


@stock_returns_bp.post("/<int:return_id>/cancel")
@require_actor
def cancel_stock_return_route(return_id: int):
    try:
        data = json_body()
        stock_return = stock_document_service.cancel_stock_return(return_id, g.actor_id, data.get("reason"))
        return jsonify(stock_return.to_dict()), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to cancel stock return")
        return jsonify({"message": "Internal server error"}), 500
