# Overview: Flask API routes for stock requests; parses input and returns JSON responses.

# backend/app/routes/stock_requests.py
"""
Stock Request API Routes

Approving a request deducts the requested quantities at the requesting
branch. Availability is not checked.
"""

from flask import Blueprint, jsonify, g, current_app

from ..extensions import db
from ..models import StockRequest
from ..services import stock_document_service
from ..decorators import require_actor
from ..validation import LedgerError, parse_int
from .common import json_body, error_response, flag, list_documents


stock_requests_bp = Blueprint("stock_requests", __name__, url_prefix="/api/stock-requests")


@stock_requests_bp.post("")
@require_actor
def create_request_route():
    """
    Create a stock request (status: PENDING).

    Request body:
    {
        "branch_id": 1,
        "request_by": 4,  (optional, defaults to the acting user)
        "request_date": "2026-01-31",  (optional)
        "note": "...",  (optional)
        "approve": false,  (optional)
        "details": [{"product_id": 1, "product_variant_id": 3, "quantity": 2}]
    }
    """
    try:
        data = json_body()
        stock_request = stock_document_service.create_request(
            parse_int(data.get("branch_id"), "branch_id"),
            g.actor_id,
            data.get("details"),
            request_by=parse_int(data.get("request_by"), "request_by", required=False),
            request_date=data.get("request_date"),
            note=data.get("note"),
            approve=flag(data),
        )
        return jsonify(stock_request.to_dict()), 201

    except LedgerError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create stock request")
        return jsonify({"message": "Internal server error"}), 500


@stock_requests_bp.get("")
def list_requests_route():
    try:
        return list_documents(StockRequest)
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list stock requests")
        return jsonify({"message": "Internal server error"}), 500


@stock_requests_bp.get("/<int:request_id>")
def get_request_route(request_id: int):
    try:
        return jsonify(stock_document_service.get_request(request_id).to_dict()), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load stock request")
        return jsonify({"message": "Internal server error"}), 500


@stock_requests_bp.put("/<int:request_id>")
@require_actor
def update_request_route(request_id: int):
    try:
        data = json_body()
        stock_request = stock_document_service.update_request(
            request_id,
            g.actor_id,
            data.get("details"),
            request_by=parse_int(data.get("request_by"), "request_by", required=False),
            request_date=data.get("request_date"),
            note=data.get("note"),
            approve=flag(data),
        )
        return jsonify(stock_request.to_dict()), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update stock request")
        return jsonify({"message": "Internal server error"}), 500


@stock_requests_bp.post("/<int:request_id>/approve")
@require_actor
def approve_request_route(request_id: int):
    try:
        stock_request = stock_document_service.approve_request(request_id, g.actor_id)
        return jsonify(stock_request.to_dict()), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to approve stock request")
        return jsonify({"message": "Internal server error"}), 500


@stock_requests_bp.post("/<int:request_id>/cancel")
@require_actor
def cancel_request_route(request_id: int):
    try:
        data = json_body()
        stock_request = stock_document_service.cancel_request(request_id, g.actor_id, data.get("reason"))
        return jsonify(stock_request.to_dict()), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to cancel stock request")
        return jsonify({"message": "Internal server error"}), 500
