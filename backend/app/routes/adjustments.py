# Overview: Flask API routes for stock adjustments; parses input and returns JSON responses.

# backend/app/routes/adjustments.py
"""
Stock Adjustment API Routes

DESIGN:
- Create/update adjustments while PENDING (details replaced wholesale)
- Approve once: every line becomes an ADJUSTMENT movement and a stock delta
- Cancel = soft delete with reason, PENDING only
"""

from flask import Blueprint, jsonify, g, current_app

from ..extensions import db
from ..models import StockAdjustment
from ..services import stock_document_service
from ..decorators import require_actor
from ..validation import LedgerError, parse_int
from .common import json_body, error_response, flag, list_documents


adjustments_bp = Blueprint("adjustments", __name__, url_prefix="/api/adjustments")


@adjustments_bp.post("")
@require_actor
def create_adjustment_route():
    """
    Create a stock adjustment (status: PENDING).

    Request body:
    {
        "branch_id": 1,
        "adjustment_type": "POSITIVE" | "NEGATIVE",  (default POSITIVE)
        "adjust_date": "2026-01-31",  (optional, default today)
        "note": "...",  (optional)
        "approve": false,  (optional, approve in the same transaction)
        "details": [{"product_id": 1, "product_variant_id": 3, "quantity": 10}]
    }

    Returns:
        201: Adjustment created
        400: Invalid input / already approved
        404: Branch or variant not found
    """
    try:
        data = json_body()
        adjustment = stock_document_service.create_adjustment(
            parse_int(data.get("branch_id"), "branch_id"),
            g.actor_id,
            data.get("details"),
            adjustment_type=data.get("adjustment_type"),
            adjust_date=data.get("adjust_date"),
            note=data.get("note"),
            approve=flag(data),
        )
        return jsonify(adjustment.to_dict()), 201

    except LedgerError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create stock adjustment")
        return jsonify({"message": "Internal server error"}), 500


@adjustments_bp.get("")
def list_adjustments_route():
    try:
        return list_documents(StockAdjustment)
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list stock adjustments")
        return jsonify({"message": "Internal server error"}), 500


@adjustments_bp.get("/<int:adjustment_id>")
def get_adjustment_route(adjustment_id: int):
    try:
        adjustment = stock_document_service.get_adjustment(adjustment_id)
        return jsonify(adjustment.to_dict()), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load stock adjustment")
        return jsonify({"message": "Internal server error"}), 500


@adjustments_bp.put("/<int:adjustment_id>")
@require_actor
def update_adjustment_route(adjustment_id: int):
    """
    Replace a PENDING adjustment's header fields and details.

    Same body as create (branch_id is ignored).
    """
    try:
        data = json_body()
        adjustment = stock_document_service.update_adjustment(
            adjustment_id,
            g.actor_id,
            data.get("details"),
            adjustment_type=data.get("adjustment_type"),
            adjust_date=data.get("adjust_date"),
            note=data.get("note"),
            approve=flag(data),
        )
        return jsonify(adjustment.to_dict()), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update stock adjustment")
        return jsonify({"message": "Internal server error"}), 500


@adjustments_bp.post("/<int:adjustment_id>/approve")
@require_actor
def approve_adjustment_route(adjustment_id: int):
    """
    Approve an adjustment and apply it to stock.

    Returns:
        200: Approved
        400: Already approved / cancelled
        404: Adjustment not found
    """
    try:
        adjustment = stock_document_service.approve_adjustment(adjustment_id, g.actor_id)
        return jsonify(adjustment.to_dict()), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to approve stock adjustment")
        return jsonify({"message": "Internal server error"}), 500


@adjustments_bp.post("/<int:adjustment_id>/cancel")
@require_actor
def cancel_adjustment_route(adjustment_id: int):
    """
    Cancel (soft delete) a PENDING adjustment.

    Request body: {"reason": "..."}  (optional)
    """
    try:
        data = json_body()
        adjustment = stock_document_service.cancel_adjustment(adjustment_id, g.actor_id, data.get("reason"))
        return jsonify(adjustment.to_dict()), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to cancel stock adjustment")
        return jsonify({"message": "Internal server error"}), 500
