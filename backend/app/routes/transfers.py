# backend/app/routes/transfers.py
"""
Inter-branch transfer API routes.
"""
from flask import Blueprint, jsonify, g, current_app

from app.extensions import db
from app.decorators import require_actor
from app.services import transfer_service
from app.models import StockTransfer
from app.validation import LedgerError, parse_int
from app.routes.common import json_body, error_response, flag, list_documents


transfers_bp = Blueprint("transfers", __name__, url_prefix="/api/transfers")


@transfers_bp.route("", methods=["POST"])
@require_actor
def create_transfer():
    """
    Create a new transfer document.

    Request body:
    {
        "branch_id": int,
        "to_branch_id": int,
        "transfer_date": str (optional),
        "note": str (optional),
        "approve": bool (optional),
        "details": [{"product_id": int, "product_variant_id": int, "quantity": number}]
    }

    Returns:
        201: Transfer created
        400: Invalid request (same branch, empty details)
        404: Branch or variant not found
    """
    data = json_body()

    try:
        transfer = transfer_service.create_transfer(
            parse_int(data.get("branch_id"), "branch_id"),
            data.get("to_branch_id"),
            g.actor_id,
            data.get("details"),
            transfer_date=data.get("transfer_date"),
            note=data.get("note"),
            approve=flag(data),
        )
        return jsonify(transfer.to_dict()), 201

    except LedgerError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create transfer")
        return jsonify({"message": "Internal server error"}), 500


@transfers_bp.route("", methods=["GET"])
def list_transfers():
    try:
        return list_documents(StockTransfer)
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list transfers")
        return jsonify({"message": "Internal server error"}), 500


@transfers_bp.route("/<int:transfer_id>", methods=["GET"])
def get_transfer(transfer_id: int):
    try:
        return jsonify(transfer_service.get_transfer(transfer_id).to_dict()), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load transfer")
        return jsonify({"message": "Internal server error"}), 500


@transfers_bp.route("/<int:transfer_id>", methods=["PUT"])
@require_actor
def update_transfer(transfer_id: int):
    """Replace a PENDING transfer's details (and optionally its destination)."""
    data = json_body()

    try:
        transfer = transfer_service.update_transfer(
            transfer_id,
            g.actor_id,
            data.get("details"),
            to_branch_id=data.get("to_branch_id"),
            transfer_date=data.get("transfer_date"),
            note=data.get("note"),
            approve=flag(data),
        )
        return jsonify(transfer.to_dict()), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update transfer")
        return jsonify({"message": "Internal server error"}), 500


@transfers_bp.route("/<int:transfer_id>/approve", methods=["POST"])
@require_actor
def approve_transfer(transfer_id: int):
    """
    Approve a transfer: stock leaves the source and arrives at the
    destination in one step.

    Returns:
        200: Transfer approved
        400: Invalid state
        404: Transfer not found
    """
    try:
        transfer = transfer_service.approve_transfer(transfer_id, g.actor_id)
        return jsonify(transfer.to_dict()), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to approve transfer")
        return jsonify({"message": "Internal server error"}), 500


@transfers_bp.route("/<int:transfer_id>/cancel", methods=["POST"])
@require_actor
def cancel_transfer(transfer_id: int):
    data = json_body()

    try:
        transfer = transfer_service.cancel_transfer(transfer_id, g.actor_id, data.get("reason"))
        return jsonify(transfer.to_dict()), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to cancel transfer")
        return jsonify({"message": "Internal server error"}), 500
