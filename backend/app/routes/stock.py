# Overview: Flask API routes for stock levels, movement history and reconciliation.

# backend/app/routes/stock.py
"""
Stock read API.

Read-only: every write goes through a document workflow.
"""

from flask import Blueprint, request, jsonify, current_app

from ..extensions import db
from ..models import StockMovement
from ..models.inventory import MOVEMENT_TYPES
from ..services import inventory_service, ledger_service, reconciliation_service
from ..services.query_service import paginate
from ..validation import LedgerError, parse_choice, parse_int
from .common import error_response


stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


@stock_bp.get("")
def stock_levels_route():
    """
    Current stock levels.

    Query args: branch_id, product_variant_id (both optional)
    """
    try:
        summary = inventory_service.get_stock_summary(
            branch_id=parse_int(request.args.get("branch_id"), "branch_id", required=False),
            variant_id=parse_int(request.args.get("product_variant_id"), "product_variant_id", required=False),
        )
        return jsonify(summary), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load stock levels")
        return jsonify({"message": "Internal server error"}), 500


@stock_bp.get("/movements")
def movements_route():
    """
    Movement history, paginated.

    Query args: branch_id, product_variant_id, type, sort_field
    (id | created_at | quantity | type), sort_order, page, page_size
    """
    try:
        args = request.args
        movement_type = args.get("type")
        if movement_type:
            movement_type = parse_choice(movement_type, "type", MOVEMENT_TYPES)

        query = ledger_service.movements_query(
            db.session,
            branch_id=parse_int(args.get("branch_id"), "branch_id", required=False),
            variant_id=parse_int(args.get("product_variant_id"), "product_variant_id", required=False),
            movement_type=movement_type,
        )
        page = paginate(
            query,
            StockMovement,
            sort_field=args.get("sort_field"),
            sort_order=args.get("sort_order"),
            page=args.get("page"),
            page_size=args.get("page_size"),
            search=args.get("search"),
            search_columns=(StockMovement.note,),
            sortable={
                "id": StockMovement.id,
                "created_at": StockMovement.created_at,
                "quantity": StockMovement.quantity,
                "type": StockMovement.type,
            },
        )
        return jsonify(page.to_dict()), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load stock movements")
        return jsonify({"message": "Internal server error"}), 500


@stock_bp.get("/reconcile")
def reconcile_route():
    """
    Stock rows whose quantity differs from the sum of their movements.

    Query args: branch_id (optional)
    """
    try:
        branch_id = parse_int(request.args.get("branch_id"), "branch_id", required=False)
        discrepancies = reconciliation_service.find_discrepancies(branch_id)
        return jsonify({
            "consistent": not discrepancies,
            "discrepancies": [d.to_dict() for d in discrepancies],
        }), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to reconcile stock")
        return jsonify({"message": "Internal server error"}), 500
