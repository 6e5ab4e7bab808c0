# Overview: Shared request parsing and list handling for the API blueprints.

from flask import request, jsonify

from ..extensions import db
from ..services.query_service import paginate, document_sortable
from ..validation import parse_int


def json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def error_response(exc):
    """LedgerError -> {"message": ...} with its status code."""
    return jsonify({"message": exc.message}), exc.status_code


def flag(data: dict, key: str = "approve") -> bool:
    value = data.get(key, False)
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes")
    return bool(value)


def list_documents(model, *, search_columns=None):
    """
    Paginated list of a document header table.

    Query args: branch_id, status, search, sort_field, sort_order, page,
    page_size. Soft-deleted documents are included; filter on status.
    """
    args = request.args
    query = db.session.query(model)

    branch_id = parse_int(args.get("branch_id"), "branch_id", required=False)
    if branch_id is not None:
        query = query.filter(model.branch_id == branch_id)
    status = args.get("status")
    if status:
        query = query.filter(model.status == status.strip().upper())

    page = paginate(
        query,
        model,
        sort_field=args.get("sort_field"),
        sort_order=args.get("sort_order"),
        page=args.get("page"),
        page_size=args.get("page_size"),
        search=args.get("search"),
        search_columns=search_columns or (model.ref,),
        sortable=document_sortable(model),
    )
    return jsonify(page.to_dict()), 200
