# backend/barledger/routes/ledger.py
"""
Ledger routes: read-only transaction queries and expense booking.

Transactions are append-only; there are no update or delete endpoints.
"""

from flask import Blueprint, current_app, jsonify, request

from ..context import current_context
from ..decorators import current_user_id, require_auth, require_role
from ..errors import BarError
from ..models.auth import ROLE_ADMIN, ROLE_CASHIER
from ..services import expense_service, ledger_service
from ..time_utils import parse_business_datetime, parse_iso_datetime, utcnow

ledger_bp = Blueprint("ledger", __name__, url_prefix="/api")


@ledger_bp.get("/transactions")
@require_auth
@require_role(ROLE_ADMIN, ROLE_CASHIER)
def list_transactions_route():
    """
    Query params:
    - type: sale | expense | payment
    - customer_id, supplier_id: int
    - start, end: ISO-8601 (inclusive)
    - limit: int (max 1000)
    """
    try:
        start = parse_iso_datetime(request.args.get("start"))
        end = parse_iso_datetime(request.args.get("end"))
    except ValueError:
        return jsonify({"error": "start and end must be ISO-8601 datetimes"}), 400

    try:
        transactions = ledger_service.list_transactions(
            current_context(),
            type=request.args.get("type") or None,
            customer_id=request.args.get("customer_id", type=int),
            supplier_id=request.args.get("supplier_id", type=int),
            start=start,
            end=end,
            limit=request.args.get("limit", type=int),
        )
        return jsonify({"transactions": [t.to_dict() for t in transactions]}), 200
    except BarError as e:
        return jsonify(e.to_dict()), e.http_status


@ledger_bp.get("/transactions/<int:transaction_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_CASHIER)
def get_transaction_route(transaction_id: int):
    try:
        tx = ledger_service.get_transaction(current_context(), transaction_id)
        return jsonify({"transaction": tx.to_dict()}), 200
    except BarError as e:
        return jsonify(e.to_dict()), e.http_status


@ledger_bp.post("/expenses")
@require_auth
@require_role(ROLE_ADMIN)
def add_expense_route():
    """
    Book an expense.

    Request body:
    {
        "description": "Aluguel",
        "amount_cents": 250000,
        "category": "Aluguel",            # optional, default "Geral"
        "date": "2026-02-05",             # optional, local day; default now
        "replicate_months": 11            # optional, repeat monthly
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        ctx = current_context()
        try:
            date = parse_business_datetime(data.get("date"), ctx.settings.tz) or utcnow()
        except (TypeError, ValueError, AttributeError):
            return jsonify({"error": "date must be an ISO-8601 date"}), 400

        expenses = expense_service.add_expense(
            ctx,
            data.get("description"),
            data.get("amount_cents"),
            data.get("category"),
            date,
            replicate_months=data.get("replicate_months", 0),
            user_id=current_user_id(),
        )
        return jsonify({"transactions": [t.to_dict() for t in expenses]}), 201

    except BarError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to add expense")
        return jsonify({"error": "Internal server error"}), 500
