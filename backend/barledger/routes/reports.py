# backend/barledger/routes/reports.py
"""
Reporting routes. All figures are derived from the ledger and current
product/customer state; nothing here writes.
"""

from flask import Blueprint, current_app, jsonify, request

from ..context import current_context
from ..decorators import require_auth, require_role
from ..errors import BarError
from ..models.auth import ROLE_ADMIN, ROLE_CASHIER
from ..services import reporting_service

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/dashboard")
@require_auth
@require_role(ROLE_ADMIN)
def dashboard_route():
    """
    Query params:
    - start, end: ISO-8601 dates (default today)
    - goal_cents: explicit revenue goal for the period
    """
    try:
        report = reporting_service.dashboard(
            current_context(),
            start=request.args.get("start"),
            end=request.args.get("end"),
            goal_cents=request.args.get("goal_cents", type=int),
        )
        return jsonify(report), 200

    except BarError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to build dashboard")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/low-stock")
@require_auth
def low_stock_route():
    return jsonify(reporting_service.low_stock_report(current_context())), 200


@reports_bp.get("/debtors")
@require_auth
@require_role(ROLE_ADMIN, ROLE_CASHIER)
def debtors_route():
    return jsonify(reporting_service.debtors_report(current_context())), 200


@reports_bp.get("/top-products")
@require_auth
@require_role(ROLE_ADMIN)
def top_products_route():
    try:
        report = reporting_service.top_products_report(
            current_context(),
            start=request.args.get("start"),
            end=request.args.get("end"),
            limit=request.args.get("limit", default=10, type=int),
        )
        return jsonify(report), 200
    except BarError as e:
        return jsonify(e.to_dict()), e.http_status
