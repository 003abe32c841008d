# backend/barledger/routes/suppliers.py
"""Supplier registry, purchase history and multi-item purchases (admin, cashier)."""

from flask import Blueprint, current_app, jsonify, request

from ..context import current_context
from ..decorators import current_user_id, require_auth, require_role
from ..errors import BarError
from ..models.auth import ROLE_ADMIN, ROLE_CASHIER
from ..services import catalog_service, ledger_service, stock_service

suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")


@suppliers_bp.get("")
@require_auth
@require_role(ROLE_ADMIN, ROLE_CASHIER)
def list_suppliers_route():
    suppliers = catalog_service.list_suppliers(current_context())
    return jsonify({"suppliers": [s.to_dict() for s in suppliers]}), 200


@suppliers_bp.get("/<int:supplier_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_CASHIER)
def get_supplier_route(supplier_id: int):
    try:
        supplier = catalog_service.get_supplier(current_context(), supplier_id)
        return jsonify({"supplier": supplier.to_dict()}), 200
    except BarError as e:
        return jsonify(e.to_dict()), e.http_status


@suppliers_bp.post("")
@require_auth
@require_role(ROLE_ADMIN, ROLE_CASHIER)
def create_supplier_route():
    try:
        payload = request.get_json(silent=True) or {}
        supplier = catalog_service.create_supplier(current_context(), payload)
        return jsonify({"supplier": supplier.to_dict()}), 201

    except BarError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create supplier")
        return jsonify({"error": "Internal server error"}), 500


@suppliers_bp.put("/<int:supplier_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_CASHIER)
def update_supplier_route(supplier_id: int):
    try:
        payload = request.get_json(silent=True) or {}
        supplier = catalog_service.update_supplier(current_context(), supplier_id, payload)
        return jsonify({"supplier": supplier.to_dict()}), 200

    except BarError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to update supplier")
        return jsonify({"error": "Internal server error"}), 500


@suppliers_bp.delete("/<int:supplier_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_supplier_route(supplier_id: int):
    try:
        catalog_service.delete_supplier(current_context(), supplier_id)
        return jsonify({"ok": True}), 200

    except BarError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to delete supplier")
        return jsonify({"error": "Internal server error"}), 500


@suppliers_bp.get("/<int:supplier_id>/history")
@require_auth
@require_role(ROLE_ADMIN, ROLE_CASHIER)
def supplier_history_route(supplier_id: int):
    try:
        ctx = current_context()
        supplier = catalog_service.get_supplier(ctx, supplier_id)
        history = ledger_service.supplier_history(ctx, supplier_id)
        return jsonify({
            "supplier": supplier.to_dict(),
            "transactions": [t.to_dict() for t in history],
            "total_purchased_cents": sum(t.total_cents for t in history),
        }), 200
    except BarError as e:
        return jsonify(e.to_dict()), e.http_status


@suppliers_bp.post("/<int:supplier_id>/purchases")
@require_auth
@require_role(ROLE_ADMIN, ROLE_CASHIER)
def record_purchase_route(supplier_id: int):
    """
    Record a purchase of several products from this supplier.

    Request body:
    {
        "items": [{"product_id": 1, "quantity": 6, "unit_cost_cents": 4500}]
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        expense = stock_service.record_purchase(
            current_context(), supplier_id, data.get("items"), user_id=current_user_id(),
        )
        return jsonify({"transaction": expense.to_dict()}), 201

    except BarError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to record purchase")
        return jsonify({"error": "Internal server error"}), 500
