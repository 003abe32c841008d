# backend/barledger/routes/products.py
"""
Product catalog and stock receipt routes.

- Reads: any authenticated user (waiters need the menu)
- Catalog writes: admin
- Stock receipts: admin, cashier
"""

from flask import Blueprint, current_app, jsonify, request

from ..context import current_context
from ..decorators import current_user_id, require_auth, require_role
from ..errors import BarError
from ..models.auth import ROLE_ADMIN, ROLE_CASHIER
from ..services import catalog_service, stock_service

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products_route():
    """
    Query params:
    - include_inactive: "true" to include deactivated products
    - category: exact category filter
    """
    include_inactive = request.args.get("include_inactive", "").lower() == "true"
    category = request.args.get("category") or None
    products = catalog_service.list_products(
        current_context(), include_inactive=include_inactive, category=category,
    )
    return jsonify({"products": [p.to_dict() for p in products]}), 200


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        product = catalog_service.get_product(current_context(), product_id)
        return jsonify({"product": product.to_dict()}), 200
    except BarError as e:
        return jsonify(e.to_dict()), e.http_status


@products_bp.post("")
@require_auth
@require_role(ROLE_ADMIN)
def create_product_route():
    try:
        payload = request.get_json(silent=True) or {}
        product = catalog_service.create_product(current_context(), payload)
        return jsonify({"product": product.to_dict()}), 201

    except BarError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.put("/<int:product_id>")
@require_auth
@require_role(ROLE_ADMIN)
def update_product_route(product_id: int):
    try:
        payload = request.get_json(silent=True) or {}
        product = catalog_service.update_product(current_context(), product_id, payload)
        return jsonify({"product": product.to_dict()}), 200

    except BarError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.delete("/<int:product_id>")
@require_auth
@require_role(ROLE_ADMIN)
def deactivate_product_route(product_id: int):
    try:
        product = catalog_service.deactivate_product(current_context(), product_id)
        return jsonify({"product": product.to_dict()}), 200

    except BarError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to deactivate product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.post("/<int:product_id>/stock")
@require_auth
@require_role(ROLE_ADMIN, ROLE_CASHIER)
def receive_stock_route(product_id: int):
    """
    Receive stock for one product.

    Request body:
    {
        "quantity": 12,               # whole units or bottles
        "total_cost_cents": 6000,     # optional, books an expense when > 0
        "unit_cost_cents": 500,       # optional, new cost price
        "supplier_id": 3              # optional
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        supplier_id = data.get("supplier_id")
        product = stock_service.receive_stock(
            current_context(),
            product_id,
            data.get("quantity"),
            total_cost_cents=data.get("total_cost_cents"),
            supplier_id=int(supplier_id) if supplier_id is not None else None,
            unit_cost_cents=data.get("unit_cost_cents"),
            user_id=current_user_id(),
        )
        return jsonify({"product": product.to_dict()}), 200

    except BarError as e:
        return jsonify(e.to_dict()), e.http_status
    except (TypeError, ValueError):
        return jsonify({"error": "supplier_id must be an integer"}), 400
    except Exception:
        current_app.logger.exception("Failed to receive stock")
        return jsonify({"error": "Internal server error"}), 500
