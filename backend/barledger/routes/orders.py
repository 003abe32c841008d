# backend/barledger/routes/orders.py
"""
Open tab routes.

- Tab handling (open, items, customer, discard): any authenticated user
- Settlement: admin, cashier
"""

from flask import Blueprint, current_app, jsonify, request

from ..context import current_context
from ..decorators import current_user_id, require_auth, require_role
from ..errors import BarError, ValidationError
from ..models.auth import ROLE_ADMIN, ROLE_CASHIER
from ..services import order_service, settlement_service
from ..time_utils import parse_business_datetime

orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


def _optional_int(data: dict, key: str) -> int | None:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{key} must be an integer")


@orders_bp.get("")
@require_auth
def list_open_orders_route():
    orders = order_service.list_open_orders(current_context())
    return jsonify({"orders": [o.to_dict() for o in orders]}), 200


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(current_context(), order_id)
        return jsonify({"order": order.to_dict()}), 200
    except BarError as e:
        return jsonify(e.to_dict()), e.http_status


@orders_bp.post("")
@require_auth
def create_order_route():
    """
    Open a tab.

    Request body:
    {
        "display_name": "Mesa 4",
        "customer_id": 12          # optional
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        order = order_service.create_order(
            current_context(),
            data.get("display_name"),
            customer_id=_optional_int(data, "customer_id"),
            user_id=current_user_id(),
        )
        return jsonify({"order": order.to_dict()}), 201

    except BarError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to open tab")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/new-customer")
@require_auth
def create_order_for_new_customer_route():
    """Register a walk-in customer by name and open their tab."""
    try:
        data = request.get_json(silent=True) or {}
        order = order_service.create_order_for_new_customer(
            current_context(), data.get("name"), user_id=current_user_id(),
        )
        return jsonify({"order": order.to_dict()}), 201

    except BarError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to open tab for new customer")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.put("/<int:order_id>/items")
@require_auth
def update_items_route(order_id: int):
    """
    Replace the tab's item list.

    Request body:
    {
        "items": [
            {"product_id": 1, "quantity": 2, "unit_price_cents": 800},
            {"product_id": 5, "quantity": 1, "unit_price_cents": 1200,
             "size": 50, "dose_name": "Dose 50ml"}
        ]
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        order = order_service.update_order_items(current_context(), order_id, data.get("items"))
        return jsonify({"order": order.to_dict()}), 200

    except BarError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to update tab items")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.put("/<int:order_id>/customer")
@require_auth
def reassign_customer_route(order_id: int):
    try:
        data = request.get_json(silent=True) or {}
        customer_id = _optional_int(data, "customer_id")
        if customer_id is None:
            return jsonify({"error": "customer_id required"}), 400
        order = order_service.reassign_customer(
            current_context(), order_id, customer_id, data.get("display_name"),
        )
        return jsonify({"order": order.to_dict()}), 200

    except BarError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to reassign tab customer")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.delete("/<int:order_id>")
@require_auth
def discard_order_route(order_id: int):
    try:
        order_service.discard_order(current_context(), order_id)
        return jsonify({"ok": True}), 200

    except BarError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to discard tab")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/settle")
@require_auth
@require_role(ROLE_ADMIN, ROLE_CASHIER)
def settle_order_route(order_id: int):
    """
    Close a tab into a sale.

    Request body:
    {
        "payment_method": "Dinheiro",
        "customer_id": 12,                       # optional, required for "Fiado"
        "tendered_cents": 5000,                  # optional
        "discount_cents": 0,                     # optional
        "sale_date": "2026-01-31T22:15:00Z"      # optional, retroactive sale
    }

    Returns the closed order, the sale transaction and change due.
    """
    try:
        data = request.get_json(silent=True) or {}
        payment_method = data.get("payment_method")
        if not payment_method:
            return jsonify({"error": "payment_method required"}), 400

        ctx = current_context()
        try:
            sale_date = parse_business_datetime(data.get("sale_date"), ctx.settings.tz)
        except (TypeError, ValueError, AttributeError):
            return jsonify({"error": "sale_date must be an ISO-8601 datetime"}), 400

        result = settlement_service.settle(
            ctx,
            order_id,
            payment_method,
            customer_id=_optional_int(data, "customer_id"),
            tendered_cents=data.get("tendered_cents"),
            discount_cents=data.get("discount_cents", 0),
            sale_date=sale_date,
            user_id=current_user_id(),
        )
        return jsonify(result.to_dict()), 200

    except BarError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to settle tab")
        return jsonify({"error": "Internal server error"}), 500
