# backend/barledger/routes/customers.py
"""
Customer routes: registry, credit ("fiado") history and debt payments.

- Reads and create: any authenticated user (walk-ins are registered at the table)
- Edits and payments: admin, cashier
- Delete: admin
"""

from flask import Blueprint, current_app, jsonify, request

from ..context import current_context
from ..decorators import current_user_id, require_auth, require_role
from ..errors import BarError
from ..models.auth import ROLE_ADMIN, ROLE_CASHIER
from ..services import catalog_service, ledger_service, payment_service

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
def list_customers_route():
    """Query params: debtors_only=true to list only customers who owe the bar."""
    debtors_only = request.args.get("debtors_only", "").lower() == "true"
    customers = catalog_service.list_customers(current_context(), debtors_only=debtors_only)
    return jsonify({"customers": [c.to_dict() for c in customers]}), 200


@customers_bp.get("/<int:customer_id>")
@require_auth
def get_customer_route(customer_id: int):
    try:
        customer = catalog_service.get_customer(current_context(), customer_id)
        return jsonify({"customer": customer.to_dict()}), 200
    except BarError as e:
        return jsonify(e.to_dict()), e.http_status


@customers_bp.post("")
@require_auth
def create_customer_route():
    try:
        payload = request.get_json(silent=True) or {}
        customer = catalog_service.create_customer(current_context(), payload)
        return jsonify({"customer": customer.to_dict()}), 201

    except BarError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.put("/<int:customer_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_CASHIER)
def update_customer_route(customer_id: int):
    try:
        payload = request.get_json(silent=True) or {}
        customer = catalog_service.update_customer(current_context(), customer_id, payload)
        return jsonify({"customer": customer.to_dict()}), 200

    except BarError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to update customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.delete("/<int:customer_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_customer_route(customer_id: int):
    try:
        catalog_service.delete_customer(current_context(), customer_id)
        return jsonify({"ok": True}), 200

    except BarError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to delete customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("/<int:customer_id>/history")
@require_auth
@require_role(ROLE_ADMIN, ROLE_CASHIER)
def customer_history_route(customer_id: int):
    """Sales and payments of one customer, newest first."""
    try:
        ctx = current_context()
        customer = catalog_service.get_customer(ctx, customer_id)
        history = ledger_service.customer_history(ctx, customer_id)
        return jsonify({
            "customer": customer.to_dict(),
            "transactions": [t.to_dict() for t in history],
        }), 200
    except BarError as e:
        return jsonify(e.to_dict()), e.http_status


@customers_bp.post("/<int:customer_id>/payments")
@require_auth
@require_role(ROLE_ADMIN, ROLE_CASHIER)
def receive_payment_route(customer_id: int):
    """
    Receive a payment against the customer's debt.

    Request body:
    {
        "amount_cents": 2000,
        "method": "Pix"
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        ctx = current_context()
        payment = payment_service.receive_payment(
            ctx,
            customer_id,
            data.get("amount_cents"),
            data.get("method"),
            user_id=current_user_id(),
        )
        customer = catalog_service.get_customer(ctx, customer_id)
        return jsonify({"payment": payment.to_dict(), "customer": customer.to_dict()}), 201

    except BarError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to receive payment")
        return jsonify({"error": "Internal server error"}), 500
