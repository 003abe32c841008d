# backend/barledger/routes/insights.py
"""
AI insights panel (admin).

The provider is optional: when it is not configured or fails, every route
still answers 200 with a fallback body flagged "degraded": true.
"""

from flask import Blueprint, current_app, jsonify, request

from ..context import current_context
from ..decorators import require_auth, require_role
from ..errors import BarError
from ..models.auth import ROLE_ADMIN
from ..models.ledger import TX_SALE
from ..services import catalog_service, insights_service, ledger_service, reporting_service

insights_bp = Blueprint("insights", __name__, url_prefix="/api/insights")

SALES_SUMMARY_LIMIT = 100


def _sales_summary(ctx) -> list[dict]:
    sales = ledger_service.list_transactions(ctx, type=TX_SALE, limit=SALES_SUMMARY_LIMIT)
    return [
        {
            "total_cents": t.total_cents,
            "items": ", ".join(line.name for line in t.lines),
            "hour": t.occurred_at.hour,
            "day": t.occurred_at.date().isoformat(),
        }
        for t in sales
    ]


def _purchase_summary(ctx, customer_id: int) -> str:
    history = ledger_service.customer_history(ctx, customer_id)
    entries = []
    for t in history:
        if t.type == TX_SALE:
            items = ", ".join(f"{line.name} x{line.to_dict()['quantity']}" for line in t.lines)
            entries.append(f"{t.occurred_at:%d/%m/%Y}: {items} ({t.total_cents / 100:.2f}, {t.payment_method})")
        else:
            entries.append(f"{t.occurred_at:%d/%m/%Y}: payment {t.total_cents / 100:.2f}")
    return "; ".join(entries) or "no purchases yet"


@insights_bp.post("/business")
@require_auth
@require_role(ROLE_ADMIN)
def business_analysis_route():
    """Analyze the dashboard period given by start/end/goal_cents in the body."""
    try:
        data = request.get_json(silent=True) or {}
        ctx = current_context()
        report = reporting_service.dashboard(
            ctx, start=data.get("start"), end=data.get("end"), goal_cents=data.get("goal_cents"),
        )
        figures = {
            **report["metrics"],
            "top_products": report["top_products"],
            "low_stock_count": report["low_stock_count"],
            "goal_cents": report["goal_cents"],
            "goal_progress": report["goal_progress"],
        }
        return jsonify(insights_service.analyze_business_performance(ctx.insights, figures)), 200

    except BarError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to analyze business performance")
        return jsonify({"error": "Internal server error"}), 500


@insights_bp.post("/ask")
@require_auth
@require_role(ROLE_ADMIN)
def ask_route():
    """
    Request body:
    {
        "question": "Qual o horário de maior movimento?",
        "customer_id": 3          # optional, adds the customer's profile
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        question = (data.get("question") or "").strip()
        if not question:
            return jsonify({"error": "question required"}), 400

        ctx = current_context()
        customer_profile = None
        if data.get("customer_id") is not None:
            customer = catalog_service.get_customer(ctx, int(data["customer_id"]))
            customer_profile = {
                "name": customer.name,
                "balance_cents": customer.balance_cents,
                "purchase_summary": _purchase_summary(ctx, customer.id),
            }

        answer = insights_service.answer_question(
            ctx.insights,
            question,
            sales_summary=_sales_summary(ctx),
            customer_profile=customer_profile,
        )
        return jsonify(answer), 200

    except BarError as e:
        return jsonify(e.to_dict()), e.http_status
    except (TypeError, ValueError):
        return jsonify({"error": "customer_id must be an integer"}), 400
    except Exception:
        current_app.logger.exception("Failed to answer question")
        return jsonify({"error": "Internal server error"}), 500


@insights_bp.post("/customers/<int:customer_id>")
@require_auth
@require_role(ROLE_ADMIN)
def customer_insights_route(customer_id: int):
    """Body may carry free-text "preferences" noted by staff."""
    try:
        data = request.get_json(silent=True) or {}
        ctx = current_context()
        catalog_service.get_customer(ctx, customer_id)
        result = insights_service.customer_insights(
            ctx.insights, _purchase_summary(ctx, customer_id), data.get("preferences") or "",
        )
        return jsonify(result), 200

    except BarError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to build customer insights")
        return jsonify({"error": "Internal server error"}), 500
