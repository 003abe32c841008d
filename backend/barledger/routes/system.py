# backend/barledger/routes/system.py
"""
System health endpoint.

Reports database connectivity and subscription/insight wiring for
deployment debugging.
"""

import time

from flask import Blueprint, current_app

from ..context import current_context
from ..models import Customer, Order, Product, Transaction
from ..time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        session = current_context().session
        details = {
            "products": session.query(Product).count(),
            "customers": session.query(Customer).count(),
            "orders": session.query(Order).count(),
            "transactions": session.query(Transaction).count(),
        }
        elapsed_ms = (time.time() - start_time) * 1000
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2), "details": details}
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {"status": "unhealthy", "latency_ms": round(elapsed_ms, 2), "error": "Database error"}


def check_insights_health() -> dict:
    client = current_context().insights
    if client is None or not client.configured:
        return {"status": "degraded", "warning": "Insight provider not configured"}
    return {"status": "healthy", "details": {"model": client.model}}


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded (AI insights off still serves the ledger)
    - 503: database unreachable
    """
    database_health = check_database_health()
    insights_health = check_insights_health()
    hub = current_context().hub

    if database_health["status"] == "unhealthy":
        overall_status, http_status = "unhealthy", 503
    elif insights_health["status"] == "degraded":
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    return {
        "status": overall_status,
        "timestamp": to_utc_z(utcnow()),
        "checks": {
            "database": database_health,
            "insights": insights_health,
            "subscriptions": {
                "collections": hub.collections if hub is not None else [],
            },
        },
    }, http_status
