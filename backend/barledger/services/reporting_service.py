# Overview: Service-layer operations for reporting; loads snapshots and hands them to the pure aggregator.

from __future__ import annotations

from datetime import date, datetime, tzinfo

from ..errors import ValidationError
from ..models import Customer, Product, Transaction
from ..time_utils import (
    days_in_month,
    end_of_day,
    from_local,
    local_day_bounds,
    parse_iso_datetime,
    previous_period,
    start_of_day,
    to_local,
    to_utc_naive,
    to_utc_z,
    utcnow,
)
from ..validation import parse_optional_cents
from . import reporting

MAX_TOP_LIMIT = 100


def _parse_bound(value: str | datetime | date | None) -> datetime | date | None:
    """Bare dates stay calendar days; anything with a time becomes UTC-naive."""
    if value is None or isinstance(value, datetime):
        return to_utc_naive(value)
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        if len(text) == 10:
            return date.fromisoformat(text)
        return parse_iso_datetime(text)
    except ValueError:
        raise ValidationError("start and end must be ISO-8601 dates")


def _parse_range(start, end, tz: tzinfo | None) -> tuple[datetime, datetime]:
    """
    Default range is the current local day. Calendar days (and the day of a
    datetime start) are whole days in tz; an explicit end datetime is kept.
    """
    start_b = _parse_bound(start)
    end_b = _parse_bound(end)
    today = to_local(utcnow(), tz).date()

    if start_b is None:
        start_day = today
    elif isinstance(start_b, datetime):
        start_day = to_local(start_b, tz).date()
    else:
        start_day = start_b
    start_dt = local_day_bounds(start_day, tz)[0]

    if end_b is None:
        end_dt = local_day_bounds(today, tz)[1]
    elif isinstance(end_b, datetime):
        end_dt = end_b
    else:
        end_dt = local_day_bounds(end_b, tz)[1]

    if end_dt < start_dt:
        raise ValidationError("end must not be before start")
    return start_dt, end_dt


def _products(ctx) -> list[Product]:
    return ctx.session.query(Product).filter(Product.is_active.is_(True)).all()


def _customers(ctx) -> list[Customer]:
    return ctx.session.query(Customer).all()


def _transactions(ctx, start: datetime, end: datetime) -> list[Transaction]:
    return (
        ctx.session.query(Transaction)
        .filter(Transaction.occurred_at >= start, Transaction.occurred_at <= end)
        .all()
    )


def dashboard(ctx, *, start=None, end=None, goal_cents: int | None = None) -> dict:
    """
    Financial dashboard for [start, end] compared with the equal-length
    period before it.
    """
    tz = ctx.settings.tz
    start_dt, end_dt = _parse_range(start, end, tz)
    goal_cents = parse_optional_cents(goal_cents, "goal_cents")
    prev_start, prev_end = previous_period(start_dt, end_dt, tz)

    # Goal proration needs the whole local month of start
    local_start = to_local(start_dt, tz)
    month_start = from_local(start_of_day(local_start.replace(day=1)), tz)
    month_end = from_local(end_of_day(local_start.replace(day=days_in_month(local_start))), tz)
    load_from = min(prev_start, month_start)
    load_to = max(end_dt, month_end)

    report = reporting.dashboard(
        transactions=_transactions(ctx, load_from, load_to),
        products=_products(ctx),
        customers=_customers(ctx),
        start=start_dt,
        end=end_dt,
        previous_start=prev_start,
        previous_end=prev_end,
        credit_methods=ctx.settings.credit_payment_methods,
        low_stock_threshold=ctx.settings.low_stock_default_threshold,
        goal_cents=goal_cents,
        default_monthly_goal_cents=ctx.settings.default_monthly_goal_cents,
        tz=tz,
    )
    report["period"] = {
        "start": to_utc_z(start_dt),
        "end": to_utc_z(end_dt),
        "previous_start": to_utc_z(prev_start),
        "previous_end": to_utc_z(prev_end),
        "timezone": ctx.settings.business_timezone,
    }
    return report


def low_stock_report(ctx) -> dict:
    rows = reporting.low_stock_products(_products(ctx), ctx.settings.low_stock_default_threshold)
    return {
        "count": len(rows),
        "products": [p.to_dict() for p in rows],
    }


def debtors_report(ctx) -> dict:
    customers = _customers(ctx)
    debtors = sorted(
        (c for c in customers if c.balance_cents > 0),
        key=lambda c: (-c.balance_cents, c.name, c.id),
    )
    return {
        "debtor_count": reporting.debtor_count(customers),
        "total_receivables_cents": reporting.total_receivables_cents(customers),
        "customers": [c.to_dict() for c in debtors],
    }


def top_products_report(ctx, *, start=None, end=None, limit: int = reporting.DEFAULT_TOP_LIMIT) -> dict:
    if isinstance(limit, bool) or not isinstance(limit, int) or not 1 <= limit <= MAX_TOP_LIMIT:
        raise ValidationError(f"limit must be between 1 and {MAX_TOP_LIMIT}")
    start_dt, end_dt = _parse_range(start, end, ctx.settings.tz)
    transactions = _transactions(ctx, start_dt, end_dt)
    products = ctx.session.query(Product).all()
    return {
        "start": to_utc_z(start_dt),
        "end": to_utc_z(end_dt),
        "top_products": reporting.top_products(transactions, products, limit),
        "profit_by_product": reporting.profit_by_product(transactions, products, limit),
    }
