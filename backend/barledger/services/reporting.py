# Overview: Pure aggregations over product, customer and transaction snapshots.

"""
Every function here is a pure function of its inputs: no database access, no
clock, no mutation. Results never depend on input ordering; rankings break
ties by name and then id so two runs over the same snapshot are identical.

Inputs are ORM rows or any objects exposing the same attributes.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, tzinfo
from decimal import Decimal
from typing import Iterable

from ..models.catalog import SALE_TYPE_SERVICE
from ..models.ledger import EXPENSE_CATEGORY_SUPPLIES, TX_EXPENSE, TX_PAYMENT, TX_SALE
from ..money import ZERO, quantity_to_json, round_cents, to_decimal
from ..time_utils import days_in_month, end_of_day, from_local, start_of_day, to_local

DEFAULT_TOP_LIMIT = 10
UNKNOWN_METHOD = "Outros"
DEFAULT_EXPENSE_CATEGORY = "Geral"


# =============================================================================
# INVENTORY & CUSTOMERS
# =============================================================================

def _threshold(product, default_threshold) -> Decimal:
    if product.low_stock_threshold is not None:
        return to_decimal(product.low_stock_threshold)
    return to_decimal(default_threshold)


def is_low_stock(product, default_threshold=0) -> bool:
    if product.sale_type == SALE_TYPE_SERVICE:
        return False
    return to_decimal(product.stock or 0) <= _threshold(product, default_threshold)


def low_stock_products(products: Iterable, default_threshold=0) -> list:
    rows = [p for p in products if getattr(p, "is_active", True) and is_low_stock(p, default_threshold)]
    return sorted(rows, key=lambda p: (to_decimal(p.stock or 0), p.name or "", p.id or 0))


def low_stock_count(products: Iterable, default_threshold=0) -> int:
    return len(low_stock_products(products, default_threshold))


def out_of_stock_count(products: Iterable) -> int:
    return sum(
        1 for p in products
        if getattr(p, "is_active", True) and p.sale_type != SALE_TYPE_SERVICE and to_decimal(p.stock or 0) <= ZERO
    )


def debtor_count(customers: Iterable) -> int:
    return sum(1 for c in customers if (c.balance_cents or 0) > 0)


def total_receivables_cents(customers: Iterable) -> int:
    return sum(c.balance_cents for c in customers if (c.balance_cents or 0) > 0)


# =============================================================================
# TRANSACTION FILTERS
# =============================================================================

def in_period(transactions: Iterable, start: datetime, end: datetime) -> list:
    return [t for t in transactions if t.occurred_at is not None and start <= t.occurred_at <= end]


def of_type(transactions: Iterable, tx_type: str) -> list:
    return [t for t in transactions if t.type == tx_type]


# =============================================================================
# TIME HISTOGRAMS
# =============================================================================

def _js_weekday(dt: datetime) -> int:
    """0 = Sunday ... 6 = Saturday."""
    return (dt.weekday() + 1) % 7


def sales_by_hour(transactions: Iterable, tz: tzinfo | None = None) -> list[dict]:
    counts = [0] * 24
    totals = [0] * 24
    for t in of_type(transactions, TX_SALE):
        hour = to_local(t.occurred_at, tz).hour
        counts[hour] += 1
        totals[hour] += t.total_cents
    return [
        {"hour": f"{h:02d}:00", "sales": counts[h], "total_cents": totals[h]}
        for h in range(24)
    ]


def sales_heatmap(transactions: Iterable, tz: tzinfo | None = None) -> list[dict]:
    grid: dict[tuple[int, int], int] = defaultdict(int)
    for t in of_type(transactions, TX_SALE):
        local = to_local(t.occurred_at, tz)
        grid[(_js_weekday(local), local.hour)] += 1
    return [
        {"day": day, "hour": hour, "value": grid.get((day, hour), 0)}
        for day in range(7)
        for hour in range(24)
    ]


def sales_by_day(transactions: Iterable, tz: tzinfo | None = None) -> list[dict]:
    counts: dict[str, int] = defaultdict(int)
    totals: dict[str, int] = defaultdict(int)
    for t in of_type(transactions, TX_SALE):
        key = to_local(t.occurred_at, tz).date().isoformat()
        counts[key] += 1
        totals[key] += t.total_cents
    return [
        {"date": key, "sales": counts[key], "total_cents": totals[key]}
        for key in sorted(counts)
    ]


# =============================================================================
# PRODUCT RANKINGS
# =============================================================================

def _line_key(line):
    return line.product_id if line.product_id is not None else f"name:{line.name}"


def _line_unit_cost(line, products_by_id: dict) -> int | None:
    if line.unit_cost_cents is not None:
        return line.unit_cost_cents
    product = products_by_id.get(line.product_id)
    if product is None:
        return None
    cost = product.cost_price_cents or 0
    if line.size is not None and product.base_unit_size:
        return round_cents(to_decimal(cost) * to_decimal(line.size) / to_decimal(product.base_unit_size))
    return cost


def _names(transactions: Iterable, products_by_id: dict) -> dict:
    names: dict = {}
    for t in transactions:
        for line in t.lines:
            key = _line_key(line)
            product = products_by_id.get(line.product_id)
            candidate = product.name if product is not None else line.name
            if key not in names or candidate < names[key]:
                names[key] = candidate
    return names


def _ranked(totals: dict, names: dict, value_key: str, limit: int | None) -> list[dict]:
    rows = [
        {
            "product_id": key if not isinstance(key, str) else None,
            "name": names.get(key, ""),
            value_key: value,
        }
        for key, value in totals.items()
    ]
    rows.sort(key=lambda r: (-r[value_key], r["name"], r["product_id"] or 0))
    return rows if limit is None else rows[:max(limit, 0)]


def top_products(transactions: Iterable, products: Iterable = (), limit: int | None = DEFAULT_TOP_LIMIT) -> list[dict]:
    """Best sellers by quantity across sale lines."""
    sales = of_type(transactions, TX_SALE)
    products_by_id = {p.id: p for p in products}
    totals: dict = defaultdict(Decimal)
    for t in sales:
        for line in t.lines:
            totals[_line_key(line)] += to_decimal(line.quantity)
    rows = _ranked(totals, _names(sales, products_by_id), "quantity", limit)
    for row in rows:
        row["quantity"] = quantity_to_json(row["quantity"])
    return rows


def profit_by_product(transactions: Iterable, products: Iterable = (), limit: int | None = DEFAULT_TOP_LIMIT) -> list[dict]:
    """
    Profit per product: sum of (unit price - unit cost) x quantity.

    Uses the cost snapshot stored on the line; older lines without one fall
    back to the product's current cost. Lines with neither are skipped.
    """
    sales = of_type(transactions, TX_SALE)
    products_by_id = {p.id: p for p in products}
    totals: dict = defaultdict(Decimal)
    for t in sales:
        for line in t.lines:
            unit_cost = _line_unit_cost(line, products_by_id)
            if unit_cost is None:
                continue
            totals[_line_key(line)] += (line.unit_price_cents - unit_cost) * to_decimal(line.quantity)
    rows = _ranked({k: round_cents(v) for k, v in totals.items()}, _names(sales, products_by_id), "profit_cents", limit)
    return rows


def cost_of_goods_cents(transactions: Iterable, products: Iterable = ()) -> int:
    products_by_id = {p.id: p for p in products}
    total = ZERO
    for t in of_type(transactions, TX_SALE):
        for line in t.lines:
            unit_cost = _line_unit_cost(line, products_by_id)
            if unit_cost is not None:
                total += unit_cost * to_decimal(line.quantity)
    return round_cents(total)


# =============================================================================
# MONEY BREAKDOWNS
# =============================================================================

def _breakdown(pairs: Iterable[tuple[str, int]]) -> list[dict]:
    totals: dict[str, int] = defaultdict(int)
    for name, value in pairs:
        totals[name] += value
    return [{"name": name, "value_cents": totals[name]} for name in sorted(totals)]


def sales_by_payment_method(transactions: Iterable) -> list[dict]:
    return _breakdown((t.payment_method or UNKNOWN_METHOD, t.total_cents) for t in of_type(transactions, TX_SALE))


def cash_inflow_by_method(transactions: Iterable, credit_methods: Iterable[str] = ()) -> list[dict]:
    """Money actually received: non-credit sales plus debt payments."""
    credit = set(credit_methods)
    pairs = []
    for t in transactions:
        if t.type == TX_SALE and t.payment_method not in credit:
            pairs.append((t.payment_method or UNKNOWN_METHOD, t.total_cents))
        elif t.type == TX_PAYMENT:
            pairs.append((t.payment_method or UNKNOWN_METHOD, t.total_cents))
    return _breakdown(pairs)


def expenses_by_category(transactions: Iterable) -> list[dict]:
    return _breakdown(
        (t.expense_category or DEFAULT_EXPENSE_CATEGORY, t.total_cents) for t in of_type(transactions, TX_EXPENSE)
    )


# =============================================================================
# PERIOD METRICS
# =============================================================================

def period_metrics(transactions: Iterable, products: Iterable = (), credit_methods: Iterable[str] = ()) -> dict:
    transactions = list(transactions)
    credit = set(credit_methods)
    sales = of_type(transactions, TX_SALE)
    expenses = of_type(transactions, TX_EXPENSE)

    revenue = sum(t.total_cents for t in sales)
    cash_inflow = sum(t.total_cents for t in sales if t.payment_method not in credit)
    cash_inflow += sum(t.total_cents for t in of_type(transactions, TX_PAYMENT))
    expense_total = sum(t.total_cents for t in expenses)
    supplies = sum(t.total_cents for t in expenses if t.expense_category == EXPENSE_CATEGORY_SUPPLIES)
    cogs = cost_of_goods_cents(sales, products)
    gross_profit = revenue - cogs

    return {
        "revenue_cents": revenue,
        "cash_inflow_cents": cash_inflow,
        "expenses_cents": expense_total,
        "supplies_cents": supplies,
        "sales_count": len(sales),
        "cogs_cents": cogs,
        "gross_profit_cents": gross_profit,
        "net_profit_cents": gross_profit - expense_total,
        "avg_ticket_cents": round_cents(Decimal(revenue) / len(sales)) if sales else 0,
    }


def delta_percent(current: int | float, previous: int | float) -> float:
    """Growth vs the previous period; 100 when growing from nothing."""
    if previous <= 0:
        return 100.0 if current > 0 else 0.0
    return round((current - previous) / previous * 100, 2)


def period_goal_cents(
    transactions: Iterable,
    start: datetime,
    end: datetime,
    explicit_goal_cents: int | None,
    default_monthly_goal_cents: int,
    tz: tzinfo | None = None,
) -> int:
    """
    Revenue target for [start, end].

    An explicit goal wins. Otherwise the month's expenses (or the default
    monthly goal when none were booked) are prorated per day of the period.
    """
    if explicit_goal_cents and explicit_goal_cents > 0:
        return explicit_goal_cents

    local_start, local_end = to_local(start, tz), to_local(end, tz)
    month_start = from_local(start_of_day(local_start.replace(day=1)), tz)
    month_end = from_local(end_of_day(local_start.replace(day=days_in_month(local_start))), tz)
    monthly_expenses = sum(t.total_cents for t in in_period(of_type(transactions, TX_EXPENSE), month_start, month_end))
    monthly = monthly_expenses if monthly_expenses > 0 else default_monthly_goal_cents

    days = max((local_end.date() - local_start.date()).days + 1, 1)
    return round_cents(Decimal(monthly) / days_in_month(local_start) * days)


def dashboard(
    *,
    transactions: Iterable,
    products: Iterable,
    customers: Iterable,
    start: datetime,
    end: datetime,
    previous_start: datetime,
    previous_end: datetime,
    credit_methods: Iterable[str] = (),
    low_stock_threshold=0,
    goal_cents: int | None = None,
    default_monthly_goal_cents: int = 0,
    top_limit: int = DEFAULT_TOP_LIMIT,
    tz: tzinfo | None = None,
) -> dict:
    """
    Everything the dashboard shows for [start, end]. Bounds are UTC-naive;
    hour, weekday and day buckets and the goal month follow tz.
    """
    transactions = list(transactions)
    products = list(products)
    customers = list(customers)
    credit_methods = tuple(credit_methods)

    current = in_period(transactions, start, end)
    previous = in_period(transactions, previous_start, previous_end)
    metrics = period_metrics(current, products, credit_methods)
    prev_metrics = period_metrics(previous, products, credit_methods)

    goal = period_goal_cents(transactions, start, end, goal_cents, default_monthly_goal_cents, tz)

    return {
        "metrics": metrics,
        "previous_metrics": prev_metrics,
        "deltas": {
            key: delta_percent(metrics[key], prev_metrics[key])
            for key in (
                "revenue_cents", "cash_inflow_cents", "expenses_cents", "supplies_cents",
                "gross_profit_cents", "net_profit_cents", "sales_count", "avg_ticket_cents",
            )
        },
        "goal_cents": goal,
        "goal_progress": round(metrics["revenue_cents"] / goal * 100, 2) if goal > 0 else 0.0,
        "top_products": top_products(current, products, top_limit),
        "profit_by_product": profit_by_product(current, products, top_limit),
        "sales_by_hour": sales_by_hour(current, tz),
        "sales_heatmap": sales_heatmap(current, tz),
        "sales_by_day": sales_by_day(current, tz),
        "sales_by_payment_method": sales_by_payment_method(current),
        "cash_inflow_by_method": cash_inflow_by_method(current, credit_methods),
        "expenses_by_category": expenses_by_category(current),
        "low_stock_count": low_stock_count(products, low_stock_threshold),
        "out_of_stock_count": out_of_stock_count(products),
        "debtor_count": debtor_count(customers),
        "total_receivables_cents": total_receivables_cents(customers),
        "total_products": len(products),
    }
