# Overview: Read-only live views over entity collections.

"""
Subscribers receive the full current snapshot of a collection as plain
dicts: once when they subscribe, then after every committed write that
touched the collection. Snapshots are serialized copies, so a listener can
never hand a live ORM row back into a write path.
"""

from __future__ import annotations

import itertools
import logging
import threading
from collections import defaultdict
from typing import Callable

logger = logging.getLogger(__name__)

OPEN_ORDERS = "open_orders"
PRODUCTS = "products"
CUSTOMERS = "customers"
SUPPLIERS = "suppliers"
TRANSACTIONS = "transactions"


def _load_open_orders(session) -> list[dict]:
    from ..models import Order
    from ..models.orders import ORDER_STATUS_OPEN
    rows = session.query(Order).filter_by(status=ORDER_STATUS_OPEN).order_by(Order.created_at.asc(), Order.id.asc()).all()
    return [row.to_dict() for row in rows]


def _load_products(session) -> list[dict]:
    from ..models import Product
    rows = session.query(Product).filter_by(is_active=True).order_by(Product.name.asc(), Product.id.asc()).all()
    return [row.to_dict() for row in rows]


def _load_customers(session) -> list[dict]:
    from ..models import Customer
    rows = session.query(Customer).order_by(Customer.name.asc(), Customer.id.asc()).all()
    return [row.to_dict() for row in rows]


def _load_suppliers(session) -> list[dict]:
    from ..models import Supplier
    rows = session.query(Supplier).order_by(Supplier.name.asc(), Supplier.id.asc()).all()
    return [row.to_dict() for row in rows]


def _load_transactions(session) -> list[dict]:
    from ..models import Transaction
    rows = session.query(Transaction).order_by(Transaction.occurred_at.desc(), Transaction.id.desc()).all()
    return [row.to_dict() for row in rows]


DEFAULT_LOADERS = {
    OPEN_ORDERS: _load_open_orders,
    PRODUCTS: _load_products,
    CUSTOMERS: _load_customers,
    SUPPLIERS: _load_suppliers,
    TRANSACTIONS: _load_transactions,
}


class Subscription:
    def __init__(self, hub: "SubscriptionHub", collection: str, sub_id: int):
        self._hub = hub
        self.collection = collection
        self.id = sub_id
        self.active = True

    def cancel(self) -> None:
        if self.active:
            self._hub._remove(self.collection, self.id)
            self.active = False

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.cancel()


class SubscriptionHub:
    """Registry of collection listeners, one per process."""

    def __init__(self, loaders: dict[str, Callable] | None = None):
        self._loaders = dict(loaders or DEFAULT_LOADERS)
        self._listeners: dict[str, dict[int, Callable]] = defaultdict(dict)
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    @property
    def collections(self) -> list[str]:
        return sorted(self._loaders)

    def listener_count(self, collection: str) -> int:
        with self._lock:
            return len(self._listeners.get(collection, {}))

    def subscribe(self, session, collection: str, callback: Callable[[list[dict]], None]) -> Subscription:
        if collection not in self._loaders:
            raise KeyError(f"Unknown collection: {collection}")
        with self._lock:
            sub_id = next(self._ids)
            self._listeners[collection][sub_id] = callback
        subscription = Subscription(self, collection, sub_id)
        self._deliver(collection, {sub_id: callback}, self._loaders[collection](session))
        return subscription

    def publish(self, session, *collections: str) -> None:
        for collection in dict.fromkeys(collections):
            with self._lock:
                listeners = dict(self._listeners.get(collection, {}))
            if not listeners:
                continue
            self._deliver(collection, listeners, self._loaders[collection](session))

    def _deliver(self, collection: str, listeners: dict[int, Callable], snapshot: list[dict]) -> None:
        for sub_id, callback in listeners.items():
            try:
                callback(snapshot)
            except Exception:
                logger.exception("Subscriber %s on %s failed", sub_id, collection)

    def _remove(self, collection: str, sub_id: int) -> None:
        with self._lock:
            self._listeners.get(collection, {}).pop(sub_id, None)
