# Overview: Explicit service context threaded through every operation.

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping
from zoneinfo import ZoneInfo

from flask import current_app

EXTENSION_KEY = "barledger"


@dataclass(frozen=True)
class Settings:
    payment_methods: tuple[str, ...]
    credit_payment_methods: tuple[str, ...]
    cash_payment_methods: tuple[str, ...]
    low_stock_default_threshold: int = 0
    default_monthly_goal_cents: int = 3_000_000
    business_timezone: str = "America/Sao_Paulo"

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> "Settings":
        credit = tuple(config.get("CREDIT_PAYMENT_METHODS") or ())
        cash = tuple(config.get("CASH_PAYMENT_METHODS") or ())
        methods = tuple(dict.fromkeys([*(config.get("PAYMENT_METHODS") or ()), *credit, *cash]))
        return cls(
            payment_methods=methods,
            credit_payment_methods=credit,
            cash_payment_methods=cash,
            low_stock_default_threshold=int(config.get("LOW_STOCK_DEFAULT_THRESHOLD", 0)),
            default_monthly_goal_cents=int(config.get("DEFAULT_MONTHLY_GOAL_CENTS", 3_000_000)),
            business_timezone=str(config.get("BUSINESS_TIMEZONE") or "America/Sao_Paulo"),
        )

    @property
    def tz(self) -> ZoneInfo:
        """Zone whose calendar days and hours the reports are bucketed in."""
        return ZoneInfo(self.business_timezone)

    def is_credit(self, payment_method: str | None) -> bool:
        return payment_method in self.credit_payment_methods

    def is_cash(self, payment_method: str | None) -> bool:
        return payment_method in self.cash_payment_methods


@dataclass
class BarContext:
    """
    Handle to everything a service operation needs.

    Built once in create_app (or by a test) and passed explicitly as the
    first argument of every service function.
    """
    session: Any
    settings: Settings
    hub: Any = None
    insights: Any = None

    def publish(self, *collections: str) -> None:
        if self.hub is not None:
            self.hub.publish(self.session, *collections)


def current_context() -> BarContext:
    return current_app.extensions[EXTENSION_KEY]
