# Overview: Generative insights over aggregated figures via an OpenAI-compatible responses API.

"""
The insight provider is an opaque, slow, failure-prone remote call. Nothing
here reads or writes the entity model: callers pass already aggregated
figures in and get structured text out. Every failure (not configured,
transport, HTTP status, malformed output) degrades to a fallback result
flagged with ``"degraded": True``.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

MOODS = ("good", "warning", "critical")

BUSINESS_ANALYSIS_SCHEMA: dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "summary": {"type": "string"},
        "insights": {"type": "array", "items": {"type": "string"}},
        "mood": {"type": "string", "enum": list(MOODS)},
        "recommendation": {"type": "string"},
    },
    "required": ["summary", "insights", "mood", "recommendation"],
}

ANSWER_SCHEMA: dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "properties": {"answer": {"type": "string"}},
    "required": ["answer"],
}

CUSTOMER_INSIGHTS_SCHEMA: dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "insights": {"type": "string"},
        "suggested_marketing_actions": {"type": "string"},
    },
    "required": ["insights", "suggested_marketing_actions"],
}


class InsightUnavailable(Exception):
    """Raised by the client when no usable answer can be produced."""


class InsightClient:
    """Thin client for the ``/v1/responses`` endpoint with JSON-schema output."""

    def __init__(
        self,
        *,
        base_url: str = "https://api.openai.com",
        api_key: str = "",
        model: str = "gpt-4o-mini",
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = (base_url or "").rstrip("/")
        self.api_key = (api_key or "").strip()
        self.model = model
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_config(cls, config) -> "InsightClient":
        return cls(
            base_url=config.get("GENAI_BASE_URL", "https://api.openai.com"),
            api_key=config.get("GENAI_API_KEY", ""),
            model=config.get("GENAI_MODEL", "gpt-4o-mini"),
            timeout=float(config.get("GENAI_TIMEOUT_SECONDS", 30)),
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.base_url and self.model)

    def _post(self, payload: dict[str, Any]) -> dict[str, Any]:
        with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
            resp = client.post(
                f"{self.base_url}/v1/responses",
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
        if resp.status_code >= 400:
            raise InsightUnavailable(f"Provider HTTP {resp.status_code}: {resp.text[:200]}")
        return resp.json()

    @staticmethod
    def _extract_output_text(res: dict[str, Any]) -> str:
        for out in (res.get("output") or []):
            if out.get("type") == "message":
                for c in (out.get("content") or []):
                    if c.get("type") in {"output_text", "text"} and isinstance(c.get("text"), str):
                        return c["text"]
        if isinstance(res.get("output_text"), str):
            return res["output_text"]
        raise InsightUnavailable("Provider response did not contain output text")

    def generate(self, *, name: str, prompt: str, schema: dict[str, Any]) -> dict[str, Any]:
        if not self.configured:
            raise InsightUnavailable("Insight provider is not configured")

        payload = {
            "model": self.model,
            "input": [{"role": "user", "content": [{"type": "input_text", "text": prompt}]}],
            "text": {"format": {"type": "json_schema", "name": name, "strict": True, "schema": schema}},
        }
        try:
            res = self._post(payload)
        except httpx.HTTPError as exc:
            raise InsightUnavailable(f"Provider unreachable: {exc}") from exc
        except ValueError as exc:
            raise InsightUnavailable("Provider returned invalid JSON") from exc

        try:
            obj = json.loads(self._extract_output_text(res))
        except ValueError as exc:
            raise InsightUnavailable("Provider output is not valid JSON") from exc
        if not isinstance(obj, dict):
            raise InsightUnavailable("Provider output is not an object")
        missing = [k for k in schema.get("required", []) if k not in obj]
        if missing:
            raise InsightUnavailable(f"Provider output is missing {', '.join(missing)}")
        return obj


def _brl(cents: int) -> str:
    return f"R$ {cents / 100:.2f}"


def _fallback_mood(net_profit_cents: int, goal_progress: float) -> str:
    if net_profit_cents < 0:
        return "critical"
    if goal_progress < 100:
        return "warning"
    return "good"


def analyze_business_performance(client: InsightClient | None, figures: dict[str, Any]) -> dict[str, Any]:
    """
    Executive summary of a period.

    ``figures`` carries revenue_cents, expenses_cents, net_profit_cents,
    top_products ([{name, quantity}]), low_stock_count, goal_cents and
    goal_progress, typically taken from the dashboard report.
    """
    revenue = int(figures.get("revenue_cents") or 0)
    expenses = int(figures.get("expenses_cents") or 0)
    net_profit = int(figures.get("net_profit_cents") or 0)
    goal = int(figures.get("goal_cents") or 0)
    progress = float(figures.get("goal_progress") or 0)
    low_stock = int(figures.get("low_stock_count") or 0)
    top = [
        {"name": p.get("name"), "quantity": p.get("quantity")}
        for p in (figures.get("top_products") or [])[:5]
    ]

    prompt = (
        "You are a senior financial consultant for a small bar in Brazil.\n"
        "Analyze the period below and answer in Brazilian Portuguese.\n"
        "Give a one paragraph summary, 3 or 4 short insights, a mood of good, "
        "warning or critical, and one practical recommendation.\n"
        f"Revenue: {_brl(revenue)}\n"
        f"Expenses: {_brl(expenses)}\n"
        f"Net profit: {_brl(net_profit)}\n"
        f"Goal: {_brl(goal)} ({progress:.1f}% reached)\n"
        f"Products with low stock: {low_stock}\n"
        f"Best sellers: {json.dumps(top, ensure_ascii=False)}\n"
    )

    try:
        out = (client or InsightClient()).generate(
            name="business_analysis", prompt=prompt, schema=BUSINESS_ANALYSIS_SCHEMA,
        )
        mood = out.get("mood") if out.get("mood") in MOODS else _fallback_mood(net_profit, progress)
        return {
            "summary": str(out.get("summary") or "").strip(),
            "insights": [str(i).strip() for i in (out.get("insights") or []) if str(i).strip()][:4],
            "mood": mood,
            "recommendation": str(out.get("recommendation") or "").strip(),
            "degraded": False,
        }
    except InsightUnavailable as exc:
        logger.warning("Business analysis degraded: %s", exc)
        insights = [f"Goal progress is {progress:.1f}%."]
        if low_stock:
            insights.append(f"{low_stock} product(s) are at or below their low-stock threshold.")
        return {
            "summary": (
                f"Revenue {_brl(revenue)}, expenses {_brl(expenses)}, net profit {_brl(net_profit)}."
            ),
            "insights": insights,
            "mood": _fallback_mood(net_profit, progress),
            "recommendation": "AI analysis is unavailable right now; review the figures above and try again later.",
            "degraded": True,
        }


def answer_question(
    client: InsightClient | None,
    question: str,
    *,
    sales_summary: list[dict] | None = None,
    customer_profile: dict | None = None,
) -> dict[str, Any]:
    """Free-text question about sales or a customer, answered with optional context."""
    question = (question or "").strip()
    if not question:
        return {"answer": "Please ask a question.", "degraded": True}

    context_parts = []
    if sales_summary:
        context_parts.append(f"Sales summary: {json.dumps(sales_summary, ensure_ascii=False, default=str)}")
    if customer_profile:
        context_parts.append(f"Customer profile: {json.dumps(customer_profile, ensure_ascii=False, default=str)}")

    prompt = (
        "You are a business analyst for a small bar. Answer in Brazilian Portuguese, "
        "concisely, using only the context provided. If the context does not contain "
        "the answer, say so.\n"
        + "\n".join(context_parts)
        + f"\nQuestion: {question}\n"
    )

    try:
        out = (client or InsightClient()).generate(name="business_answer", prompt=prompt, schema=ANSWER_SCHEMA)
        return {"answer": str(out.get("answer") or "").strip(), "degraded": False}
    except InsightUnavailable as exc:
        logger.warning("Question answering degraded: %s", exc)
        return {
            "answer": "The AI assistant is unavailable right now. Please try again later.",
            "degraded": True,
        }


def customer_insights(client: InsightClient | None, history: str, preferences: str = "") -> dict[str, Any]:
    prompt = (
        "You are a marketing expert for a small bar. Answer in Brazilian Portuguese.\n"
        "From the purchase history and preferences below, describe the customer's "
        "habits and suggest marketing actions.\n"
        f"Purchase history: {history}\n"
        f"Preferences: {preferences or 'unknown'}\n"
    )
    try:
        out = (client or InsightClient()).generate(
            name="customer_insights", prompt=prompt, schema=CUSTOMER_INSIGHTS_SCHEMA,
        )
        return {
            "insights": str(out.get("insights") or "").strip(),
            "suggested_marketing_actions": str(out.get("suggested_marketing_actions") or "").strip(),
            "degraded": False,
        }
    except InsightUnavailable as exc:
        logger.warning("Customer insights degraded: %s", exc)
        return {
            "insights": "Customer insights are unavailable right now.",
            "suggested_marketing_actions": "",
            "degraded": True,
        }
