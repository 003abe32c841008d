"""
Insight provider tests.

The provider is replaced by an httpx.MockTransport so no request leaves the
process.
"""

import json

import httpx

from barledger.services import insights_service
from barledger.services.insights_service import InsightClient

FIGURES = {
    "revenue_cents": 500000,
    "expenses_cents": 300000,
    "net_profit_cents": 50000,
    "goal_cents": 600000,
    "goal_progress": 83.33,
    "low_stock_count": 2,
    "top_products": [{"name": "Cerveja", "quantity": 120}],
}


def _responses_body(obj) -> dict:
    return {
        "output": [{
            "type": "message",
            "content": [{"type": "output_text", "text": json.dumps(obj)}],
        }],
    }


def _client(handler) -> InsightClient:
    return InsightClient(
        base_url="https://llm.test",
        api_key="test-key",
        model="test-model",
        transport=httpx.MockTransport(handler),
    )


class TestInsightClient:

    def test_request_shape(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=_responses_body({"answer": "ok"}))

        out = _client(handler).generate(name="t", prompt="hi", schema=insights_service.ANSWER_SCHEMA)

        assert out == {"answer": "ok"}
        assert seen["url"] == "https://llm.test/v1/responses"
        assert seen["auth"] == "Bearer test-key"
        assert seen["body"]["model"] == "test-model"
        assert seen["body"]["text"]["format"]["type"] == "json_schema"

    def test_unconfigured(self):
        assert InsightClient(api_key="").configured is False
        assert InsightClient.from_config({"GENAI_API_KEY": "k"}).configured is True


class TestBusinessAnalysis:

    def test_success(self):
        reply = {
            "summary": "Bom mes.",
            "insights": ["a", "b", "c"],
            "mood": "good",
            "recommendation": "Aumentar estoque de cerveja.",
        }
        result = insights_service.analyze_business_performance(
            _client(lambda r: httpx.Response(200, json=_responses_body(reply))), FIGURES,
        )
        assert result == {**reply, "degraded": False}

    def test_http_error_degrades(self):
        result = insights_service.analyze_business_performance(
            _client(lambda r: httpx.Response(500, text="boom")), FIGURES,
        )
        assert result["degraded"] is True
        assert result["mood"] == "warning"
        assert "product(s)" in result["insights"][1]

    def test_malformed_output_degrades(self):
        body = {"output": [{"type": "message", "content": [{"type": "output_text", "text": "not json"}]}]}
        result = insights_service.analyze_business_performance(
            _client(lambda r: httpx.Response(200, json=body)), FIGURES,
        )
        assert result["degraded"] is True

    def test_missing_keys_degrade(self):
        result = insights_service.analyze_business_performance(
            _client(lambda r: httpx.Response(200, json=_responses_body({"summary": "x"}))), FIGURES,
        )
        assert result["degraded"] is True

    def test_transport_error_degrades(self):
        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        result = insights_service.analyze_business_performance(_client(handler), FIGURES)
        assert result["degraded"] is True

    def test_unconfigured_fallback_mood(self):
        losing = {**FIGURES, "net_profit_cents": -1}
        assert insights_service.analyze_business_performance(None, losing)["mood"] == "critical"
        winning = {**FIGURES, "goal_progress": 120}
        assert insights_service.analyze_business_performance(None, winning)["mood"] == "good"


class TestQuestionsAndCustomers:

    def test_answer(self):
        result = insights_service.answer_question(
            _client(lambda r: httpx.Response(200, json=_responses_body({"answer": " Cerveja. "}))),
            "Qual o mais vendido?",
            sales_summary=[{"name": "Cerveja", "quantity": 10}],
        )
        assert result == {"answer": "Cerveja.", "degraded": False}

    def test_blank_question(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json=_responses_body({"answer": "x"}))

        result = insights_service.answer_question(_client(handler), "   ")
        assert result["degraded"] is True
        assert calls == []

    def test_customer_insights(self):
        reply = {"insights": "Vem as sextas.", "suggested_marketing_actions": "Happy hour."}
        result = insights_service.customer_insights(
            _client(lambda r: httpx.Response(200, json=_responses_body(reply))), "2x Cerveja",
        )
        assert result == {**reply, "degraded": False}

    def test_customer_insights_unavailable(self):
        result = insights_service.customer_insights(None, "2x Cerveja")
        assert result["degraded"] is True
