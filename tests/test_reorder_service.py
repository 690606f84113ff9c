import http.client
import io
import json
import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import patch
from urllib import error

from stockpilot.config import Settings
from stockpilot.core.constants import RiskLevel
from stockpilot.core.errors import (
    ConfigurationError,
    ProductNotFoundError,
    UpstreamError,
    UpstreamTimeoutError,
)
from stockpilot.schemas.reorder import ProductContext
from stockpilot.services import reorder_service
from stockpilot.services.reorder_service import (
    build_product_context,
    build_prompt,
    build_request_payload,
    extract_json_object,
    fallback_suggestion,
    generate_reorder_suggestion,
    parse_suggestion,
    seasonal_trend,
    strip_code_fences,
)
from tests.support import InMemoryStoreMixin

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
URLOPEN = "stockpilot.services.reorder_service.request.urlopen"


def _settings(**overrides):
    values = {
        "GEMINI_API_KEY": "test-key",
        "GEMINI_API_URL": "https://gemini.example.com/v1beta",
        "GEMINI_MODEL": "gemini-1.5-flash-latest",
        "GEMINI_TIMEOUT_SECONDS": 5,
        "GEMINI_MAX_RETRIES": 0,
        "DEFAULT_SUPPLIER_LEAD_TIME_DAYS": 7,
        "REORDER_HISTORY_DAYS": 90,
        "REORDER_HISTORY_LIMIT": 10,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def _context(**overrides):
    values = {
        "id": 1,
        "name": "Wireless Headphones",
        "category": "Electronics",
        "current_stock": 8,
        "reorder_level": 10,
        "avg_monthly_sales": 25,
        "seasonal_trend": "increasing",
        "supplier_lead_time": 7,
        "unit_cost": 89.99,
    }
    values.update(overrides)
    return ProductContext(**values)


class FakeResponse:
    def __init__(self, payload, status=200):
        self.status = status
        self._body = payload if isinstance(payload, bytes) else json.dumps(payload).encode("utf-8")

    def getcode(self):
        return self.status

    def read(self):
        return self._body

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False


def _model_reply(text):
    return FakeResponse({"candidates": [{"content": {"parts": [{"text": text}]}}]})


class FallbackFormulaTest(unittest.TestCase):
    def test_reference_numbers(self):
        suggestion = fallback_suggestion(_context(), NOW)

        self.assertEqual(suggestion.recommended_quantity, 20)
        self.assertEqual(suggestion.risk_level, RiskLevel.HIGH)
        self.assertEqual(suggestion.stockout_risk, "75%")
        self.assertEqual(suggestion.next_review_date, "2025-03-22")
        self.assertEqual(suggestion.cost_impact, "$1,799.80")
        self.assertIn("0.8 units/day", suggestion.reasoning)
        self.assertIn("7-day lead time", suggestion.reasoning)

    def test_lead_time_demand_wins_over_reorder_floor(self):
        suggestion = fallback_suggestion(
            _context(avg_monthly_sales=90, supplier_lead_time=14, reorder_level=5, current_stock=30),
            NOW,
        )
        # velocity 3/day -> 42 lead-time demand + 21 safety stock
        self.assertEqual(suggestion.recommended_quantity, 63)
        self.assertEqual(suggestion.risk_level, RiskLevel.MEDIUM)
        self.assertEqual(suggestion.stockout_risk, "25%")


class ParsingTest(unittest.TestCase):
    def setUp(self):
        self.fallback = fallback_suggestion(_context(), NOW)

    def test_strip_code_fences(self):
        self.assertEqual(strip_code_fences('```json\n{"a": 1}\n```'), '{"a": 1}')

    def test_extract_first_balanced_object(self):
        text = 'Sure! {"reasoning": "use {braces} carefully", "n": {"x": 1}} trailing {"b": 2}'
        self.assertEqual(
            extract_json_object(text),
            '{"reasoning": "use {braces} carefully", "n": {"x": 1}}',
        )

    def test_extract_returns_none_without_object(self):
        self.assertIsNone(extract_json_object("no json here"))
        self.assertIsNone(extract_json_object('{"unterminated": 1'))

    def test_parse_fenced_reply(self):
        reply = """```json
{
  "recommendedQuantity": 40,
  "reasoning": "Demand is rising.",
  "riskLevel": "high",
  "nextReviewDate": "2025-03-15",
  "costImpact": "$3,599.60",
  "stockoutRisk": "60%",
  "alternativeStrategy": "Split the order."
}
```"""
        suggestion = parse_suggestion(reply, self.fallback)
        self.assertEqual(suggestion.recommended_quantity, 40)
        self.assertEqual(suggestion.risk_level, RiskLevel.HIGH)
        self.assertEqual(suggestion.next_review_date, "2025-03-15")
        self.assertEqual(suggestion.alternative_strategy, "Split the order.")

    def test_small_quantity_clamped_up(self):
        reply = '{"recommendedQuantity": 3, "reasoning": "Low demand.", "riskLevel": "Low"}'
        self.assertEqual(parse_suggestion(reply, self.fallback).recommended_quantity, 5)

    def test_large_quantity_clamped_down(self):
        reply = '{"recommendedQuantity": 500, "reasoning": "Huge demand.", "riskLevel": "High"}'
        self.assertEqual(parse_suggestion(reply, self.fallback).recommended_quantity, 200)

    def test_missing_optional_fields_use_fallback_values(self):
        reply = '{"recommendedQuantity": "30", "reasoning": "Steady.", "riskLevel": "Medium"}'
        suggestion = parse_suggestion(reply, self.fallback)
        self.assertEqual(suggestion.recommended_quantity, 30)
        self.assertEqual(suggestion.next_review_date, self.fallback.next_review_date)
        self.assertEqual(suggestion.cost_impact, self.fallback.cost_impact)

    def test_unusable_replies(self):
        for reply in (
            "I would order about thirty units.",
            '{"reasoning": "no quantity", "riskLevel": "Low"}',
            '{"recommendedQuantity": 30, "riskLevel": "Low"}',
            '{"recommendedQuantity": 30, "reasoning": "x", "riskLevel": "Extreme"}',
            '{"recommendedQuantity": "lots", "reasoning": "x", "riskLevel": "Low"}',
            '{"recommendedQuantity": 0, "reasoning": "x", "riskLevel": "Low"}',
            "{not json}",
            "[1, 2, 3]",
        ):
            with self.subTest(reply=reply):
                self.assertIsNone(parse_suggestion(reply, self.fallback))


class PromptTest(unittest.TestCase):
    def test_prompt_embeds_context(self):
        prompt = build_prompt(
            _context(
                recent_transactions=[
                    {"date": "2024-12-05", "quantity": 25, "type": "purchase"},
                    {"date": "2024-12-10", "quantity": 8, "type": "sale"},
                ]
            )
        )
        self.assertIn("Product: Wireless Headphones (Electronics)", prompt)
        self.assertIn("Current Stock Level: 8 units", prompt)
        self.assertIn("Reorder Threshold: 10 units", prompt)
        self.assertIn("Supplier Lead Time: 7 days", prompt)
        self.assertIn("Unit Cost: $89.99", prompt)
        self.assertIn("• 2024-12-05: PURCHASE - 25 units", prompt)
        self.assertLess(prompt.index("2024-12-05"), prompt.index("2024-12-10"))
        self.assertIn('"recommendedQuantity"', prompt)

    def test_request_payload_uses_fixed_decoding(self):
        payload = build_request_payload("hello")
        self.assertEqual(payload["contents"][0]["parts"][0]["text"], "hello")
        self.assertEqual(
            payload["generationConfig"],
            {"temperature": 0.3, "topK": 32, "topP": 1.0, "maxOutputTokens": 1024},
        )


class SeasonalTrendTest(unittest.TestCase):
    def _sale(self, days_ago, quantity):
        return type("Sale", (), {"date": NOW - timedelta(days=days_ago), "quantity": quantity})()

    def test_trend_directions(self):
        self.assertEqual(seasonal_trend([], NOW), "stable")
        self.assertEqual(seasonal_trend([self._sale(5, 10)], NOW), "increasing")
        self.assertEqual(seasonal_trend([self._sale(5, 20), self._sale(40, 10)], NOW), "increasing")
        self.assertEqual(seasonal_trend([self._sale(5, 5), self._sale(40, 10)], NOW), "decreasing")
        self.assertEqual(seasonal_trend([self._sale(5, 10), self._sale(40, 11)], NOW), "stable")


class ProductContextTest(InMemoryStoreMixin, unittest.TestCase):
    def _backdate(self, transaction, days_ago):
        transaction.date = datetime.now(timezone.utc) - timedelta(days=days_ago)
        self.db.commit()

    def test_context_joins_live_store_data(self):
        supplier = self.make_supplier(lead_time_days=14)
        product = self.make_product(quantity=40, reorder_level=15, price=24.99, supplier_id=supplier.id)
        restock = self.store.add_transaction(
            {"product_id": product.id, "type": "purchase", "quantity": 50, "amount": 600.0}
        )
        old_sale = self.store.add_transaction(
            {"product_id": product.id, "type": "sale", "quantity": 12, "amount": 299.88}
        )
        recent_sale = self.store.add_transaction(
            {"product_id": product.id, "type": "sale", "quantity": 18, "amount": 449.82}
        )
        ancient_sale = self.store.add_transaction(
            {"product_id": product.id, "type": "sale", "quantity": 100, "amount": 1}
        )
        self._backdate(restock, 50)
        self._backdate(old_sale, 45)
        self._backdate(recent_sale, 3)
        self._backdate(ancient_sale, 200)

        context = build_product_context(self.store, product.id, settings=_settings())

        self.assertEqual(context.name, product.name)
        self.assertEqual(context.current_stock, product.quantity)
        self.assertEqual(context.reorder_level, 15)
        self.assertEqual(context.supplier_lead_time, 14)
        # 30 units over 90 days
        self.assertEqual(context.avg_monthly_sales, 10.0)
        self.assertEqual(context.seasonal_trend, "increasing")
        self.assertEqual(context.unit_cost, 12.0)
        self.assertEqual(
            [entry.quantity for entry in context.recent_transactions], [100, 50, 12, 18]
        )

    def test_context_defaults_without_supplier_or_history(self):
        product = self.make_product(price=45.0, supplier_id=77)

        context = build_product_context(
            self.store, product.id, settings=_settings(DEFAULT_SUPPLIER_LEAD_TIME_DAYS=5)
        )

        self.assertEqual(context.supplier_lead_time, 5)
        self.assertEqual(context.avg_monthly_sales, 0.0)
        self.assertEqual(context.unit_cost, 45.0)
        self.assertEqual(context.recent_transactions, [])

    def test_unknown_product(self):
        with self.assertRaises(ProductNotFoundError):
            build_product_context(self.store, 404, settings=_settings())


class GenerateSuggestionTest(InMemoryStoreMixin, unittest.TestCase):
    def setUp(self):
        super().setUp()
        self.product = self.make_product(quantity=8, reorder_level=10, price=89.99)

    def test_missing_api_key_is_configuration_error(self):
        with patch(URLOPEN) as urlopen:
            with self.assertRaises(ConfigurationError):
                generate_reorder_suggestion(
                    self.store, self.product.id, settings=_settings(GEMINI_API_KEY="  "), now=NOW
                )
        urlopen.assert_not_called()

    def test_invalid_api_url_is_configuration_error(self):
        with patch(URLOPEN) as urlopen:
            with self.assertRaises(ConfigurationError):
                generate_reorder_suggestion(
                    self.store,
                    self.product.id,
                    settings=_settings(GEMINI_API_URL="file:///tmp/gemini"),
                    now=NOW,
                )
        urlopen.assert_not_called()

    def test_model_suggestion_is_returned_and_clamped(self):
        reply = '{"recommendedQuantity": 500, "reasoning": "Big launch.", "riskLevel": "High"}'
        with patch(URLOPEN, return_value=_model_reply(reply)) as urlopen:
            result = generate_reorder_suggestion(
                self.store, self.product.id, settings=_settings(), now=NOW
            )

        self.assertTrue(result.success)
        self.assertEqual(result.source, "model")
        self.assertEqual(result.suggestion.recommended_quantity, 200)
        self.assertEqual(result.product_info.id, self.product.id)
        self.assertEqual(result.analysis_timestamp, NOW)

        req = urlopen.call_args.args[0]
        self.assertEqual(
            req.full_url,
            "https://gemini.example.com/v1beta/models/gemini-1.5-flash-latest:generateContent",
        )
        self.assertEqual(req.get_method(), "POST")
        self.assertEqual(req.get_header("X-goog-api-key"), "test-key")
        self.assertEqual(urlopen.call_args.kwargs["timeout"], 5)
        body = json.loads(req.data.decode("utf-8"))
        self.assertIn("Wireless Headphones", body["contents"][0]["parts"][0]["text"])

    def test_malformed_reply_falls_back_with_success(self):
        with patch(URLOPEN, return_value=_model_reply("Order a few dozen, probably.")):
            result = generate_reorder_suggestion(
                self.store, self.product.id, settings=_settings(), now=NOW
            )

        self.assertTrue(result.success)
        self.assertEqual(result.source, "fallback")
        self.assertEqual(result.suggestion.recommended_quantity, 20)
        self.assertEqual(result.suggestion.risk_level, RiskLevel.HIGH)

    def test_missing_candidates_falls_back(self):
        with patch(URLOPEN, return_value=FakeResponse({"promptFeedback": {"blockReason": "SAFETY"}})):
            result = generate_reorder_suggestion(
                self.store, self.product.id, settings=_settings(), now=NOW
            )
        self.assertEqual(result.source, "fallback")

    def test_non_json_body_falls_back(self):
        with patch(URLOPEN, return_value=FakeResponse(b"<html>oops</html>")):
            result = generate_reorder_suggestion(
                self.store, self.product.id, settings=_settings(), now=NOW
            )
        self.assertEqual(result.source, "fallback")

    def test_http_error_is_upstream_error(self):
        http_error = error.HTTPError(
            "https://gemini.example.com", 503, "Service Unavailable", None, io.BytesIO(b"overloaded")
        )
        with patch(URLOPEN, side_effect=http_error) as urlopen:
            with self.assertRaises(UpstreamError) as ctx:
                generate_reorder_suggestion(
                    self.store,
                    self.product.id,
                    settings=_settings(GEMINI_MAX_RETRIES=2),
                    now=NOW,
                )

        self.assertNotIsInstance(ctx.exception, UpstreamTimeoutError)
        self.assertEqual(ctx.exception.status, 503)
        self.assertEqual(ctx.exception.detail, "overloaded")
        self.assertIn("503", str(ctx.exception))
        self.assertEqual(urlopen.call_count, 1)

    def test_timeout_is_reported_distinctly(self):
        for side_effect in (TimeoutError("timed out"), error.URLError(TimeoutError("timed out"))):
            with self.subTest(side_effect=side_effect):
                with patch(URLOPEN, side_effect=side_effect):
                    with self.assertRaises(UpstreamTimeoutError):
                        generate_reorder_suggestion(
                            self.store, self.product.id, settings=_settings(), now=NOW
                        )

    def test_connection_error_is_upstream_error(self):
        with patch(URLOPEN, side_effect=error.URLError("Name or service not known")):
            with self.assertRaises(UpstreamError) as ctx:
                generate_reorder_suggestion(
                    self.store, self.product.id, settings=_settings(), now=NOW
                )
        self.assertIsNone(ctx.exception.status)

    def test_dropped_connection_is_upstream_error(self):
        failures = (
            http.client.RemoteDisconnected("Remote end closed connection without response"),
            ConnectionResetError(104, "Connection reset by peer"),
            http.client.IncompleteRead(b"{\"cand"),
        )
        for failure in failures:
            with self.subTest(failure=type(failure).__name__):
                with patch(URLOPEN, side_effect=failure):
                    with self.assertRaises(UpstreamError) as ctx:
                        generate_reorder_suggestion(
                            self.store, self.product.id, settings=_settings(), now=NOW
                        )
                self.assertNotIsInstance(ctx.exception, UpstreamTimeoutError)
                self.assertIsNone(ctx.exception.status)

    def test_dropped_connection_is_retried(self):
        reply = '{"recommendedQuantity": 30, "reasoning": "ok", "riskLevel": "Medium"}'
        with patch(
            URLOPEN,
            side_effect=[http.client.RemoteDisconnected("closed"), _model_reply(reply)],
        ) as urlopen:
            result = generate_reorder_suggestion(
                self.store,
                self.product.id,
                settings=_settings(GEMINI_MAX_RETRIES=1),
                now=NOW,
            )
        self.assertEqual(urlopen.call_count, 2)
        self.assertEqual(result.suggestion.recommended_quantity, 30)

    def test_transport_failures_are_retried(self):
        reply = '{"recommendedQuantity": 25, "reasoning": "ok", "riskLevel": "Low"}'
        with patch(
            URLOPEN, side_effect=[error.URLError("connection reset"), _model_reply(reply)]
        ) as urlopen:
            result = generate_reorder_suggestion(
                self.store, self.product.id, settings=_settings(GEMINI_MAX_RETRIES=1), now=NOW
            )

        self.assertEqual(urlopen.call_count, 2)
        self.assertEqual(result.suggestion.recommended_quantity, 25)

    def test_unknown_product(self):
        with patch(URLOPEN) as urlopen:
            with self.assertRaises(ProductNotFoundError):
                generate_reorder_suggestion(self.store, 9999, settings=_settings(), now=NOW)
        urlopen.assert_not_called()

    def test_response_serializes_to_camel_case(self):
        with patch(URLOPEN, return_value=_model_reply("nothing useful")):
            result = generate_reorder_suggestion(
                self.store, self.product.id, settings=_settings(), now=NOW
            )

        body = result.model_dump(mode="json", by_alias=True)
        self.assertIs(body["success"], True)
        self.assertEqual(body["suggestion"]["recommendedQuantity"], 20)
        self.assertEqual(body["suggestion"]["riskLevel"], "High")
        self.assertEqual(body["suggestion"]["nextReviewDate"], "2025-03-22")
        self.assertIn("currentStock", body["productInfo"])
        self.assertTrue(body["analysisTimestamp"].startswith("2025-03-01T12:00:00"))


class ModuleSurfaceTest(unittest.TestCase):
    def test_clamp_bounds(self):
        self.assertEqual(reorder_service.clamp_quantity(-10), 5)
        self.assertEqual(reorder_service.clamp_quantity(120), 120)
        self.assertEqual(reorder_service.clamp_quantity(201), 200)


if __name__ == "__main__":
    unittest.main()
