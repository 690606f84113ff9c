"""Reorder-quantity suggestions from Gemini, with a formula fallback.

The product context is read from the inventory store, rendered into a prompt
and sent to the Gemini ``generateContent`` endpoint. Whatever the model says is
parsed leniently: if no usable JSON object comes back the deterministic
lead-time formula answers instead, so once the HTTP call succeeds the caller
always gets a suggestion.
"""

import http.client
import json
import logging
import math
import re
from datetime import datetime, timedelta
from typing import Optional
from urllib import error, request
from urllib.parse import quote, urlparse

from stockpilot.config import Settings, get_settings
from stockpilot.core.constants import (
    DAYS_PER_MONTH,
    GENERATION_CONFIG,
    MAX_REORDER_QUANTITY,
    MIN_REORDER_QUANTITY,
    NEXT_REVIEW_DAYS,
    SAFETY_STOCK_RATIO,
    TREND_CHANGE_THRESHOLD,
    TREND_WINDOW_DAYS,
    RiskLevel,
    TransactionType,
)
from stockpilot.core.dates import ensure_utc, review_date, utc_now
from stockpilot.core.errors import (
    ConfigurationError,
    ProductNotFoundError,
    UpstreamError,
    UpstreamTimeoutError,
)
from stockpilot.schemas.reorder import (
    HistoryEntry,
    ProductContext,
    ReorderSuggestion,
    ReorderSuggestionResponse,
)
from stockpilot.services.inventory_store import InventoryStore

logger = logging.getLogger(__name__)

_CODE_FENCE_RE = re.compile(r"```(?:json)?[ \t]*\n?", re.IGNORECASE)
_ALLOWED_HTTP_SCHEMES = {"http", "https"}
_REQUIRED_FIELDS = ("recommendedQuantity", "reasoning", "riskLevel")
_RISK_LEVELS = {level.value.lower(): level for level in RiskLevel}

FALLBACK_ALTERNATIVE_STRATEGY = (
    "Consider smaller, more frequent orders to reduce carrying costs"
)


# ==============================
# Context
# ==============================
def _total_units(transactions) -> int:
    return sum(int(item.quantity) for item in transactions)


def average_monthly_sales(sales, history_days: int) -> float:
    if history_days <= 0:
        return 0.0
    return round(_total_units(sales) / history_days * DAYS_PER_MONTH, 2)


def seasonal_trend(sales, now: datetime) -> str:
    """Compare units sold in the latest window against the window before it."""
    window_start = now - timedelta(days=TREND_WINDOW_DAYS)
    previous_start = window_start - timedelta(days=TREND_WINDOW_DAYS)
    recent = 0
    previous = 0
    for item in sales:
        sold_at = ensure_utc(item.date)
        if sold_at > window_start:
            recent += int(item.quantity)
        elif sold_at > previous_start:
            previous += int(item.quantity)

    if previous == 0:
        return "increasing" if recent > 0 else "stable"
    change = (recent - previous) / previous
    if change > TREND_CHANGE_THRESHOLD:
        return "increasing"
    if change < -TREND_CHANGE_THRESHOLD:
        return "decreasing"
    return "stable"


def average_unit_cost(purchases, default: float) -> float:
    units = _total_units(purchases)
    if units <= 0:
        return round(float(default), 2)
    spent = sum(float(item.amount) for item in purchases)
    return round(spent / units, 2)


def build_product_context(
    store: InventoryStore,
    product_id: int,
    *,
    settings: Optional[Settings] = None,
    now: Optional[datetime] = None,
) -> ProductContext:
    """Join a product with its supplier and transaction history."""
    settings = settings or get_settings()
    now = now or utc_now()

    product = store.get_product_by_id(product_id)
    if product is None:
        raise ProductNotFoundError(product_id)

    supplier = store.get_supplier_by_id(product.supplier_id)
    lead_time = settings.DEFAULT_SUPPLIER_LEAD_TIME_DAYS
    if supplier is not None and supplier.lead_time_days:
        lead_time = int(supplier.lead_time_days)

    history_days = settings.REORDER_HISTORY_DAYS
    sales = store.transactions_for_product(
        product.id,
        since=now - timedelta(days=history_days),
        transaction_type=TransactionType.SALE,
    )
    purchases = store.transactions_for_product(product.id, transaction_type=TransactionType.PURCHASE)
    recent = store.transactions_for_product(product.id, limit=settings.REORDER_HISTORY_LIMIT)

    return ProductContext(
        id=product.id,
        name=product.name,
        category=product.category,
        current_stock=product.quantity,
        reorder_level=product.reorder_level,
        avg_monthly_sales=average_monthly_sales(sales, history_days),
        seasonal_trend=seasonal_trend(sales, now),
        supplier_lead_time=lead_time,
        unit_cost=average_unit_cost(purchases, product.price),
        recent_transactions=[
            HistoryEntry(
                date=ensure_utc(item.date).date().isoformat(),
                quantity=item.quantity,
                type=item.type,
            )
            for item in reversed(recent)
        ],
    )


# ==============================
# Prompt
# ==============================
def _format_history(entries) -> str:
    if not entries:
        return "• No recorded sales or purchases yet"
    return "\n".join(
        "• {}: {} - {} units".format(entry.date, entry.type.value.upper(), entry.quantity)
        for entry in entries
    )


def build_prompt(context: ProductContext) -> str:
    return """
You are an inventory planning assistant for a small business. Using the data
below, recommend how many units to reorder.

PRODUCT DATA:
Product: {name} ({category})
Current Stock Level: {stock} units
Reorder Threshold: {reorder_level} units
Average Monthly Sales: {avg_sales} units
Market Trend: {trend}
Supplier Lead Time: {lead_time} days
Unit Cost: ${unit_cost:.2f}

RECENT SALES & PURCHASE HISTORY:
{history}

Take into account safety stock for demand variability, economic order quantity,
the market trend, cash flow and carrying costs, the balance between stockout and
overstock risk, and supplier lead time.

Reply with only this JSON object:
{{
  "recommendedQuantity": <integer between {min_qty} and {max_qty}>,
  "reasoning": "<2-3 sentences on how the quantity was derived>",
  "riskLevel": "<Low|Medium|High>",
  "nextReviewDate": "<YYYY-MM-DD, 2-4 weeks from today>",
  "costImpact": "<estimated cost in dollars>",
  "stockoutRisk": "<percentage chance of stockout if not followed>",
  "alternativeStrategy": "<short alternative if budget is constrained>"
}}
""".format(
        name=context.name,
        category=context.category,
        stock=context.current_stock,
        reorder_level=context.reorder_level,
        avg_sales=context.avg_monthly_sales,
        trend=context.seasonal_trend,
        lead_time=context.supplier_lead_time,
        unit_cost=context.unit_cost,
        history=_format_history(context.recent_transactions),
        min_qty=MIN_REORDER_QUANTITY,
        max_qty=MAX_REORDER_QUANTITY,
    ).strip()


def build_request_payload(prompt: str) -> dict:
    return {
        "contents": [{"parts": [{"text": prompt}]}],
        "generationConfig": dict(GENERATION_CONFIG),
    }


# ==============================
# Transport
# ==============================
def validate_api_url(api_url):
    parsed = urlparse(api_url)
    scheme = parsed.scheme.lower()
    if scheme not in _ALLOWED_HTTP_SCHEMES or not parsed.netloc:
        raise ConfigurationError("GEMINI_API_URL must be an absolute HTTP(S) URL")
    return api_url


def build_endpoint(settings: Settings) -> str:
    base_url = validate_api_url((settings.GEMINI_API_URL or "").strip())
    model = quote((settings.GEMINI_MODEL or "").strip(), safe="-._")
    if not model:
        raise ConfigurationError("GEMINI_MODEL is not configured")
    return "{}/models/{}:generateContent".format(base_url.rstrip("/"), model)


def _upstream_http_error(exc):
    body = ""
    try:
        body_bytes = exc.read()
        if body_bytes:
            body = body_bytes.decode("utf-8", errors="replace").strip()
    except (OSError, ValueError):
        body = ""

    logger.error("Gemini API error: HTTP %s %s", exc.code, exc.reason, extra={"status": exc.code})
    if body:
        logger.error("Gemini error details: %s", body)
    return UpstreamError(
        "Gemini API error: {} {}".format(exc.code, exc.reason).strip(),
        status=exc.code,
        detail=body or None,
    )


def _send(req, timeout: float) -> Optional[dict]:
    try:
        with request.urlopen(req, timeout=timeout) as response:  # nosec B310
            status_code = response.getcode()
            body = response.read()
    except error.HTTPError as exc:
        raise _upstream_http_error(exc) from exc
    except error.URLError as exc:
        if isinstance(exc.reason, TimeoutError):
            raise UpstreamTimeoutError(
                "Gemini API request timed out after {}s".format(timeout)
            ) from exc
        raise UpstreamError("Gemini API error: {}".format(exc.reason)) from exc
    except TimeoutError as exc:
        raise UpstreamTimeoutError("Gemini API request timed out after {}s".format(timeout)) from exc
    except (OSError, http.client.HTTPException) as exc:
        raise UpstreamError("Gemini API error: {}".format(str(exc) or type(exc).__name__)) from exc

    if status_code < 200 or status_code >= 300:
        raise UpstreamError("Gemini API error: HTTP {}".format(status_code), status=status_code)

    try:
        return json.loads(body.decode("utf-8"))
    except ValueError:
        logger.warning("Gemini API returned a non-JSON body; falling back.")
        return None


def request_completion(prompt: str, *, api_key: str, settings: Settings) -> Optional[dict]:
    """POST the prompt; retry only transport failures, never HTTP error statuses."""
    req = request.Request(
        build_endpoint(settings),
        data=json.dumps(build_request_payload(prompt)).encode("utf-8"),
        method="POST",
        headers={
            "Content-Type": "application/json",
            "x-goog-api-key": api_key,
        },
    )
    attempts = max(0, int(settings.GEMINI_MAX_RETRIES)) + 1
    for attempt in range(1, attempts + 1):
        try:
            return _send(req, settings.GEMINI_TIMEOUT_SECONDS)
        except UpstreamError as exc:
            if exc.status is not None or attempt >= attempts:
                raise
            logger.warning("Gemini request failed (%s); retry %s of %s", exc, attempt, attempts - 1)


# ==============================
# Parsing
# ==============================
def extract_generated_text(response) -> Optional[str]:
    try:
        text = response["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return None
    return text if isinstance(text, str) else None


def strip_code_fences(text: str) -> str:
    return _CODE_FENCE_RE.sub("", text).replace("```", "").strip()


def extract_json_object(text: str) -> Optional[str]:
    """Return the first balanced ``{...}`` in ``text``, ignoring braces inside strings."""
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start:index + 1]
    return None


def clamp_quantity(value: int) -> int:
    return max(MIN_REORDER_QUANTITY, min(MAX_REORDER_QUANTITY, int(value)))


def _coerce_quantity(value) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(number):
        return None
    return int(round(number))


def _coerce_risk(value) -> Optional[RiskLevel]:
    if not isinstance(value, str):
        return None
    return _RISK_LEVELS.get(value.strip().lower())


def _optional_text(data: dict, key: str) -> Optional[str]:
    value = data.get(key)
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def parse_suggestion(text: str, fallback: ReorderSuggestion) -> Optional[ReorderSuggestion]:
    """Parse the model reply; ``None`` means the reply is unusable.

    Optional fields the model leaves out are taken from ``fallback``.
    """
    candidate = extract_json_object(strip_code_fences(text or ""))
    if candidate is None:
        return None
    try:
        data = json.loads(candidate)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    if any(not data.get(field) for field in _REQUIRED_FIELDS):
        return None

    quantity = _coerce_quantity(data["recommendedQuantity"])
    risk_level = _coerce_risk(data["riskLevel"])
    reasoning = _optional_text(data, "reasoning")
    if quantity is None or risk_level is None or reasoning is None:
        return None

    return ReorderSuggestion(
        recommended_quantity=clamp_quantity(quantity),
        reasoning=reasoning,
        risk_level=risk_level,
        next_review_date=_optional_text(data, "nextReviewDate") or fallback.next_review_date,
        cost_impact=_optional_text(data, "costImpact") or fallback.cost_impact,
        stockout_risk=_optional_text(data, "stockoutRisk") or fallback.stockout_risk,
        alternative_strategy=(
            _optional_text(data, "alternativeStrategy") or fallback.alternative_strategy
        ),
    )


# ==============================
# Fallback
# ==============================
def _ceil(value: float) -> int:
    # Round first so float noise on exact multiples does not add a unit.
    return math.ceil(round(value, 6))


def fallback_suggestion(context: ProductContext, now: Optional[datetime] = None) -> ReorderSuggestion:
    now = now or utc_now()
    velocity = context.avg_monthly_sales / DAYS_PER_MONTH
    lead_time_demand = _ceil(velocity * context.supplier_lead_time)
    safety_stock = _ceil(lead_time_demand * SAFETY_STOCK_RATIO)
    quantity = max(lead_time_demand + safety_stock, context.reorder_level * 2)
    at_or_below = context.current_stock <= context.reorder_level

    reasoning = (
        "Based on your current sales velocity of {:.1f} units/day and {}-day lead time, "
        "this quantity covers lead-time demand plus safety stock. "
        "Current stock of {} is {} your reorder threshold."
    ).format(
        velocity,
        context.supplier_lead_time,
        context.current_stock,
        "at or below" if at_or_below else "above",
    )

    return ReorderSuggestion(
        recommended_quantity=quantity,
        reasoning=reasoning,
        risk_level=RiskLevel.HIGH if at_or_below else RiskLevel.MEDIUM,
        next_review_date=review_date(now, NEXT_REVIEW_DAYS),
        cost_impact="${:,.2f}".format(quantity * context.unit_cost),
        stockout_risk="75%" if at_or_below else "25%",
        alternative_strategy=FALLBACK_ALTERNATIVE_STRATEGY,
    )


# ==============================
# Entry point
# ==============================
def generate_reorder_suggestion(
    store: InventoryStore,
    product_id: int,
    *,
    settings: Optional[Settings] = None,
    now: Optional[datetime] = None,
) -> ReorderSuggestionResponse:
    settings = settings or get_settings()
    api_key = (settings.GEMINI_API_KEY or "").strip()
    if not api_key:
        raise ConfigurationError("Gemini API key not configured")

    now = now or utc_now()
    context = build_product_context(store, product_id, settings=settings, now=now)
    fallback = fallback_suggestion(context, now)

    logger.info("Requesting reorder suggestion for product %s", product_id, extra={"product_id": product_id})
    response = request_completion(build_prompt(context), api_key=api_key, settings=settings)
    text = extract_generated_text(response)
    suggestion = parse_suggestion(text, fallback) if text else None

    source = "model"
    if suggestion is None:
        logger.warning(
            "Unusable model reply for product %s; using lead-time formula.",
            product_id,
            extra={"product_id": product_id, "source": "fallback"},
        )
        logger.debug("Raw model reply: %r", text)
        suggestion = fallback
        source = "fallback"

    return ReorderSuggestionResponse(
        suggestion=suggestion,
        product_info=context,
        analysis_timestamp=now,
        source=source,
    )


__all__ = [
    "average_monthly_sales",
    "average_unit_cost",
    "build_product_context",
    "build_prompt",
    "build_request_payload",
    "clamp_quantity",
    "extract_generated_text",
    "extract_json_object",
    "fallback_suggestion",
    "generate_reorder_suggestion",
    "parse_suggestion",
    "request_completion",
    "seasonal_trend",
    "strip_code_fences",
    "validate_api_url",
]
