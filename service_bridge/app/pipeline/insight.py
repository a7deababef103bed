"""
Insight stage: prompt rendering and the chat backend call.
"""

from __future__ import annotations

import time
from typing import Optional

from shared.circuit_breaker import CircuitBreakerOpenException
from shared.logging import get_logger
from shared.metrics import MetricsCollector

from service_bridge.app.adapters.chat_client import ChatBackendError, ChatClient
from service_bridge.app.parsing import ParsedItem

from .results import (
    Confidence,
    InsightResult,
    InsightSuccess,
    InsightUnavailable,
    MarketSnapshot,
    PricingResult,
    PricingSuccess,
)

INSIGHT_SOURCE = "ai"
MODIFIER_DELIMITER = ", "

ITEM_PROMPT_TEMPLATE = """Analyze this Path of Exile 2 item:

Item: {name}
Type: {item_type}
Mods: {mods}
Price Data: {listings} listings found

Provide insights on:
1. Item value assessment
2. Market position
3. Trading recommendations
4. Build relevance

Keep response concise and actionable."""

MARKET_PROMPT_TEMPLATE = """Analyze Path of Exile 2 market conditions for {league} league:

Current data indicates market activity for {currency} currency.

Provide:
1. Market trend assessment
2. Currency recommendations
3. Trading timing suggestions
4. Risk factors

Keep analysis brief and actionable."""


def render_item_prompt(item: ParsedItem, pricing: PricingResult) -> str:
    """Render the item analysis prompt; deterministic for equal inputs."""
    listings = pricing.total_listings if isinstance(pricing, PricingSuccess) else 0
    return ITEM_PROMPT_TEMPLATE.format(
        name=item.name,
        item_type=item.item_type,
        mods=MODIFIER_DELIMITER.join(item.modifiers),
        listings=listings,
    )


def render_market_prompt(snapshot: MarketSnapshot) -> str:
    return MARKET_PROMPT_TEMPLATE.format(league=snapshot.league, currency=snapshot.currency)


class InsightFetcher:
    """Asks the chat backend for analysis; never raises on upstream failure.

    Confidence is a fixed label per prompt kind: ``medium`` for item analysis
    and ``low`` for market analysis, which has no real market data behind it.
    """

    def __init__(
        self,
        chat_client: ChatClient,
        *,
        timeout: float = 15.0,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        self.chat_client = chat_client
        self.timeout = timeout
        self.metrics = metrics
        self.logger = get_logger("bridge.insight")

    async def fetch_insight(self, item: ParsedItem, pricing: PricingResult) -> InsightResult:
        prompt = render_item_prompt(item, pricing)
        return await self._ask(prompt, Confidence.MEDIUM, "AI analysis unavailable")

    async def fetch_market_analysis(self, snapshot: MarketSnapshot) -> InsightResult:
        prompt = render_market_prompt(snapshot)
        return await self._ask(prompt, Confidence.LOW, "Market analysis unavailable")

    async def _ask(self, prompt: str, confidence: Confidence, unavailable_reason: str) -> InsightResult:
        start = time.perf_counter()

        try:
            reply = await self.chat_client.send_message(prompt, timeout=self.timeout)
        except (ChatBackendError, CircuitBreakerOpenException) as exc:
            self._record("unavailable", start)
            self.logger.warning(unavailable_reason, error=str(exc))
            return InsightUnavailable(reason=f"{unavailable_reason}: {exc}")
        except Exception as exc:
            self._record("error", start)
            self.logger.error("Chat backend call failed unexpectedly", error_type=type(exc).__name__)
            return InsightUnavailable(reason=unavailable_reason)

        self._record("success", start)
        return InsightSuccess(analysis_text=reply.text, confidence=confidence, source=INSIGHT_SOURCE)

    def _record(self, outcome: str, start: float) -> None:
        if self.metrics is not None:
            self.metrics.record_upstream("chat_backend", outcome, time.perf_counter() - start)
