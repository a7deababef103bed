"""
Pricing stage: one trade search per price check.
"""

from __future__ import annotations

import time
from typing import Any, Dict, Optional

from shared.circuit_breaker import CircuitBreakerOpenException
from shared.logging import get_logger
from shared.metrics import MetricsCollector

from service_bridge.app.adapters.trade_client import TradeClient, TradeSearchError
from service_bridge.app.parsing import ParsedItem

from .results import PricingResult, PricingSuccess, PricingUnavailable

# Deliberate cap on listings echoed back, not a protocol limit.
SAMPLE_LISTING_LIMIT = 10

UNAVAILABLE_REASON = "Official API unavailable"


def build_search_query(item: ParsedItem) -> Dict[str, Any]:
    """Online listings matching name and type, cheapest first."""
    return {
        "query": {
            "name": item.name,
            "type": item.item_type,
            "status": {"option": "online"},
        },
        "sort": {"price": "asc"},
    }


class PricingFetcher:
    """Turns a trade search into a :data:`PricingResult`; never raises on upstream failure."""

    def __init__(self, trade_client: TradeClient, metrics: Optional[MetricsCollector] = None) -> None:
        self.trade_client = trade_client
        self.metrics = metrics
        self.logger = get_logger("bridge.pricing")

    async def fetch_pricing(self, item: ParsedItem, league: str) -> PricingResult:
        query = build_search_query(item)
        start = time.perf_counter()

        try:
            search = await self.trade_client.search(league, query)
        except (TradeSearchError, CircuitBreakerOpenException) as exc:
            self._record("unavailable", start)
            self.logger.warning("Official API unavailable, using fallback", league=league, error=str(exc))
            return PricingUnavailable(reason=f"{UNAVAILABLE_REASON}: {exc}")
        except Exception as exc:
            self._record("error", start)
            self.logger.error(
                "Pricing lookup failed unexpectedly",
                league=league,
                error_type=type(exc).__name__,
            )
            return PricingUnavailable(reason=UNAVAILABLE_REASON)

        self._record("success", start)
        self.logger.debug("Pricing retrieved", league=league, total=search.total)
        return PricingSuccess(
            search_id=search.search_id,
            total_listings=search.total,
            sample_listings=search.result[:SAMPLE_LISTING_LIMIT],
        )

    def _record(self, outcome: str, start: float) -> None:
        if self.metrics is not None:
            self.metrics.record_upstream("trade_api", outcome, time.perf_counter() - start)
