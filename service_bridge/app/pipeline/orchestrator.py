"""
Request orchestrator: admission, stage sequencing and fault containment.

Per request the pipeline moves Received -> Admitted -> Parsed -> Priced ->
Insighted -> Composed. Only two things end a request early: failed admission
(missing input or an exhausted rate budget) and an internal fault. Upstream
trouble stays inside the pricing and insight results.
"""

from __future__ import annotations

import traceback
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from shared.circuit_breaker import CircuitBreakerOpenException
from shared.errors import ExternalServiceError, RateLimitError, ServiceError, ValidationError
from shared.logging import get_logger
from shared.metrics import MetricsCollector

from service_bridge.app.adapters.chat_client import ChatBackendError, ChatClient, ChatReply
from service_bridge.app.parsing import ParsedItem, parse_item_text
from service_bridge.app.ratelimit import Allowed, FixedWindowRateLimiter, Rejected

from .composer import compose
from .insight import InsightFetcher
from .pricing import PricingFetcher
from .results import ComposedResponse, MarketReport, MarketSnapshot, utcnow

DEFAULT_CURRENCY = "divine"


class RequestOrchestrator:
    """Entry point for price checks, market analysis and the chat relay."""

    def __init__(
        self,
        rate_limiter: FixedWindowRateLimiter,
        pricing_fetcher: PricingFetcher,
        insight_fetcher: InsightFetcher,
        chat_client: ChatClient,
        *,
        default_league: str = "Hardcore",
        chat_model: str = "Multimodal Lite",
        parser: Callable[[str], ParsedItem] = parse_item_text,
        clock: Callable[[], datetime] = utcnow,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        self.rate_limiter = rate_limiter
        self.pricing_fetcher = pricing_fetcher
        self.insight_fetcher = insight_fetcher
        self.chat_client = chat_client
        self.default_league = default_league
        self.chat_model = chat_model
        self.parser = parser
        self.clock = clock
        self.metrics = metrics
        self.logger = get_logger("bridge.orchestrator")

    def admit(self, client_key: str, endpoint: str) -> Allowed:
        """Charge one request to ``client_key`` or raise :class:`RateLimitError`.

        The charge is never refunded, whatever happens downstream.
        """
        decision = self.rate_limiter.admit(client_key)
        if isinstance(decision, Rejected):
            if self.metrics is not None:
                self.metrics.increment_counter("rate_limit_rejections_total", endpoint=endpoint)
            raise RateLimitError(
                retry_after=decision.retry_after_seconds,
                details={"limit": decision.limit},
            )
        return decision

    async def price_check(self, item_text: Optional[str], league: Optional[str], client_key: str) -> ComposedResponse:
        # Admission comes first: over-quota callers get 429 even for bad input.
        self.admit(client_key, "/api/price-check")
        if not item_text or not item_text.strip():
            raise ValidationError("Item text is required", details={"field": "itemText"})

        league = self._league_or_default(league)
        self.logger.info("Processing price check", league=league, item_length=len(item_text))

        try:
            item = self.parser(item_text)
            pricing = await self.pricing_fetcher.fetch_pricing(item, league)
            # Insight consumes pricing's value, whether or not pricing succeeded.
            insight = await self.insight_fetcher.fetch_insight(item, pricing)
            return compose(item, pricing, insight, clock=self.clock)
        except Exception as exc:
            raise self._internal_fault("Price check failed", exc, league=league, item_length=len(item_text))

    async def market_snapshot(self, league: str, currency: Optional[str], client_key: str) -> MarketReport:
        league = self._league_or_default(league)
        self.admit(client_key, "/api/market")
        currency = (currency or "").strip() or DEFAULT_CURRENCY
        self.logger.info("Fetching market data", league=league, currency=currency)

        try:
            snapshot = MarketSnapshot(league=league, currency=currency, generated_at=self.clock())
            analysis = await self.insight_fetcher.fetch_market_analysis(snapshot)
            return MarketReport(league=league, market=snapshot, analysis=analysis, generated_at=self.clock())
        except Exception as exc:
            raise self._internal_fault("Market data fetch failed", exc, league=league)

    async def chat(self, message: Optional[str], context: Optional[Dict[str, Any]], client_key: str) -> ChatReply:
        """Relay a free-form message; unlike the pipeline, failures surface as 502."""
        self.admit(client_key, "/api/chat")
        if not message or not message.strip():
            raise ValidationError("Message is required", details={"field": "message"})

        context = context or {}
        self.logger.info("Processing chat request", message_length=len(message))

        try:
            return await self.chat_client.send_message(
                message,
                model=context.get("model") or self.chat_model,
                conversation_id=context.get("conversationId"),
                parent_message_id=context.get("parentMessageId"),
            )
        except (ChatBackendError, CircuitBreakerOpenException) as exc:
            self.logger.warning("Chat relay failed", error=str(exc))
            raise ExternalServiceError("chat_backend", "communication failed", details={"reason": str(exc)})
        except Exception as exc:
            raise self._internal_fault("Chat relay failed", exc, message_length=len(message))

    def _league_or_default(self, league: Optional[str]) -> str:
        return (league or "").strip() or self.default_league

    def _internal_fault(self, message: str, exc: Exception, **context: Any) -> ServiceError:
        # Stack frames only: exception text may echo request content.
        self.logger.error(
            message,
            error_type=type(exc).__name__,
            stack="".join(traceback.format_tb(exc.__traceback__)),
            **context,
        )
        if self.metrics is not None:
            self.metrics.record_error("pipeline_fault")
        return ServiceError(message)
