"""
Unit tests for the price-check pipeline stages and orchestrator.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import FakeClock
from service_bridge.app.adapters import ChatBackendError, ChatReply, TradeSearchError, TradeSearchResponse
from service_bridge.app.parsing import ParsedItem, parse_item_text
from service_bridge.app.pipeline import (
    Confidence,
    InsightFetcher,
    InsightSuccess,
    InsightUnavailable,
    MarketSnapshot,
    PricingFetcher,
    PricingSuccess,
    PricingUnavailable,
    RequestOrchestrator,
    build_search_query,
    compose,
    render_item_prompt,
)
from service_bridge.app.ratelimit import FixedWindowRateLimiter
from shared.circuit_breaker import CircuitBreakerOpenException
from shared.errors import ExternalServiceError, RateLimitError, ServiceError, ValidationError
from shared.metrics import MetricsCollector

FIXED_NOW = datetime(2026, 10, 18, 12, 30, 45, 123456, tzinfo=timezone.utc)

ITEM = ParsedItem(
    name="Rarity: Rare",
    item_type="Bone Sword",
    modifiers=("+40% increased Physical Damage", "10% increased Attack Speed"),
    raw_text="Rarity: Rare\nBone Sword",
)


class TestPricingFetcher:
    """Test cases for PricingFetcher."""

    def test_search_query_shape(self):
        assert build_search_query(ITEM) == {
            "query": {"name": "Rarity: Rare", "type": "Bone Sword", "status": {"option": "online"}},
            "sort": {"price": "asc"},
        }

    @pytest.mark.asyncio
    async def test_success_truncates_to_ten_listings(self):
        trade_client = MagicMock()
        trade_client.search = AsyncMock(return_value=TradeSearchResponse(
            search_id="abc", total=57, result=[f"r{i}" for i in range(25)]
        ))
        metrics = MetricsCollector("bridge")
        fetcher = PricingFetcher(trade_client, metrics=metrics)

        result = await fetcher.fetch_pricing(ITEM, "Hardcore")

        assert isinstance(result, PricingSuccess)
        assert result.search_id == "abc"
        assert result.total_listings == 57
        assert result.sample_listings == [f"r{i}" for i in range(10)]
        trade_client.search.assert_awaited_once_with("Hardcore", build_search_query(ITEM))
        assert metrics.sample_value("upstream_requests_total", upstream="trade_api", outcome="success") == 1.0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [
        TradeSearchError("timed out after 10.0s"),
        CircuitBreakerOpenException("Circuit breaker 'trade_api' is OPEN - blocking call"),
    ])
    async def test_upstream_failure_becomes_unavailable(self, error):
        trade_client = MagicMock()
        trade_client.search = AsyncMock(side_effect=error)
        fetcher = PricingFetcher(trade_client)

        result = await fetcher.fetch_pricing(ITEM, "Hardcore")

        assert isinstance(result, PricingUnavailable)
        assert result.reason.startswith("Official API unavailable")
        assert result.to_dict() == {"error": result.reason, "fallback": True}

    @pytest.mark.asyncio
    async def test_unexpected_error_does_not_escape(self):
        trade_client = MagicMock()
        trade_client.search = AsyncMock(side_effect=KeyError("id"))
        fetcher = PricingFetcher(trade_client)

        result = await fetcher.fetch_pricing(ITEM, "Hardcore")

        assert result == PricingUnavailable(reason="Official API unavailable")


class TestInsightFetcher:
    """Test cases for InsightFetcher."""

    def test_prompt_includes_item_and_listing_count(self):
        prompt = render_item_prompt(ITEM, PricingSuccess(search_id="abc", total_listings=57))

        assert "Item: Rarity: Rare" in prompt
        assert "Type: Bone Sword" in prompt
        assert "Mods: +40% increased Physical Damage, 10% increased Attack Speed" in prompt
        assert "Price Data: 57 listings found" in prompt

    def test_prompt_uses_zero_listings_when_pricing_unavailable(self):
        prompt = render_item_prompt(ITEM, PricingUnavailable(reason="down"))

        assert "Price Data: 0 listings found" in prompt
        assert prompt == render_item_prompt(ITEM, PricingUnavailable(reason="other"))

    @pytest.mark.asyncio
    async def test_success_has_medium_confidence(self):
        chat_client = MagicMock()
        chat_client.send_message = AsyncMock(return_value=ChatReply(text="Worth 2 divines."))
        fetcher = InsightFetcher(chat_client, timeout=15.0)

        result = await fetcher.fetch_insight(ITEM, PricingUnavailable(reason="down"))

        assert result == InsightSuccess(analysis_text="Worth 2 divines.", confidence=Confidence.MEDIUM, source="ai")
        args, kwargs = chat_client.send_message.call_args
        assert "Analyze this Path of Exile 2 item" in args[0]
        assert kwargs["timeout"] == 15.0

    @pytest.mark.asyncio
    async def test_failure_becomes_unavailable(self):
        chat_client = MagicMock()
        chat_client.send_message = AsyncMock(side_effect=ChatBackendError("unexpected status 500"))
        metrics = MetricsCollector("bridge")
        fetcher = InsightFetcher(chat_client, metrics=metrics)

        result = await fetcher.fetch_insight(ITEM, PricingSuccess(search_id="abc", total_listings=1))

        assert isinstance(result, InsightUnavailable)
        assert result.reason == "AI analysis unavailable: unexpected status 500"
        assert metrics.sample_value("upstream_requests_total", upstream="chat_backend", outcome="unavailable") == 1.0

    @pytest.mark.asyncio
    async def test_market_analysis_has_low_confidence(self):
        chat_client = MagicMock()
        chat_client.send_message = AsyncMock(return_value=ChatReply(text="Divines trending up."))
        fetcher = InsightFetcher(chat_client)
        snapshot = MarketSnapshot(league="Standard", currency="exalted", generated_at=FIXED_NOW)

        result = await fetcher.fetch_market_analysis(snapshot)

        assert result.confidence is Confidence.LOW
        prompt = chat_client.send_message.call_args.args[0]
        assert "for Standard league" in prompt
        assert "activity for exalted currency" in prompt


class TestComposer:
    """Test cases for compose."""

    def test_compose_stamps_generation_time(self):
        pricing = PricingSuccess(search_id="abc", total_listings=2, sample_listings=["a", "b"])
        insight = InsightUnavailable(reason="AI analysis unavailable")

        composed = compose(ITEM, pricing, insight, clock=lambda: FIXED_NOW)

        assert composed.to_dict() == {
            "success": True,
            "item": ITEM.to_dict(),
            "pricing": {"searchId": "abc", "total": 2, "results": ["a", "b"]},
            "aiInsights": {"error": "AI analysis unavailable", "fallback": True},
            "timestamp": "2026-10-18T12:30:45.123Z",
        }


class TestRequestOrchestrator:
    """Test cases for RequestOrchestrator."""

    @pytest.fixture
    def pricing_fetcher(self):
        fetcher = MagicMock()
        fetcher.fetch_pricing = AsyncMock(return_value=PricingSuccess(search_id="abc", total_listings=3, sample_listings=["a"]))
        return fetcher

    @pytest.fixture
    def insight_fetcher(self):
        fetcher = MagicMock()
        fetcher.fetch_insight = AsyncMock(return_value=InsightSuccess("Good item.", Confidence.MEDIUM, "ai"))
        fetcher.fetch_market_analysis = AsyncMock(return_value=InsightSuccess("Calm market.", Confidence.LOW, "ai"))
        return fetcher

    @pytest.fixture
    def chat_client(self):
        client = MagicMock()
        client.send_message = AsyncMock(return_value=ChatReply(text="Hi.", conversation_id="conv-9"))
        return client

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def metrics(self):
        return MetricsCollector("bridge")

    @pytest.fixture
    def orchestrator(self, pricing_fetcher, insight_fetcher, chat_client, clock, metrics):
        return RequestOrchestrator(
            FixedWindowRateLimiter(3, 60.0, clock=clock),
            pricing_fetcher,
            insight_fetcher,
            chat_client,
            clock=lambda: FIXED_NOW,
            metrics=metrics,
        )

    @pytest.mark.asyncio
    async def test_price_check_runs_every_stage(self, orchestrator, pricing_fetcher, insight_fetcher, sample_item_text):
        composed = await orchestrator.price_check(sample_item_text, "Standard", "10.0.0.1")

        assert composed.success is True
        assert composed.item == parse_item_text(sample_item_text)
        assert composed.generated_at == FIXED_NOW
        pricing_fetcher.fetch_pricing.assert_awaited_once_with(composed.item, "Standard")
        insight_fetcher.fetch_insight.assert_awaited_once_with(composed.item, composed.pricing)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("league", [None, "", "   "])
    async def test_league_defaults_to_hardcore(self, orchestrator, pricing_fetcher, sample_item_text, league):
        await orchestrator.price_check(sample_item_text, league, "10.0.0.1")

        assert pricing_fetcher.fetch_pricing.call_args.args[1] == "Hardcore"

    @pytest.mark.asyncio
    async def test_pricing_failure_still_attempts_insight(self, orchestrator, pricing_fetcher, insight_fetcher, sample_item_text):
        unavailable = PricingUnavailable(reason="Official API unavailable: timed out after 10.0s")
        pricing_fetcher.fetch_pricing.return_value = unavailable

        composed = await orchestrator.price_check(sample_item_text, "Hardcore", "10.0.0.1")

        assert composed.success is True
        assert composed.to_dict()["pricing"]["fallback"] is True
        insight_fetcher.fetch_insight.assert_awaited_once_with(composed.item, unavailable)
        assert isinstance(composed.insight, InsightSuccess)

    @pytest.mark.asyncio
    async def test_insight_failure_keeps_full_pricing(self, orchestrator, insight_fetcher, sample_item_text):
        insight_fetcher.fetch_insight.return_value = InsightUnavailable(reason="AI analysis unavailable")

        body = (await orchestrator.price_check(sample_item_text, "Hardcore", "10.0.0.1")).to_dict()

        assert body["success"] is True
        assert body["pricing"] == {"searchId": "abc", "total": 3, "results": ["a"]}
        assert body["aiInsights"]["fallback"] is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize("item_text", [None, "", "  \n "])
    async def test_missing_item_text_is_rejected_after_charging(self, orchestrator, pricing_fetcher, item_text):
        with pytest.raises(ValidationError) as exc_info:
            await orchestrator.price_check(item_text, "Hardcore", "10.0.0.1")

        assert exc_info.value.details == {"field": "itemText"}
        assert orchestrator.rate_limiter.get_rate_limit_status("10.0.0.1")["current_count"] == 1
        pricing_fetcher.fetch_pricing.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_over_quota_blank_request_is_rate_limited(self, orchestrator, sample_item_text):
        for _ in range(3):
            await orchestrator.price_check(sample_item_text, "Hardcore", "10.0.0.1")

        with pytest.raises(RateLimitError):
            await orchestrator.price_check("", "Hardcore", "10.0.0.1")

    @pytest.mark.asyncio
    async def test_over_quota_blank_chat_is_rate_limited(self, orchestrator):
        for _ in range(3):
            await orchestrator.chat("hello", {}, "10.0.0.1")

        with pytest.raises(RateLimitError):
            await orchestrator.chat(None, None, "10.0.0.1")

    @pytest.mark.asyncio
    async def test_rate_limited_request_does_no_work(self, orchestrator, pricing_fetcher, metrics, clock, sample_item_text):
        for _ in range(3):
            await orchestrator.price_check(sample_item_text, "Hardcore", "10.0.0.1")
        pricing_fetcher.fetch_pricing.reset_mock()
        clock.advance(20)

        with pytest.raises(RateLimitError) as exc_info:
            await orchestrator.price_check(sample_item_text, "Hardcore", "10.0.0.1")

        assert exc_info.value.retry_after == 40
        assert exc_info.value.headers() == {"Retry-After": "40"}
        pricing_fetcher.fetch_pricing.assert_not_awaited()
        assert metrics.sample_value("rate_limit_rejections_total", endpoint="/api/price-check") == 1.0

    @pytest.mark.asyncio
    async def test_admission_is_not_refunded_on_fault(self, orchestrator, pricing_fetcher, sample_item_text):
        pricing_fetcher.fetch_pricing.side_effect = AttributeError("broken template")

        with pytest.raises(ServiceError):
            await orchestrator.price_check(sample_item_text, "Hardcore", "10.0.0.1")

        assert orchestrator.rate_limiter.get_rate_limit_status("10.0.0.1")["current_count"] == 1

    @pytest.mark.asyncio
    async def test_internal_fault_is_redacted(self, orchestrator, insight_fetcher, metrics, sample_item_text):
        insight_fetcher.fetch_insight.side_effect = KeyError(sample_item_text)

        with pytest.raises(ServiceError) as exc_info:
            await orchestrator.price_check(sample_item_text, "Hardcore", "10.0.0.1")

        assert exc_info.value.status_code == 500
        assert sample_item_text not in exc_info.value.message
        assert metrics.sample_value("errors_total", error_type="pipeline_fault", service="bridge") == 1.0

    @pytest.mark.asyncio
    async def test_market_snapshot(self, orchestrator, insight_fetcher):
        report = await orchestrator.market_snapshot("Standard", None, "10.0.0.1")

        body = report.to_dict()
        assert body["success"] is True
        assert body["league"] == "Standard"
        assert body["market"]["currency"] == "divine"
        assert body["market"]["timestamp"] == "2026-10-18T12:30:45.123Z"
        assert body["analysis"] == {"analysis": "Calm market.", "confidence": "low", "source": "ai"}
        insight_fetcher.fetch_market_analysis.assert_awaited_once_with(report.market)

    @pytest.mark.asyncio
    async def test_chat_relays_context(self, orchestrator, chat_client):
        reply = await orchestrator.chat("Is this good?", {"conversationId": "conv-9", "parentMessageId": "msg-2"}, "10.0.0.1")

        assert reply.conversation_id == "conv-9"
        chat_client.send_message.assert_awaited_once_with(
            "Is this good?",
            model="Multimodal Lite",
            conversation_id="conv-9",
            parent_message_id="msg-2",
        )

    @pytest.mark.asyncio
    async def test_chat_failure_is_external_error(self, orchestrator, chat_client):
        chat_client.send_message.side_effect = ChatBackendError("timed out after 30.0s")

        with pytest.raises(ExternalServiceError) as exc_info:
            await orchestrator.chat("hello", None, "10.0.0.1")

        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_chat_requires_message(self, orchestrator):
        with pytest.raises(ValidationError):
            await orchestrator.chat("", {}, "10.0.0.1")
