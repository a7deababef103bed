"""
AI bridge service for the Exile AI Bridge.
"""

from typing import Any, Dict, Optional

import httpx
from fastapi import Body, Query, Request, Response

from shared.base_service import BaseService
from shared.circuit_breaker import CircuitBreakerManager
from shared.config import ServiceConfig
from shared.logging import set_client_key

from service_bridge.app.adapters import ChatBackendUnavailable, ChatClient, TradeClient, TradeUnavailableError
from service_bridge.app.pipeline import InsightFetcher, PricingFetcher, RequestOrchestrator
from service_bridge.app.pipeline.results import format_timestamp, utcnow
from service_bridge.app.ratelimit import FixedWindowRateLimiter, get_client_key
from service_bridge.app.schemas import ChatRequest, PriceCheckRequest


class BridgeService(BaseService):
    """AI bridge service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        *,
        trade_transport: Optional[httpx.AsyncBaseTransport] = None,
        chat_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__("bridge", config)

        self.circuit_breakers = CircuitBreakerManager()
        self.trade_client = TradeClient(
            self.config.trade_api_url,
            timeout=self.config.pricing_timeout_seconds,
            user_agent=self.config.user_agent,
            circuit_breaker=self.circuit_breakers.get_circuit_breaker(
                "trade_api",
                failure_threshold=self.config.circuit_failure_threshold,
                recovery_timeout=self.config.circuit_recovery_seconds,
                expected_exception=TradeUnavailableError,
            ),
            transport=trade_transport,
        )
        self.chat_client = ChatClient(
            self.config.chat_base_url,
            default_model=self.config.chat_model,
            timeout=self.config.chat_timeout_seconds,
            probe_timeout=self.config.probe_timeout_seconds,
            user_agent=self.config.user_agent,
            circuit_breaker=self.circuit_breakers.get_circuit_breaker(
                "chat_backend",
                failure_threshold=self.config.circuit_failure_threshold,
                recovery_timeout=self.config.circuit_recovery_seconds,
                expected_exception=ChatBackendUnavailable,
            ),
            transport=chat_transport,
        )

        self.rate_limiter = FixedWindowRateLimiter(
            self.config.rate_limit_max_requests,
            self.config.rate_limit_window_seconds,
            max_keys=self.config.rate_limit_max_keys,
        )
        self.orchestrator = RequestOrchestrator(
            self.rate_limiter,
            PricingFetcher(self.trade_client, metrics=self.metrics),
            InsightFetcher(
                self.chat_client,
                timeout=self.config.insight_timeout_seconds,
                metrics=self.metrics,
            ),
            self.chat_client,
            default_league=self.config.default_league,
            chat_model=self.config.chat_model,
            metrics=self.metrics,
        )

        self._setup_bridge_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.bridge_service = self

    async def on_startup(self) -> None:
        self.logger.info(
            "Exiled AI Bridge starting",
            port=self.config.port,
            chat_base_url=self.config.chat_base_url,
            environment=self.config.env,
        )

    async def on_shutdown(self) -> None:
        self.logger.info("Shutting down gracefully")
        await self.trade_client.close()
        await self.chat_client.close()

    async def _check_dependencies(self, deep: bool = False) -> Dict[str, Any]:
        dependencies: Dict[str, Any] = {
            name: state["state"]
            for name, state in self.circuit_breakers.get_all_states().items()
        }
        if deep:
            dependencies["chat_backend_probe"] = await self.chat_client.probe()
        return dependencies

    def _set_rate_limit_headers(self, response: Response, client_key: str) -> None:
        """Propagate rate limiting metadata via standard headers."""
        status = self.rate_limiter.get_rate_limit_status(client_key)
        response.headers["X-RateLimit-Limit"] = str(status["limit"])
        response.headers["X-RateLimit-Remaining"] = str(status["remaining"])
        response.headers["X-RateLimit-Reset"] = str(status["reset_in_seconds"])

    def _client_key(self, request: Request) -> str:
        client_key = get_client_key(request)
        set_client_key(client_key)
        return client_key

    def _setup_bridge_routes(self):
        """Set up bridge-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "exiled-ai-bridge",
                "message": "Exile AI Bridge - price checks with AI insights",
                "version": "1.0.0",
            }

        @self.app.post("/api/price-check")
        async def price_check(
            request: Request,
            response: Response,
            payload: Optional[PriceCheckRequest] = Body(default=None),
        ):
            """Parse, price and analyse one item."""
            payload = payload or PriceCheckRequest()
            client_key = self._client_key(request)

            composed = await self.orchestrator.price_check(payload.itemText, payload.league, client_key)

            self._set_rate_limit_headers(response, client_key)
            return composed.to_dict()

        @self.app.get("/api/market/{league}")
        async def market(
            league: str,
            request: Request,
            response: Response,
            currency: Optional[str] = Query(None),
        ):
            """Market snapshot for a league with an AI analysis."""
            client_key = self._client_key(request)

            report = await self.orchestrator.market_snapshot(league, currency, client_key)

            self._set_rate_limit_headers(response, client_key)
            return report.to_dict()

        @self.app.post("/api/chat")
        async def chat(
            request: Request,
            response: Response,
            payload: Optional[ChatRequest] = Body(default=None),
        ):
            """Relay a message to the chat backend."""
            payload = payload or ChatRequest()
            client_key = self._client_key(request)

            reply = await self.orchestrator.chat(payload.message, payload.context, client_key)

            self._set_rate_limit_headers(response, client_key)
            return {
                "success": True,
                "response": reply.to_dict(),
                "timestamp": format_timestamp(utcnow()),
            }


def create_app(config: Optional[ServiceConfig] = None):
    """Create FastAPI application."""
    service = BridgeService(config)
    return service.app


if __name__ == "__main__":
    service = BridgeService()
    service.run()
