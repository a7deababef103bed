"""
Trade search client for the bridge.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from shared.circuit_breaker import CircuitBreaker
from shared.logging import get_logger


class TradeSearchError(RuntimeError):
    """Raised when the trade search call fails for any reason."""


class TradeUnavailableError(TradeSearchError):
    """The trade API itself failed: timeout, transport, 5xx, throttling or a bad body."""


class TradeRequestRejected(TradeSearchError):
    """The trade API refused this particular query (4xx), e.g. an unknown league."""


# Client-side statuses that still say nothing about the query itself
RETRYABLE_CLIENT_STATUSES = frozenset({408, 429})


@dataclass(frozen=True)
class TradeSearchResponse:
    """The fields of a trade search answer the bridge relies on."""

    search_id: str
    total: int
    result: List[Any] = field(default_factory=list)


class TradeClient:
    """Client for the official trade search endpoint.

    One call per price check: no retries, since every retry spends the same
    upstream quota the rate limiter is protecting.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        user_agent: str = "ExiledAIBridge/1.0.0",
        circuit_breaker: Optional[CircuitBreaker] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.logger = get_logger("bridge.trade_client")
        self.circuit_breaker = circuit_breaker or CircuitBreaker(
            name="trade_api", expected_exception=TradeUnavailableError
        )
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers={"User-Agent": user_agent, "Content-Type": "application/json"},
            transport=transport,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def search(self, league: str, query: Dict[str, Any]) -> TradeSearchResponse:
        """POST a search query for ``league``.

        Raises:
            TradeRequestRejected: on a 4xx answer to this query.
            TradeUnavailableError: on timeout, transport failure, 5xx status,
                throttling or a body without the expected ``id``/``total``/``result``
                fields. Only these count against the circuit breaker.
            CircuitBreakerOpenException: while the breaker is open.
        """
        path = f"/search/{quote(league, safe='')}"

        async def _request() -> TradeSearchResponse:
            try:
                response = await self._client.post(path, json=query)
                response.raise_for_status()
                payload = response.json()
            except httpx.TimeoutException as exc:
                raise TradeUnavailableError(f"timed out after {self.timeout}s") from exc
            except httpx.HTTPStatusError as exc:
                raise _status_error(exc.response.status_code) from exc
            except httpx.HTTPError as exc:
                raise TradeUnavailableError(f"transport error: {type(exc).__name__}") from exc
            except ValueError as exc:
                raise TradeUnavailableError("response body is not JSON") from exc

            return self._parse_search(payload)

        return await self.circuit_breaker.call(_request)

    @staticmethod
    def _parse_search(payload: Any) -> TradeSearchResponse:
        if not isinstance(payload, dict):
            raise TradeUnavailableError("malformed search response")

        search_id = payload.get("id")
        total = payload.get("total")
        result = payload.get("result")
        if not isinstance(search_id, str) or not isinstance(result, list):
            raise TradeUnavailableError("malformed search response")
        try:
            total = int(total) if total is not None else len(result)
        except (TypeError, ValueError) as exc:
            raise TradeUnavailableError("malformed search response") from exc

        return TradeSearchResponse(search_id=search_id, total=total, result=result)


def _status_error(status_code: int) -> TradeSearchError:
    message = f"unexpected status {status_code}"
    if 400 <= status_code < 500 and status_code not in RETRYABLE_CLIENT_STATUSES:
        return TradeRequestRejected(message)
    return TradeUnavailableError(message)
