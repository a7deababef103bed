"""
Chat backend client for the bridge.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from shared.circuit_breaker import CircuitBreaker
from shared.logging import get_logger


class ChatBackendError(RuntimeError):
    """Raised when the chat backend cannot produce an answer."""


class ChatBackendUnavailable(ChatBackendError):
    """The backend itself failed: timeout, transport, 5xx, throttling or an empty answer."""


class ChatRequestRejected(ChatBackendError):
    """The backend refused this particular message (4xx)."""


# Client-side statuses that still say nothing about the message itself
RETRYABLE_CLIENT_STATUSES = frozenset({408, 429})


@dataclass(frozen=True)
class ChatReply:
    """A single answer from the chat backend."""

    text: str
    conversation_id: Optional[str] = None
    message_id: Optional[str] = None
    model: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"text": self.text}
        if self.conversation_id is not None:
            payload["conversationId"] = self.conversation_id
        if self.message_id is not None:
            payload["messageId"] = self.message_id
        if self.model is not None:
            payload["model"] = self.model
        return payload


class ChatClient:
    """Client for a LibreChat-style ``/api/messages`` endpoint.

    The client keeps no conversation state of its own; callers that want
    continuity pass ``conversation_id``/``parent_message_id`` explicitly.
    """

    def __init__(
        self,
        base_url: str,
        *,
        default_model: str = "Multimodal Lite",
        timeout: float = 30.0,
        probe_timeout: float = 5.0,
        user_agent: str = "ExiledAIBridge/1.0.0",
        circuit_breaker: Optional[CircuitBreaker] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.default_model = default_model
        self.timeout = timeout
        self.probe_timeout = probe_timeout
        self.logger = get_logger("bridge.chat_client")
        self.circuit_breaker = circuit_breaker or CircuitBreaker(
            name="chat_backend", expected_exception=ChatBackendUnavailable
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

    async def send_message(
        self,
        text: str,
        *,
        model: Optional[str] = None,
        conversation_id: Optional[str] = None,
        parent_message_id: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> ChatReply:
        """Send one message and return the backend's answer.

        ``timeout`` overrides the client default for this call only.

        Raises:
            ChatRequestRejected: on a 4xx answer to this message.
            ChatBackendUnavailable: on timeout, transport failure, 5xx status,
                throttling or an answer without text. Only these count against
                the circuit breaker.
            CircuitBreakerOpenException: while the breaker is open.
        """
        payload: Dict[str, Any] = {"text": text, "model": model or self.default_model}
        if conversation_id:
            payload["conversationId"] = conversation_id
        if parent_message_id:
            payload["parentMessageId"] = parent_message_id

        effective_timeout = timeout if timeout is not None else self.timeout

        async def _request() -> ChatReply:
            try:
                response = await self._client.post("/api/messages", json=payload, timeout=effective_timeout)
                response.raise_for_status()
                data = response.json()
            except httpx.TimeoutException as exc:
                raise ChatBackendUnavailable(f"timed out after {effective_timeout}s") from exc
            except httpx.HTTPStatusError as exc:
                raise _status_error(exc.response.status_code) from exc
            except httpx.HTTPError as exc:
                raise ChatBackendUnavailable(f"transport error: {type(exc).__name__}") from exc
            except ValueError as exc:
                raise ChatBackendUnavailable("response body is not JSON") from exc

            return self._parse_reply(data)

        self.logger.debug("Sending message to chat backend", message_length=len(text), model=payload["model"])
        return await self.circuit_breaker.call(_request)

    async def probe(self) -> Dict[str, Any]:
        """Check that the backend answers its config endpoint."""
        try:
            response = await self._client.get("/api/config", timeout=self.probe_timeout)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            return {"healthy": False, "status": "disconnected", "error": type(exc).__name__}

        version = data.get("version", "unknown") if isinstance(data, dict) else "unknown"
        return {"healthy": True, "status": "connected", "version": version}

    @staticmethod
    def _parse_reply(data: Any) -> ChatReply:
        if not isinstance(data, dict):
            raise ChatBackendUnavailable("malformed chat response")

        text = data.get("text") or data.get("response")
        if not isinstance(text, str) or not text.strip():
            raise ChatBackendUnavailable("chat backend returned no text")

        return ChatReply(
            text=text,
            conversation_id=data.get("conversationId"),
            message_id=data.get("messageId"),
            model=data.get("model"),
        )


def _status_error(status_code: int) -> ChatBackendError:
    message = f"unexpected status {status_code}"
    if 400 <= status_code < 500 and status_code not in RETRYABLE_CLIENT_STATUSES:
        return ChatRequestRejected(message)
    return ChatBackendUnavailable(message)
