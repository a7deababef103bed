"""
Adapters package for the bridge.

Contains HTTP client wrappers for upstream dependencies (trade search, chat
backend). These adapters encapsulate:

- Base URLs, request shapes and per-call timeouts
- Circuit breakers, tripped only by upstream faults
- Mapping of transport failures to adapter error types: ``*Unavailable``
  for upstream faults, ``*Rejected`` for 4xx answers to the caller's input

Keep adapters thin and side-effect free outside of explicit calls.
"""

from .chat_client import ChatBackendError, ChatBackendUnavailable, ChatClient, ChatReply, ChatRequestRejected
from .trade_client import (
    TradeClient,
    TradeRequestRejected,
    TradeSearchError,
    TradeSearchResponse,
    TradeUnavailableError,
)

__all__ = [
    "ChatBackendError",
    "ChatBackendUnavailable",
    "ChatClient",
    "ChatReply",
    "ChatRequestRejected",
    "TradeClient",
    "TradeRequestRejected",
    "TradeSearchError",
    "TradeSearchResponse",
    "TradeUnavailableError",
]
