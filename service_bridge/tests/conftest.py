"""
Shared fixtures for bridge tests.
"""

import json
from typing import Any, Callable, Dict, List

import httpx
import pytest


SAMPLE_ITEM_TEXT = (
    "Rarity: Rare\n"
    "Bone Sword\n"
    "---\n"
    "One Handed Sword\n"
    "...+40% increased Physical Damage\n"
    "10% increased Attack Speed"
)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.requests: List[httpx.Request] = []

        def _handler(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(_handler)

    def json_bodies(self) -> List[Dict[str, Any]]:
        return [json.loads(request.content) for request in self.requests]


def trade_search_payload(listings: int = 3, total: int = None) -> Dict[str, Any]:
    return {
        "id": "search-abc",
        "total": listings if total is None else total,
        "result": [f"listing-{index}" for index in range(listings)],
    }


@pytest.fixture
def sample_item_text():
    return SAMPLE_ITEM_TEXT


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def trade_ok():
    return RecordingTransport(lambda request: httpx.Response(200, json=trade_search_payload(listings=12, total=57)))


@pytest.fixture
def trade_down():
    def _handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    return RecordingTransport(_handler)


@pytest.fixture
def chat_ok():
    return RecordingTransport(
        lambda request: httpx.Response(
            200,
            json={"text": "Solid crafting base.", "conversationId": "conv-1", "messageId": "msg-1"},
        )
    )


@pytest.fixture
def chat_down():
    return RecordingTransport(lambda request: httpx.Response(503, json={"error": "busy"}))
