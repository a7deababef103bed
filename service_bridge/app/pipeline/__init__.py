"""
Price-check pipeline for the bridge.

Stages run in order parser -> pricing -> insight -> composer. Pricing and
insight are separate failure domains: each returns an ``Unavailable``
variant instead of raising, so the composed response is always produced.
"""

from .composer import compose
from .insight import InsightFetcher, render_item_prompt, render_market_prompt
from .orchestrator import RequestOrchestrator
from .pricing import PricingFetcher, build_search_query
from .results import (
    ComposedResponse,
    Confidence,
    InsightResult,
    InsightSuccess,
    InsightUnavailable,
    MarketReport,
    MarketSnapshot,
    PricingResult,
    PricingSuccess,
    PricingUnavailable,
)

__all__ = [
    "ComposedResponse",
    "Confidence",
    "InsightFetcher",
    "InsightResult",
    "InsightSuccess",
    "InsightUnavailable",
    "MarketReport",
    "MarketSnapshot",
    "PricingFetcher",
    "PricingResult",
    "PricingSuccess",
    "PricingUnavailable",
    "RequestOrchestrator",
    "build_search_query",
    "compose",
    "render_item_prompt",
    "render_market_prompt",
]
