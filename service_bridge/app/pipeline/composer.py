"""
Response composer: merges already-resolved stage results.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable

from service_bridge.app.parsing import ParsedItem

from .results import ComposedResponse, InsightResult, PricingResult, utcnow


def compose(
    item: ParsedItem,
    pricing: PricingResult,
    insight: InsightResult,
    *,
    clock: Callable[[], datetime] = utcnow,
) -> ComposedResponse:
    """Build the final response, stamped at composition time."""
    return ComposedResponse(
        success=True,
        item=item,
        pricing=pricing,
        insight=insight,
        generated_at=clock(),
    )
