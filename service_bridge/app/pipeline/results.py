"""
Result variants exchanged between pipeline stages.

Every upstream stage returns either a success record or an ``Unavailable``
record carrying a reason; neither raises. ``to_dict`` renders the wire shape
the client expects, where a degraded part is marked with ``fallback: true``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Union

from service_bridge.app.parsing import ParsedItem


class Confidence(str, Enum):
    """How far an insight can be vouched for.

    The levels are fixed approximations chosen per prompt kind, not measured.
    """
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class PricingSuccess:
    search_id: str
    total_listings: int
    sample_listings: List[Any] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "searchId": self.search_id,
            "total": self.total_listings,
            "results": list(self.sample_listings),
        }


@dataclass(frozen=True)
class PricingUnavailable:
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.reason, "fallback": True}


PricingResult = Union[PricingSuccess, PricingUnavailable]


@dataclass(frozen=True)
class InsightSuccess:
    analysis_text: str
    confidence: Confidence
    source: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "analysis": self.analysis_text,
            "confidence": self.confidence.value,
            "source": self.source,
        }


@dataclass(frozen=True)
class InsightUnavailable:
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.reason, "fallback": True}


InsightResult = Union[InsightSuccess, InsightUnavailable]


@dataclass(frozen=True)
class ComposedResponse:
    """Final price-check payload.

    ``success`` only reflects admission and parsing; upstream degradation is
    visible inside ``pricing`` and ``insight``.
    """

    success: bool
    item: ParsedItem
    pricing: PricingResult
    insight: InsightResult
    generated_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "item": self.item.to_dict(),
            "pricing": self.pricing.to_dict(),
            "aiInsights": self.insight.to_dict(),
            "timestamp": format_timestamp(self.generated_at),
        }


@dataclass(frozen=True)
class MarketSnapshot:
    league: str
    currency: str
    generated_at: datetime
    note: str = "Market data integration pending - poe2scout.com API"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "league": self.league,
            "currency": self.currency,
            "timestamp": format_timestamp(self.generated_at),
            "note": self.note,
        }


@dataclass(frozen=True)
class MarketReport:
    league: str
    market: MarketSnapshot
    analysis: InsightResult
    generated_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "league": self.league,
            "market": self.market.to_dict(),
            "analysis": self.analysis.to_dict(),
            "timestamp": format_timestamp(self.generated_at),
        }


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Format datetime values as ISO-8601 strings with millisecond precision."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    else:
        value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")
