"""
Rate limiting package for the bridge.

Holds the fixed-window limiter that enforces per-client request budgets so
the bridge stays under the trade API's published ceiling.
"""

from .fixed_window import Allowed, FixedWindowRateLimiter, RateLimitState, Rejected, get_client_key

__all__ = ["Allowed", "FixedWindowRateLimiter", "RateLimitState", "Rejected", "get_client_key"]
