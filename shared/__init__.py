"""
Shared utilities for the Exile AI Bridge.

This package aggregates common building blocks consumed by the bridge service:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- circuit_breaker: Resilient upstream call protection
- base_service: FastAPI application shell

Service-specific logic should not live here. Do not import from
service_bridge into shared/.
"""
