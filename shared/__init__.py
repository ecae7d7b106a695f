"""
Shared utilities for the Props entitlement services.

This package aggregates common building blocks consumed by the services:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- observability: Error reporter for fail-open events
- circuit_breaker: Resilient external call protection
- base_service: FastAPI service skeleton

Do not import from service_* packages into shared/.
"""
