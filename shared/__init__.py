"""
Shared utilities for the Trade Operations Workspace Layer.

This package aggregates common building blocks consumed by the workspace
service and its scripts:

- config: Layer configuration via pydantic-settings
- logging: Structured logging with correlation context
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- retry: Retry decorator for idempotent remote reads
- test_helpers: Data factories and fake clocks for tests

Any cross-service logic should live here to avoid import cycles across
service packages. Do not import from service_* packages into shared/.
"""
