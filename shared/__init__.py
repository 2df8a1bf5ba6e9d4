"""
Shared utilities for the social graph sync layer.

This package aggregates common building blocks consumed by the sync client:

- config: Client configuration via pydantic-settings
- logging: Structured logging with session correlation
- metrics: Prometheus metrics helpers
- errors: Closed error taxonomy and rejection classification

Do not import from service_sync into shared/.
"""
