"""
Shared utilities for the query cacher.

Common building blocks consumed by the caching core and its adapters:

- config: Settings via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses

Do not import from query_cacher.caching or query_cacher.adapters into shared/.
"""
