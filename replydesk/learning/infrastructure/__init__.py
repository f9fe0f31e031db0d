"""
Learning Infrastructure Layer
=============================

Helpdesk (Freshdesk) API client.
"""

from replydesk.learning.infrastructure.external import (
    FreshdeskClient,
    RateLimiter,
    normalize_domain,
    parse_retry_after
)

__all__ = ["FreshdeskClient", "RateLimiter", "normalize_domain", "parse_retry_after"]
