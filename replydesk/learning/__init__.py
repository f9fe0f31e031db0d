"""
Learning Module
===============

Bounded Context for learning from a helpdesk's resolved tickets.

Responsibilities:
- Discover resolved and closed tickets under the helpdesk's rate limits
- Turn ticket threads into question/answer knowledge blocks
- Relearn the tenant's learned document in one replace step
- Cache learning records for similar-ticket lookups
"""

__version__ = "1.0.0"
