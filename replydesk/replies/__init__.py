"""
Replies Module
==============

Bounded Context for drafting replies to customer messages.

Responsibilities:
- Enrich the prompt with live storefront order data
- Retrieve the tenant's most relevant knowledge chunks
- Quote similar past tickets from the learning cache
- Generate the reply and report its sources
"""

__version__ = "1.0.0"
