"""
Knowledge Module
================

Bounded Context for the tenant knowledge base.

Responsibilities:
- Split documents into overlapping chunks
- Embed and store chunks per tenant, rolling back partial writes
- Supersede learned documents when a tenant relearns
- Learn single agent replies, skipping near-duplicates
"""

__version__ = "1.0.0"
