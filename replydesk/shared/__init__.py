"""
Shared Kernel Module
====================

Shared infrastructure used across all bounded contexts (Knowledge,
Learning and Replies).

Architecture Pattern: Modular Monolith
- Each module (knowledge, learning, replies) is a bounded context
- Shared kernel contains only generic infrastructure

DO NOT add retrieval or harvesting logic to the shared kernel.
"""

__version__ = "1.0.0"
