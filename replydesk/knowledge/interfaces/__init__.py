"""
Knowledge Interfaces Layer
==========================

Interface adapters (controllers) for the knowledge module.
"""

from replydesk.knowledge.interfaces.controllers import knowledge_router

__all__ = ["knowledge_router"]
