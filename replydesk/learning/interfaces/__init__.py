"""
Learning Interfaces Layer
=========================

Interface adapters (controllers) for the ticket-learning module.
"""

from replydesk.learning.interfaces.controllers import learning_router

__all__ = ["learning_router"]
