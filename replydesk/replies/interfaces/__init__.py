"""
Replies Interfaces Layer
========================

Interface adapters (controllers) for reply generation and order lookup.
"""

from replydesk.replies.interfaces.controllers import replies_router, orders_router

__all__ = ["replies_router", "orders_router"]
