"""
Replies Application Layer
=========================

Application layer for the reply-generation module.

Contains:
- Services: ReplyService
- DTOs: Data transfer objects for API serialization
"""

from replydesk.replies.application.dto import (
    GenerateReplyRequest,
    GenerateReplyResponse,
    OrderLookupRequest,
    OrderLookupResponse,
    SourceInfo
)
from replydesk.replies.application.services import ReplyService

__all__ = [
    "GenerateReplyRequest",
    "GenerateReplyResponse",
    "OrderLookupRequest",
    "OrderLookupResponse",
    "SourceInfo",
    "ReplyService",
]
