"""
Learning Application Layer
==========================

Application layer for the ticket-learning module.

Contains:
- Services: TicketHarvester
- Cache: per-tenant learning records
- DTOs: Data transfer objects for API serialization
"""

from replydesk.learning.application.dto import HarvestRequest, HarvestResponse, TopicCount
from replydesk.learning.application.cache import LearningCache
from replydesk.learning.application.services import TicketHarvester

__all__ = [
    "HarvestRequest",
    "HarvestResponse",
    "TopicCount",
    "LearningCache",
    "TicketHarvester",
]
